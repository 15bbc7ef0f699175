"""Tests for import script generation."""

from __future__ import annotations

from typesense_tf.generator import ImportCommand, generate_import_script
from typesense_tf.generator.imports import shell_quote, synonym_import_id


class TestShellQuote:
    def test_plain(self):
        assert shell_quote("products") == '"products"'

    def test_escapes_shell_specials(self):
        assert shell_quote('a"b$c`d\\e') == '"a\\"b\\$c\\`d\\\\e"'


class TestImportScript:
    def test_format(self):
        script = generate_import_script([
            ImportCommand("typesense_collection", "my_products", "My Products!"),
            ImportCommand("typesense_synonym", "my_products_colors", synonym_import_id("My Products!", "colors")),
        ])
        lines = script.splitlines()
        assert lines[0] == "#!/bin/bash"
        assert "set -e" in lines
        assert 'terraform import typesense_collection.my_products "My Products!"' in lines
        assert 'terraform import typesense_synonym.my_products_colors "My Products!/colors"' in lines
        assert lines[-1] == 'echo "Import complete!"'
        assert script.endswith("\n")

    def test_empty(self):
        script = generate_import_script([])
        assert "terraform import" not in script
        assert script.rstrip().endswith('echo "Import complete!"')

    def test_address(self):
        assert ImportCommand("typesense_api_key", "key_3", "3").address == "typesense_api_key.key_3"
