"""Tests for Generator: main.tf, imports.sh and data export against a fake server."""

from __future__ import annotations

import json
import os

import pytest

from typesense_tf.client import ApiError
from typesense_tf.generator import GenerateResult, Generator, GeneratorConfig, GeneratorError
from typesense_tf.generator.export import SCHEMA_SUFFIX, collection_name, data_file

from conftest import TruncatedBody

EMPTY_LISTS = {
    "/stopwords": {"stopwords": []},
    "/aliases": {"aliases": []},
    "/presets": {"presets": []},
    "/analytics/rules": {"rules": []},
    "/keys": {"keys": []},
    "/nl_search_models": [],
    "/conversations/models": [],
}


def _serve(api, collections=(), **overrides) -> None:
    api.add("GET", "/collections", list(collections))
    for route, body in EMPTY_LISTS.items():
        api.add("GET", route, overrides.get(route, body))


def _generate(tmp_path, **kwargs) -> GenerateResult:
    config = GeneratorConfig(output_dir=tmp_path / "out", host="localhost", api_key="admin-secret", **kwargs)
    return Generator(config).generate()


def _schema(name: str, *fields: tuple[str, str]) -> dict:
    return {"name": name, "fields": [{"name": n, "type": t} for n, t in fields], "num_documents": 3}


# --- Server resources ---


class TestServerGeneration:
    def test_collection_with_synonym(self, v29_api, tmp_path):
        _serve(v29_api, [_schema("My Products!", ("title", "string"), ("price", "float"))])
        v29_api.add("GET", "/collections/My%20Products%21/synonyms",
                    {"synonyms": [{"id": "colors", "synonyms": ["red", "crimson"]}]})
        v29_api.add("GET", "/collections/My%20Products%21/overrides", {"overrides": []})

        result = _generate(tmp_path)

        main_tf = result.main_tf.read_text()
        imports = result.imports_sh.read_text()
        assert 'resource "typesense_collection" "my_products"' in main_tf
        assert 'name = "My Products!"' in main_tf
        assert 'resource "typesense_synonym" "my_products_colors"' in main_tf
        assert "collection = typesense_collection.my_products.name" in main_tf
        assert 'terraform import typesense_collection.my_products "My Products!"' in imports
        assert 'terraform import typesense_synonym.my_products_colors "My Products!/colors"' in imports
        assert result.resource_counts == {"typesense_collection": 1, "typesense_synonym": 1}
        assert result.resource_count == 2
        assert result.data_dir is None

    def test_provider_and_secrets(self, v29_api, tmp_path):
        _serve(v29_api)
        result = _generate(tmp_path)
        main_tf = result.main_tf.read_text()
        assert main_tf.startswith("# Generated by typesense-tf")
        assert 'variable "typesense_api_key"' in main_tf
        assert "server_api_key  = var.typesense_api_key" in main_tf
        assert "admin-secret" not in main_tf
        assert "admin-secret" not in result.imports_sh.read_text()

    def test_imports_script_is_executable(self, v29_api, tmp_path):
        _serve(v29_api)
        result = _generate(tmp_path)
        assert os.access(result.imports_sh, os.X_OK)
        assert result.imports_sh.read_text().startswith("#!/bin/bash\n")

    def test_duplicate_names_get_suffixes(self, v29_api, tmp_path):
        _serve(v29_api, [_schema("a.b"), _schema("a-b")])
        for encoded in ("a.b", "a-b"):
            v29_api.add("GET", f"/collections/{encoded}/synonyms", {"synonyms": []})
            v29_api.add("GET", f"/collections/{encoded}/overrides", {"overrides": []})
        imports = _generate(tmp_path).imports_sh.read_text()
        assert 'typesense_collection.a_b "a-b"' in imports
        assert 'typesense_collection.a_b_2 "a.b"' in imports

    def test_api_keys(self, v29_api, tmp_path):
        _serve(v29_api, **{"/keys": {"keys": [
            {"id": 3, "description": "admin", "actions": ["*"], "collections": ["*"], "value_prefix": "abcd"},
            {"description": "no id", "actions": ["*"], "collections": ["*"]},
        ]}})
        result = _generate(tmp_path)
        main_tf = result.main_tf.read_text()
        assert "# WARNING: the value of API key ID: 3 cannot be read back." in main_tf
        assert '# terraform import typesense_api_key.key_3 3\nresource "typesense_api_key" "key_3"' in main_tf
        assert "abcd" not in main_tf
        assert 'terraform import typesense_api_key.key_3 "3"' in result.imports_sh.read_text()
        assert result.resource_counts == {"typesense_api_key": 1}

    def test_model_keys_become_variables(self, v29_api, tmp_path):
        _serve(v29_api, **{"/nl_search_models": [
            {"id": "nl-1", "model_name": "openai/gpt-4o", "api_key": "sk-secret"},
        ]})
        main_tf = _generate(tmp_path).main_tf.read_text()
        assert 'resource "typesense_nl_search_model" "nl_1"' in main_tf
        assert 'variable "nl_1_api_key"' in main_tf
        assert "api_key = var.nl_1_api_key" in main_tf
        assert "sk-secret" not in main_tf

    def test_nl_model_oauth_credentials_become_variables(self, v29_api, tmp_path):
        _serve(v29_api, **{"/nl_search_models": [{
            "id": "nl-1",
            "model_name": "google/gemini-2.5-flash",
            "client_secret": "cs-secret",
            "refresh_token": "rt-secret",
        }]})
        main_tf = _generate(tmp_path).main_tf.read_text()
        assert 'variable "nl_1_client_secret"' in main_tf
        assert 'variable "nl_1_refresh_token"' in main_tf
        assert "refresh_token = var.nl_1_refresh_token" in main_tf
        assert "client_secret = var.nl_1_client_secret" in main_tf
        assert 'variable "nl_1_access_token"' not in main_tf
        assert "cs-secret" not in main_tf
        assert "rt-secret" not in main_tf

    def test_conversation_model_without_history_collection(self, fake_api, tmp_path):
        fake_api.add("GET", "/debug", {"state": 1, "version": "27.1"})
        _serve(fake_api, **{"/conversations/models": [
            {"id": "conv", "model_name": "openai/gpt-3.5-turbo", "system_prompt": "x", "max_bytes": 16384},
        ]})
        result = _generate(tmp_path)
        main_tf = result.main_tf.read_text()
        assert 'resource "typesense_conversation_model" "conv"' in main_tf
        assert "history_collection" not in main_tf
        assert "max_bytes     = 16384" in main_tf
        assert result.resource_counts == {"typesense_conversation_model": 1}

    def test_alias_references_managed_collection(self, v29_api, tmp_path):
        _serve(v29_api, [_schema("products_v2")], **{"/aliases": {"aliases": [
            {"name": "products", "collection_name": "products_v2"},
            {"name": "orphan", "collection_name": "elsewhere"},
        ]}})
        v29_api.add("GET", "/collections/products_v2/synonyms", {"synonyms": []})
        v29_api.add("GET", "/collections/products_v2/overrides", {"overrides": []})
        main_tf = _generate(tmp_path).main_tf.read_text()
        assert "collection_name = typesense_collection.products_v2.name" in main_tf
        assert 'collection_name = "elsewhere"' in main_tf

    def test_stopwords(self, v29_api, tmp_path):
        _serve(v29_api, **{"/stopwords": {"stopwords": [{"id": "common", "stopwords": ["a", "the"]}]}})
        result = _generate(tmp_path)
        assert 'resource "typesense_stopwords_set" "common"' in result.main_tf.read_text()
        assert 'terraform import typesense_stopwords_set.common "common"' in result.imports_sh.read_text()

    def test_client_errors_propagate(self, v29_api, tmp_path):
        with pytest.raises(ApiError):
            _generate(tmp_path)


# --- Version gating ---


class TestVersionGating:
    def test_old_server_skips_unsupported(self, fake_api, tmp_path):
        fake_api.add("GET", "/debug", {"version": "26.0"})
        _serve(fake_api)
        _generate(tmp_path)
        for route in ("/stopwords", "/presets", "/analytics/rules", "/nl_search_models"):
            assert fake_api.calls("GET", route) == []
        assert len(fake_api.calls("GET", "/conversations/models")) == 1

    def test_unknown_version_treats_404_as_unsupported(self, fake_api, tmp_path):
        fake_api.add("GET", "/collections", [])
        fake_api.add("GET", "/aliases", {"aliases": []})
        fake_api.add("GET", "/keys", {"keys": []})
        result = _generate(tmp_path)
        assert result.resource_count == 0
        assert len(fake_api.calls("GET", "/stopwords")) == 1

    def test_v30_reads_synonym_sets(self, v30_api, tmp_path):
        _serve(v30_api, [_schema("products")])
        v30_api.add("GET", "/synonym_sets/products",
                    {"name": "products", "items": [{"id": "s1", "synonyms": ["tv", "television"]}]})
        main_tf = _generate(tmp_path).main_tf.read_text()
        assert 'resource "typesense_synonym" "products_s1"' in main_tf
        assert v30_api.calls("GET", "/collections/products/synonyms") == []
        assert len(v30_api.calls("GET", "/curation_sets/products")) == 1


# --- Data export ---


class TestDataExport:
    def test_include_data(self, v29_api, tmp_path):
        _serve(v29_api, [_schema("products", ("title", "string"))],
               **{"/stopwords": {"stopwords": [{"id": "common", "stopwords": ["the"]}]}})
        v29_api.add("GET", "/collections/products/synonyms",
                    {"synonyms": [{"id": "s1", "synonyms": ["a", "b"]}]})
        v29_api.add("GET", "/collections/products/overrides", {"overrides": []})
        v29_api.add("GET", "/collections/products/documents/export", b'{"id":"1"}\n{"id":"2"}')

        result = _generate(tmp_path, include_data=True)

        data = tmp_path / "out" / "data"
        assert result.data_dir == data
        assert result.exported_collections == ["products"]
        schema = json.loads((data / "products.schema.json").read_text())
        assert schema["name"] == "products"
        assert "num_documents" not in schema
        assert (data / "products.jsonl").read_bytes() == b'{"id":"1"}\n{"id":"2"}'
        assert json.loads((data / "products.synonyms.json").read_text())[0]["id"] == "s1"
        assert not (data / "products.overrides.json").exists()
        assert json.loads((data / "_stopwords.json").read_text())[0]["id"] == "common"

    def test_collection_names_cannot_leave_data_dir(self, v29_api, tmp_path):
        _serve(v29_api, [_schema("../escape", ("title", "string"))])
        v29_api.add("GET", "/collections/..%2Fescape/synonyms", {"synonyms": [{"id": "s1", "synonyms": ["a", "b"]}]})
        v29_api.add("GET", "/collections/..%2Fescape/overrides", {"overrides": []})
        v29_api.add("GET", "/collections/..%2Fescape/documents/export", b'{"id":"1"}')

        result = _generate(tmp_path, include_data=True)

        data = tmp_path / "out" / "data"
        assert result.exported_collections == ["../escape"]
        assert sorted(p.name for p in data.iterdir()) == [
            "..%2Fescape.jsonl",
            "..%2Fescape.schema.json",
            "..%2Fescape.synonyms.json",
        ]
        assert sorted(p.name for p in (tmp_path / "out").iterdir()) == ["data", "imports.sh", "main.tf"]
        schema = json.loads((data / "..%2Fescape.schema.json").read_text())
        assert schema["name"] == "../escape"

    def test_data_file_names_are_percent_encoded(self, tmp_path):
        path = data_file(tmp_path, "../escape", SCHEMA_SUFFIX)
        assert path.parent == tmp_path
        assert path.name == "..%2Fescape.schema.json"
        assert collection_name(path.name, SCHEMA_SUFFIX) == "../escape"
        assert data_file(tmp_path, "products", SCHEMA_SUFFIX).name == "products.schema.json"
        assert collection_name("My%20Products%21.schema.json", SCHEMA_SUFFIX) == "My Products!"

    def test_truncated_export_raises_generator_error(self, v29_api, tmp_path):
        _serve(v29_api, [_schema("products", ("title", "string"))])
        v29_api.add("GET", "/collections/products/synonyms", {"synonyms": []})
        v29_api.add("GET", "/collections/products/overrides", {"overrides": []})
        v29_api.add("GET", "/collections/products/documents/export", TruncatedBody(b'{"id":"1"}\n'))
        with pytest.raises(GeneratorError, match="export documents"):
            _generate(tmp_path, include_data=True)

    def test_no_data_dir_without_flag(self, v29_api, tmp_path):
        _serve(v29_api)
        _generate(tmp_path)
        assert not (tmp_path / "out" / "data").exists()


# --- Cloud ---


class TestCloudGeneration:
    def test_cloud_only(self, fake_api, tmp_path):
        fake_api.add("GET", "/api/v1/clusters", [{
            "id": "abc123",
            "name": "prod search",
            "memory": "0.5_gb",
            "vcpu": "2_vcpus_1_hr_burst_per_day",
            "high_availability": "no",
            "typesense_server_version": "29.0",
            "regions": ["oregon"],
            "status": "in_service",
        }])
        config = GeneratorConfig(output_dir=tmp_path / "out", cloud_api_key="cloud-secret")
        result = Generator(config).generate()

        main_tf = result.main_tf.read_text()
        assert 'resource "typesense_cluster" "prod_search"' in main_tf
        assert "cloud_management_api_key = var.typesense_cloud_management_api_key" in main_tf
        assert "server_host" not in main_tf
        assert "cloud-secret" not in main_tf
        assert 'terraform import typesense_cluster.prod_search "abc123"' in result.imports_sh.read_text()
        assert result.resource_counts == {"typesense_cluster": 1}
