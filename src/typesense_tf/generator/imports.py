"""``terraform import`` script generation.

Each generated resource block gets one import line so that an existing
cluster can be adopted into Terraform state without recreating anything.
"""

from __future__ import annotations

from dataclasses import dataclass

_SCRIPT_HEADER = """\
#!/bin/bash
# Generated Terraform import commands
# Run this script after 'terraform init' to import existing resources

set -e
"""


@dataclass(frozen=True)
class ImportCommand:
    resource_type: str
    resource_name: str
    import_id: str

    @property
    def address(self) -> str:
        return f"{self.resource_type}.{self.resource_name}"

    def render(self) -> str:
        return f"terraform import {self.address} {shell_quote(self.import_id)}"


def shell_quote(value: str) -> str:
    """Double-quote *value* for bash, escaping ``\\ " $ `` and backticks."""
    escaped = value
    for ch in ("\\", '"', "$", "`"):
        escaped = escaped.replace(ch, "\\" + ch)
    return f'"{escaped}"'


def generate_import_script(commands: list[ImportCommand]) -> str:
    lines = [_SCRIPT_HEADER]
    lines.extend(cmd.render() for cmd in commands)
    lines.append("")
    lines.append('echo "Import complete!"')
    return "\n".join(lines) + "\n"


# --- Import ids ---


def collection_import_id(name: str) -> str:
    return name


def synonym_import_id(collection: str, synonym_id: str) -> str:
    return f"{collection}/{synonym_id}"


def override_import_id(collection: str, override_id: str) -> str:
    return f"{collection}/{override_id}"


def api_key_import_id(key_id: int) -> str:
    return str(key_id)
