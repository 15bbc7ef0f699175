"""Terraform resource naming.

Terraform resource names must start with a letter or underscore and contain
only letters, digits and underscores. Typesense names are free-form, so
every name goes through ``sanitize_resource_name`` and collisions within a
resource type are resolved with ``make_unique_resource_name``.
"""

from __future__ import annotations

import re

_SEPARATORS = re.compile(r"[-. ]")
_INVALID = re.compile(r"[^A-Za-z0-9_]")
_UNDERSCORE_RUNS = re.compile(r"_+")


def sanitize_resource_name(name: str) -> str:
    """Convert a Typesense name into a valid Terraform resource name.

    >>> sanitize_resource_name("My Products!")
    'my_products'
    >>> sanitize_resource_name("2024-logs")
    '_2024_logs'
    """
    if not name:
        return "_empty"

    result = _SEPARATORS.sub("_", name)
    result = _INVALID.sub("", result)
    result = _UNDERSCORE_RUNS.sub("_", result).lower()

    # a single leading underscore is kept so sanitized names are fixed points
    leading = result.startswith("_")
    core = result.strip("_")
    if not core:
        return "_resource"
    if leading or core[0].isdigit():
        return "_" + core
    return core


def make_unique_resource_name(base: str, seen: set[str]) -> str:
    """Sanitize *base* and make it unique within *seen*.

    The first use keeps the sanitized name; later collisions get ``_2``,
    ``_3`` and so on. The returned name is added to *seen*.
    """
    name = sanitize_resource_name(base)
    candidate = name
    suffix = 2
    while candidate in seen:
        candidate = f"{name}_{suffix}"
        suffix += 1
    seen.add(candidate)
    return candidate
