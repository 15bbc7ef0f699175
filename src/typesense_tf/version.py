"""Typesense server versions, feature detection and API shapes.

Typesense v30 replaced per-collection synonyms/overrides with system-level
synonym sets and curation sets, and flattened the analytics-rule payload.
Rather than checking the version at each call site, a client picks one
``ApiShape`` for the server it talks to and routes every version-sensitive
call through it:

- ``LegacyApiShape`` (major < 30): ``/collections/{c}/synonyms``,
  ``/collections/{c}/overrides``, nested analytics ``params``.
- ``SetsApiShape`` (major >= 30): one synonym set and one curation set per
  collection, named after the collection, flat analytics payload.
"""

from __future__ import annotations

import enum
import re
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any, Protocol, runtime_checkable

from typesense_tf.models import (
    AnalyticsRule,
    CurationItem,
    CurationSet,
    Override,
    Synonym,
    SynonymItem,
    SynonymSet,
)

if TYPE_CHECKING:
    from typesense_tf.client.server import ServerClient

LATEST_MAJOR = 30
"""Assumed when the server version cannot be determined."""

SETS_MAJOR = 30

_VERSION_RE = re.compile(r"^(\d+)\.(\d+)(?:\.(\d+|[a-zA-Z]+\d*))?$")


@dataclass(frozen=True, order=False)
class ServerVersion:
    """A parsed Typesense version such as ``29.0``, ``30.1.2`` or ``30.0.rc38``."""

    major: int
    minor: int
    patch: int = 0
    pre_release: str = ""
    raw: str = field(default="", compare=False)

    @classmethod
    def parse(cls, text: str) -> ServerVersion:
        if not text:
            raise ValueError("empty version string")
        match = _VERSION_RE.match(text.strip())
        if match is None:
            raise ValueError(f"invalid version format: {text!r}")
        major, minor, third = match.groups()
        patch, pre = 0, ""
        if third:
            if third.isdigit():
                patch = int(third)
            else:
                pre = third
        return cls(int(major), int(minor), patch, pre, text)

    def _key(self) -> tuple[int, int, int]:
        return (self.major, self.minor, self.patch)

    def compare(self, other: ServerVersion) -> int:
        """Return -1, 0 or 1. A pre-release sorts before its release."""
        if self._key() != other._key():
            return -1 if self._key() < other._key() else 1
        if self.pre_release and not other.pre_release:
            return -1
        if other.pre_release and not self.pre_release:
            return 1
        if self.pre_release and other.pre_release:
            return _compare_pre_release(self.pre_release, other.pre_release)
        return 0

    def __lt__(self, other: ServerVersion) -> bool:
        return self.compare(other) < 0

    def __le__(self, other: ServerVersion) -> bool:
        return self.compare(other) <= 0

    def __gt__(self, other: ServerVersion) -> bool:
        return self.compare(other) > 0

    def __ge__(self, other: ServerVersion) -> bool:
        return self.compare(other) >= 0

    def __str__(self) -> str:
        return self.raw or f"{self.major}.{self.minor}"


def _compare_pre_release(a: str, b: str) -> int:
    a_prefix, a_num = _split_trailing_number(a)
    b_prefix, b_num = _split_trailing_number(b)
    if a_prefix != b_prefix:
        return -1 if a_prefix < b_prefix else 1
    if a_num != b_num:
        return -1 if a_num < b_num else 1
    return 0


def _split_trailing_number(text: str) -> tuple[str, int]:
    prefix = text.rstrip("0123456789")
    digits = text[len(prefix):]
    return prefix, int(digits) if digits else 0


def parse_major(text: str | None) -> int | None:
    """Leading integer before the first ``.``, or None if there is none."""
    if not text:
        return None
    head = text.strip().split(".", 1)[0]
    try:
        return int(head)
    except ValueError:
        return None


# --- Feature detection ---


class Feature(enum.StrEnum):
    SYNONYM_SETS = "synonym_sets"
    CURATION_SETS = "curation_sets"
    PER_COLLECTION_SYNONYMS = "per_collection_synonyms"
    PER_COLLECTION_OVERRIDES = "per_collection_overrides"
    CONVERSATION_MODELS = "conversation_models"
    PRESETS = "presets"
    STOPWORDS = "stopwords"
    ANALYTICS_RULES = "analytics_rules"
    NL_SEARCH_MODELS = "nl_search_models"


# minimum version (inclusive), maximum version (exclusive)
_FEATURE_RANGES: dict[Feature, tuple[ServerVersion | None, ServerVersion | None]] = {
    Feature.SYNONYM_SETS: (ServerVersion(30, 0), None),
    Feature.CURATION_SETS: (ServerVersion(30, 0), None),
    Feature.PER_COLLECTION_SYNONYMS: (None, ServerVersion(30, 0)),
    Feature.PER_COLLECTION_OVERRIDES: (None, ServerVersion(30, 0)),
    Feature.CONVERSATION_MODELS: (ServerVersion(26, 0), None),
    Feature.PRESETS: (ServerVersion(27, 0), None),
    Feature.STOPWORDS: (ServerVersion(27, 0), None),
    Feature.ANALYTICS_RULES: (ServerVersion(28, 0), None),
    Feature.NL_SEARCH_MODELS: (ServerVersion(29, 0), None),
}


def supports(feature: Feature, version: ServerVersion | None) -> bool:
    """Whether *version* supports *feature*.

    An unknown version supports nothing; callers then try the endpoint and
    treat a 404 as absence.
    """
    if version is None:
        return False
    minimum, maximum = _FEATURE_RANGES[feature]
    if minimum is not None and version < minimum:
        return False
    return not (maximum is not None and version >= maximum)


def min_version_label(feature: Feature) -> str:
    minimum, _ = _FEATURE_RANGES[feature]
    if minimum is None:
        return "unknown version"
    return f"v{minimum.major}.{minimum.minor}+"


# --- API shapes ---


@runtime_checkable
class ApiShape(Protocol):
    """Protocol for version-specific wire behaviour, selected once per client.

    Any object with the analytics payload builder and the synonym/override
    routing methods below satisfies it.
    """

    name: str
    uses_sets: bool

    def analytics_rule_payload(self, rule: AnalyticsRule) -> dict[str, Any]:
        """Wire payload for an analytics rule."""
        ...

    def list_synonyms(self, client: ServerClient, collection: str) -> list[Synonym]:
        ...

    def get_synonym(self, client: ServerClient, collection: str, synonym_id: str) -> Synonym | None:
        ...

    def upsert_synonym(self, client: ServerClient, collection: str, synonym: Synonym) -> Synonym:
        ...

    def delete_synonym(self, client: ServerClient, collection: str, synonym_id: str) -> None:
        ...

    def list_overrides(self, client: ServerClient, collection: str) -> list[Override]:
        ...

    def get_override(self, client: ServerClient, collection: str, override_id: str) -> Override | None:
        ...

    def upsert_override(self, client: ServerClient, collection: str, override: Override) -> Override:
        ...

    def delete_override(self, client: ServerClient, collection: str, override_id: str) -> None:
        ...


class LegacyApiShape:
    """Servers before v30: per-collection endpoints, nested analytics params."""

    name = "legacy"
    uses_sets = False

    def analytics_rule_payload(self, rule: AnalyticsRule) -> dict[str, Any]:
        params: dict[str, Any] = {
            "source": {"collections": [rule.collection]},
        }
        destination: dict[str, Any] = {}
        if isinstance(rule.params.get("destination_collection"), str):
            destination["collection"] = rule.params["destination_collection"]
        if isinstance(rule.params.get("counter_field"), str):
            destination["counter_field"] = rule.params["counter_field"]
        params["destination"] = destination
        for key, value in rule.params.items():
            if key not in ("destination_collection", "counter_field"):
                params[key] = value

        payload: dict[str, Any] = {"type": rule.type}
        if rule.event_type:
            payload["event_type"] = rule.event_type
        payload["params"] = params
        return payload

    def list_synonyms(self, client: ServerClient, collection: str) -> list[Synonym]:
        return client.list_synonyms(collection)

    def get_synonym(self, client: ServerClient, collection: str, synonym_id: str) -> Synonym | None:
        return client.get_synonym(collection, synonym_id)

    def upsert_synonym(self, client: ServerClient, collection: str, synonym: Synonym) -> Synonym:
        return client.upsert_synonym(collection, synonym)

    def delete_synonym(self, client: ServerClient, collection: str, synonym_id: str) -> None:
        client.delete_synonym(collection, synonym_id)

    def list_overrides(self, client: ServerClient, collection: str) -> list[Override]:
        return client.list_overrides(collection)

    def get_override(self, client: ServerClient, collection: str, override_id: str) -> Override | None:
        return client.get_override(collection, override_id)

    def upsert_override(self, client: ServerClient, collection: str, override: Override) -> Override:
        return client.upsert_override(collection, override)

    def delete_override(self, client: ServerClient, collection: str, override_id: str) -> None:
        client.delete_override(collection, override_id)


class SetsApiShape:
    """v30+: one synonym set and one curation set per collection.

    The set carries the collection's name. It is created empty on the first
    write so that item upserts have a parent.
    """

    name = "sets"
    uses_sets = True

    def analytics_rule_payload(self, rule: AnalyticsRule) -> dict[str, Any]:
        payload: dict[str, Any] = {"type": rule.type, "collection": rule.collection}
        if rule.event_type:
            payload["event_type"] = rule.event_type
        payload["params"] = dict(rule.params)
        return payload

    def list_synonyms(self, client: ServerClient, collection: str) -> list[Synonym]:
        synonym_set = client.get_synonym_set(collection)
        if synonym_set is None:
            return []
        return [Synonym.model_validate(item.to_payload()) for item in synonym_set.items]

    def get_synonym(self, client: ServerClient, collection: str, synonym_id: str) -> Synonym | None:
        item = client.get_synonym_set_item(collection, synonym_id)
        return None if item is None else Synonym.model_validate(item.to_payload())

    def upsert_synonym(self, client: ServerClient, collection: str, synonym: Synonym) -> Synonym:
        if client.get_synonym_set(collection) is None:
            client.upsert_synonym_set(SynonymSet(name=collection))
        item = client.upsert_synonym_set_item(
            collection, SynonymItem.model_validate(synonym.to_payload()),
        )
        return Synonym.model_validate(item.to_payload())

    def delete_synonym(self, client: ServerClient, collection: str, synonym_id: str) -> None:
        client.delete_synonym_set_item(collection, synonym_id)

    def list_overrides(self, client: ServerClient, collection: str) -> list[Override]:
        curation_set = client.get_curation_set(collection)
        if curation_set is None:
            return []
        return [Override.model_validate(item.to_payload()) for item in curation_set.items]

    def get_override(self, client: ServerClient, collection: str, override_id: str) -> Override | None:
        item = client.get_curation_set_item(collection, override_id)
        return None if item is None else Override.model_validate(item.to_payload())

    def upsert_override(self, client: ServerClient, collection: str, override: Override) -> Override:
        if client.get_curation_set(collection) is None:
            client.upsert_curation_set(CurationSet(name=collection))
        item = client.upsert_curation_set_item(
            collection, CurationItem.model_validate(override.to_payload()),
        )
        return Override.model_validate(item.to_payload())

    def delete_override(self, client: ServerClient, collection: str, override_id: str) -> None:
        client.delete_curation_set_item(collection, override_id)


def api_shape_for(major: int) -> ApiShape:
    """Pick the API shape for a server major version."""
    return SetsApiShape() if major >= SETS_MAJOR else LegacyApiShape()
