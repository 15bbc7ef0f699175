"""Wire models for the Typesense Server and Cloud Management APIs.

Every entity exchanged with either API is a pydantic model. Models are
plain values: they are fetched, rendered to Terraform, written to export
files, or replayed against another cluster.

Serialization goes through ``to_payload()``, which drops ``None`` so an
optional field keeps its presence/absence across a round trip (an explicit
``index: false`` survives, an unset ``index`` is never sent).
"""

from __future__ import annotations

import enum
from typing import Any

from pydantic import BaseModel, ConfigDict, Field


class WireModel(BaseModel):
    """Base for all API payloads."""

    model_config = ConfigDict(populate_by_name=True, protected_namespaces=())

    def to_payload(self) -> dict[str, Any]:
        """JSON-ready dict using wire names, with unset optionals omitted."""
        return self.model_dump(mode="json", by_alias=True, exclude_none=True)


# --- Collections ---


class EmbedModelConfig(WireModel):
    model_name: str
    api_key: str | None = None
    url: str | None = None


class FieldEmbed(WireModel):
    """Auto-embedding configuration of a vector field."""

    from_: list[str] = Field(default_factory=list, alias="from")
    embed_model: EmbedModelConfig = Field(alias="model_config")


class HnswParams(WireModel):
    ef_construction: int | None = None
    m: int | None = None


class CollectionField(WireModel):
    """A single field in a collection schema.

    ``type`` is optional only so that a drop instruction
    (``{"name": "x", "drop": true}``) can be expressed in an update.
    """

    name: str
    type: str | None = None
    facet: bool | None = None
    optional: bool | None = None
    index: bool | None = None
    sort: bool | None = None
    infix: bool | None = None
    locale: str | None = None
    drop: bool | None = None
    num_dim: int | None = None
    vec_dist: str | None = None
    reference: str | None = None
    async_reference: bool | None = None
    stem: bool | None = None
    range_index: bool | None = None
    store: bool | None = None
    token_separators: list[str] | None = None
    symbols_to_index: list[str] | None = None
    embed: FieldEmbed | None = None
    hnsw_params: HnswParams | None = None


class Collection(WireModel):
    """A Typesense collection.

    ``num_documents`` and ``created_at`` are computed by the server and are
    stripped by ``schema_payload()`` before a schema is exported or replayed.
    """

    name: str | None = None
    fields: list[CollectionField] = Field(default_factory=list)
    default_sorting_field: str | None = None
    token_separators: list[str] | None = None
    symbols_to_index: list[str] | None = None
    enable_nested_fields: bool | None = None
    voice_query_model: dict[str, Any] | None = None
    metadata: dict[str, Any] | None = None
    synonym_sets: list[str] | None = None
    num_documents: int | None = None
    created_at: int | None = None

    def schema_payload(self) -> dict[str, Any]:
        """Creation payload: everything except server-computed fields."""
        payload = self.to_payload()
        payload.pop("num_documents", None)
        payload.pop("created_at", None)
        return payload


# --- Synonyms ---


class Synonym(WireModel):
    """Per-collection synonym (servers before v30)."""

    id: str
    root: str | None = None
    synonyms: list[str] = Field(default_factory=list)


class SynonymItem(WireModel):
    id: str
    root: str | None = None
    synonyms: list[str] = Field(default_factory=list)


class SynonymSet(WireModel):
    """System-level synonym set (v30+).

    ``items`` is always serialized, even when empty: the server rejects a
    set payload without it.
    """

    name: str
    items: list[SynonymItem] = Field(default_factory=list)


# --- Overrides / curation ---


class OverrideRule(WireModel):
    query: str | None = None
    match: str | None = None
    tags: list[str] | None = None
    filter_by: str | None = None


class OverrideInclude(WireModel):
    id: str
    position: int


class OverrideExclude(WireModel):
    id: str


class Override(WireModel):
    """Per-collection curation rule (servers before v30)."""

    id: str
    rule: OverrideRule = Field(default_factory=OverrideRule)
    includes: list[OverrideInclude] | None = None
    excludes: list[OverrideExclude] | None = None
    filter_by: str | None = None
    sort_by: str | None = None
    replace_query: str | None = None
    remove_matched_tokens: bool | None = None
    filter_curated_hits: bool | None = None
    effective_from_ts: int | None = None
    effective_to_ts: int | None = None
    stop_processing: bool | None = None
    metadata: dict[str, Any] | None = None


class CurationItem(Override):
    """A curation rule inside a curation set (v30+)."""


class CurationSet(WireModel):
    """System-level curation set (v30+). ``items`` is always serialized."""

    name: str
    items: list[CurationItem] = Field(default_factory=list)


# --- Global resources ---


class StopwordsSet(WireModel):
    id: str
    stopwords: list[str] = Field(default_factory=list)
    locale: str | None = None


class ApiKey(WireModel):
    """A scoped API key.

    ``value`` is only ever present in the response to the create call.
    Later reads expose ``value_prefix`` at most.
    """

    id: int | None = None
    value: str | None = None
    value_prefix: str | None = None
    description: str = ""
    actions: list[str] = Field(default_factory=list)
    collections: list[str] = Field(default_factory=list)
    expires_at: int | None = None


class CollectionAlias(WireModel):
    name: str
    collection_name: str


class Preset(WireModel):
    name: str | None = None
    value: dict[str, Any] = Field(default_factory=dict)


class AnalyticsRule(WireModel):
    """Analytics rule in the flat (v30+) shape.

    Older servers nest the source/destination collections inside
    ``params``; the conversion lives in ``typesense_tf.version``.
    """

    name: str | None = None
    type: str
    collection: str | None = None
    event_type: str | None = None
    params: dict[str, Any] = Field(default_factory=dict)


class NLSearchModel(WireModel):
    id: str
    model_name: str
    api_key: str | None = None
    system_prompt: str | None = None
    max_bytes: int | None = None
    temperature: float | None = None
    top_p: float | None = None
    top_k: int | None = None
    account_id: str | None = None
    api_url: str | None = None
    project_id: str | None = None
    access_token: str | None = None
    refresh_token: str | None = None
    client_id: str | None = None
    client_secret: str | None = None
    region: str | None = None
    stop_sequences: list[str] | None = None
    api_version: str | None = None


class ConversationModel(WireModel):
    id: str | None = None
    model_name: str
    api_key: str | None = None
    history_collection: str | None = None
    system_prompt: str = ""
    ttl: int | None = None
    max_bytes: int | None = None
    account_id: str | None = None
    vllm_url: str | None = None


class ServerInfo(WireModel):
    state: int | None = None
    version: str = ""


# --- Cloud ---


class ClusterStatus(enum.StrEnum):
    PENDING = "pending"
    PROVISIONING = "provisioning"
    IN_SERVICE = "in_service"
    FAILED = "failed"
    TERMINATED = "terminated"


class ClusterHostnames(WireModel):
    load_balanced: str | None = None
    nodes: list[str] | None = None


class ClusterApiKeys(WireModel):
    admin: str | None = None
    search: str | None = None
    search_only: str | None = None


class Cluster(WireModel):
    """A Typesense Cloud cluster."""

    id: str | None = None
    name: str
    memory: str | None = None
    vcpu: str | None = None
    high_availability: str | None = None
    search_delivery_network: str | None = None
    typesense_server_version: str | None = None
    regions: list[str] = Field(default_factory=list)
    status: str | None = None
    hostnames: ClusterHostnames | None = None
    api_keys: ClusterApiKeys | None = None
    auto_upgrade_capacity: bool | None = None
    created_at: str | None = None


class ClusterConfigChange(WireModel):
    """A scheduled configuration change for a cloud cluster."""

    id: str | None = None
    cluster_id: str
    new_memory: str | None = None
    new_vcpu: str | None = None
    new_high_availability: str | None = None
    new_typesense_server_version: str | None = None
    perform_change_at: int | None = None
    status: str | None = None
