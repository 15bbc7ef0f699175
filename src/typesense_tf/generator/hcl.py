"""A small HCL writer and one block builder per Terraform resource kind.

Only the subset of HCL the generator needs is supported: blocks with
labels, attributes holding strings, numbers, booleans, lists and objects,
raw references (``var.x``, ``typesense_collection.products.name``) and
line comments. Consecutive attributes are aligned on ``=`` the way
``terraform fmt`` does it, so generated files are already formatted.
"""

from __future__ import annotations

import json
from dataclasses import dataclass, field
from typing import Any

from typesense_tf.models import (
    AnalyticsRule,
    ApiKey,
    Cluster,
    Collection,
    CollectionAlias,
    CollectionField,
    ConversationModel,
    NLSearchModel,
    Override,
    Preset,
    StopwordsSet,
    Synonym,
)

PROVIDER_SOURCE = "alanm/typesense"
INDENT = "  "

# expires_at at or beyond 3000-01-01 means "never expires"
_NEVER_EXPIRES = 32503680000

# NL search model credentials rendered as variables, never as values
NL_MODEL_SECRETS = ("access_token", "refresh_token", "client_id", "client_secret")


class Reference(str):
    """An unquoted HCL expression such as ``var.api_key``."""


@dataclass
class Comment:
    text: str


@dataclass
class Attribute:
    name: str
    value: Any


@dataclass
class Block:
    """An HCL block: ``type "label" ... { body }``."""

    type: str
    labels: list[str] = field(default_factory=list)
    body: list[Attribute | Comment | Block] = field(default_factory=list)

    def attr(self, name: str, value: Any) -> Block:
        self.body.append(Attribute(name, value))
        return self

    def comment(self, text: str) -> Block:
        self.body.append(Comment(text))
        return self

    def block(self, type_: str, *labels: str) -> Block:
        child = Block(type_, list(labels))
        self.body.append(child)
        return child

    def render(self, depth: int = 0) -> str:
        pad = INDENT * depth
        header = " ".join([self.type, *(quote(label) for label in self.labels)])
        lines = [f"{pad}{header} {{"]
        lines.extend(_render_body(self.body, depth + 1))
        lines.append(f"{pad}}}")
        return "\n".join(lines)


def _render_body(items: list[Attribute | Comment | Block], depth: int) -> list[str]:
    pad = INDENT * depth
    lines: list[str] = []
    run: list[Attribute] = []
    after_block = False

    def flush() -> None:
        if not run:
            return
        width = max(len(a.name) for a in run)
        for a in run:
            lines.append(f"{pad}{a.name.ljust(width)} = {render_value(a.value, depth)}")
        run.clear()

    for item in items:
        if after_block and not isinstance(item, Block):
            lines.append("")
            after_block = False
        if isinstance(item, Attribute):
            run.append(item)
            continue
        flush()
        if isinstance(item, Comment):
            lines.append(f"{pad}# {item.text}")
        else:
            if lines:
                lines.append("")
            lines.append(item.render(depth))
            after_block = True
    flush()
    return lines


def quote(text: str) -> str:
    """Render *text* as an HCL string literal, escaping interpolation."""
    escaped = (
        text.replace("\\", "\\\\")
        .replace('"', '\\"')
        .replace("\n", "\\n")
        .replace("\r", "\\r")
        .replace("\t", "\\t")
        .replace("${", "$${")
        .replace("%{", "%%{")
    )
    return f'"{escaped}"'


def render_value(value: Any, depth: int = 0) -> str:
    if isinstance(value, Reference):
        return str(value)
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, (int, float)):
        return repr(value)
    if isinstance(value, str):
        return quote(value)
    if isinstance(value, (list, tuple)):
        return "[" + ", ".join(render_value(v, depth) for v in value) + "]"
    if isinstance(value, dict):
        if not value:
            return "{}"
        pad = INDENT * (depth + 1)
        width = max(len(k) for k in value)
        inner = [f"{pad}{k.ljust(width)} = {render_value(v, depth + 1)}" for k, v in value.items()]
        return "{\n" + "\n".join(inner) + "\n" + INDENT * depth + "}"
    msg = f"cannot render {type(value).__name__} as HCL"
    raise TypeError(msg)


def _comment_lines(text: str) -> str:
    return "\n".join(f"# {line}" if line else "#" for line in text.splitlines())


def render_file(items: list[Block | Comment], header: str | None = None) -> str:
    """Render top-level blocks separated by blank lines.

    A top-level ``Comment`` is attached to the block that follows it.
    """
    parts: list[str] = []
    if header:
        parts.append(_comment_lines(header))
    pending: list[str] = []
    for item in items:
        if isinstance(item, Comment):
            pending.append(_comment_lines(item.text))
            continue
        parts.append("\n".join([*pending, item.render()]))
        pending.clear()
    parts.extend(pending)
    return "\n\n".join(parts) + "\n"


def _json(value: Any) -> str:
    return json.dumps(value, sort_keys=True, separators=(",", ":"))


# --- Provider scaffolding ---


def terraform_block() -> Block:
    tf = Block("terraform")
    tf.block("required_providers").attr("typesense", {"source": PROVIDER_SOURCE})
    return tf


def provider_block(
    host: str | None,
    port: int | None,
    protocol: str | None,
    *,
    api_key_var: str | None = None,
    cloud_api_key_var: str | None = None,
) -> Block:
    provider = Block("provider", ["typesense"])
    if host:
        provider.attr("server_host", host)
        provider.attr("server_port", port)
        provider.attr("server_protocol", protocol)
    if api_key_var:
        provider.attr("server_api_key", Reference(f"var.{api_key_var}"))
    if cloud_api_key_var:
        provider.attr("cloud_management_api_key", Reference(f"var.{cloud_api_key_var}"))
    return provider


def variable_block(name: str, description: str, *, sensitive: bool = True) -> Block:
    variable = Block("variable", [name])
    variable.attr("description", description)
    variable.attr("type", Reference("string"))
    if sensitive:
        variable.attr("sensitive", True)
    return variable


# --- Server resources ---


def collection_block(
    collection: Collection,
    resource_name: str,
    embed_api_key_vars: dict[str, str] | None = None,
) -> Block:
    """``typesense_collection``. Defaults are omitted so plans stay empty."""
    block = Block("resource", ["typesense_collection", resource_name])
    block.attr("name", collection.name or "")
    if collection.default_sorting_field:
        block.attr("default_sorting_field", collection.default_sorting_field)
    if collection.enable_nested_fields:
        block.attr("enable_nested_fields", True)
    if collection.token_separators:
        block.attr("token_separators", collection.token_separators)
    if collection.symbols_to_index:
        block.attr("symbols_to_index", collection.symbols_to_index)
    if collection.synonym_sets:
        block.attr("synonym_sets", collection.synonym_sets)

    for f in collection.fields:
        _field_block(block.block("field"), f, (embed_api_key_vars or {}).get(f.name))

    if collection.metadata:
        block.attr("metadata", _json(collection.metadata))
    if collection.voice_query_model and collection.voice_query_model.get("model_name"):
        block.attr("voice_query_model", collection.voice_query_model["model_name"])
    return block


def _field_block(block: Block, f: CollectionField, embed_api_key_var: str | None) -> None:
    block.attr("name", f.name)
    block.attr("type", f.type or "auto")
    if f.facet:
        block.attr("facet", True)
    if f.optional:
        block.attr("optional", True)
    # index and store default to true, sort to false
    if f.index is False:
        block.attr("index", False)
    if f.sort is True:
        block.attr("sort", True)
    if f.infix:
        block.attr("infix", True)
    if f.locale:
        block.attr("locale", f.locale)
    if f.num_dim:
        block.attr("num_dim", f.num_dim)
    if f.vec_dist:
        block.attr("vec_dist", f.vec_dist)
    if f.reference:
        block.attr("reference", f.reference)
    if f.async_reference:
        block.attr("async_reference", True)
    if f.stem:
        block.attr("stem", True)
    if f.range_index:
        block.attr("range_index", True)
    if f.store is False:
        block.attr("store", False)
    if f.token_separators:
        block.attr("token_separators", f.token_separators)
    if f.symbols_to_index:
        block.attr("symbols_to_index", f.symbols_to_index)

    if f.embed is not None:
        embed = block.block("embed")
        if f.embed.from_:
            embed.attr("from", f.embed.from_)
        model = embed.block("model_config")
        model.attr("model_name", f.embed.embed_model.model_name)
        if f.embed.embed_model.url:
            model.attr("url", f.embed.embed_model.url)
        if embed_api_key_var:
            _api_key_reference(model, embed_api_key_var)

    if f.hnsw_params is not None:
        hnsw = block.block("hnsw_params")
        if f.hnsw_params.ef_construction:
            hnsw.attr("ef_construction", f.hnsw_params.ef_construction)
        if f.hnsw_params.m:
            hnsw.attr("m", f.hnsw_params.m)


def _collection_ref(collection_resource: str) -> Reference:
    return Reference(f"typesense_collection.{collection_resource}.name")


def synonym_block(synonym: Synonym, collection_resource: str, resource_name: str) -> Block:
    block = Block("resource", ["typesense_synonym", resource_name])
    block.attr("collection", _collection_ref(collection_resource))
    block.attr("name", synonym.id)
    if synonym.root:
        block.attr("root", synonym.root)
    if synonym.synonyms:
        block.attr("synonyms", synonym.synonyms)
    return block


def override_block(override: Override, collection_resource: str, resource_name: str) -> Block:
    block = Block("resource", ["typesense_override", resource_name])
    block.attr("collection", _collection_ref(collection_resource))
    block.attr("name", override.id)

    rule = block.block("rule")
    if override.rule.query:
        rule.attr("query", override.rule.query)
    if override.rule.match:
        rule.attr("match", override.rule.match)
    if override.rule.tags:
        rule.attr("tags", override.rule.tags)
    if override.rule.filter_by:
        rule.attr("filter_by", override.rule.filter_by)

    for inc in override.includes or []:
        block.block("includes").attr("id", inc.id).attr("position", inc.position)
    for exc in override.excludes or []:
        block.block("excludes").attr("id", exc.id)

    if override.filter_by:
        block.attr("filter_by", override.filter_by)
    if override.sort_by:
        block.attr("sort_by", override.sort_by)
    if override.replace_query:
        block.attr("replace_query", override.replace_query)
    if override.remove_matched_tokens:
        block.attr("remove_matched_tokens", True)
    if override.filter_curated_hits:
        block.attr("filter_curated_hits", True)
    if override.stop_processing:
        block.attr("stop_processing", True)
    if override.effective_from_ts:
        block.attr("effective_from_ts", override.effective_from_ts)
    if override.effective_to_ts:
        block.attr("effective_to_ts", override.effective_to_ts)
    if override.metadata:
        block.attr("metadata", _json(override.metadata))
    return block


def stopwords_block(stopwords: StopwordsSet, resource_name: str) -> Block:
    block = Block("resource", ["typesense_stopwords_set", resource_name])
    block.attr("name", stopwords.id)
    if stopwords.stopwords:
        block.attr("stopwords", stopwords.stopwords)
    if stopwords.locale:
        block.attr("locale", stopwords.locale)
    return block


def alias_block(alias: CollectionAlias, resource_name: str, collection_resource: str | None = None) -> Block:
    """``typesense_collection_alias``, referencing the collection when it is managed too."""
    block = Block("resource", ["typesense_collection_alias", resource_name])
    block.attr("name", alias.name)
    if collection_resource:
        block.attr("collection_name", _collection_ref(collection_resource))
    else:
        block.attr("collection_name", alias.collection_name)
    return block


def preset_block(preset: Preset, resource_name: str) -> Block:
    block = Block("resource", ["typesense_preset", resource_name])
    block.attr("name", preset.name or "")
    block.attr("value", _json(preset.value))
    return block


def analytics_rule_block(rule: AnalyticsRule, resource_name: str) -> Block:
    block = Block("resource", ["typesense_analytics_rule", resource_name])
    block.attr("name", rule.name or "")
    block.attr("type", rule.type)
    if rule.collection:
        block.attr("collection", rule.collection)
    if rule.event_type:
        block.attr("event_type", rule.event_type)
    if rule.params:
        block.attr("params", _json(rule.params))
    return block


def api_key_block(key: ApiKey, resource_name: str) -> Block:
    block = Block("resource", ["typesense_api_key", resource_name])
    block.comment(
        "Note: API key value is not recoverable after creation. "
        "The imported key will have a placeholder value.",
    )
    if key.description:
        block.attr("description", key.description)
    if key.actions:
        block.attr("actions", key.actions)
    if key.collections:
        block.attr("collections", key.collections)
    if key.expires_at and 0 < key.expires_at < _NEVER_EXPIRES:
        block.attr("expires_at", key.expires_at)
    return block


def api_key_comment(key_id: int, resource_name: str) -> str:
    """Header printed above an API key block explaining how to import it."""
    return (
        f"WARNING: the value of API key ID: {key_id} cannot be read back.\n"
        f"terraform import typesense_api_key.{resource_name} {key_id}"
    )


def _api_key_reference(block: Block, var_name: str) -> None:
    block.comment("api_key is sensitive and not recoverable from the API. Set via variable.")
    block.attr("api_key", Reference(f"var.{var_name}"))


def nl_search_model_block(
    model: NLSearchModel,
    resource_name: str,
    api_key_var: str,
    secret_vars: dict[str, str] | None = None,
) -> Block:
    """``typesense_nl_search_model``. *secret_vars* maps OAuth attributes to variables."""
    block = Block("resource", ["typesense_nl_search_model", resource_name])
    block.attr("id", model.id)
    block.attr("model_name", model.model_name)
    _api_key_reference(block, api_key_var)
    if secret_vars:
        block.comment("OAuth credentials are sensitive and not recoverable from the API. Set via variables.")
        for name in NL_MODEL_SECRETS:
            if name in secret_vars:
                block.attr(name, Reference(f"var.{secret_vars[name]}"))
    if model.system_prompt:
        block.attr("system_prompt", model.system_prompt)
    if model.max_bytes:
        block.attr("max_bytes", model.max_bytes)
    for name in ("temperature", "top_p", "top_k"):
        value = getattr(model, name)
        if value is not None:
            block.attr(name, value)
    for name in ("account_id", "api_url", "project_id", "region", "api_version"):
        value = getattr(model, name)
        if value:
            block.attr(name, value)
    if model.stop_sequences:
        block.attr("stop_sequences", model.stop_sequences)
    return block


def conversation_model_block(
    model: ConversationModel, resource_name: str, api_key_var: str,
) -> Block:
    block = Block("resource", ["typesense_conversation_model", resource_name])
    if model.id:
        block.attr("id", model.id)
    block.attr("model_name", model.model_name)
    _api_key_reference(block, api_key_var)
    if model.history_collection:
        block.attr("history_collection", model.history_collection)
    if model.system_prompt:
        block.attr("system_prompt", model.system_prompt)
    if model.ttl:
        block.attr("ttl", model.ttl)
    if model.max_bytes:
        block.attr("max_bytes", model.max_bytes)
    if model.account_id:
        block.attr("account_id", model.account_id)
    if model.vllm_url:
        block.attr("vllm_url", model.vllm_url)
    return block


# --- Cloud resources ---


def cluster_block(cluster: Cluster, resource_name: str) -> Block:
    block = Block("resource", ["typesense_cluster", resource_name])
    block.attr("name", cluster.name)
    for name in ("memory", "vcpu", "high_availability", "search_delivery_network", "typesense_server_version"):
        value = getattr(cluster, name)
        if value:
            block.attr(name, value)
    if cluster.regions:
        block.attr("regions", cluster.regions)
    if cluster.auto_upgrade_capacity:
        block.attr("auto_upgrade_capacity", True)
    return block
