"""Typesense Server API client.

One method per CRUD intent per resource kind; each method sends exactly
one request (the version-routed helpers and the 409 fallback for models
are the only exceptions)::

    from typesense_tf.client import ServerClient

    client = ServerClient("localhost", api_key="xyz")
    for collection in client.list_collections():
        print(collection.name, client.list_collection_synonyms(collection.name))

Conventions:

- ``get_*`` returns ``None`` on 404.
- ``delete_*`` treats 404 as success.
- ``list_synonyms`` / ``list_overrides`` (per-collection, removed in v30)
  and the set listings return ``[]`` on 404.
- Everything else that is not a 2xx raises ``ApiError``.
"""

from __future__ import annotations

import json
import logging
import time
from dataclasses import dataclass
from typing import Any, BinaryIO

from typesense_tf.client._http import TRANSPORT_ERRORS, JsonHttpClient, path
from typesense_tf.client.errors import TransportError, TypesenseError
from typesense_tf.models import (
    AnalyticsRule,
    ApiKey,
    Collection,
    CollectionAlias,
    ConversationModel,
    CurationItem,
    CurationSet,
    NLSearchModel,
    Override,
    Preset,
    ServerInfo,
    StopwordsSet,
    Synonym,
    SynonymItem,
    SynonymSet,
)
from typesense_tf.version import (
    LATEST_MAJOR,
    ApiShape,
    ServerVersion,
    api_shape_for,
    parse_major,
)

logger = logging.getLogger(__name__)

API_KEY_HEADER = "X-TYPESENSE-API-KEY"
DEFAULT_PORT = 8108
DEFAULT_PROTOCOL = "http"

_EXPORT_CHUNK = 64 * 1024


@dataclass
class ImportResult:
    """Outcome of a bulk document import."""

    success: int = 0
    failed: int = 0
    elapsed: float = 0.0

    @property
    def total(self) -> int:
        return self.success + self.failed


def count_import_results(lines: Any) -> tuple[int, int]:
    """Count per-document outcomes in a line-delimited import response.

    Each line is parsed as JSON and its boolean ``success`` decides. Lines
    that are not valid JSON fall back to the raw ``"success":true`` /
    ``"success":false`` markers; anything else is ignored.
    """
    success = failed = 0
    for raw in lines:
        line = raw.decode("utf-8", "replace") if isinstance(raw, bytes) else raw
        line = line.strip()
        if not line:
            continue
        try:
            outcome = json.loads(line)
        except json.JSONDecodeError:
            outcome = None
        if isinstance(outcome, dict) and isinstance(outcome.get("success"), bool):
            if outcome["success"]:
                success += 1
            else:
                failed += 1
        elif '"success":true' in line:
            success += 1
        elif '"success":false' in line:
            failed += 1
    return success, failed


class ServerClient(JsonHttpClient):
    """Client for one Typesense server (or load-balanced cluster endpoint)."""

    def __init__(
        self,
        host: str,
        api_key: str,
        port: int = DEFAULT_PORT,
        protocol: str = DEFAULT_PROTOCOL,
        timeout: float = 30.0,
    ) -> None:
        super().__init__(
            f"{protocol}://{host}:{port}",
            headers={API_KEY_HEADER: api_key},
            timeout=timeout,
        )
        self._server_version: ServerVersion | None = None
        self._major: int | None = None
        self._api_shape: ApiShape | None = None

    # ------------------------------------------------------------------
    # Server info / version detection
    # ------------------------------------------------------------------

    def get_server_info(self) -> ServerInfo:
        _, raw = self._send("GET", "/debug", operation="get server info")
        return self._model(ServerInfo, "get server info", self._decode("get server info", raw))

    def major_version(self) -> int:
        """Server major version, computed once per client.

        Falls back to ``LATEST_MAJOR`` when ``/debug`` fails or its version
        string has no leading integer.
        """
        if self._major is None:
            try:
                info = self.get_server_info()
            except TypesenseError as e:
                logger.debug("Version detection failed, assuming v%d: %s", LATEST_MAJOR, e)
                self._major = LATEST_MAJOR
            else:
                major = parse_major(info.version)
                if major is None:
                    logger.debug("Unparsable server version %r, assuming v%d", info.version, LATEST_MAJOR)
                    self._major = LATEST_MAJOR
                else:
                    self._major = major
                    try:
                        self._server_version = ServerVersion.parse(info.version)
                    except ValueError:
                        self._server_version = ServerVersion(major, 0, raw=info.version)
        return self._major

    def server_version(self) -> ServerVersion | None:
        """Full parsed version, or None when detection failed."""
        self.major_version()
        return self._server_version

    @property
    def api_shape(self) -> ApiShape:
        """Version-specific wire behaviour, selected on first use."""
        if self._api_shape is None:
            self._api_shape = api_shape_for(self.major_version())
        return self._api_shape

    # ------------------------------------------------------------------
    # Collections
    # ------------------------------------------------------------------

    def create_collection(self, collection: Collection) -> Collection:
        return self._write_one(
            Collection, "POST", "/collections", "create collection",
            collection.schema_payload(),
        )

    def get_collection(self, name: str) -> Collection | None:
        return self._get_one(Collection, path("collections", name), "get collection")

    def update_collection(self, name: str, update: Collection) -> Collection:
        """PATCH a collection: add fields, or drop them with ``drop=True``."""
        payload = update.schema_payload()
        payload.pop("name", None)
        return self._write_one(
            Collection, "PATCH", path("collections", name), "update collection", payload,
        )

    def delete_collection(self, name: str) -> None:
        self._delete(path("collections", name), "delete collection")

    def list_collections(self) -> list[Collection]:
        return self._list(Collection, "/collections", "list collections")

    # ------------------------------------------------------------------
    # Documents (streamed)
    # ------------------------------------------------------------------

    def export_documents(self, collection: str, dest: BinaryIO) -> int:
        """Stream the JSONL export of *collection* into *dest*.

        Copies chunk by chunk so the export is never held in memory.
        Returns the number of bytes written.
        """
        operation = "export documents"
        resp = self._open_stream(
            "GET",
            path("collections", collection, "documents", "export"),
            operation=operation,
            timeout=self._timeout,
        )
        written = 0
        with resp:
            while True:
                try:
                    chunk = resp.read(_EXPORT_CHUNK)
                except TRANSPORT_ERRORS as e:
                    raise TransportError(operation, e) from e
                if not chunk:
                    break
                dest.write(chunk)
                written += len(chunk)
        return written

    def import_documents(
        self,
        collection: str,
        source: BinaryIO,
        size: int,
        action: str = "upsert",
    ) -> ImportResult:
        """Stream *size* bytes of JSONL from *source* into *collection*.

        The file object is handed to the HTTP layer as the request body, so
        it is sent in blocks rather than read up front. No read timeout is
        applied: large imports can take a long time to answer.
        """
        operation = "import documents"
        started = time.monotonic()
        resp = self._open_stream(
            "POST",
            path("collections", collection, "documents", "import"),
            operation=operation,
            data=source,
            query={"action": action},
            headers={"Content-Type": "text/plain", "Content-Length": str(size)},
            timeout=None,
        )
        with resp:
            try:
                success, failed = count_import_results(resp)
            except TRANSPORT_ERRORS as e:
                raise TransportError(operation, e) from e
        return ImportResult(success, failed, time.monotonic() - started)

    # ------------------------------------------------------------------
    # Synonyms and overrides (per collection, servers before v30)
    # ------------------------------------------------------------------

    def upsert_synonym(self, collection: str, synonym: Synonym) -> Synonym:
        return self._write_one(
            Synonym, "PUT", path("collections", collection, "synonyms", synonym.id),
            "create synonym", synonym.to_payload(),
        )

    def get_synonym(self, collection: str, synonym_id: str) -> Synonym | None:
        return self._get_one(
            Synonym, path("collections", collection, "synonyms", synonym_id), "get synonym",
        )

    def delete_synonym(self, collection: str, synonym_id: str) -> None:
        self._delete(path("collections", collection, "synonyms", synonym_id), "delete synonym")

    def list_synonyms(self, collection: str) -> list[Synonym]:
        return self._list(
            Synonym, path("collections", collection, "synonyms"), "list synonyms",
            envelope="synonyms", missing_is_empty=True,
        )

    def upsert_override(self, collection: str, override: Override) -> Override:
        return self._write_one(
            Override, "PUT", path("collections", collection, "overrides", override.id),
            "create override", override.to_payload(),
        )

    def get_override(self, collection: str, override_id: str) -> Override | None:
        return self._get_one(
            Override, path("collections", collection, "overrides", override_id), "get override",
        )

    def delete_override(self, collection: str, override_id: str) -> None:
        self._delete(path("collections", collection, "overrides", override_id), "delete override")

    def list_overrides(self, collection: str) -> list[Override]:
        return self._list(
            Override, path("collections", collection, "overrides"), "list overrides",
            envelope="overrides", missing_is_empty=True,
        )

    # ------------------------------------------------------------------
    # Synonym sets and curation sets (v30+)
    # ------------------------------------------------------------------

    def list_synonym_sets(self) -> list[SynonymSet]:
        return self._list(SynonymSet, "/synonym_sets", "list synonym sets", missing_is_empty=True)

    def get_synonym_set(self, name: str) -> SynonymSet | None:
        return self._get_one(SynonymSet, path("synonym_sets", name), "get synonym set")

    def upsert_synonym_set(self, synonym_set: SynonymSet) -> SynonymSet:
        payload = synonym_set.to_payload()
        payload.pop("name")
        return self._write_one(
            SynonymSet, "PUT", path("synonym_sets", synonym_set.name),
            "upsert synonym set", payload,
        )

    def delete_synonym_set(self, name: str) -> None:
        self._delete(path("synonym_sets", name), "delete synonym set")

    def upsert_synonym_set_item(self, set_name: str, item: SynonymItem) -> SynonymItem:
        return self._write_one(
            SynonymItem, "PUT", path("synonym_sets", set_name, "items", item.id),
            "upsert synonym set item", item.to_payload(),
        )

    def get_synonym_set_item(self, set_name: str, item_id: str) -> SynonymItem | None:
        return self._get_one(
            SynonymItem, path("synonym_sets", set_name, "items", item_id), "get synonym set item",
        )

    def delete_synonym_set_item(self, set_name: str, item_id: str) -> None:
        self._delete(path("synonym_sets", set_name, "items", item_id), "delete synonym set item")

    def list_curation_sets(self) -> list[CurationSet]:
        return self._list(CurationSet, "/curation_sets", "list curation sets", missing_is_empty=True)

    def get_curation_set(self, name: str) -> CurationSet | None:
        return self._get_one(CurationSet, path("curation_sets", name), "get curation set")

    def upsert_curation_set(self, curation_set: CurationSet) -> CurationSet:
        payload = curation_set.to_payload()
        payload.pop("name")
        return self._write_one(
            CurationSet, "PUT", path("curation_sets", curation_set.name),
            "upsert curation set", payload,
        )

    def delete_curation_set(self, name: str) -> None:
        self._delete(path("curation_sets", name), "delete curation set")

    def upsert_curation_set_item(self, set_name: str, item: CurationItem) -> CurationItem:
        return self._write_one(
            CurationItem, "PUT", path("curation_sets", set_name, "items", item.id),
            "upsert curation set item", item.to_payload(),
        )

    def get_curation_set_item(self, set_name: str, item_id: str) -> CurationItem | None:
        return self._get_one(
            CurationItem, path("curation_sets", set_name, "items", item_id), "get curation set item",
        )

    def delete_curation_set_item(self, set_name: str, item_id: str) -> None:
        self._delete(path("curation_sets", set_name, "items", item_id), "delete curation set item")

    # ------------------------------------------------------------------
    # Version-routed synonyms / overrides
    # ------------------------------------------------------------------

    def list_collection_synonyms(self, collection: str) -> list[Synonym]:
        return self.api_shape.list_synonyms(self, collection)

    def get_collection_synonym(self, collection: str, synonym_id: str) -> Synonym | None:
        return self.api_shape.get_synonym(self, collection, synonym_id)

    def upsert_collection_synonym(self, collection: str, synonym: Synonym) -> Synonym:
        return self.api_shape.upsert_synonym(self, collection, synonym)

    def delete_collection_synonym(self, collection: str, synonym_id: str) -> None:
        self.api_shape.delete_synonym(self, collection, synonym_id)

    def list_collection_overrides(self, collection: str) -> list[Override]:
        return self.api_shape.list_overrides(self, collection)

    def get_collection_override(self, collection: str, override_id: str) -> Override | None:
        return self.api_shape.get_override(self, collection, override_id)

    def upsert_collection_override(self, collection: str, override: Override) -> Override:
        return self.api_shape.upsert_override(self, collection, override)

    def delete_collection_override(self, collection: str, override_id: str) -> None:
        self.api_shape.delete_override(self, collection, override_id)

    # ------------------------------------------------------------------
    # Stopwords
    # ------------------------------------------------------------------

    def upsert_stopwords_set(self, stopwords: StopwordsSet) -> StopwordsSet:
        payload = stopwords.to_payload()
        payload.pop("id")
        return self._write_one(
            StopwordsSet, "PUT", path("stopwords", stopwords.id), "create stopwords", payload,
        )

    def get_stopwords_set(self, stopwords_id: str) -> StopwordsSet | None:
        operation = "get stopwords"
        status, raw = self._send("GET", path("stopwords", stopwords_id), operation=operation, ok_missing=True)
        if status == 404:
            return None
        data = self._decode(operation, raw)
        # single sets come back wrapped: {"stopwords": {...}}
        if isinstance(data, dict) and isinstance(data.get("stopwords"), dict):
            data = data["stopwords"]
        return self._model(StopwordsSet, operation, data)

    def delete_stopwords_set(self, stopwords_id: str) -> None:
        self._delete(path("stopwords", stopwords_id), "delete stopwords")

    def list_stopwords_sets(self) -> list[StopwordsSet]:
        return self._list(StopwordsSet, "/stopwords", "list stopwords", envelope="stopwords")

    # ------------------------------------------------------------------
    # API keys
    # ------------------------------------------------------------------

    def create_api_key(self, key: ApiKey) -> ApiKey:
        """Create a key. The returned ``value`` is the only copy there will be."""
        payload = key.to_payload()
        payload.pop("id", None)
        payload.pop("value_prefix", None)
        return self._write_one(ApiKey, "POST", "/keys", "create API key", payload)

    def get_api_key(self, key_id: int) -> ApiKey | None:
        return self._get_one(ApiKey, path("keys", key_id), "get API key")

    def delete_api_key(self, key_id: int) -> None:
        self._delete(path("keys", key_id), "delete API key")

    def list_api_keys(self) -> list[ApiKey]:
        return self._list(ApiKey, "/keys", "list API keys", envelope="keys")

    # ------------------------------------------------------------------
    # Aliases and presets
    # ------------------------------------------------------------------

    def upsert_alias(self, alias: CollectionAlias) -> CollectionAlias:
        return self._write_one(
            CollectionAlias, "PUT", path("aliases", alias.name), "upsert alias",
            {"collection_name": alias.collection_name},
        )

    def get_alias(self, name: str) -> CollectionAlias | None:
        return self._get_one(CollectionAlias, path("aliases", name), "get alias")

    def delete_alias(self, name: str) -> None:
        self._delete(path("aliases", name), "delete alias")

    def list_aliases(self) -> list[CollectionAlias]:
        return self._list(CollectionAlias, "/aliases", "list aliases", envelope="aliases")

    def upsert_preset(self, preset: Preset) -> Preset:
        return self._write_one(
            Preset, "PUT", path("presets", preset.name or ""), "upsert preset",
            {"value": preset.value},
        )

    def get_preset(self, name: str) -> Preset | None:
        return self._get_one(Preset, path("presets", name), "get preset")

    def delete_preset(self, name: str) -> None:
        self._delete(path("presets", name), "delete preset")

    def list_presets(self) -> list[Preset]:
        return self._list(Preset, "/presets", "list presets", envelope="presets")

    # ------------------------------------------------------------------
    # Analytics rules
    # ------------------------------------------------------------------

    def analytics_rule_payload(self, rule: AnalyticsRule) -> dict[str, Any]:
        """Wire payload for *rule*, shaped for the detected server version."""
        return self.api_shape.analytics_rule_payload(rule)

    def upsert_analytics_rule(self, rule: AnalyticsRule) -> AnalyticsRule:
        return self._write_one(
            AnalyticsRule, "PUT", path("analytics", "rules", rule.name or ""),
            "upsert analytics rule", self.analytics_rule_payload(rule),
        )

    def get_analytics_rule(self, name: str) -> AnalyticsRule | None:
        return self._get_one(AnalyticsRule, path("analytics", "rules", name), "get analytics rule")

    def delete_analytics_rule(self, name: str) -> None:
        self._delete(path("analytics", "rules", name), "delete analytics rule")

    def list_analytics_rules(self) -> list[AnalyticsRule]:
        return self._list(AnalyticsRule, "/analytics/rules", "list analytics rules", envelope="rules")

    # ------------------------------------------------------------------
    # NL search models and conversation models
    # ------------------------------------------------------------------

    def create_nl_search_model(self, model: NLSearchModel) -> NLSearchModel:
        """Create a model; an existing id (409) is updated instead."""
        operation = "create NL search model"
        status, raw = self._send(
            "POST", "/nl_search_models", operation=operation,
            payload=model.to_payload(), tolerate=(409,),
        )
        if status == 409:
            logger.debug("NL search model %s exists, updating", model.id)
            return self.update_nl_search_model(model)
        return self._model(NLSearchModel, operation, self._decode(operation, raw))

    def get_nl_search_model(self, model_id: str) -> NLSearchModel | None:
        return self._get_one(NLSearchModel, path("nl_search_models", model_id), "get NL search model")

    def update_nl_search_model(self, model: NLSearchModel) -> NLSearchModel:
        return self._write_one(
            NLSearchModel, "PUT", path("nl_search_models", model.id),
            "update NL search model", model.to_payload(),
        )

    def delete_nl_search_model(self, model_id: str) -> None:
        self._delete(path("nl_search_models", model_id), "delete NL search model")

    def list_nl_search_models(self) -> list[NLSearchModel]:
        return self._list(NLSearchModel, "/nl_search_models", "list NL search models")

    def create_conversation_model(self, model: ConversationModel) -> ConversationModel:
        """Create a model; an existing id (409) is updated instead."""
        operation = "create conversation model"
        status, raw = self._send(
            "POST", "/conversations/models", operation=operation,
            payload=model.to_payload(), tolerate=(409,),
        )
        if status == 409:
            logger.debug("Conversation model %s exists, updating", model.id)
            return self.update_conversation_model(model)
        return self._model(ConversationModel, operation, self._decode(operation, raw))

    def get_conversation_model(self, model_id: str) -> ConversationModel | None:
        return self._get_one(
            ConversationModel, path("conversations", "models", model_id), "get conversation model",
        )

    def update_conversation_model(self, model: ConversationModel) -> ConversationModel:
        return self._write_one(
            ConversationModel, "PUT", path("conversations", "models", model.id or ""),
            "update conversation model", model.to_payload(),
        )

    def delete_conversation_model(self, model_id: str) -> None:
        self._delete(path("conversations", "models", model_id), "delete conversation model")

    def list_conversation_models(self) -> list[ConversationModel]:
        return self._list(ConversationModel, "/conversations/models", "list conversation models")
