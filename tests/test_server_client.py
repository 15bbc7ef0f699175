"""Tests for ServerClient against the in-memory fake API."""

from __future__ import annotations

import io
from unittest.mock import patch

import pytest

from typesense_tf.client import (
    ApiError,
    DecodeError,
    ServerClient,
    TransportError,
    count_import_results,
)
from typesense_tf.models import (
    AnalyticsRule,
    ApiKey,
    Collection,
    CollectionField,
    ConversationModel,
    NLSearchModel,
    Override,
    OverrideRule,
    StopwordsSet,
    Synonym,
)
from typesense_tf.version import LATEST_MAJOR, LegacyApiShape, SetsApiShape

from conftest import TruncatedBody


def _client() -> ServerClient:
    return ServerClient("localhost", "xyz")


# --- Request basics ---


class TestRequests:
    def test_headers_and_base_url(self, fake_api):
        fake_api.add("GET", "/collections", [])
        _client().list_collections()
        req = fake_api.requests[0]
        assert req.headers["x-typesense-api-key"] == "xyz"
        assert req.headers["content-type"] == "application/json"
        assert req.timeout == 30.0

    def test_path_segments_are_encoded(self, fake_api):
        _client().get_collection("My Products!/x")
        assert fake_api.requests[0].path == "/collections/My%20Products%21%2Fx"


# --- Status handling ---


class TestStatusHandling:
    def test_get_404_returns_none(self, fake_api):
        assert _client().get_collection("missing") is None

    def test_get_500_raises_with_status_and_body(self, fake_api):
        fake_api.add("GET", "/collections/products", b"boom: disk full", status=500)
        with pytest.raises(ApiError) as exc:
            _client().get_collection("products")
        assert exc.value.status == 500
        assert "500" in str(exc.value)
        assert "boom: disk full" in str(exc.value)

    def test_delete_404_is_success(self, fake_api):
        _client().delete_collection("missing")
        assert fake_api.calls("DELETE")[0].path == "/collections/missing"

    def test_create_conflict_raises(self, fake_api):
        fake_api.add("POST", "/collections", {"message": "already exists"}, status=409)
        with pytest.raises(ApiError) as exc:
            _client().create_collection(Collection(name="products"))
        assert exc.value.status == 409

    def test_transport_error(self):
        with patch("urllib.request.urlopen", side_effect=ConnectionRefusedError("refused")):
            with pytest.raises(TransportError) as exc:
                _client().list_collections()
        assert "list collections" in str(exc.value)

    def test_bad_json_raises_decode_error(self, fake_api):
        fake_api.add("GET", "/collections", b"<html>")
        with pytest.raises(DecodeError):
            _client().list_collections()


# --- Collections ---


class TestCollections:
    def test_create_sends_schema_without_computed_fields(self, fake_api):
        fake_api.add("POST", "/collections", {"name": "products", "fields": [], "num_documents": 0})
        c = Collection(
            name="products",
            fields=[CollectionField(name="title", type="string", sort=True)],
            num_documents=5,
        )
        created = _client().create_collection(c)
        body = fake_api.calls("POST")[0].json()
        assert "num_documents" not in body
        assert body["fields"] == [{"name": "title", "type": "string", "sort": True}]
        assert created.name == "products"

    def test_update_is_patch_without_name(self, fake_api):
        fake_api.add("PATCH", "/collections/products", {"fields": []})
        update = Collection(name="products", fields=[CollectionField(name="old", drop=True)])
        _client().update_collection("products", update)
        body = fake_api.calls("PATCH")[0].json()
        assert "name" not in body
        assert body["fields"] == [{"name": "old", "drop": True}]

    def test_list_is_bare_array(self, fake_api):
        fake_api.add("GET", "/collections", [{"name": "a", "fields": []}, {"name": "b", "fields": []}])
        assert [c.name for c in _client().list_collections()] == ["a", "b"]


# --- Documents ---


class TestDocuments:
    def test_export_streams_to_file(self, fake_api):
        fake_api.add("GET", "/collections/products/documents/export", b'{"id":"1"}\n{"id":"2"}')
        dest = io.BytesIO()
        written = _client().export_documents("products", dest)
        assert dest.getvalue() == b'{"id":"1"}\n{"id":"2"}'
        assert written == len(dest.getvalue())

    def test_import_counts_results(self, fake_api):
        fake_api.add(
            "POST", "/collections/products/documents/import",
            b'{"success":true}\n{"success":true}\n{"success":false,"error":"bad"}\n{"success":true}\n',
        )
        data = b'{"id":"1"}\n{"id":"2"}\n{"id":"3"}\n{"id":"4"}\n'
        result = _client().import_documents("products", io.BytesIO(data), len(data))
        assert (result.success, result.failed) == (3, 1)
        assert result.total == 4

        req = fake_api.calls("POST")[0]
        assert req.query == {"action": "upsert"}
        assert req.headers["content-type"] == "text/plain"
        assert req.headers["content-length"] == str(len(data))
        assert req.body == data
        assert req.timeout is None

    def test_export_connection_drop_raises_transport_error(self, fake_api):
        fake_api.add("GET", "/collections/products/documents/export", TruncatedBody(b'{"id":"1"}\n'))
        dest = io.BytesIO()
        with pytest.raises(TransportError) as exc:
            _client().export_documents("products", dest)
        assert "export documents" in str(exc.value)
        assert dest.getvalue() == b'{"id":"1"}\n'

    def test_import_connection_drop_raises_transport_error(self, fake_api):
        fake_api.add("POST", "/collections/products/documents/import", TruncatedBody(b'{"success":true}\n'))
        with pytest.raises(TransportError) as exc:
            _client().import_documents("products", io.BytesIO(b"{}"), 2)
        assert "import documents" in str(exc.value)

    def test_import_http_error_raises(self, fake_api):
        fake_api.add("POST", "/collections/products/documents/import", b"nope", status=400)
        with pytest.raises(ApiError):
            _client().import_documents("products", io.BytesIO(b"{}"), 2)


class TestCountImportResults:
    def test_structural_parse(self):
        lines = [
            b'{"success": true}',
            b'{"error": "x", "success": false, "document": "{}"}',
            b"",
        ]
        assert count_import_results(lines) == (1, 1)

    def test_substring_fallback_for_invalid_json(self):
        lines = ['garbage "success":true', 'garbage "success":false', "noise"]
        assert count_import_results(lines) == (1, 1)


# --- Version detection ---


class TestVersion:
    def test_major_version_memoised(self, v29_api):
        client = _client()
        assert client.major_version() == 29
        assert client.major_version() == 29
        assert len(v29_api.calls("GET", "/debug")) == 1
        assert isinstance(client.api_shape, LegacyApiShape)

    def test_debug_failure_defaults_to_latest(self, fake_api):
        fake_api.add("GET", "/debug", b"oops", status=500)
        client = _client()
        assert client.major_version() == LATEST_MAJOR
        assert client.server_version() is None
        assert isinstance(client.api_shape, SetsApiShape)

    def test_unparsable_version_defaults_to_latest(self, fake_api):
        fake_api.add("GET", "/debug", {"version": "nightly"})
        assert _client().major_version() == LATEST_MAJOR

    def test_server_version_parsed(self, v30_api):
        v = _client().server_version()
        assert v is not None
        assert (v.major, v.minor) == (30, 1)


# --- Synonyms and overrides ---


class TestLegacySynonyms:
    def test_list_envelope(self, fake_api):
        fake_api.add("GET", "/collections/products/synonyms", {
            "synonyms": [{"id": "colors", "synonyms": ["red", "crimson"]}],
        })
        syns = _client().list_synonyms("products")
        assert syns == [Synonym(id="colors", synonyms=["red", "crimson"])]

    def test_list_404_is_empty(self, fake_api):
        assert _client().list_synonyms("products") == []

    def test_routed_upsert_on_v29(self, v29_api):
        v29_api.add("PUT", "/collections/products/synonyms/colors", {"id": "colors", "synonyms": ["red"]})
        _client().upsert_collection_synonym("products", Synonym(id="colors", synonyms=["red"]))
        assert v29_api.calls("PUT")[0].json() == {"id": "colors", "synonyms": ["red"]}


class TestSetsRouting:
    def test_upsert_creates_set_then_item(self, v30_api):
        v30_api.add("PUT", "/synonym_sets/products", {"name": "products", "items": []})
        v30_api.add("PUT", "/synonym_sets/products/items/colors", {"id": "colors", "synonyms": ["red"]})
        _client().upsert_collection_synonym("products", Synonym(id="colors", synonyms=["red"]))

        puts = v30_api.calls("PUT")
        assert [p.path for p in puts] == [
            "/synonym_sets/products",
            "/synonym_sets/products/items/colors",
        ]
        assert puts[0].json() == {"items": []}

    def test_upsert_reuses_existing_set(self, v30_api):
        v30_api.add("GET", "/synonym_sets/products", {"name": "products", "items": []})
        v30_api.add("PUT", "/synonym_sets/products/items/colors", {"id": "colors", "synonyms": ["red"]})
        _client().upsert_collection_synonym("products", Synonym(id="colors", synonyms=["red"]))
        assert [p.path for p in v30_api.calls("PUT")] == ["/synonym_sets/products/items/colors"]

    def test_list_overrides_from_curation_set(self, v30_api):
        v30_api.add("GET", "/curation_sets/products", {
            "name": "products",
            "items": [{"id": "promo", "rule": {"query": "sale", "match": "exact"}}],
        })
        overrides = _client().list_collection_overrides("products")
        assert overrides == [Override(id="promo", rule=OverrideRule(query="sale", match="exact"))]

    def test_list_without_set_is_empty(self, v30_api):
        assert _client().list_collection_synonyms("products") == []

    def test_delete_item(self, v30_api):
        _client().delete_collection_override("products", "promo")
        assert v30_api.calls("DELETE")[0].path == "/curation_sets/products/items/promo"


# --- Global resources ---


class TestStopwords:
    def test_get_unwraps_envelope(self, fake_api):
        fake_api.add("GET", "/stopwords/common", {"stopwords": {"id": "common", "stopwords": ["a", "the"]}})
        sw = _client().get_stopwords_set("common")
        assert sw == StopwordsSet(id="common", stopwords=["a", "the"])

    def test_list_envelope(self, fake_api):
        fake_api.add("GET", "/stopwords", {"stopwords": [{"id": "common", "stopwords": ["a"]}]})
        assert [s.id for s in _client().list_stopwords_sets()] == ["common"]

    def test_upsert_omits_id_from_body(self, fake_api):
        fake_api.add("PUT", "/stopwords/common", {"id": "common", "stopwords": ["a"], "locale": "en"})
        _client().upsert_stopwords_set(StopwordsSet(id="common", stopwords=["a"], locale="en"))
        assert fake_api.calls("PUT")[0].json() == {"stopwords": ["a"], "locale": "en"}


class TestApiKeys:
    def test_create_returns_value_once(self, fake_api):
        fake_api.add("POST", "/keys", {"id": 7, "value": "secret", "actions": ["*"], "collections": ["*"]})
        key = _client().create_api_key(ApiKey(description="admin", actions=["*"], collections=["*"]))
        assert key.value == "secret"
        assert "id" not in fake_api.calls("POST")[0].json()

    def test_list_envelope(self, fake_api):
        fake_api.add("GET", "/keys", {"keys": [{"id": 1, "value_prefix": "abc", "actions": ["*"]}]})
        keys = _client().list_api_keys()
        assert keys[0].id == 1
        assert keys[0].value is None

    def test_get_by_numeric_id(self, fake_api):
        _client().get_api_key(42)
        assert fake_api.requests[0].path == "/keys/42"


class TestAliasesAndPresets:
    def test_aliases_envelope(self, fake_api):
        fake_api.add("GET", "/aliases", {"aliases": [{"name": "prod", "collection_name": "products_v2"}]})
        assert _client().list_aliases()[0].collection_name == "products_v2"

    def test_presets_envelope(self, fake_api):
        fake_api.add("GET", "/presets", {"presets": [{"name": "listing", "value": {"q": "*"}}]})
        assert _client().list_presets()[0].value == {"q": "*"}


class TestAnalyticsRules:
    def test_upsert_v30_payload(self, v30_api):
        v30_api.add("PUT", "/analytics/rules/popular", {"name": "popular", "type": "counter"})
        rule = AnalyticsRule(
            name="popular", type="counter", collection="products", event_type="click",
            params={"destination_collection": "counts", "counter_field": "n"},
        )
        _client().upsert_analytics_rule(rule)
        body = v30_api.calls("PUT")[0].json()
        assert body["collection"] == "products"
        assert body["params"]["destination_collection"] == "counts"

    def test_upsert_v29_payload(self, v29_api):
        v29_api.add("PUT", "/analytics/rules/popular", {"name": "popular", "type": "counter"})
        rule = AnalyticsRule(
            name="popular", type="counter", collection="products",
            params={"destination_collection": "counts"},
        )
        _client().upsert_analytics_rule(rule)
        body = v29_api.calls("PUT")[0].json()
        assert "collection" not in body
        assert body["params"]["source"]["collections"] == ["products"]
        assert body["params"]["destination"]["collection"] == "counts"

    def test_list_envelope(self, fake_api):
        fake_api.add("GET", "/analytics/rules", {"rules": [{"name": "r", "type": "counter"}]})
        assert _client().list_analytics_rules()[0].name == "r"


class TestModels:
    def test_nl_model_conflict_falls_back_to_update(self, fake_api):
        fake_api.add("POST", "/nl_search_models", {"message": "exists"}, status=409)
        fake_api.add("PUT", "/nl_search_models/gpt", {"id": "gpt", "model_name": "openai/gpt-4o"})
        model = _client().create_nl_search_model(
            NLSearchModel(id="gpt", model_name="openai/gpt-4o", api_key="sk"),
        )
        assert model.id == "gpt"
        assert [r.method for r in fake_api.requests] == ["POST", "PUT"]

    def test_conversation_model_conflict_falls_back_to_update(self, fake_api):
        fake_api.add("POST", "/conversations/models", {"message": "exists"}, status=409)
        fake_api.add("PUT", "/conversations/models/conv", {
            "id": "conv", "model_name": "openai/gpt-4o", "history_collection": "history",
        })
        model = _client().create_conversation_model(ConversationModel(
            id="conv", model_name="openai/gpt-4o", history_collection="history",
        ))
        assert model.history_collection == "history"
        assert fake_api.calls("PUT")[0].path == "/conversations/models/conv"

    def test_lists_are_bare_arrays(self, fake_api):
        fake_api.add("GET", "/nl_search_models", [{"id": "gpt", "model_name": "openai/gpt-4o"}])
        fake_api.add("GET", "/conversations/models", [])
        assert [m.id for m in _client().list_nl_search_models()] == ["gpt"]
        assert _client().list_conversation_models() == []
