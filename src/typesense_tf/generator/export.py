"""Raw data export for ``generate --include-data``.

Layout under ``<output>/data``::

    <collection>.schema.json      schema without server-computed fields
    <collection>.jsonl            documents, streamed from the export endpoint
    <collection>.synonyms.json    only when the collection has synonyms
    <collection>.overrides.json   only when the collection has overrides
    _stopwords.json               only when stopword sets exist

``<collection>`` is the percent-encoded collection name. These files are
what ``typesense_tf.migrator`` replays onto a target.
"""

from __future__ import annotations

import json
import logging
import urllib.parse
from pathlib import Path
from typing import Any

from typesense_tf.client.server import ServerClient
from typesense_tf.models import Collection, Override, StopwordsSet, Synonym

logger = logging.getLogger(__name__)

DATA_DIRNAME = "data"
SCHEMA_SUFFIX = ".schema.json"
DOCUMENTS_SUFFIX = ".jsonl"
SYNONYMS_SUFFIX = ".synonyms.json"
OVERRIDES_SUFFIX = ".overrides.json"
STOPWORDS_FILENAME = "_stopwords.json"


def data_file(data_dir: Path, collection: str, suffix: str) -> Path:
    """Per-collection file under *data_dir*.

    The collection name is percent-encoded (``/`` included) so any name maps
    to a single file inside *data_dir*.
    """
    return data_dir / f"{urllib.parse.quote(collection, safe='')}{suffix}"


def collection_name(filename: str, suffix: str) -> str:
    """Inverse of ``data_file`` for a file name ending in *suffix*."""
    return urllib.parse.unquote(filename[: -len(suffix)])


def _write_json(path: Path, data: Any) -> None:
    path.write_text(json.dumps(data, indent=2) + "\n", encoding="utf-8")


def export_schema(data_dir: Path, collection: Collection) -> Path:
    path = data_file(data_dir, collection.name or "", SCHEMA_SUFFIX)
    _write_json(path, collection.schema_payload())
    return path


def export_documents(client: ServerClient, data_dir: Path, collection: str) -> int:
    """Stream all documents of *collection* to ``<collection>.jsonl``."""
    path = data_file(data_dir, collection, DOCUMENTS_SUFFIX)
    with path.open("wb") as fh:
        written = client.export_documents(collection, fh)
    logger.info("Exported %s: %d bytes", collection, written)
    return written


def export_synonyms(data_dir: Path, collection: str, synonyms: list[Synonym]) -> Path | None:
    if not synonyms:
        return None
    path = data_file(data_dir, collection, SYNONYMS_SUFFIX)
    _write_json(path, [s.to_payload() for s in synonyms])
    return path


def export_overrides(data_dir: Path, collection: str, overrides: list[Override]) -> Path | None:
    if not overrides:
        return None
    path = data_file(data_dir, collection, OVERRIDES_SUFFIX)
    _write_json(path, [o.to_payload() for o in overrides])
    return path


def export_stopwords(data_dir: Path, stopwords: list[StopwordsSet]) -> Path | None:
    if not stopwords:
        return None
    path = data_dir / STOPWORDS_FILENAME
    _write_json(path, [s.to_payload() for s in stopwords])
    return path
