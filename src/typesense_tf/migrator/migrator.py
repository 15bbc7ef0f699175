"""Replay an exported data directory onto a target Typesense cluster.

The source is the ``data/`` directory written by ``generate --include-data``.
Collections are processed one at a time in file-name order, and within a
collection the steps always run in this order:

1. create the collection (skipped when it already exists on the target),
2. import documents (only with ``include_documents``),
3. import synonyms,
4. import overrides.

Stopword sets are imported last. There is no rollback: a failing step
raises ``MigrationError`` and leaves earlier collections in place. Partial
document failures are counted and reported but never abort the run.
"""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

from pydantic import ValidationError

from typesense_tf.client.errors import TypesenseError
from typesense_tf.client.server import DEFAULT_PORT, DEFAULT_PROTOCOL, ServerClient
from typesense_tf.generator.export import (
    DATA_DIRNAME,
    DOCUMENTS_SUFFIX,
    OVERRIDES_SUFFIX,
    SCHEMA_SUFFIX,
    STOPWORDS_FILENAME,
    SYNONYMS_SUFFIX,
    collection_name,
    data_file,
)
from typesense_tf.models import Collection, Override, StopwordsSet, Synonym

logger = logging.getLogger(__name__)


class MigrationError(Exception):
    """A migration step failed; the message names the collection and step."""


@dataclass
class MigratorConfig:
    source_dir: str | Path
    target_host: str
    target_api_key: str
    target_port: int = DEFAULT_PORT
    target_protocol: str = DEFAULT_PROTOCOL
    include_documents: bool = False
    timeout: float = 30.0


@dataclass
class CollectionReport:
    """Outcome for one collection."""

    name: str
    created: bool = False
    skipped: bool = False
    documents_imported: int = 0
    documents_failed: int = 0
    documents_skipped_reason: str | None = None
    synonyms: int = 0
    overrides: int = 0


@dataclass
class MigrationReport:
    collections: list[CollectionReport] = field(default_factory=list)
    stopwords: int = 0

    @property
    def documents_failed(self) -> int:
        return sum(c.documents_failed for c in self.collections)


class Migrator:
    """One-shot import of schemas, documents, synonyms, overrides and stopwords."""

    def __init__(self, config: MigratorConfig, client: ServerClient | None = None) -> None:
        self.config = config
        self.client = client or ServerClient(
            config.target_host,
            config.target_api_key,
            config.target_port,
            config.target_protocol,
            config.timeout,
        )
        self.data_dir = Path(config.source_dir) / DATA_DIRNAME

    def migrate(self) -> MigrationReport:
        if not self.data_dir.is_dir():
            msg = (
                f"data directory not found: {self.data_dir} "
                "(did you run generate with --include-data?)"
            )
            raise MigrationError(msg)

        report = MigrationReport()
        schema_files = sorted(self.data_dir.glob(f"*{SCHEMA_SUFFIX}"))
        if not schema_files:
            logger.info("No collections found to migrate")
        else:
            logger.info("Found %d collection(s) to migrate", len(schema_files))

        for schema_file in schema_files:
            name = collection_name(schema_file.name, SCHEMA_SUFFIX)
            report.collections.append(self._migrate_collection(name, schema_file))

        report.stopwords = self._import_stopwords()
        return report

    # --- per collection ---

    def _migrate_collection(self, name: str, schema_file: Path) -> CollectionReport:
        logger.info("Migrating collection: %s", name)
        result = CollectionReport(name=name)

        schema = _load_model(Collection, schema_file, name, "read schema")
        target = schema.name or name
        try:
            if self.client.get_collection(target) is not None:
                logger.info("  Collection already exists, skipping creation")
                result.skipped = True
            else:
                self.client.create_collection(schema)
                logger.info("  Created collection")
                result.created = True
        except TypesenseError as e:
            msg = f"failed to create collection {name}: {e}"
            raise MigrationError(msg) from e

        if self.config.include_documents:
            self._import_documents(target, name, result)

        synonyms_file = data_file(self.data_dir, name, SYNONYMS_SUFFIX)
        if synonyms_file.is_file():
            synonyms = _load_list(Synonym, synonyms_file, name, "read synonyms")
            for synonym in synonyms:
                try:
                    self.client.upsert_collection_synonym(target, synonym)
                except TypesenseError as e:
                    msg = f"failed to import synonym {synonym.id} for {name}: {e}"
                    raise MigrationError(msg) from e
            result.synonyms = len(synonyms)
            logger.info("  Imported %d synonym(s)", result.synonyms)

        overrides_file = data_file(self.data_dir, name, OVERRIDES_SUFFIX)
        if overrides_file.is_file():
            overrides = _load_list(Override, overrides_file, name, "read overrides")
            for override in overrides:
                try:
                    self.client.upsert_collection_override(target, override)
                except TypesenseError as e:
                    msg = f"failed to import override {override.id} for {name}: {e}"
                    raise MigrationError(msg) from e
            result.overrides = len(overrides)
            logger.info("  Imported %d override(s)", result.overrides)

        return result

    def _import_documents(self, collection: str, name: str, result: CollectionReport) -> None:
        documents_file = data_file(self.data_dir, name, DOCUMENTS_SUFFIX)
        if not documents_file.is_file():
            logger.info("  No documents file found, skipping data import")
            result.documents_skipped_reason = "no documents file"
            return

        size = documents_file.stat().st_size
        if size == 0:
            logger.info("  No documents to import (empty file)")
            result.documents_skipped_reason = "no documents to import"
            return

        logger.info("  Importing %d document(s) (%d bytes)...", _count_lines(documents_file), size)
        try:
            with documents_file.open("rb") as fh:
                outcome = self.client.import_documents(collection, fh, size)
        except OSError as e:
            msg = f"failed to read documents for {name}: {e}"
            raise MigrationError(msg) from e
        except TypesenseError as e:
            msg = f"failed to import documents for {name}: {e}"
            raise MigrationError(msg) from e

        result.documents_imported = outcome.success
        result.documents_failed = outcome.failed
        logger.info(
            "  Imported: %d success, %d failed (%.2fs)",
            outcome.success, outcome.failed, outcome.elapsed,
        )
        if outcome.failed:
            logger.warning("  %d document(s) failed to import into %s", outcome.failed, name)

    # --- global ---

    def _import_stopwords(self) -> int:
        stopwords_file = self.data_dir / STOPWORDS_FILENAME
        if not stopwords_file.is_file():
            return 0
        sets = _load_list(StopwordsSet, stopwords_file, STOPWORDS_FILENAME, "read stopwords")
        for stopwords in sets:
            try:
                self.client.upsert_stopwords_set(stopwords)
            except TypesenseError as e:
                msg = f"failed to import stopwords set {stopwords.id}: {e}"
                raise MigrationError(msg) from e
        logger.info("Imported %d stopwords set(s)", len(sets))
        return len(sets)


def _read_json(path: Path, name: str, step: str) -> Any:
    try:
        return json.loads(path.read_text(encoding="utf-8"))
    except (OSError, json.JSONDecodeError) as e:
        msg = f"failed to {step} for {name}: {e}"
        raise MigrationError(msg) from e


def _load_model(model: Any, path: Path, name: str, step: str) -> Any:
    try:
        return model.model_validate(_read_json(path, name, step))
    except ValidationError as e:
        msg = f"failed to {step} for {name}: {e}"
        raise MigrationError(msg) from e


def _load_list(model: Any, path: Path, name: str, step: str) -> list[Any]:
    data = _read_json(path, name, step)
    if not isinstance(data, list):
        msg = f"failed to {step} for {name}: expected a JSON array in {path.name}"
        raise MigrationError(msg)
    try:
        return [model.model_validate(item) for item in data]
    except ValidationError as e:
        msg = f"failed to {step} for {name}: {e}"
        raise MigrationError(msg) from e


def _count_lines(path: Path) -> int:
    count = 0
    with path.open("rb") as fh:
        for _ in fh:
            count += 1
    return count
