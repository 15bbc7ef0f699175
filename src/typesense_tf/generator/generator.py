"""Snapshot a live Typesense cluster into Terraform configuration.

``Generator.generate()`` reads every resource the server (and optionally a
Typesense Cloud account) exposes and writes:

- ``main.tf``: provider setup plus one resource block per object,
- ``imports.sh``: one ``terraform import`` line per resource block,
- ``data/`` (with ``include_data``): schemas, documents, synonyms,
  overrides and stopwords for ``typesense_tf.migrator``.

Secrets are never written: the provider key and model API keys become
sensitive variables.
"""

from __future__ import annotations

import logging
from collections import defaultdict
from collections.abc import Callable
from dataclasses import dataclass, field
from pathlib import Path
from typing import TypeVar

from typesense_tf.client.cloud import CloudClient
from typesense_tf.client.errors import ApiError, TypesenseError
from typesense_tf.client.server import DEFAULT_PORT, DEFAULT_PROTOCOL, ServerClient
from typesense_tf.generator import export, hcl
from typesense_tf.generator.imports import (
    ImportCommand,
    api_key_import_id,
    collection_import_id,
    generate_import_script,
    override_import_id,
    synonym_import_id,
)
from typesense_tf.generator.names import make_unique_resource_name
from typesense_tf.models import Collection, NLSearchModel, StopwordsSet
from typesense_tf.version import Feature, ServerVersion, supports

logger = logging.getLogger(__name__)

T = TypeVar("T")

MAIN_TF = "main.tf"
IMPORTS_SH = "imports.sh"
SERVER_API_KEY_VAR = "typesense_api_key"
CLOUD_API_KEY_VAR = "typesense_cloud_management_api_key"

_HEADER = """\
Generated by typesense-tf from a live Typesense deployment.
Review before applying; secrets are read from variables."""


class GeneratorError(Exception):
    """Raised when generated files or exported data cannot be written."""


@dataclass
class GeneratorConfig:
    """Connection and output settings for one ``generate`` run."""

    output_dir: str | Path = "./generated"
    host: str | None = None
    port: int = DEFAULT_PORT
    protocol: str = DEFAULT_PROTOCOL
    api_key: str | None = None
    cloud_api_key: str | None = None
    include_data: bool = False
    timeout: float = 30.0


@dataclass
class GenerateResult:
    """What a ``generate`` run produced."""

    main_tf: Path
    imports_sh: Path
    resource_counts: dict[str, int] = field(default_factory=dict)
    exported_collections: list[str] = field(default_factory=list)
    data_dir: Path | None = None

    @property
    def resource_count(self) -> int:
        return sum(self.resource_counts.values())


class Generator:
    """Build ``main.tf`` and ``imports.sh`` from a server and/or cloud account."""

    def __init__(
        self,
        config: GeneratorConfig,
        server_client: ServerClient | None = None,
        cloud_client: CloudClient | None = None,
    ) -> None:
        self.config = config
        if server_client is None and config.host and config.api_key:
            server_client = ServerClient(
                config.host, config.api_key, config.port, config.protocol, config.timeout,
            )
        if cloud_client is None and config.cloud_api_key:
            cloud_client = CloudClient(config.cloud_api_key)
        self.server = server_client
        self.cloud = cloud_client

        self._items: list[hcl.Block | hcl.Comment] = []
        self._variables: list[hcl.Block] = []
        self._imports: list[ImportCommand] = []
        self._seen: dict[str, set[str]] = defaultdict(set)
        self._counts: dict[str, int] = defaultdict(int)
        self._version: ServerVersion | None = None

    def generate(self) -> GenerateResult:
        """Fetch every resource and write the output files.

        Client errors propagate unchanged; file system errors are raised as
        ``GeneratorError``.
        """
        output = Path(self.config.output_dir)
        try:
            output.mkdir(parents=True, exist_ok=True)
        except OSError as e:
            msg = f"Cannot create output directory {output}: {e}"
            raise GeneratorError(msg) from e

        result = GenerateResult(main_tf=output / MAIN_TF, imports_sh=output / IMPORTS_SH)
        if self.config.include_data and self.server is not None:
            result.data_dir = output / export.DATA_DIRNAME
            try:
                result.data_dir.mkdir(parents=True, exist_ok=True)
            except OSError as e:
                msg = f"Cannot create data directory {result.data_dir}: {e}"
                raise GeneratorError(msg) from e

        if self.server is not None:
            self._version = self.server.server_version()
            logger.info("Connected to Typesense %s", self._version or "(unknown version)")
            self._add_variable(SERVER_API_KEY_VAR, "Typesense server admin API key")
            self._generate_server(result)
        if self.cloud is not None:
            self._add_variable(CLOUD_API_KEY_VAR, "Typesense Cloud Management API key")
            self._generate_clusters()

        provider = hcl.provider_block(
            self.config.host if self.server is not None else None,
            self.config.port,
            self.config.protocol,
            api_key_var=SERVER_API_KEY_VAR if self.server is not None else None,
            cloud_api_key_var=CLOUD_API_KEY_VAR if self.cloud is not None else None,
        )
        items: list[hcl.Block | hcl.Comment] = [
            hcl.terraform_block(), provider, *self._variables, *self._items,
        ]

        try:
            result.main_tf.write_text(hcl.render_file(items, header=_HEADER), encoding="utf-8")
            result.imports_sh.write_text(generate_import_script(self._imports), encoding="utf-8")
            result.imports_sh.chmod(0o755)
        except OSError as e:
            msg = f"Cannot write generated files to {output}: {e}"
            raise GeneratorError(msg) from e

        result.resource_counts = dict(self._counts)
        logger.info("Generated %d resource(s) in %s", result.resource_count, output)
        return result

    # --- helpers ---

    def _add_variable(self, name: str, description: str) -> str:
        self._seen["variable"].add(name)
        self._variables.append(hcl.variable_block(name, description))
        return name

    def _model_key_variable(self, resource_name: str, secret: str = "api_key") -> str:
        name = make_unique_resource_name(f"{resource_name}_{secret}", self._seen["variable"])
        label = "API key" if secret == "api_key" else secret.replace("_", " ")
        self._variables.append(hcl.variable_block(name, f"{label} for {resource_name}"))
        return name

    def _nl_search_model_block(self, model: NLSearchModel, name: str) -> hcl.Block:
        api_key_var = self._model_key_variable(name)
        secret_vars = {
            secret: self._model_key_variable(name, secret)
            for secret in hcl.NL_MODEL_SECRETS
            if getattr(model, secret)
        }
        return hcl.nl_search_model_block(model, name, api_key_var, secret_vars)

    def _add(
        self,
        resource_type: str,
        base_name: str,
        import_id: str,
        build: Callable[[str], hcl.Block],
    ) -> str:
        name = make_unique_resource_name(base_name, self._seen[resource_type])
        self._items.append(build(name))
        self._imports.append(ImportCommand(resource_type, name, import_id))
        self._counts[resource_type] += 1
        return name

    def _fetch(self, feature: Feature, kind: str, fetch: Callable[[], list[T]]) -> list[T]:
        """List an optional resource kind, gated on server support.

        With an unknown server version the endpoint is tried and a 404 is
        treated as "not supported".
        """
        if self._version is not None:
            if not supports(feature, self._version):
                logger.info("Skipping %s: not supported by Typesense %s", kind, self._version)
                return []
            return fetch()
        try:
            return fetch()
        except ApiError as e:
            if e.status == 404:
                logger.info("Skipping %s: endpoint not available", kind)
                return []
            raise

    # --- server ---

    def _generate_server(self, result: GenerateResult) -> None:
        assert self.server is not None
        server = self.server

        collections = sorted(server.list_collections(), key=lambda c: c.name or "")
        logger.info("Found %d collection(s)", len(collections))
        collection_resources: dict[str, str] = {}
        for collection in collections:
            collection_resources[collection.name or ""] = self._generate_collection(collection, result)

        stopwords: list[StopwordsSet] = self._fetch(
            Feature.STOPWORDS, "stopwords", server.list_stopwords_sets,
        )
        for sw in stopwords:
            self._add("typesense_stopwords_set", sw.id, sw.id,
                      lambda name, sw=sw: hcl.stopwords_block(sw, name))
        if result.data_dir is not None:
            self._export(export.export_stopwords, result.data_dir, stopwords)

        for alias in server.list_aliases():
            self._add("typesense_collection_alias", alias.name, alias.name,
                      lambda name, a=alias: hcl.alias_block(
                          a, name, collection_resources.get(a.collection_name)))

        for preset in self._fetch(Feature.PRESETS, "presets", server.list_presets):
            self._add("typesense_preset", preset.name or "", preset.name or "",
                      lambda name, p=preset: hcl.preset_block(p, name))

        for rule in self._fetch(Feature.ANALYTICS_RULES, "analytics rules", server.list_analytics_rules):
            self._add("typesense_analytics_rule", rule.name or "", rule.name or "",
                      lambda name, r=rule: hcl.analytics_rule_block(r, name))

        for key in server.list_api_keys():
            if key.id is None:
                continue
            name = self._add("typesense_api_key", f"key_{key.id}", api_key_import_id(key.id),
                             lambda name, k=key: hcl.api_key_block(k, name))
            self._items.insert(len(self._items) - 1, hcl.Comment(hcl.api_key_comment(key.id, name)))

        for model in self._fetch(Feature.NL_SEARCH_MODELS, "NL search models", server.list_nl_search_models):
            self._add("typesense_nl_search_model", model.id, model.id,
                      lambda name, m=model: self._nl_search_model_block(m, name))

        conversation_models = self._fetch(
            Feature.CONVERSATION_MODELS, "conversation models", server.list_conversation_models,
        )
        for conv in conversation_models:
            self._add("typesense_conversation_model", conv.id or conv.model_name, conv.id or "",
                      lambda name, m=conv: hcl.conversation_model_block(
                          m, name, self._model_key_variable(name)))

    def _generate_collection(self, collection: Collection, result: GenerateResult) -> str:
        assert self.server is not None
        cname = collection.name or ""

        embed_vars: dict[str, str] = {}
        resource = make_unique_resource_name(cname, self._seen["typesense_collection"])
        for f in collection.fields:
            if f.embed is not None and f.embed.embed_model.api_key:
                embed_vars[f.name] = self._model_key_variable(f"{resource}_{f.name}")
        self._items.append(hcl.collection_block(collection, resource, embed_vars))
        self._imports.append(
            ImportCommand("typesense_collection", resource, collection_import_id(cname)),
        )
        self._counts["typesense_collection"] += 1

        synonyms = self.server.list_collection_synonyms(cname)
        for syn in synonyms:
            self._add("typesense_synonym", f"{cname}_{syn.id}", synonym_import_id(cname, syn.id),
                      lambda name, s=syn: hcl.synonym_block(s, resource, name))

        overrides = self.server.list_collection_overrides(cname)
        for ovr in overrides:
            self._add("typesense_override", f"{cname}_{ovr.id}", override_import_id(cname, ovr.id),
                      lambda name, o=ovr: hcl.override_block(o, resource, name))

        if result.data_dir is not None:
            data_dir = result.data_dir
            self._export(export.export_schema, data_dir, collection)
            self._export(export.export_documents, self.server, data_dir, cname)
            self._export(export.export_synonyms, data_dir, cname, synonyms)
            self._export(export.export_overrides, data_dir, cname, overrides)
            result.exported_collections.append(cname)
        return resource

    def _export(self, func: Callable[..., object], *args: object) -> None:
        try:
            func(*args)
        except (OSError, TypesenseError) as e:
            msg = f"Failed to export data: {e}"
            raise GeneratorError(msg) from e

    # --- cloud ---

    def _generate_clusters(self) -> None:
        assert self.cloud is not None
        clusters = self.cloud.list_clusters()
        logger.info("Found %d cloud cluster(s)", len(clusters))
        for cluster in clusters:
            self._add("typesense_cluster", cluster.name, cluster.id or "",
                      lambda name, c=cluster: hcl.cluster_block(c, name))
