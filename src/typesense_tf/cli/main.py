"""typesense-tf CLI: Terraform configuration and data migration for Typesense.

Commands:
    generate    Snapshot a server and/or cloud account into main.tf + imports.sh
    migrate     Replay an exported data directory onto a target cluster
    version     Show the installed version
"""

from __future__ import annotations

import logging
import sys
from pathlib import Path
from typing import Any, NoReturn

import click

from typesense_tf import __version__
from typesense_tf.client.errors import TypesenseError
from typesense_tf.client.server import DEFAULT_PORT, DEFAULT_PROTOCOL
from typesense_tf.config import ConfigError, TypesenseTfConfig, load_config
from typesense_tf.generator import Generator, GeneratorConfig, GeneratorError
from typesense_tf.migrator import MigrationError, Migrator, MigratorConfig

# --- Defaults ---

DEFAULT_OUTPUT = "./generated"
DEFAULT_TIMEOUT = 30.0

_DOCUMENTS_WARNING = """\
  ┌─────────────────────────────────────────────────────────────────┐
  │                        *** WARNING ***                          │
  │                                                                 │
  │  --include-documents is enabled. This will import ALL document  │
  │  data from the exported JSONL files into the target cluster.    │
  │                                                                 │
  │  If your source cluster has millions of documents, this can:    │
  │    - Take a very long time to complete                          │
  │    - Consume significant disk space on the target               │
  │    - Use substantial network bandwidth                          │
  │                                                                 │
  │  To migrate schema only (without documents), omit this flag.    │
  └─────────────────────────────────────────────────────────────────┘"""


def _fail(message: str) -> NoReturn:
    click.echo(f"Error: {message}", err=True)
    sys.exit(1)


def _or(explicit: Any, cfg_val: Any, fallback: Any) -> Any:
    """Return first non-None value: explicit CLI flag > config > fallback."""
    if explicit is not None:
        return explicit
    if cfg_val is not None:
        return cfg_val
    return fallback


def _cfg(ctx: click.Context) -> TypesenseTfConfig:
    return ctx.obj["config"]


# --- Root group ---


@click.group()
@click.version_option(version=__version__, prog_name="typesense-tf")
@click.option("--verbose", "-v", is_flag=True, help="Enable debug logging")
@click.option(
    "--config", "config_path", default=None,
    help="Path to typesense-tf.yaml (default: auto-discover)",
)
@click.pass_context
def cli(ctx: click.Context, verbose: bool, config_path: str | None) -> None:
    """typesense-tf: Terraform configuration and data migration for Typesense."""
    if verbose:
        logging.basicConfig(
            level=logging.DEBUG,
            format="%(asctime)s %(levelname)s %(name)s: %(message)s",
        )
    try:
        config = load_config(config_path)
    except ConfigError as e:
        _fail(str(e))
    ctx.ensure_object(dict)
    ctx.obj["config"] = config


# --- generate command ---


@cli.command()
@click.option("--host", default=None, help="Typesense server hostname")
@click.option("--port", type=int, default=None, help=f"Typesense server port (default {DEFAULT_PORT})")
@click.option(
    "--protocol", type=click.Choice(["http", "https"]), default=None,
    help="Typesense server protocol (default http)",
)
@click.option("--api-key", default=None, help="Typesense server API key")
@click.option("--cloud-api-key", default=None, help="Typesense Cloud Management API key")
@click.option("--output", "-o", default=None, help="Output directory for generated files")
@click.option(
    "--include-data", is_flag=True,
    help="Also export schemas, documents, synonyms, overrides and stopwords",
)
@click.pass_context
def generate(
    ctx: click.Context,
    host: str | None,
    port: int | None,
    protocol: str | None,
    api_key: str | None,
    cloud_api_key: str | None,
    output: str | None,
    include_data: bool,
) -> None:
    """Generate Terraform configuration from an existing Typesense cluster.

    Needs server credentials (--host and --api-key), Typesense Cloud
    credentials (--cloud-api-key), or both.
    """
    cfg = _cfg(ctx)
    host = _or(host, cfg.host, None)
    api_key = _or(api_key, cfg.api_key, None)
    cloud_api_key = _or(cloud_api_key, cfg.cloud_api_key, None)

    has_server = bool(host and api_key)
    if not has_server and not cloud_api_key:
        _fail(
            "at least one of server credentials (--host, --api-key) "
            "or cloud credentials (--cloud-api-key) is required",
        )
    if host and not api_key:
        _fail("--api-key is required when --host is specified")

    config = GeneratorConfig(
        output_dir=_or(output, cfg.output, DEFAULT_OUTPUT),
        host=host,
        port=_or(port, cfg.port, DEFAULT_PORT),
        protocol=_or(protocol, cfg.protocol, DEFAULT_PROTOCOL),
        api_key=api_key,
        cloud_api_key=cloud_api_key,
        include_data=include_data,
        timeout=_or(None, cfg.timeout, DEFAULT_TIMEOUT),
    )

    click.echo("Generating Terraform configuration...")
    if has_server:
        click.echo(f"  Server: {config.protocol}://{config.host}:{config.port}")
    if cloud_api_key:
        click.echo("  Cloud: Typesense Cloud API")
    click.echo(f"  Output: {config.output_dir}")
    click.echo("")

    try:
        result = Generator(config).generate()
    except (GeneratorError, TypesenseError) as e:
        _fail(f"generation failed: {e}")

    for resource_type, count in sorted(result.resource_counts.items()):
        click.echo(f"  {resource_type}: {count}")
    click.echo(f"  Total: {result.resource_count} resource(s)")
    if result.exported_collections:
        click.echo(f"  Exported data for {len(result.exported_collections)} collection(s)")
    click.echo("")

    out = config.output_dir
    click.echo("Generated files:")
    click.echo(f"  {result.main_tf}     - Terraform configuration")
    click.echo(f"  {result.imports_sh}  - Import commands script")
    if result.data_dir is not None:
        click.echo(f"  {result.data_dir}/       - Exported data (use with 'typesense-tf migrate')")
    click.echo("")
    click.echo("Next steps:")
    click.echo(f"  1. cd {out}")
    click.echo("  2. Review main.tf and set the API key variables (TF_VAR_...)")
    click.echo("  3. terraform init")
    click.echo("  4. ./imports.sh  # Import existing resources")
    click.echo("  5. terraform plan  # Should show no changes")


# --- migrate command ---


@cli.command()
@click.option(
    "--source-dir", default=None,
    help="Directory containing exported data from generate --include-data",
)
@click.option("--target-host", default=None, help="Target Typesense server hostname")
@click.option("--target-port", type=int, default=DEFAULT_PORT, help="Target Typesense server port")
@click.option(
    "--target-protocol", type=click.Choice(["http", "https"]), default=DEFAULT_PROTOCOL,
    help="Target Typesense server protocol",
)
@click.option("--target-api-key", default=None, help="Target Typesense server API key")
@click.option(
    "--include-documents", is_flag=True,
    help="Import document data from JSONL files (can be very large!)",
)
@click.pass_context
def migrate(
    ctx: click.Context,
    source_dir: str | None,
    target_host: str | None,
    target_port: int,
    target_protocol: str,
    target_api_key: str | None,
    include_documents: bool,
) -> None:
    """Import exported collections and their configuration into a target cluster.

    By default only schemas, synonyms, overrides and stopwords are imported.
    Use --include-documents to also import document data.
    """
    if not source_dir:
        _fail("--source-dir is required")
    if not target_host:
        _fail("--target-host is required")
    if not target_api_key:
        _fail("--target-api-key is required")
    if not Path(source_dir).exists():
        _fail(f"source directory does not exist: {source_dir}")

    config = MigratorConfig(
        source_dir=source_dir,
        target_host=target_host,
        target_api_key=target_api_key,
        target_port=target_port,
        target_protocol=target_protocol,
        include_documents=include_documents,
        timeout=_or(None, _cfg(ctx).timeout, DEFAULT_TIMEOUT),
    )

    click.echo("Migrating to target cluster...")
    click.echo(f"  Source: {source_dir}")
    click.echo(f"  Target: {target_protocol}://{target_host}:{target_port}")
    if include_documents:
        click.echo("")
        click.echo(_DOCUMENTS_WARNING)
    else:
        click.echo("  Documents: skipped (use --include-documents to import)")
    click.echo("")

    try:
        report = Migrator(config).migrate()
    except MigrationError as e:
        _fail(f"migration failed: {e}")

    if not report.collections:
        click.echo("No collections found to migrate")
    for c in report.collections:
        status = "created" if c.created else "already exists"
        click.echo(f"  {c.name}: {status}")
        if include_documents:
            if c.documents_skipped_reason:
                click.echo(f"    documents: {c.documents_skipped_reason}")
            else:
                click.echo(
                    f"    documents: {c.documents_imported} success, {c.documents_failed} failed",
                )
        if c.synonyms:
            click.echo(f"    synonyms: {c.synonyms}")
        if c.overrides:
            click.echo(f"    overrides: {c.overrides}")
    if report.stopwords:
        click.echo(f"  stopwords sets: {report.stopwords}")
    if report.documents_failed:
        click.echo(
            click.style("Warning:", fg="yellow")
            + f" {report.documents_failed} document(s) failed to import",
        )

    click.echo("")
    click.echo("Migration complete!")


# --- version command ---


@cli.command()
def version() -> None:
    """Show the installed typesense-tf version."""
    click.echo(f"typesense-tf {__version__}")
