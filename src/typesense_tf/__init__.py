"""typesense-tf: Terraform configuration generator and data migrator for Typesense."""

__version__ = "0.1.0"

from typesense_tf.client import (
    ApiError,
    CloudClient,
    ImportResult,
    ServerClient,
    TransportError,
    TypesenseError,
)
from typesense_tf.config import TypesenseTfConfig, find_config, load_config
from typesense_tf.generator import GenerateResult, Generator, GeneratorConfig, GeneratorError
from typesense_tf.migrator import MigrationError, MigrationReport, Migrator, MigratorConfig

__all__ = [
    "ApiError",
    "CloudClient",
    "GenerateResult",
    "Generator",
    "GeneratorConfig",
    "GeneratorError",
    "ImportResult",
    "MigrationError",
    "MigrationReport",
    "Migrator",
    "MigratorConfig",
    "ServerClient",
    "TransportError",
    "TypesenseError",
    "TypesenseTfConfig",
    "__version__",
    "find_config",
    "load_config",
]
