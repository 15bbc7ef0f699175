"""One-shot migration of exported data onto a target cluster."""

from typesense_tf.migrator.migrator import (
    CollectionReport,
    MigrationError,
    MigrationReport,
    Migrator,
    MigratorConfig,
)

__all__ = [
    "CollectionReport",
    "MigrationError",
    "MigrationReport",
    "Migrator",
    "MigratorConfig",
]
