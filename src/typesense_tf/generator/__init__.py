"""Terraform configuration generation from a live Typesense deployment."""

from typesense_tf.generator.generator import (
    GenerateResult,
    Generator,
    GeneratorConfig,
    GeneratorError,
)
from typesense_tf.generator.imports import ImportCommand, generate_import_script
from typesense_tf.generator.names import make_unique_resource_name, sanitize_resource_name

__all__ = [
    "GenerateResult",
    "Generator",
    "GeneratorConfig",
    "GeneratorError",
    "ImportCommand",
    "generate_import_script",
    "make_unique_resource_name",
    "sanitize_resource_name",
]
