"""Schema declarations and resource data used by the resource handlers."""

from .resource import (
    Resource,
    ResourceData,
    ResourceOperationError,
    Schema,
    SchemaValidationError,
    apply_defaults,
)
from .types import Field, FieldType, format_bool, parse_bool, validate_value_func

__all__ = [
    "Field",
    "FieldType",
    "Resource",
    "ResourceData",
    "ResourceOperationError",
    "Schema",
    "SchemaValidationError",
    "apply_defaults",
    "format_bool",
    "parse_bool",
    "validate_value_func",
]
