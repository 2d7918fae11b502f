"""Attribute declarations and value helpers for resource schemas."""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Any, Callable, Dict, List, Optional, Sequence, Union

Validator = Callable[[Any, str], List[str]]


class FieldType(Enum):
    """Value kinds an attribute can hold."""

    STRING = "string"
    BOOL = "bool"
    INT = "int"
    LIST = "list"
    SET = "set"


@dataclass
class Field:
    """Declaration of a single resource attribute.

    ``elem`` describes list/set members: a ``Field`` for primitive members or
    a mapping of attribute name to ``Field`` for nested blocks.
    """

    type: FieldType
    required: bool = False
    optional: bool = False
    computed: bool = False
    default: Any = None
    description: str = ""
    sensitive: bool = False
    force_new: bool = False
    elem: Union["Field", Dict[str, "Field"], None] = None
    min_items: int = 0
    max_items: int = 0
    validate: Optional[Validator] = None

    @property
    def is_collection(self) -> bool:
        return self.type in (FieldType.LIST, FieldType.SET)

    @property
    def is_block(self) -> bool:
        return self.is_collection and isinstance(self.elem, dict)

    def zero(self) -> Any:
        if self.type == FieldType.STRING:
            return ""
        if self.type == FieldType.BOOL:
            return False
        if self.type == FieldType.INT:
            return 0
        return []

    def check_type(self, value: Any) -> bool:
        if self.type == FieldType.STRING:
            return isinstance(value, str)
        if self.type == FieldType.BOOL:
            return isinstance(value, bool)
        if self.type == FieldType.INT:
            return isinstance(value, int) and not isinstance(value, bool)
        return isinstance(value, (list, tuple))


def validate_value_func(allowed: Sequence[str]) -> Validator:
    """Return a validator accepting only the values in ``allowed``."""
    allowed_values = list(allowed)

    def _validate(value: Any, key: str) -> List[str]:
        if value not in allowed_values:
            return [f"{key}: expected one of {allowed_values}, got {value!r}"]
        return []

    return _validate


def format_bool(value: bool) -> str:
    """Format a boolean the way the Octopus property bag stores it."""
    return "True" if value else "False"


_TRUE_STRINGS = {"1", "t", "T", "TRUE", "true", "True"}
_FALSE_STRINGS = {"0", "f", "F", "FALSE", "false", "False"}


def parse_bool(value: Any) -> Optional[bool]:
    """Parse a property-bag boolean; ``None`` when the value is not one."""
    if isinstance(value, bool):
        return value
    if value in _TRUE_STRINGS:
        return True
    if value in _FALSE_STRINGS:
        return False
    return None
