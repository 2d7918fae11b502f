"""Resource declarations and the attribute container handed to handlers."""

from __future__ import annotations

import copy
from dataclasses import dataclass
from typing import Any, Callable, Dict, List, Optional, Tuple

from .types import Field

Schema = Dict[str, Field]
LifecycleFunc = Callable[["ResourceData", Any], None]


class SchemaValidationError(ValueError):
    """Raised when a configuration does not match its resource schema."""

    def __init__(self, resource_type: str, errors: List[str]) -> None:
        self.resource_type = resource_type
        self.errors = errors
        super().__init__(f"Invalid {resource_type} configuration: " + "; ".join(errors))


class ResourceOperationError(RuntimeError):
    """Raised when a create/read/update/delete call fails."""

    pass


def _is_zero(value: Any) -> bool:
    return value is None or value == "" or value is False or value == 0 or value == []


def apply_defaults(schema: Schema, attributes: Dict[str, Any]) -> Dict[str, Any]:
    """Return a copy of ``attributes`` with schema defaults filled in."""
    result = copy.deepcopy(attributes)
    for key, spec in schema.items():
        value = result.get(key)
        if value is None:
            if spec.default is not None:
                result[key] = copy.deepcopy(spec.default)
            continue
        if spec.is_block:
            result[key] = [
                apply_defaults(spec.elem, item) if isinstance(item, dict) else item  # type: ignore[arg-type]
                for item in value
            ]
    return result


def _validate_block(schema: Schema, config: Dict[str, Any], prefix: str) -> List[str]:
    errors: List[str] = []

    for key in config:
        if key not in schema:
            errors.append(f"{prefix}{key}: unsupported attribute")

    for key, spec in schema.items():
        path = f"{prefix}{key}"
        value = config.get(key)

        if value is None:
            if spec.required:
                errors.append(f"{path}: required attribute is missing")
            continue

        if spec.computed and not (spec.optional or spec.required):
            errors.append(f"{path}: computed attribute cannot be set")
            continue

        if not spec.check_type(value):
            errors.append(f"{path}: expected {spec.type.value}, got {type(value).__name__}")
            continue

        if spec.is_collection:
            if value and spec.min_items and len(value) < spec.min_items:
                errors.append(f"{path}: at least {spec.min_items} item(s) required")
            if spec.max_items and len(value) > spec.max_items:
                errors.append(f"{path}: at most {spec.max_items} item(s) allowed")
            if spec.required and not value:
                errors.append(f"{path}: required attribute is empty")
            for index, item in enumerate(value):
                item_path = f"{path}.{index}"
                if isinstance(spec.elem, dict):
                    if not isinstance(item, dict):
                        errors.append(f"{item_path}: expected block, got {type(item).__name__}")
                        continue
                    errors.extend(_validate_block(spec.elem, item, f"{item_path}."))
                elif isinstance(spec.elem, Field):
                    if not spec.elem.check_type(item):
                        errors.append(
                            f"{item_path}: expected {spec.elem.type.value}, got {type(item).__name__}"
                        )
                    elif spec.elem.validate:
                        errors.extend(spec.elem.validate(item, item_path))

        if spec.validate:
            errors.extend(spec.validate(value, path))

    return errors


class ResourceData:
    """Attribute values of one resource instance plus its server id."""

    def __init__(
        self,
        schema: Schema,
        attributes: Optional[Dict[str, Any]] = None,
        id: str = "",
    ) -> None:
        self.schema = schema
        self._attributes: Dict[str, Any] = dict(attributes or {})
        self._id = id or ""

    @property
    def id(self) -> str:
        return self._id

    def set_id(self, value: Optional[str]) -> None:
        self._id = value or ""

    def _field(self, key: str) -> Field:
        try:
            return self.schema[key]
        except KeyError:
            raise KeyError(f"Unknown attribute: {key}") from None

    def get(self, key: str) -> Any:
        spec = self._field(key)
        value = self._attributes.get(key)
        if value is None:
            return copy.deepcopy(spec.default) if spec.default is not None else spec.zero()
        return value

    def get_ok(self, key: str) -> Tuple[Any, bool]:
        value = self.get(key)
        return value, not _is_zero(value)

    def has(self, key: str) -> bool:
        self._field(key)
        return self._attributes.get(key) is not None

    def set(self, key: str, value: Any) -> None:
        self._field(key)
        if value is None:
            self._attributes.pop(key, None)
        else:
            self._attributes[key] = value

    def to_state(self) -> Dict[str, Any]:
        return copy.deepcopy(self._attributes)


@dataclass
class Resource:
    """A resource type: its schema and lifecycle functions."""

    schema: Schema
    create: LifecycleFunc
    read: LifecycleFunc
    update: LifecycleFunc
    delete: LifecycleFunc
    description: str = ""

    def validate(self, config: Dict[str, Any]) -> List[str]:
        return _validate_block(self.schema, config, "")

    def data(self, attributes: Optional[Dict[str, Any]] = None, id: str = "") -> ResourceData:
        return ResourceData(self.schema, apply_defaults(self.schema, attributes or {}), id=id)

    def force_new_changed(self, old: Dict[str, Any], new: Dict[str, Any]) -> List[str]:
        """Names of force-new attributes whose value differs between two configs."""
        old_data = self.data(old)
        new_data = self.data(new)
        return [
            key
            for key, spec in self.schema.items()
            if spec.force_new and old_data.get(key) != new_data.get(key)
        ]
