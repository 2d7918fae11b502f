"""Apply, refresh and destroy resource definitions against the server."""

from __future__ import annotations

import json
import re
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, List

from .provider import Provider
from .schema import Resource, ResourceData, ResourceOperationError, SchemaValidationError
from .state import ResourceState, StateStore
from .utils.logging import get_logger

logger = get_logger(__name__)

_REFERENCE = re.compile(r"\$\{([A-Za-z0-9_]+)\.([A-Za-z0-9_\-]+)\.([A-Za-z0-9_]+)\}")


@dataclass
class ResourceDefinition:
    """One resource block from a definitions file."""

    type: str
    name: str
    config: Dict[str, Any] = field(default_factory=dict)

    @property
    def address(self) -> str:
        return f"{self.type}.{self.name}"


@dataclass
class ApplyResult:
    created: List[str] = field(default_factory=list)
    updated: List[str] = field(default_factory=list)
    replaced: List[str] = field(default_factory=list)
    deleted: List[str] = field(default_factory=list)
    unchanged: List[str] = field(default_factory=list)


def load_definitions(path: str | Path) -> List[ResourceDefinition]:
    """Read ``{"resources": [{"type", "name", "config"}, ...]}`` from ``path``."""
    payload = json.loads(Path(path).read_text(encoding="utf-8"))
    definitions: List[ResourceDefinition] = []
    seen = set()
    for index, entry in enumerate(payload.get("resources") or []):
        if not isinstance(entry, dict) or "type" not in entry or "name" not in entry:
            raise ValueError(f"resources[{index}] needs a 'type' and a 'name'")
        definition = ResourceDefinition(
            type=entry["type"],
            name=entry["name"],
            config=entry.get("config") or {},
        )
        if definition.address in seen:
            raise ValueError(f"Duplicate resource {definition.address}")
        seen.add(definition.address)
        definitions.append(definition)
    return definitions


def _lookup(match: re.Match, resources: Dict[str, ResourceState]) -> Any:
    resource_type, name, attr = match.groups()
    entry = resources.get(f"{resource_type}.{name}")
    if entry is None:
        raise ValueError(f"Unresolved reference {match.group(0)}: resource not created yet")
    if attr == "id":
        return entry.id
    if attr not in entry.attributes:
        raise ValueError(f"Unresolved reference {match.group(0)}: no attribute '{attr}'")
    return entry.attributes[attr]


def resolve_references(value: Any, resources: Dict[str, ResourceState]) -> Any:
    """Replace ``${type.name.attr}`` references with values from state."""
    if isinstance(value, dict):
        return {k: resolve_references(v, resources) for k, v in value.items()}
    if isinstance(value, list):
        return [resolve_references(v, resources) for v in value]
    if not isinstance(value, str):
        return value

    whole = _REFERENCE.fullmatch(value)
    if whole:
        return _lookup(whole, resources)
    return _REFERENCE.sub(lambda m: str(_lookup(m, resources)), value)


class ResourceWorkflow:
    """Drives resource lifecycles and keeps the state file current."""

    def __init__(self, provider: Provider, store: StateStore) -> None:
        self.provider = provider
        self.store = store

    def validate(self, definitions: List[ResourceDefinition]) -> Dict[str, List[str]]:
        """Schema errors per address; references are checked at apply time."""
        problems: Dict[str, List[str]] = {}
        for definition in definitions:
            resource = self.provider.resource(definition.type)
            errors = [
                e for e in resource.validate(definition.config)
                if not _mentions_reference(definition.config, e)
            ]
            if errors:
                problems[definition.address] = errors
        return problems

    def apply(self, definitions: List[ResourceDefinition]) -> ApplyResult:
        result = ApplyResult()
        resources = self.store.load()
        wanted = {d.address for d in definitions}

        for address in reversed(list(resources)):
            if address not in wanted:
                self._delete(resources[address])
                del resources[address]
                self.store.save(resources)
                result.deleted.append(address)

        for definition in definitions:
            resource = self.provider.resource(definition.type)
            config = resolve_references(definition.config, resources)
            errors = resource.validate(config)
            if errors:
                raise SchemaValidationError(definition.address, errors)

            existing = resources.get(definition.address)
            if existing is not None and existing.id:
                if existing.config == config:
                    result.unchanged.append(definition.address)
                    continue
                changed = resource.force_new_changed(existing.config, config)
                if changed:
                    logger.info("%s must be replaced (%s changed)", definition.address, ", ".join(changed))
                    self._delete(existing)
                    d = self._create(resource, definition, config)
                    result.replaced.append(definition.address)
                else:
                    d = self._update(resource, definition, existing, config)
                    result.updated.append(definition.address)
            else:
                d = self._create(resource, definition, config)
                result.created.append(definition.address)

            resource.read(d, self.provider.client)
            if not d.id:
                raise ResourceOperationError(f"{definition.address} disappeared right after being applied")

            resources[definition.address] = ResourceState(
                type=definition.type,
                name=definition.name,
                id=d.id,
                attributes=d.to_state(),
                config=config,
            )
            self.store.save(resources)

        return result

    def refresh(self) -> List[str]:
        """Re-read every resource; returns the addresses that are gone."""
        resources = self.store.load()
        removed = []
        for address, entry in list(resources.items()):
            resource = self.provider.resource(entry.type)
            d = resource.data(entry.attributes, id=entry.id)
            resource.read(d, self.provider.client)
            if not d.id:
                logger.info("%s no longer exists on the server", address)
                del resources[address]
                removed.append(address)
            else:
                entry.attributes = d.to_state()
        self.store.save(resources)
        return removed

    def destroy(self) -> List[str]:
        resources = self.store.load()
        deleted = []
        for address in reversed(list(resources)):
            self._delete(resources[address])
            del resources[address]
            self.store.save(resources)
            deleted.append(address)
        return deleted

    def _create(self, resource: Resource, definition: ResourceDefinition, config: Dict[str, Any]) -> ResourceData:
        logger.info("Creating %s ...", definition.address)
        d = resource.data(config)
        resource.create(d, self.provider.client)
        if not d.id:
            raise ResourceOperationError(f"{definition.address} was not assigned an id")
        return d

    def _update(
        self,
        resource: Resource,
        definition: ResourceDefinition,
        existing: ResourceState,
        config: Dict[str, Any],
    ) -> ResourceData:
        logger.info("Updating %s ...", definition.address)
        attributes = dict(config)
        for key, spec in resource.schema.items():
            if spec.computed and not spec.optional and key in existing.attributes:
                attributes[key] = existing.attributes[key]
        d = resource.data(attributes, id=existing.id)
        resource.update(d, self.provider.client)
        if not d.id:
            # The parent object vanished; start over
            return self._create(resource, definition, config)
        return d

    def _delete(self, entry: ResourceState) -> None:
        logger.info("Deleting %s ...", entry.address)
        resource = self.provider.resource(entry.type)
        d = resource.data(entry.attributes, id=entry.id)
        resource.delete(d, self.provider.client)


def _mentions_reference(config: Dict[str, Any], error: str) -> bool:
    key = error.split(":", 1)[0].split(".", 1)[0]
    value = config.get(key)
    return isinstance(value, str) and bool(_REFERENCE.search(value))
