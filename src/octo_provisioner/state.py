"""Local JSON state of the resources managed on the server."""

from __future__ import annotations

import json
import time
from dataclasses import asdict, dataclass, field
from pathlib import Path
from typing import Any, Dict

STATE_VERSION = 1


@dataclass
class ResourceState:
    """Last known server id and attributes of one resource."""

    type: str
    name: str
    id: str
    attributes: Dict[str, Any] = field(default_factory=dict)
    config: Dict[str, Any] = field(default_factory=dict)

    @property
    def address(self) -> str:
        return f"{self.type}.{self.name}"

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "ResourceState":
        return cls(
            type=data["type"],
            name=data["name"],
            id=data.get("id", ""),
            attributes=data.get("attributes", {}) or {},
            config=data.get("config", {}) or {},
        )


class StateStore:
    """Reads and writes the state file; entries keep creation order."""

    def __init__(self, path: Path) -> None:
        self.path = Path(path)

    def load(self) -> Dict[str, ResourceState]:
        if not self.path.exists():
            return {}
        payload = json.loads(self.path.read_text(encoding="utf-8"))
        version = payload.get("version", STATE_VERSION)
        if version != STATE_VERSION:
            raise ValueError(f"Unsupported state version {version} in {self.path}")
        return {
            address: ResourceState.from_dict(entry)
            for address, entry in (payload.get("resources") or {}).items()
        }

    def save(self, resources: Dict[str, ResourceState]) -> None:
        self.path.parent.mkdir(parents=True, exist_ok=True)
        payload = {
            "version": STATE_VERSION,
            "updated_at": int(time.time()),
            "resources": {address: asdict(entry) for address, entry in resources.items()},
        }
        self.path.write_text(json.dumps(payload, indent=2), encoding="utf-8")
