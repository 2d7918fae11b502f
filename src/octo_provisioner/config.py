"""Configuration loading utilities for octo-provisioner."""

from __future__ import annotations

import json
import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, Optional

from dotenv import load_dotenv

from .paths import DEFAULT_CONFIG_PATH, STATE_FILE

# Load .env file if it exists
load_dotenv()

_DEFAULT_CONFIG_PATH = DEFAULT_CONFIG_PATH


@dataclass
class ServerConfig:
    """Connection settings for the Octopus Deploy server."""

    address: Optional[str] = None
    api_key: Optional[str] = None
    space_id: Optional[str] = None
    timeout: int = 30
    verify_ssl: bool = True
    proxy: Optional[str] = None  # e.g. "http://127.0.0.1:7890"


@dataclass
class StateConfig:
    """Where resource ids and attributes are persisted between runs."""

    path: str = str(STATE_FILE)


@dataclass
class AppConfig:
    """Top-level configuration."""

    server: ServerConfig = field(default_factory=ServerConfig)
    state: StateConfig = field(default_factory=StateConfig)

    @classmethod
    def from_dict(cls, payload: Dict[str, Any]) -> "AppConfig":
        server_payload = payload.get("server", {}) or {}
        state_payload = payload.get("state", {}) or {}

        # Keys starting with an underscore are comments
        server_payload = {k: v for k, v in server_payload.items() if not k.startswith("_")}
        state_payload = {k: v for k, v in state_payload.items() if not k.startswith("_")}

        return cls(
            server=ServerConfig(**{**ServerConfig().__dict__, **server_payload}),
            state=StateConfig(**{**StateConfig().__dict__, **state_payload}),
        )


def load_config(path: Optional[str] = None) -> AppConfig:
    """Load configuration from `path` or the default location.

    Environment variables (higher priority than config file):
    - OCTOPUS_URL: Server address, e.g. https://octopus.example.com
    - OCTOPUS_APIKEY: API key sent as X-Octopus-ApiKey
    - OCTOPUS_SPACE_ID: Space the resources live in
    - OCTO_PROVISIONER_STATE: Path of the state file
    """

    candidate_paths = []
    if path:
        candidate_paths.append(Path(path))
    candidate_paths.append(_DEFAULT_CONFIG_PATH)

    for candidate in candidate_paths:
        if candidate.is_file():
            with candidate.open("r", encoding="utf-8") as handle:
                data = json.load(handle)
            config = AppConfig.from_dict(data)

            env_address = os.getenv("OCTOPUS_URL")
            if env_address:
                config.server.address = env_address

            env_api_key = os.getenv("OCTOPUS_APIKEY")
            if env_api_key:
                config.server.api_key = env_api_key

            env_space = os.getenv("OCTOPUS_SPACE_ID")
            if env_space:
                config.server.space_id = env_space

            env_state = os.getenv("OCTO_PROVISIONER_STATE")
            if env_state:
                config.state.path = env_state

            if config.server.address:
                config.server.address = config.server.address.rstrip("/")

            return config

    raise FileNotFoundError(
        f"Could not find configuration file. Looked in: {', '.join(str(p) for p in candidate_paths)}"
    )
