"""Unified path constants for octo-provisioner.

All local data is stored under the .octo-provisioner directory:
- .octo-provisioner/state.json   # Resource ids and attributes from the last run
"""

from pathlib import Path

BASE_DIR = Path(".octo-provisioner")

STATE_FILE = BASE_DIR / "state.json"
DEFAULT_CONFIG_PATH = Path("config/default_config.json")


def get_state_file(path: str | Path | None = None) -> Path:
    """Return the state file path, creating its parent directory."""
    state_file = Path(path) if path else STATE_FILE
    state_file.parent.mkdir(parents=True, exist_ok=True)
    return state_file
