"""Reading and writing the user's JSON configuration file."""

from __future__ import annotations

import json
from dataclasses import dataclass, field
from pathlib import Path

CONFIG_FILE_NAME = ".gatorconfig.json"


def config_file_path() -> Path:
    """Return the location of the configuration file in the home directory."""
    return Path.home() / CONFIG_FILE_NAME


@dataclass
class Config:
    """Database URL and the name of the user currently logged in."""

    db_url: str = ""
    current_user_name: str = ""
    path: Path | None = field(default=None, repr=False, compare=False)

    def set_user(self, name: str) -> None:
        """Record ``name`` as the current user and save the file."""
        self.current_user_name = name
        self.write()

    def write(self) -> None:
        """Save the configuration as indented JSON."""
        data: dict[str, str] = {"db_url": self.db_url}
        if self.current_user_name:
            data["current_user_name"] = self.current_user_name
        target = self.path if self.path is not None else config_file_path()
        target.write_text(json.dumps(data, indent=2, ensure_ascii=False), encoding="utf-8")


def _string_field(data: dict, key: str) -> str:
    value = data.get(key, "")
    if value is None:
        return ""
    if not isinstance(value, str):
        raise ValueError(f"config field {key!r} must be a string, got {type(value).__name__}")
    return value


def read(path: str | Path | None = None) -> Config:
    """Load the configuration from ``path``, or from the home directory."""
    target = Path(path) if path is not None else config_file_path()
    data = json.loads(target.read_text(encoding="utf-8"))
    if not isinstance(data, dict):
        raise ValueError("config file must hold a JSON object")
    return Config(
        db_url=_string_field(data, "db_url"),
        current_user_name=_string_field(data, "current_user_name"),
        path=target,
    )