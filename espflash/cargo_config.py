"""Reading the project's .cargo configuration."""

from __future__ import annotations

import tomllib
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

from espflash.errors import TomlError


@dataclass
class CargoConfig:
    build_std: list[str] = field(default_factory=list)
    target: str | None = None

    def has_build_std(self) -> bool:
        return bool(self.build_std)

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> CargoConfig:
        """Build from a parsed configuration document, checking value types."""
        unstable = data.get("unstable", {})
        build = data.get("build", {})
        if not isinstance(unstable, dict) or not isinstance(build, dict):
            raise ValueError("'unstable' and 'build' must be tables")
        build_std = unstable.get("build-std", [])
        if not isinstance(build_std, list) or not all(isinstance(s, str) for s in build_std):
            raise ValueError("'unstable.build-std' must be a list of strings")
        target = build.get("target")
        if target is not None and not isinstance(target, str):
            raise ValueError("'build.target' must be a string")
        return cls(build_std=list(build_std), target=target)


def config_path(project_path: str | Path) -> Path | None:
    """The configuration file of the project, preferring `.cargo/config`."""
    project = Path(project_path)
    for candidate in (project / ".cargo/config", project / ".cargo/config.toml"):
        if candidate.exists():
            return candidate
    return None


def parse_cargo_config(project_path: str | Path) -> CargoConfig:
    """Load the project's configuration; missing or unreadable files give defaults."""
    path = config_path(project_path)
    if path is None:
        return CargoConfig()
    try:
        content = path.read_text(encoding="utf-8")
    except (OSError, UnicodeDecodeError):
        return CargoConfig()
    try:
        return CargoConfig.from_dict(tomllib.loads(content))
    except (tomllib.TOMLDecodeError, ValueError) as exc:
        raise TomlError(exc, content, context=f"Failed to parse {path}") from exc