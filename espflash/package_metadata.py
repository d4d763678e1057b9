"""Flashing settings from the `[package.metadata.espflash]` table of Cargo.toml."""

from __future__ import annotations

import tomllib
from dataclasses import dataclass
from pathlib import Path
from typing import Any

from espflash.chips.base import ImageFormatId
from espflash.errors import (
    InvalidBootloaderPathError,
    InvalidPartitionTablePathError,
    NoProjectError,
    TomlError,
)


def _optional_path(table: dict[str, Any], key: str) -> Path | None:
    value = table.get(key)
    if value is None:
        return None
    if not isinstance(value, str):
        raise ValueError(f"'{key}' must be a string")
    return Path(value)


def _table(data: Any, key: str) -> dict[str, Any]:
    value = data.get(key, {})
    if not isinstance(value, dict):
        raise ValueError(f"'{key}' must be a table")
    return value


@dataclass
class CargoEspFlashMeta:
    partition_table: Path | None = None
    bootloader: Path | None = None
    format: ImageFormatId | None = None

    @classmethod
    def load(cls, manifest: str | Path) -> CargoEspFlashMeta:
        """Read and validate the settings from the given manifest."""
        manifest = Path(manifest)
        if not manifest.exists():
            raise NoProjectError()

        try:
            content = manifest.read_text(encoding="utf-8")
        except OSError as exc:
            raise OSError(f"Failed to read Cargo.toml: {exc}") from exc

        try:
            data = tomllib.loads(content)
            table = _table(_table(_table(data, "package"), "metadata"), "espflash")
            format_name = table.get("format")
            if format_name is not None and not isinstance(format_name, str):
                raise ValueError("'format' must be a string")
            meta = cls(
                partition_table=_optional_path(table, "partition_table"),
                bootloader=_optional_path(table, "bootloader"),
                format=None if format_name is None else ImageFormatId.from_str(format_name),
            )
        except (tomllib.TOMLDecodeError, ValueError) as exc:
            raise TomlError(exc, content, context="Failed to parse Cargo.toml") from exc

        if meta.partition_table is not None and meta.partition_table.suffix != ".csv":
            raise InvalidPartitionTablePathError()
        if meta.bootloader is not None and meta.bootloader.suffix != ".bin":
            raise InvalidBootloaderPathError()
        return meta