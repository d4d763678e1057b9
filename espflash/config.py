"""Persistent user configuration: the default serial port and known USB devices."""

from __future__ import annotations

import copy
import tomllib
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Callable

import tomli_w
from platformdirs import user_config_dir

from espflash.connection import UsbPortInfo
from espflash.errors import TomlError

CONFIG_FILE_NAME = "espflash.toml"


def default_config_path() -> Path:
    """Location of the configuration file in the user's config directory."""
    return Path(user_config_dir("espflash", "esp")) / CONFIG_FILE_NAME


def _parse_hex_u16(value: Any, key: str) -> int:
    if not isinstance(value, str):
        raise ValueError(f"'{key}' must be a hexadecimal string")
    text = value.strip()
    if text.lower().startswith("0x"):
        text = text[2:]
    try:
        number = int(text, 16)
    except ValueError:
        raise ValueError(f"'{key}' is not a valid hexadecimal value: {value!r}") from None
    if not 0 <= number <= 0xFFFF:
        raise ValueError(f"'{key}' is out of range: {value!r}")
    return number


@dataclass(frozen=True)
class UsbDevice:
    """A USB device identified by vendor and product id."""

    vid: int
    pid: int

    def matches(self, port: UsbPortInfo) -> bool:
        return self.vid == port.vid and self.pid == port.pid

    def _to_dict(self) -> dict[str, str]:
        return {"vid": format(self.vid, "x"), "pid": format(self.pid, "x")}

    @classmethod
    def _from_dict(cls, data: Any) -> UsbDevice:
        if not isinstance(data, dict):
            raise ValueError("'usb_device' entries must be tables")
        return cls(
            vid=_parse_hex_u16(data.get("vid"), "vid"),
            pid=_parse_hex_u16(data.get("pid"), "pid"),
        )


@dataclass
class ConnectionConfig:
    serial: str | None = None


@dataclass
class Config:
    connection: ConnectionConfig = field(default_factory=ConnectionConfig)
    usb_device: list[UsbDevice] = field(default_factory=list)
    save_path: Path | None = field(default=None, compare=False, repr=False)

    @classmethod
    def _from_dict(cls, data: dict[str, Any]) -> Config:
        connection = data.get("connection", {})
        if not isinstance(connection, dict):
            raise ValueError("'connection' must be a table")
        serial = connection.get("serial")
        if serial is not None and not isinstance(serial, str):
            raise ValueError("'connection.serial' must be a string")
        devices = data.get("usb_device", [])
        if not isinstance(devices, list):
            raise ValueError("'usb_device' must be an array of tables")
        return cls(
            connection=ConnectionConfig(serial=serial),
            usb_device=[UsbDevice._from_dict(entry) for entry in devices],
        )

    def _to_dict(self) -> dict[str, Any]:
        connection: dict[str, Any] = {}
        if self.connection.serial is not None:
            connection["serial"] = self.connection.serial
        return {
            "connection": connection,
            "usb_device": [device._to_dict() for device in self.usb_device],
        }

    @classmethod
    def load(cls, path: str | Path | None = None) -> Config:
        """Load the configuration; a missing or unreadable file gives defaults."""
        file = Path(path) if path is not None else default_config_path()
        try:
            content = file.read_bytes().decode("utf-8")
        except (OSError, UnicodeDecodeError):
            config = cls()
        else:
            try:
                config = cls._from_dict(tomllib.loads(content))
            except (tomllib.TOMLDecodeError, ValueError) as exc:
                raise TomlError(exc, content, context=f"Failed to parse {file}") from exc
        config.save_path = file
        return config

    def save_with(self, modify_fn: Callable[[Config], None]) -> None:
        """Write a modified copy of this configuration to its file."""
        if self.save_path is None:
            raise ValueError("Config has no save path")
        updated = copy.deepcopy(self)
        modify_fn(updated)
        serialized = tomli_w.dumps(updated._to_dict())
        try:
            self.save_path.parent.mkdir(parents=True, exist_ok=True)
        except OSError as exc:
            raise OSError(f"Failed to create config directory: {exc}") from exc
        try:
            self.save_path.write_text(serialized, encoding="utf-8")
        except OSError as exc:
            raise OSError(f"Failed to write config to {self.save_path}: {exc}") from exc