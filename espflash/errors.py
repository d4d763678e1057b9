"""Errors raised while building and locating firmware for flashing."""

from __future__ import annotations

import re
import tomllib
from typing import ClassVar

from espflash.chip import Chip

_LOCATION = re.compile(r"at line (\d+), column (\d+)")


class CargoEspflashError(Exception):
    """Base class with a diagnostic code and optional help text."""

    MESSAGE: ClassVar[str] = ""
    CODE: ClassVar[str | None] = None
    HELP: ClassVar[str | None] = None

    def __init__(self, message: str | None = None, *, help_text: str | None = None) -> None:
        super().__init__(message or self.MESSAGE)
        self.code = self.CODE
        self.help = help_text if help_text is not None else self.HELP


class NoArtifactError(CargoEspflashError):
    MESSAGE = "No executable artifact found"
    CODE = "cargo_espflash::no_artifact"
    HELP = (
        "If you're trying to run an example you need to specify it using the "
        "`--example` argument\nor if you're in a cargo workspace, specify the "
        "binary package with `--package`."
    )


class NoBuildStdError(CargoEspflashError):
    MESSAGE = "'build-std' not configured"
    CODE = "cargo_espflash::build_std"
    HELP = (
        "cargo currently requires the unstable 'build-std' feature, ensure that "
        ".cargo/config{.toml} has the appropriate options."
    )


class MultipleArtifactsError(CargoEspflashError):
    MESSAGE = "Multiple build artifacts found"
    CODE = "cargo_espflash::multiple_artifacts"
    HELP = "Please specify which artifact to flash using --bin"


class InvalidPartitionTablePathError(CargoEspflashError):
    MESSAGE = "Specified partition table is not a csv file"
    CODE = "cargo_espflash::partition_table_path"


class InvalidBootloaderPathError(CargoEspflashError):
    MESSAGE = "Specified bootloader table is not a bin file"
    CODE = "cargo_espflash::bootloader_path"


class NoProjectError(CargoEspflashError):
    MESSAGE = "No Cargo.toml found in the current directory"
    CODE = "cargo_espflash::no_project"
    HELP = "Ensure that you're running the command from within a cargo project"


class UnsupportedTargetError(CargoEspflashError):
    CODE = "cargo_espflash::unsupported_target"

    def __init__(self, target: str, chip: Chip) -> None:
        supported = ", ".join(chip.supported_targets())
        super().__init__(
            f"Target {target} is not supported by the {chip}",
            help_text=f"The following targets are supported by the {chip}: {supported}",
        )
        self.target = target
        self.chip = chip


class NoTargetError(CargoEspflashError):
    MESSAGE = "No target specified in cargo configuration"
    CODE = "cargo_espflash::no_target"

    def __init__(self, chip: Chip | None = None) -> None:
        if chip is None:
            help_text = "Specify the target in `.cargo/config.toml`"
        else:
            help_text = (
                f"Specify the target in `.cargo/config.toml`, the {chip} support "
                f"the following targets: {', '.join(chip.supported_targets())}"
            )
        super().__init__(help_text=help_text)
        self.chip = chip


class UnknownTargetError(CargoEspflashError):
    CODE = "cargo_espflash::unknown_target"

    def __init__(self, target: str) -> None:
        lines = ["The following targets are recognized:"]
        lines.extend(
            f"    - {chip}: {', '.join(chip.supported_targets())}" for chip in Chip
        )
        super().__init__(
            f"Failed to detect chip for target {target}", help_text="\n".join(lines)
        )
        self.target = target


class TomlError(CargoEspflashError):
    """A TOML document could not be read; keeps the source for error reporting."""

    MESSAGE = "Failed to parse toml"

    def __init__(self, error: Exception, source: str, context: str | None = None) -> None:
        super().__init__(context or self.MESSAGE)
        self.error = error
        self.source = source
        self.context = context

    def label_offset(self) -> int | None:
        """Character offset in the source where a syntax error was found."""
        if not isinstance(self.error, tomllib.TOMLDecodeError):
            return None
        line = getattr(self.error, "lineno", None)
        column = getattr(self.error, "colno", None)
        if line is None or column is None:
            match = _LOCATION.search(str(self.error))
            if match is None:
                return len(self.source)
            line, column = int(match.group(1)), int(match.group(2))
        lines = self.source.splitlines(keepends=True)
        offset = sum(len(text) for text in lines[: line - 1]) + column - 1
        return min(max(offset, 0), len(self.source))