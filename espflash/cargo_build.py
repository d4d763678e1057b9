"""Building a cargo project for an ESP target and locating what it produced."""

from __future__ import annotations

import json
import subprocess
import sys
from collections.abc import Iterable
from dataclasses import dataclass
from pathlib import Path
from typing import Any

from espflash.cargo_config import CargoConfig
from espflash.chip import Chip
from espflash.errors import (
    MultipleArtifactsError,
    NoArtifactError,
    NoBuildStdError,
    NoTargetError,
    UnknownTargetError,
    UnsupportedTargetError,
)

MESSAGE_FORMAT = "json-diagnostic-rendered-ansi"
_ESP_IDF_SYS = "esp-idf-sys"


@dataclass
class BuildOpts:
    """Options controlling the `cargo build` invocation."""

    release: bool = False
    locked: bool = False
    frozen: bool = False
    example: str | None = None
    package: str | None = None
    features: list[str] | None = None
    format: str | None = None
    target: str | None = None
    target_dir: str | None = None
    unstable: list[str] | None = None
    flash_mode: Any = None
    flash_size: Any = None
    flash_freq: Any = None


@dataclass(frozen=True)
class BuildContext:
    """The built executable, plus a bootloader and partition table when found."""

    artifact_path: Path
    bootloader_path: Path | None = None
    partition_table_path: Path | None = None


def resolve_chip(
    target: str | None, chip: Chip | None, cargo_config: CargoConfig
) -> tuple[str, Chip]:
    """Settle the build target and chip, checking that they can be built.

    ``target`` is the one given on the command line; the cargo configuration
    supplies it otherwise. Returns the target and the chip it is built for.
    """
    resolved = target if target is not None else cargo_config.target
    if resolved is None:
        raise NoTargetError(chip)

    if chip is None:
        chip = Chip.from_target(resolved)
    if chip is None:
        raise UnknownTargetError(resolved)
    if not chip.supports_target(resolved):
        raise UnsupportedTargetError(resolved, chip)

    # Cross-compiling for xtensa needs the unstable 'build-std' feature.
    if not cargo_config.has_build_std() and resolved.startswith("xtensa-"):
        raise NoBuildStdError()

    return resolved, chip


def cargo_build_args(build_options: BuildOpts, target: str) -> list[str]:
    """Arguments for `cargo build`, always stating the target explicitly."""
    args = ["--target", target]
    if build_options.target_dir is not None:
        args += ["--target-dir", build_options.target_dir]
    if build_options.release:
        args.append("--release")
    if build_options.locked:
        args.append("--locked")
    if build_options.frozen:
        args.append("--frozen")
    if build_options.example is not None:
        args += ["--example", build_options.example]
    if build_options.package is not None:
        args += ["--package", build_options.package]
    if build_options.features is not None:
        args += ["--features", ",".join(build_options.features)]
    for item in build_options.unstable or ():
        args += ["-Z", item]
    return args


def _existing_file(path: Path) -> Path | None:
    return path if path.is_file() else None


def collect_artifacts(
    lines: Iterable[str],
) -> tuple[Path | None, Path | None, Path | None]:
    """Scan cargo's JSON messages for the executable and ESP-IDF build outputs.

    Returns the executable, bootloader and partition table paths, each None
    when absent. Rendered compiler diagnostics are printed as they are seen.
    Lines that are not JSON objects are ignored.
    """
    artifact: Path | None = None
    bootloader: Path | None = None
    partition_table: Path | None = None

    for line in lines:
        line = line.strip()
        if not line:
            continue
        try:
            message = json.loads(line)
        except json.JSONDecodeError:
            continue
        if not isinstance(message, dict):
            continue

        reason = message.get("reason")
        if reason == "build-script-executed":
            package_id = message.get("package_id", "")
            out_dir = message.get("out_dir")
            if isinstance(package_id, str) and package_id.startswith(_ESP_IDF_SYS) and out_dir:
                # Prefer the bootloader and partition table built for esp-idf-sys.
                build_path = Path(out_dir) / "build"
                found = _existing_file(build_path / "bootloader" / "bootloader.bin")
                if found is not None:
                    bootloader = found
                found = _existing_file(
                    build_path / "partition_table" / "partition-table.bin"
                )
                if found is not None:
                    partition_table = found
        elif reason == "compiler-artifact":
            executable = message.get("executable")
            if executable is not None:
                if artifact is not None:
                    raise MultipleArtifactsError()
                artifact = Path(executable)
        elif reason == "compiler-message":
            inner = message.get("message")
            rendered = inner.get("rendered") if isinstance(inner, dict) else None
            if rendered is not None:
                print(rendered, end="")

    return artifact, bootloader, partition_table


def exit_code_for_status(returncode: int | None) -> int:
    """The exit code to pass on for a failed child process.

    A negative code (death by signal) becomes the signal number; no code at all
    becomes 1.
    """
    if returncode is None:
        return 1
    if returncode < 0:
        return -returncode
    return returncode


def build(
    build_options: BuildOpts, cargo_config: CargoConfig, chip: Chip | None = None
) -> BuildContext:
    """Run `cargo build` and return where its outputs are.

    Exits the process with cargo's status if the build fails.
    """
    target, _ = resolve_chip(build_options.target, chip, cargo_config)
    command = [
        "cargo",
        "build",
        *cargo_build_args(build_options, target),
        "--message-format",
        MESSAGE_FORMAT,
    ]
    result = subprocess.run(command, stdout=subprocess.PIPE, check=False)

    stdout = result.stdout or b""
    if isinstance(stdout, bytes):
        stdout = stdout.decode("utf-8", errors="replace")
    artifact, bootloader, partition_table = collect_artifacts(stdout.splitlines())

    if result.returncode != 0:
        sys.exit(exit_code_for_status(result.returncode))

    if artifact is None:
        raise NoArtifactError()

    return BuildContext(
        artifact_path=artifact,
        bootloader_path=bootloader,
        partition_table_path=partition_table,
    )