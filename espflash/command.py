"""Commands understood by the ROM bootloader and their wire encoding."""

from __future__ import annotations

import operator
import struct
from abc import ABC, abstractmethod
from dataclasses import dataclass
from enum import IntEnum
from functools import reduce
from typing import Any, BinaryIO, ClassVar

CHECKSUM_INIT = 0xEF

DEFAULT_TIMEOUT = 3.0
ERASE_REGION_TIMEOUT_PER_MB = 30.0
ERASE_WRITE_TIMEOUT_PER_MB = 40.0
MEM_END_TIMEOUT = 0.05
SYNC_TIMEOUT = 0.1

_SYNC_PAYLOAD = bytes([0x07, 0x07, 0x12, 0x20]) + b"\x55" * 32


def checksum(data: bytes, state: int = CHECKSUM_INIT) -> int:
    """XOR every byte of ``data`` into ``state``."""
    return reduce(operator.xor, data, state)


def _calc_timeout(timeout_per_mb: float, size: int) -> float:
    mb = size / 1_000_000.0
    millis = int(timeout_per_mb * 1000 * mb)
    return max(DEFAULT_TIMEOUT, millis / 1000)


class CommandType(IntEnum):
    UNKNOWN = 0
    FLASH_BEGIN = 0x02
    FLASH_DATA = 0x03
    FLASH_END = 0x04
    MEM_BEGIN = 0x05
    MEM_END = 0x06
    MEM_DATA = 0x07
    SYNC = 0x08
    WRITE_REG = 0x09
    READ_REG = 0x0A
    SPI_SET_PARAMS = 0x0B
    SPI_ATTACH = 0x0D
    CHANGE_BAUD = 0x0F
    FLASH_DEFLATE_BEGIN = 0x10
    FLASH_DEFLATE_DATA = 0x11
    FLASH_DEFLATE_END = 0x12
    FLASH_MD5 = 0x13
    FLASH_DETECT = 0x9F

    def timeout(self) -> float:
        """Response timeout for this command, in seconds."""
        if self is CommandType.MEM_END:
            return MEM_END_TIMEOUT
        if self is CommandType.SYNC:
            return SYNC_TIMEOUT
        return DEFAULT_TIMEOUT

    def timeout_for_size(self, size: int) -> float:
        """Response timeout in seconds, scaled by data size where relevant."""
        if self in (CommandType.FLASH_BEGIN, CommandType.FLASH_DEFLATE_BEGIN):
            return _calc_timeout(ERASE_REGION_TIMEOUT_PER_MB, size)
        if self in (CommandType.FLASH_DATA, CommandType.FLASH_DEFLATE_DATA):
            return _calc_timeout(ERASE_WRITE_TIMEOUT_PER_MB, size)
        return self.timeout()


def _write_basic(data: bytes, check: int = 0) -> bytes:
    return struct.pack("<HI", len(data) & 0xFFFF, check) + data


class Command(ABC):
    """A single request sent to the bootloader."""

    command_type: ClassVar[CommandType]

    @abstractmethod
    def _body(self) -> bytes:
        """Length, checksum and payload following the opcode."""

    def timeout_for_size(self, size: int) -> float:
        return self.command_type.timeout_for_size(size)

    def to_bytes(self) -> bytes:
        """The unframed request bytes."""
        return bytes([0, int(self.command_type)]) + self._body()

    def write(self, writer: BinaryIO) -> None:
        writer.write(self.to_bytes())


@dataclass(frozen=True)
class _BeginCommand(Command):
    size: int
    blocks: int
    block_size: int
    offset: int
    supports_encryption: bool

    def _body(self) -> bytes:
        params = struct.pack(
            "<5I", self.size, self.blocks, self.block_size, self.offset, 0
        )
        if not self.supports_encryption:
            # Chips without encryption support do not take the trailing field.
            params = params[:-4]
        return _write_basic(params)


@dataclass(frozen=True)
class _DataCommand(Command):
    data: bytes
    pad_to: int
    pad_byte: int
    sequence: int

    def _body(self) -> bytes:
        data = bytes(self.data)
        pad_length = max(0, self.pad_to - len(data))
        padding = bytes([self.pad_byte]) * pad_length
        check = checksum(data + padding, CHECKSUM_INIT)
        params = struct.pack("<4I", len(data) + pad_length, self.sequence, 0, 0)
        total_length = len(params) + len(data) + pad_length
        return (
            struct.pack("<HI", total_length & 0xFFFF, check & 0xFFFFFFFF)
            + params
            + data
            + padding
        )


@dataclass(frozen=True)
class _EndCommand(Command):
    reboot: bool

    def _body(self) -> bytes:
        return _write_basic(bytes([0 if self.reboot else 1]))


@dataclass(frozen=True)
class FlashBegin(_BeginCommand):
    command_type: ClassVar[CommandType] = CommandType.FLASH_BEGIN


@dataclass(frozen=True)
class FlashData(_DataCommand):
    command_type: ClassVar[CommandType] = CommandType.FLASH_DATA


@dataclass(frozen=True)
class FlashEnd(_EndCommand):
    command_type: ClassVar[CommandType] = CommandType.FLASH_END


@dataclass(frozen=True)
class MemBegin(_BeginCommand):
    command_type: ClassVar[CommandType] = CommandType.MEM_BEGIN


@dataclass(frozen=True)
class MemData(_DataCommand):
    command_type: ClassVar[CommandType] = CommandType.MEM_DATA


@dataclass(frozen=True)
class MemEnd(Command):
    no_entry: bool
    entry: int
    command_type: ClassVar[CommandType] = CommandType.MEM_END

    def _body(self) -> bytes:
        return _write_basic(struct.pack("<II", 1 if self.no_entry else 0, self.entry))


@dataclass(frozen=True)
class Sync(Command):
    command_type: ClassVar[CommandType] = CommandType.SYNC

    def _body(self) -> bytes:
        return _write_basic(_SYNC_PAYLOAD)


@dataclass(frozen=True)
class WriteReg(Command):
    address: int
    value: int
    mask: int | None = None
    command_type: ClassVar[CommandType] = CommandType.WRITE_REG

    def _body(self) -> bytes:
        mask = 0xFFFFFFFF if self.mask is None else self.mask
        return _write_basic(struct.pack("<4I", self.address, self.value, mask, 0))


@dataclass(frozen=True)
class ReadReg(Command):
    address: int
    command_type: ClassVar[CommandType] = CommandType.READ_REG

    def _body(self) -> bytes:
        return _write_basic(struct.pack("<I", self.address))


@dataclass(frozen=True)
class SpiAttach(Command):
    """Attach the SPI flash; ``spi_params`` is raw bytes or has ``encode()``."""

    spi_params: Any
    command_type: ClassVar[CommandType] = CommandType.SPI_ATTACH

    def _body(self) -> bytes:
        params = self.spi_params
        if not isinstance(params, (bytes, bytearray)):
            params = params.encode()
        return _write_basic(bytes(params))


@dataclass(frozen=True)
class ChangeBaud(Command):
    speed: int
    command_type: ClassVar[CommandType] = CommandType.CHANGE_BAUD

    def _body(self) -> bytes:
        return struct.pack("<HIII", 8, 0, self.speed, 0)


@dataclass(frozen=True)
class FlashDeflateBegin(_BeginCommand):
    command_type: ClassVar[CommandType] = CommandType.FLASH_DEFLATE_BEGIN


@dataclass(frozen=True)
class FlashDeflateData(_DataCommand):
    command_type: ClassVar[CommandType] = CommandType.FLASH_DEFLATE_DATA


@dataclass(frozen=True)
class FlashDeflateEnd(_EndCommand):
    command_type: ClassVar[CommandType] = CommandType.FLASH_DEFLATE_END


@dataclass(frozen=True)
class FlashDetect(Command):
    command_type: ClassVar[CommandType] = CommandType.FLASH_DETECT

    def _body(self) -> bytes:
        return _write_basic(b"")