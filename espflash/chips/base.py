"""Behaviour shared by every supported chip."""

from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass
from enum import Enum
from typing import ClassVar, Protocol


class ImageFormatId(Enum):
    BOOTLOADER = "bootloader"
    DIRECT_BOOT = "direct-boot"

    def __str__(self) -> str:
        return self.value

    @classmethod
    def from_str(cls, s: str) -> ImageFormatId:
        try:
            return cls(s)
        except ValueError:
            raise ValueError(f"Unknown image format: {s}") from None


class _RegisterReader(Protocol):
    def read_reg(self, reg: int) -> int: ...

    def get_baud(self) -> int: ...


@dataclass(frozen=True)
class SpiRegisters:
    base: int
    usr_offset: int
    usr1_offset: int
    usr2_offset: int
    w0_offset: int
    mosi_length_offset: int | None = None
    miso_length_offset: int | None = None

    def cmd(self) -> int:
        return self.base

    def usr(self) -> int:
        return self.base + self.usr_offset

    def usr1(self) -> int:
        return self.base + self.usr1_offset

    def usr2(self) -> int:
        return self.base + self.usr2_offset

    def w0(self) -> int:
        return self.base + self.w0_offset

    def mosi_length(self) -> int | None:
        if self.mosi_length_offset is None:
            return None
        return self.base + self.mosi_length_offset

    def miso_length(self) -> int | None:
        if self.miso_length_offset is None:
            return None
        return self.base + self.miso_length_offset


class ChipType(ABC):
    """Constants and register-level queries for one chip family."""

    CHIP_DETECT_MAGIC_VALUE: ClassVar[int]
    CHIP_DETECT_MAGIC_VALUE2: ClassVar[int] = 0x0

    UART_CLKDIV_REG: ClassVar[int]
    UART_CLKDIV_MASK: ClassVar[int] = 0xFFFFF
    XTAL_CLK_DIVIDER: ClassVar[int] = 1

    SPI_REGISTERS: ClassVar[SpiRegisters]
    FLASH_RANGES: ClassVar[tuple[range, ...]]

    DEFAULT_IMAGE_FORMAT: ClassVar[ImageFormatId]
    SUPPORTED_IMAGE_FORMATS: ClassVar[tuple[ImageFormatId, ...]]

    SUPPORTED_TARGETS: ClassVar[tuple[str, ...]]

    EFUSE_REG_BASE: ClassVar[int]

    def read_efuse(self, connection: _RegisterReader, n: int) -> int:
        """Read the ``n``th word of the eFuse region."""
        return connection.read_reg(self.EFUSE_REG_BASE + n * 0x4)

    @abstractmethod
    def chip_features(self, connection: _RegisterReader) -> list[str]:
        """List the available features of the connected chip."""

    def crystal_freq(self, connection: _RegisterReader) -> int:
        """Estimate the crystal frequency in MHz, normalised to 26 or 40."""
        uart_div = connection.read_reg(self.UART_CLKDIV_REG) & self.UART_CLKDIV_MASK
        est_xtal = connection.get_baud() * uart_div // 1_000_000 // self.XTAL_CLK_DIVIDER
        return 40 if est_xtal > 33 else 26

    def mac_address(self, connection: _RegisterReader) -> str:
        word5 = self.read_efuse(connection, 5)
        word6 = self.read_efuse(connection, 6)
        words = ((word6 << 32) | word5) & 0xFFFF_FFFF_FFFF_FFFF
        return bytes_to_mac_addr(words.to_bytes(8, "big")[2:])

    @classmethod
    def supports_target(cls, target: str) -> bool:
        return target in cls.SUPPORTED_TARGETS


def bytes_to_mac_addr(data: bytes) -> str:
    return ":".join(f"{b:02x}" for b in data)