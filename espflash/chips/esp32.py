"""The ESP32 and the flash layout parameters shared by the ESP32 family."""

from __future__ import annotations

from dataclasses import dataclass
from typing import ClassVar

from espflash.chips.base import (
    ChipType,
    ImageFormatId,
    SpiRegisters,
    _RegisterReader,
    bytes_to_mac_addr,
)

IROM_MAP_START = 0x400D0000
IROM_MAP_END = 0x40400000

DROM_MAP_START = 0x3F400000
DROM_MAP_END = 0x3F800000

_APB_CTRL_DATE_REG = 0x3FF6607C

_EMBEDDED_FLASH_PACKAGES = frozenset({2, 4, 5, 6})
_EMBEDDED_PSRAM_PACKAGE = 6

_CODING_SCHEMES = {
    0: "Coding Scheme None",
    1: "Coding Scheme 3/4",
    2: "Coding Scheme Repeat (UNSUPPORTED)",
}


@dataclass(frozen=True)
class Esp32Params:
    """Flash layout of the default bootloader-based image for one chip."""

    boot_addr: int
    partition_addr: int
    nvs_addr: int
    nvs_size: int
    phy_init_data_addr: int
    phy_init_data_size: int
    app_addr: int
    app_size: int
    chip_id: int


PARAMS = Esp32Params(
    boot_addr=0x1000,
    partition_addr=0x8000,
    nvs_addr=0x9000,
    nvs_size=0x6000,
    phy_init_data_addr=0xF000,
    phy_init_data_size=0x1000,
    app_addr=0x10000,
    app_size=0x3F0000,
    chip_id=0,
)


class Esp32(ChipType):
    CHIP_DETECT_MAGIC_VALUE: ClassVar[int] = 0x00F01D83

    UART_CLKDIV_REG: ClassVar[int] = 0x3FF40014

    SPI_REGISTERS: ClassVar[SpiRegisters] = SpiRegisters(
        base=0x3FF42000,
        usr_offset=0x1C,
        usr1_offset=0x20,
        usr2_offset=0x24,
        w0_offset=0x80,
        mosi_length_offset=0x28,
        miso_length_offset=0x2C,
    )

    FLASH_RANGES: ClassVar[tuple[range, ...]] = (
        range(IROM_MAP_START, IROM_MAP_END),
        range(DROM_MAP_START, DROM_MAP_END),
    )

    DEFAULT_IMAGE_FORMAT: ClassVar[ImageFormatId] = ImageFormatId.BOOTLOADER
    SUPPORTED_IMAGE_FORMATS: ClassVar[tuple[ImageFormatId, ...]] = (
        ImageFormatId.BOOTLOADER,
    )

    SUPPORTED_TARGETS: ClassVar[tuple[str, ...]] = (
        "xtensa-esp32-none-elf",
        "xtensa-esp32-espidf",
    )

    EFUSE_REG_BASE: ClassVar[int] = 0x3FF5A000

    PARAMS: ClassVar[Esp32Params] = PARAMS

    def chip_features(self, connection: _RegisterReader) -> list[str]:
        word3 = self.read_efuse(connection, 3)
        word4 = self.read_efuse(connection, 4)
        word6 = self.read_efuse(connection, 6)

        features = ["WiFi"]

        if not word3 & 0x2:
            features.append("BT")

        features.append("Single Core" if word3 & 0x1 else "Dual Core")

        if word3 & (1 << 13):
            features.append("160MHz" if word3 & (1 << 12) else "240MHz")

        pkg_version = self.package_version(connection)
        if pkg_version in _EMBEDDED_FLASH_PACKAGES:
            features.append("Embedded Flash")
        if pkg_version == _EMBEDDED_PSRAM_PACKAGE:
            features.append("Embedded PSRAM")

        if (word4 >> 8) & 0x1:
            features.append("VRef calibration in efuse")

        if (word3 >> 14) & 0x1:
            features.append("BLK3 partially reserved")

        features.append(_CODING_SCHEMES.get(word6 & 0x3, "Coding Scheme Invalid"))
        return features

    def mac_address(self, connection: _RegisterReader) -> str:
        word1 = self.read_efuse(connection, 1)
        word2 = self.read_efuse(connection, 2)
        words = ((word2 << 32) | word1) & 0xFFFF_FFFF_FFFF_FFFF
        return bytes_to_mac_addr(words.to_bytes(8, "big")[2:8])

    def chip_revision(self, connection: _RegisterReader) -> int:
        word3 = self.read_efuse(connection, 3)
        word5 = self.read_efuse(connection, 5)
        apb_ctrl_date = connection.read_reg(_APB_CTRL_DATE_REG)

        rev_bit0 = bool((word3 >> 15) & 0x1)
        rev_bit1 = bool((word5 >> 20) & 0x1)
        rev_bit2 = bool((apb_ctrl_date >> 31) & 0x1)

        if not rev_bit0:
            return 0
        if not rev_bit1:
            return 1
        return 3 if rev_bit2 else 2

    def package_version(self, connection: _RegisterReader) -> int:
        word3 = self.read_efuse(connection, 3)
        return ((word3 >> 9) & 0x7) + (((word3 >> 2) & 0x1) << 3)