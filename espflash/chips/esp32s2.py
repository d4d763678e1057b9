"""The ESP32-S2."""

from __future__ import annotations

from typing import ClassVar

from espflash.chips.base import ChipType, ImageFormatId, SpiRegisters, _RegisterReader
from espflash.chips.esp32 import Esp32Params

IROM_MAP_START = 0x40080000
IROM_MAP_END = 0x40B80000

DROM_MAP_START = 0x3F000000
DROM_MAP_END = 0x3F3F0000

PARAMS = Esp32Params(
    boot_addr=0x1000,
    partition_addr=0x8000,
    nvs_addr=0x9000,
    nvs_size=0x6000,
    phy_init_data_addr=0xF000,
    phy_init_data_size=0x1000,
    app_addr=0x10000,
    app_size=0x100000,
    chip_id=2,
)

_FLASH_VERSIONS = {
    0: "No Embedded Flash",
    1: "Embedded Flash 2MB",
    2: "Embedded Flash 4MB",
}

_PSRAM_VERSIONS = {
    0: "No Embedded PSRAM",
    1: "Embedded PSRAM 2MB",
    2: "Embedded PSRAM 4MB",
}

_BLOCK2_VERSIONS = {
    0: "No calibration in BLK2 of efuse",
    1: "ADC and temperature sensor calibration in BLK2 of efuse V1",
    2: "ADC and temperature sensor calibration in BLK2 of efuse V2",
}


class Esp32s2(ChipType):
    CHIP_DETECT_MAGIC_VALUE: ClassVar[int] = 0x000007C6

    UART_CLKDIV_REG: ClassVar[int] = 0x3F400014

    SPI_REGISTERS: ClassVar[SpiRegisters] = SpiRegisters(
        base=0x3F402000,
        usr_offset=0x18,
        usr1_offset=0x1C,
        usr2_offset=0x20,
        w0_offset=0x58,
        mosi_length_offset=0x24,
        miso_length_offset=0x28,
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
        "xtensa-esp32s2-none-elf",
        "xtensa-esp32s2-espidf",
    )

    EFUSE_REG_BASE: ClassVar[int] = 0x3F41A030

    PARAMS: ClassVar[Esp32Params] = PARAMS

    def chip_features(self, connection: _RegisterReader) -> list[str]:
        return [
            "WiFi",
            _FLASH_VERSIONS.get(self.flash_version(connection), "Unknown Embedded Flash"),
            _PSRAM_VERSIONS.get(self.psram_version(connection), "Unknown Embedded PSRAM"),
            _BLOCK2_VERSIONS.get(
                self.block2_version(connection), "Unknown Calibration in BLK2"
            ),
        ]

    def crystal_freq(self, connection: _RegisterReader) -> int:
        # The crystal has a fixed frequency of 40MHz.
        return 40

    def flash_version(self, connection: _RegisterReader) -> int:
        blk1_word3 = self.read_efuse(connection, 8)
        return (blk1_word3 >> 21) & 0xF

    def psram_version(self, connection: _RegisterReader) -> int:
        blk1_word3 = self.read_efuse(connection, 8)
        return (blk1_word3 >> 28) & 0xF

    def block2_version(self, connection: _RegisterReader) -> int:
        blk2_word4 = self.read_efuse(connection, 15)
        return (blk2_word4 >> 4) & 0x7