"""The ESP8266."""

from __future__ import annotations

from typing import ClassVar

from espflash.chips.base import (
    ChipType,
    ImageFormatId,
    SpiRegisters,
    _RegisterReader,
    bytes_to_mac_addr,
)

IROM_MAP_START = 0x40200000
IROM_MAP_END = 0x40300000


class Esp8266(ChipType):
    CHIP_DETECT_MAGIC_VALUE: ClassVar[int] = 0xFFF0C101

    UART_CLKDIV_REG: ClassVar[int] = 0x60000014
    XTAL_CLK_DIVIDER: ClassVar[int] = 2

    SPI_REGISTERS: ClassVar[SpiRegisters] = SpiRegisters(
        base=0x60000200,
        usr_offset=0x1C,
        usr1_offset=0x20,
        usr2_offset=0x24,
        w0_offset=0x40,
        mosi_length_offset=None,
        miso_length_offset=None,
    )

    FLASH_RANGES: ClassVar[tuple[range, ...]] = (range(IROM_MAP_START, IROM_MAP_END),)

    DEFAULT_IMAGE_FORMAT: ClassVar[ImageFormatId] = ImageFormatId.BOOTLOADER
    SUPPORTED_IMAGE_FORMATS: ClassVar[tuple[ImageFormatId, ...]] = (
        ImageFormatId.BOOTLOADER,
    )

    SUPPORTED_TARGETS: ClassVar[tuple[str, ...]] = ("xtensa-esp8266-none-elf",)

    EFUSE_REG_BASE: ClassVar[int] = 0x3FF00050

    def chip_features(self, connection: _RegisterReader) -> list[str]:
        return ["WiFi"]

    def mac_address(self, connection: _RegisterReader) -> str:
        word0 = self.read_efuse(connection, 0)
        word1 = self.read_efuse(connection, 1)
        word3 = self.read_efuse(connection, 3)

        # The OUI comes from word 3 when set, otherwise from one of two fixed prefixes.
        if word3 != 0:
            oui = [(word3 >> 16) & 0xFF, (word3 >> 8) & 0xFF, word3 & 0xFF]
        elif (word1 >> 16) & 0xFF == 0:
            oui = [0x18, 0xFE, 0x34]
        else:
            oui = [0xAC, 0xD0, 0x74]

        nic = [(word1 >> 8) & 0xFF, word1 & 0xFF, (word0 >> 24) & 0xFF]
        return bytes_to_mac_addr(bytes(oui + nic))