"""The ESP32-C3."""

from __future__ import annotations

from typing import ClassVar

from espflash.chips.base import ChipType, ImageFormatId, SpiRegisters, _RegisterReader
from espflash.chips.esp32 import Esp32Params

IROM_MAP_START = 0x42000000
IROM_MAP_END = 0x42800000

DROM_MAP_START = 0x3C000000
DROM_MAP_END = 0x3C800000

# Direct boot needs chip revision 3 or later.
_MIN_DIRECT_BOOT_REVISION = 3

PARAMS = Esp32Params(
    boot_addr=0x0,
    partition_addr=0x8000,
    nvs_addr=0x9000,
    nvs_size=0x6000,
    phy_init_data_addr=0xF000,
    phy_init_data_size=0x1000,
    app_addr=0x10000,
    app_size=0x3F0000,
    chip_id=5,
)


class Esp32c3(ChipType):
    CHIP_DETECT_MAGIC_VALUE: ClassVar[int] = 0x6921506F
    CHIP_DETECT_MAGIC_VALUE2: ClassVar[int] = 0x1B31506F

    UART_CLKDIV_REG: ClassVar[int] = 0x3FF40014

    SPI_REGISTERS: ClassVar[SpiRegisters] = SpiRegisters(
        base=0x60002000,
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
        ImageFormatId.DIRECT_BOOT,
    )

    SUPPORTED_TARGETS: ClassVar[tuple[str, ...]] = (
        "riscv32imac-unknown-none-elf",
        "riscv32imc-esp-espidf",
        "riscv32imc-unknown-none-elf",
    )

    EFUSE_REG_BASE: ClassVar[int] = 0x60008830

    PARAMS: ClassVar[Esp32Params] = PARAMS

    def chip_features(self, connection: _RegisterReader) -> list[str]:
        return ["WiFi"]

    def crystal_freq(self, connection: _RegisterReader) -> int:
        # The crystal has a fixed frequency of 40MHz.
        return 40

    def chip_revision(self, connection: _RegisterReader) -> int:
        block1_addr = self.EFUSE_REG_BASE + 0x14
        num_word = 3
        pos = 18
        value = connection.read_reg(block1_addr + num_word * 0x4)
        return (value & (0x7 << pos)) >> pos

    def supports_direct_boot(self, chip_revision: int | None) -> bool:
        """Whether the direct-boot image format can be used on this revision."""
        return chip_revision is None or chip_revision >= _MIN_DIRECT_BOOT_REVISION