import pytest

from espflash.chip import Chip
from espflash.chips.base import ImageFormatId
from espflash.chips.esp32s2 import (
    DROM_MAP_END,
    DROM_MAP_START,
    IROM_MAP_START,
    Esp32s2,
)

TARGET = "xtensa-esp32s2-none-elf"


class FakeConnection:
    def __init__(self, regs=None, baud=115200):
        self.regs = dict(regs or {})
        self.baud = baud
        self.reads = []

    def read_reg(self, reg):
        self.reads.append(reg)
        return self.regs.get(reg, 0)

    def get_baud(self):
        return self.baud


def efuse(n):
    return Esp32s2.EFUSE_REG_BASE + 4 * n


def test_features_all_zero():
    assert Esp32s2().chip_features(FakeConnection()) == [
        "WiFi",
        "No Embedded Flash",
        "No Embedded PSRAM",
        "No calibration in BLK2 of efuse",
    ]


def test_features_known_versions():
    conn = FakeConnection({efuse(8): (1 << 21) | (2 << 28), efuse(15): 1 << 4})
    assert Esp32s2().chip_features(conn) == [
        "WiFi",
        "Embedded Flash 2MB",
        "Embedded PSRAM 4MB",
        "ADC and temperature sensor calibration in BLK2 of efuse V1",
    ]


def test_features_other_versions():
    conn = FakeConnection({efuse(8): (2 << 21) | (1 << 28), efuse(15): 2 << 4})
    assert Esp32s2().chip_features(conn)[1:] == [
        "Embedded Flash 4MB",
        "Embedded PSRAM 2MB",
        "ADC and temperature sensor calibration in BLK2 of efuse V2",
    ]


def test_features_unknown_versions():
    conn = FakeConnection({efuse(8): (0xF << 21) | (0xF << 28), efuse(15): 0x7 << 4})
    assert Esp32s2().chip_features(conn)[1:] == [
        "Unknown Embedded Flash",
        "Unknown Embedded PSRAM",
        "Unknown Calibration in BLK2",
    ]


@pytest.mark.parametrize("version", [0, 3, 15])
def test_flash_and_psram_versions_are_independent(version):
    conn = FakeConnection({efuse(8): (version << 21) | (version << 28)})
    chip = Esp32s2()
    assert chip.flash_version(conn) == version
    assert chip.psram_version(conn) == version


def test_block2_version_masked_to_three_bits():
    conn = FakeConnection({efuse(15): (5 << 4) | 0xF | (1 << 7)})
    assert Esp32s2().block2_version(conn) == 5


def test_crystal_freq_is_fixed():
    conn = FakeConnection({Esp32s2.UART_CLKDIV_REG: 225})
    assert Esp32s2().crystal_freq(conn) == 40
    assert conn.reads == []


def test_targets():
    assert Esp32s2.supports_target(TARGET)
    assert Esp32s2.supports_target("xtensa-esp32s2-espidf")
    assert not Esp32s2.supports_target("xtensa-esp32s3-none-elf")


def test_flash_ranges():
    chip = Chip.from_target(TARGET)
    assert chip.addr_is_flash(IROM_MAP_START)
    assert chip.addr_is_flash(DROM_MAP_START)
    assert not chip.addr_is_flash(DROM_MAP_END)


def test_image_formats():
    chip = Chip.from_target(TARGET)
    assert list(chip.supported_image_formats()) == [ImageFormatId.BOOTLOADER]