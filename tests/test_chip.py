import pytest

from espflash.chip import Chip, ChipDetectError, UnrecognizedChipNameError
from espflash.chips import esp32 as esp32_module
from espflash.chips.base import ImageFormatId
from espflash.chips.esp32 import Esp32
from espflash.chips.esp32c3 import Esp32c3
from espflash.chips.esp32s2 import Esp32s2
from espflash.chips.esp32s3 import Esp32s3
from espflash.chips.esp8266 import Esp8266


class FakeConnection:
    def __init__(self, registers=None, baud=115_200):
        self.registers = registers or {}
        self.baud = baud

    def read_reg(self, reg):
        return self.registers.get(reg, 0)

    def get_baud(self):
        return self.baud


@pytest.mark.parametrize(
    "name, chip",
    [
        ("esp32", Chip.ESP32),
        ("ESP32-C3", Chip.ESP32C3),
        ("esp32s2", Chip.ESP32S2),
        ("Esp32-S3", Chip.ESP32S3),
        ("esp8266", Chip.ESP8266),
    ],
)
def test_from_str(name, chip):
    assert Chip.from_str(name) is chip


def test_from_str_unknown():
    with pytest.raises(UnrecognizedChipNameError):
        Chip.from_str("esp42")


def test_str_round_trip():
    for chip in Chip:
        assert Chip.from_str(str(chip)) is chip
    assert str(Chip.ESP32S2) == "ESP32-S2"


@pytest.mark.parametrize(
    "magic, chip",
    [
        (Esp32.CHIP_DETECT_MAGIC_VALUE, Chip.ESP32),
        (Esp32c3.CHIP_DETECT_MAGIC_VALUE, Chip.ESP32C3),
        (Esp32c3.CHIP_DETECT_MAGIC_VALUE2, Chip.ESP32C3),
        (Esp32s2.CHIP_DETECT_MAGIC_VALUE, Chip.ESP32S2),
        (Esp32s3.CHIP_DETECT_MAGIC_VALUE, Chip.ESP32S3),
        (Esp8266.CHIP_DETECT_MAGIC_VALUE, Chip.ESP8266),
    ],
)
def test_from_magic(magic, chip):
    assert Chip.from_magic(magic) is chip


def test_from_magic_unknown():
    with pytest.raises(ChipDetectError) as info:
        Chip.from_magic(0x12345678)
    assert info.value.magic == 0x12345678


def test_from_target():
    assert Chip.from_target("xtensa-esp32-none-elf") is Chip.ESP32
    assert Chip.from_target("riscv32imc-esp-espidf") is Chip.ESP32C3
    assert Chip.from_target("xtensa-esp8266-none-elf") is Chip.ESP8266
    assert Chip.from_target("x86_64-unknown-linux-gnu") is None


def test_every_supported_target_maps_back():
    for chip in Chip:
        for target in chip.supported_targets():
            assert chip.supports_target(target)
            assert Chip.from_target(target) is chip


def test_addr_is_flash():
    assert Chip.ESP32.addr_is_flash(esp32_module.IROM_MAP_START)
    assert Chip.ESP32.addr_is_flash(esp32_module.DROM_MAP_START)
    assert not Chip.ESP32.addr_is_flash(esp32_module.IROM_MAP_END)
    assert not Chip.ESP32.addr_is_flash(0x3FFB0000)


def test_spi_registers_and_formats():
    assert Chip.ESP8266.spi_registers() == Esp8266.SPI_REGISTERS
    assert Chip.ESP32C3.supported_image_formats() == (
        ImageFormatId.BOOTLOADER,
        ImageFormatId.DIRECT_BOOT,
    )
    assert Chip.ESP32.default_image_format() is ImageFormatId.BOOTLOADER


def test_crystal_freq():
    assert Chip.ESP32C3.crystal_freq(FakeConnection()) == 40
    assert Chip.ESP32.crystal_freq(FakeConnection()) == 26


def test_chip_revision():
    assert Chip.ESP8266.chip_revision(FakeConnection()) is None
    assert Chip.ESP32S3.chip_revision(FakeConnection()) is None
    assert Chip.ESP32.chip_revision(FakeConnection()) == 0


def test_chip_features_and_mac():
    assert Chip.ESP32S3.chip_features(FakeConnection()) == ["WiFi", "BLE"]
    assert Chip.ESP8266.mac_address(FakeConnection()) == "18:fe:34:00:00:00"