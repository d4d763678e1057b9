import pytest

from espflash.chip import Chip
from espflash.chips.base import ImageFormatId
from espflash.chips.esp8266 import Esp8266

TARGET = "xtensa-esp8266-none-elf"


class FakeConnection:
    def __init__(self, regs=None, baud=115200):
        self.regs = regs or {}
        self.baud = baud
        self.reads = []

    def read_reg(self, reg):
        self.reads.append(reg)
        return self.regs.get(reg, 0)

    def get_baud(self):
        return self.baud


def efuse(n):
    return Esp8266.EFUSE_REG_BASE + n * 4


def test_chip_features():
    assert Esp8266().chip_features(FakeConnection()) == ["WiFi"]


def test_mac_address_default_oui():
    conn = FakeConnection({efuse(0): 0xAB000000, efuse(1): 0x00001234})
    assert Esp8266().mac_address(conn) == "18:fe:34:12:34:ab"


def test_mac_address_alternate_oui():
    conn = FakeConnection({efuse(0): 0xAB000000, efuse(1): 0x00011234})
    mac = Esp8266().mac_address(conn)
    assert mac.split(":")[:3] == ["ac", "d0", "74"]
    assert mac.split(":")[3:] == ["12", "34", "ab"]


def test_mac_address_oui_from_word3():
    conn = FakeConnection(
        {efuse(0): 0xAB000000, efuse(1): 0x00001234, efuse(3): 0x00AABBCC}
    )
    mac = Esp8266().mac_address(conn)
    assert mac.split(":")[:3] == ["aa", "bb", "cc"]


def test_mac_address_reads_expected_efuse_words():
    conn = FakeConnection()
    Esp8266().mac_address(conn)
    assert conn.reads == [efuse(0), efuse(1), efuse(3)]


@pytest.mark.parametrize("uart_div, expected", [(700, 40), (400, 26)])
def test_crystal_freq_uses_divider(uart_div, expected):
    conn = FakeConnection({Esp8266.UART_CLKDIV_REG: uart_div})
    assert Esp8266().crystal_freq(conn) == expected


def test_supports_target():
    assert Esp8266.supports_target(TARGET)
    assert not Esp8266.supports_target("xtensa-esp32-none-elf")


def test_flash_ranges():
    chip = Chip.from_target(TARGET)
    assert chip.addr_is_flash(0x40200000)
    assert chip.addr_is_flash(0x402FFFFF)
    assert not chip.addr_is_flash(0x40300000)
    assert not chip.addr_is_flash(0x3FFE8000)


def test_spi_registers_have_no_length_registers():
    regs = Esp8266.SPI_REGISTERS
    assert regs.cmd() == 0x60000200
    assert regs.w0() == 0x60000200 + 0x40
    assert regs.mosi_length() is None
    assert regs.miso_length() is None


def test_image_formats():
    chip = Chip.from_target(TARGET)
    assert chip.default_image_format() is ImageFormatId.BOOTLOADER
    assert list(chip.supported_image_formats()) == [ImageFormatId.BOOTLOADER]