"""The supported chips, and dispatch to their chip-specific behaviour."""

from __future__ import annotations

from enum import Enum

from espflash.chips.base import ChipType, ImageFormatId, SpiRegisters, _RegisterReader
from espflash.chips.esp32 import Esp32
from espflash.chips.esp32c3 import Esp32c3
from espflash.chips.esp32s2 import Esp32s2
from espflash.chips.esp32s3 import Esp32s3
from espflash.chips.esp8266 import Esp8266


class UnrecognizedChipNameError(ValueError):
    """A chip name did not match any supported chip."""

    def __init__(self, name: str) -> None:
        super().__init__(f"Unrecognized chip name: {name}")
        self.name = name


class ChipDetectError(Exception):
    """The chip's magic value did not match any supported chip."""

    def __init__(self, magic: int) -> None:
        super().__init__(f"Unrecognized magic value: {magic:#x}")
        self.magic = magic


class Chip(Enum):
    ESP32 = "ESP32"
    ESP32C3 = "ESP32-C3"
    ESP32S2 = "ESP32-S2"
    ESP32S3 = "ESP32-S3"
    ESP8266 = "ESP8266"

    def __str__(self) -> str:
        return self.value

    @property
    def _impl(self) -> ChipType:
        return _CHIP_TYPES[self]

    @classmethod
    def from_str(cls, s: str) -> Chip:
        """Parse a chip name, ignoring case and dashes."""
        normalized = s.replace("-", "").lower()
        for chip in cls:
            if chip.value.replace("-", "").lower() == normalized:
                return chip
        raise UnrecognizedChipNameError(s)

    @classmethod
    def from_magic(cls, magic: int) -> Chip:
        """Identify a chip from the magic value read from its ROM."""
        for chip in cls:
            chip_type = type(chip._impl)
            magics = {chip_type.CHIP_DETECT_MAGIC_VALUE}
            if chip is Chip.ESP32C3:
                magics.add(chip_type.CHIP_DETECT_MAGIC_VALUE2)
            if magic in magics:
                return chip
        raise ChipDetectError(magic)

    @classmethod
    def from_target(cls, target: str) -> Chip | None:
        """The chip that supports the given build target, if any."""
        return next((chip for chip in cls if chip.supports_target(target)), None)

    def addr_is_flash(self, addr: int) -> bool:
        return any(addr in flash_range for flash_range in self._impl.FLASH_RANGES)

    def spi_registers(self) -> SpiRegisters:
        return self._impl.SPI_REGISTERS

    def default_image_format(self) -> ImageFormatId:
        return self._impl.DEFAULT_IMAGE_FORMAT

    def supported_image_formats(self) -> tuple[ImageFormatId, ...]:
        return self._impl.SUPPORTED_IMAGE_FORMATS

    def supports_target(self, target: str) -> bool:
        return self._impl.supports_target(target)

    def supported_targets(self) -> tuple[str, ...]:
        return self._impl.SUPPORTED_TARGETS

    def crystal_freq(self, connection: _RegisterReader) -> int:
        return self._impl.crystal_freq(connection)

    def chip_revision(self, connection: _RegisterReader) -> int | None:
        """The silicon revision, for the chips that report one."""
        impl = self._impl
        if isinstance(impl, (Esp32, Esp32c3)):
            return impl.chip_revision(connection)
        return None

    def chip_features(self, connection: _RegisterReader) -> list[str]:
        return self._impl.chip_features(connection)

    def mac_address(self, connection: _RegisterReader) -> str:
        return self._impl.mac_address(connection)


_CHIP_TYPES: dict[Chip, ChipType] = {
    Chip.ESP32: Esp32(),
    Chip.ESP32C3: Esp32c3(),
    Chip.ESP32S2: Esp32s2(),
    Chip.ESP32S3: Esp32s3(),
    Chip.ESP8266: Esp8266(),
}