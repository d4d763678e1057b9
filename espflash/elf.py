"""ELF firmware images, flash settings and code segments."""

from __future__ import annotations

import operator
import struct
from dataclasses import dataclass
from enum import IntEnum
from functools import reduce, total_ordering
from typing import Iterator, NamedTuple, Protocol

ESP_CHECKSUM_MAGIC = 0xEF

_PT_LOAD = 1
_SHT_PROGBITS = 1


class ElfError(Exception):
    """The input could not be read as an ELF file."""


class InvalidFlashModeError(ValueError):
    def __init__(self, value: str) -> None:
        super().__init__(f"Invalid flash mode: {value}")
        self.value = value


class InvalidFlashFrequencyError(ValueError):
    def __init__(self, value: str) -> None:
        super().__init__(f"Invalid flash frequency: {value}")
        self.value = value


class FlashMode(IntEnum):
    QIO = 0
    QOUT = 1
    DIO = 2
    DOUT = 3

    def __str__(self) -> str:
        return self.name

    @classmethod
    def from_str(cls, s: str) -> FlashMode:
        try:
            return cls[s.upper()]
        except KeyError:
            raise InvalidFlashModeError(s) from None


class FlashFrequency(IntEnum):
    FLASH_20M = 0x2
    FLASH_26M = 0x1
    FLASH_40M = 0x0
    FLASH_80M = 0xF

    def __str__(self) -> str:
        return self.name.removeprefix("FLASH_")

    @classmethod
    def from_str(cls, s: str) -> FlashFrequency:
        try:
            return cls[f"FLASH_{s.upper()}"]
        except KeyError:
            raise InvalidFlashFrequencyError(s) from None


class _FlashRegions(Protocol):
    def addr_is_flash(self, addr: int) -> bool: ...


@total_ordering
class CodeSegment:
    """A segment of code from the source ELF; ordered and compared by address."""

    __slots__ = ("addr", "data")

    def __init__(self, addr: int = 0, data: bytes = b"") -> None:
        self.addr = addr
        self.data = bytes(data)
        self.pad_align(4)

    @classmethod
    def _raw(cls, addr: int, data: bytes) -> CodeSegment:
        segment = cls.__new__(cls)
        segment.addr = addr
        segment.data = bytes(data)
        return segment

    def split_off(self, count: int) -> CodeSegment:
        """Split the first ``count`` bytes into a new segment, keeping the rest here."""
        if count < len(self.data):
            head = CodeSegment._raw(self.addr, self.data[:count])
            self.addr += count
            self.data = self.data[count:]
            return head
        head = CodeSegment._raw(self.addr, self.data)
        self.addr += self.size()
        self.data = b""
        return head

    def size(self) -> int:
        return len(self.data)

    def pad_align(self, align: int) -> None:
        padding = -len(self.data) % align
        if padding:
            self.data += bytes(padding)

    def extend(self, data: bytes) -> None:
        self.data += bytes(data)

    def merge(self, other: CodeSegment) -> None:
        """Append ``other`` at its address, zero-filling or truncating up to it."""
        if other.addr < self.addr:
            raise ValueError("cannot merge a segment that starts before this one")
        gap = other.addr - self.addr
        self.data = self.data[:gap].ljust(gap, b"\x00") + other.data

    def __iadd__(self, other: CodeSegment | bytes) -> CodeSegment:
        if isinstance(other, CodeSegment):
            self.merge(other)
        else:
            self.extend(other)
        return self

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, CodeSegment):
            return NotImplemented
        return self.addr == other.addr

    def __lt__(self, other: object) -> bool:
        if not isinstance(other, CodeSegment):
            return NotImplemented
        return self.addr < other.addr

    __hash__ = None  # type: ignore[assignment]

    def __repr__(self) -> str:
        return f"CodeSegment(addr={self.addr:#x}, size={self.size()})"


@dataclass
class RomSegment:
    """A segment of data to write to flash."""

    addr: int
    data: bytes

    @classmethod
    def from_code_segment(cls, segment: CodeSegment) -> RomSegment:
        return cls(addr=segment.addr, data=segment.data)


class _Section(NamedTuple):
    type: int
    addr: int
    offset: int
    size: int


class _Program(NamedTuple):
    type: int
    offset: int
    paddr: int
    filesz: int


_LAYOUTS = {
    1: ("HHIIIIIHHHHHH", "IIIIIIIIII", "IIIIIIII"),
    2: ("HHIQQQIHHHHHH", "IIQQQQIIQQ", "IIQQQQQQ"),
}


class ElfFirmwareImage:
    """A firmware image read from an ELF file."""

    def __init__(self, data: bytes) -> None:
        self._input = bytes(data)
        self._entry, self._sections, self._programs = self._parse(self._input)

    @classmethod
    def from_bytes(cls, data: bytes) -> ElfFirmwareImage:
        return cls(data)

    @staticmethod
    def _parse(data: bytes) -> tuple[int, list[_Section], list[_Program]]:
        if len(data) < 16 or data[:4] != b"\x7fELF":
            raise ElfError("Invalid ELF magic")
        layout = _LAYOUTS.get(data[4])
        if layout is None:
            raise ElfError(f"Invalid ELF class {data[4]}")
        endian = {1: "<", 2: ">"}.get(data[5])
        if endian is None:
            raise ElfError(f"Invalid ELF data encoding {data[5]}")
        header_fmt, section_fmt, program_fmt = (endian + f for f in layout)
        try:
            (_, _, _, entry, phoff, shoff, _, _, phentsize, phnum, shentsize, shnum, _) = (
                struct.unpack_from(header_fmt, data, 16)
            )
            sections = []
            if shnum:
                if shentsize < struct.calcsize(section_fmt):
                    raise ElfError("Section header entry too small")
                for index in range(shnum):
                    fields = struct.unpack_from(section_fmt, data, shoff + index * shentsize)
                    sections.append(_Section(fields[1], fields[3], fields[4], fields[5]))
            programs = []
            if phnum:
                if phentsize < struct.calcsize(program_fmt):
                    raise ElfError("Program header entry too small")
                for index in range(phnum):
                    fields = struct.unpack_from(program_fmt, data, phoff + index * phentsize)
                    if data[4] == 1:
                        ptype, offset, _, paddr, filesz = fields[:5]
                    else:
                        ptype, _, offset, _, paddr, filesz = fields[:6]
                    programs.append(_Program(ptype, offset, paddr, filesz))
        except struct.error as exc:
            raise ElfError(f"Truncated ELF file: {exc}") from exc
        return entry, sections, programs

    def _slice(self, offset: int, size: int) -> bytes:
        if offset + size > len(self._input):
            raise ElfError("Segment data lies outside the file")
        return self._input[offset : offset + size]

    def entry(self) -> int:
        return self._entry & 0xFFFFFFFF

    def segments(self) -> Iterator[CodeSegment]:
        """Non-empty PROGBITS sections that have an address."""
        for section in self._sections:
            if (
                section.size > 0
                and section.type == _SHT_PROGBITS
                and section.offset > 0
                and section.addr > 0
            ):
                yield CodeSegment(
                    section.addr & 0xFFFFFFFF, self._slice(section.offset, section.size)
                )

    def segments_with_load_addresses(self) -> Iterator[CodeSegment]:
        """Loadable program segments at their physical addresses."""
        for program in self._programs:
            if program.filesz > 0 and program.type == _PT_LOAD and program.offset > 0:
                yield CodeSegment(
                    program.paddr & 0xFFFFFFFF, self._slice(program.offset, program.filesz)
                )

    def rom_segments(self, chip: _FlashRegions) -> Iterator[CodeSegment]:
        return (s for s in self.segments() if chip.addr_is_flash(s.addr))

    def ram_segments(self, chip: _FlashRegions) -> Iterator[CodeSegment]:
        return (s for s in self.segments() if not chip.addr_is_flash(s.addr))


def update_checksum(data: bytes, checksum: int) -> int:
    return reduce(operator.xor, data, checksum) & 0xFF


def merge_adjacent_segments(segments: list[CodeSegment]) -> list[CodeSegment]:
    """Sort segments by address and join those that are directly contiguous."""
    merged: list[CodeSegment] = []
    for segment in sorted(segments):
        if merged and merged[-1].addr + merged[-1].size() == segment.addr:
            merged[-1].extend(segment.data)
        else:
            merged.append(CodeSegment._raw(segment.addr, segment.data))
    return merged