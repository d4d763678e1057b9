import struct

import pytest

from espflash.elf import (
    ESP_CHECKSUM_MAGIC,
    CodeSegment,
    ElfError,
    ElfFirmwareImage,
    FlashFrequency,
    FlashMode,
    InvalidFlashFrequencyError,
    InvalidFlashModeError,
    RomSegment,
    merge_adjacent_segments,
    update_checksum,
)

PROGBITS = 1
NOBITS = 8
PT_LOAD = 1
PT_NOTE = 4


def _build_elf(entry=0x40080000, sections=(), programs=()):
    header_size, ph_size, sh_size = 52, 32, 40
    data_start = header_size + ph_size * len(programs)
    blob = bytearray()
    program_headers = []
    for ptype, paddr, payload in programs:
        offset = data_start + len(blob)
        blob += payload
        program_headers.append(
            struct.pack("<8I", ptype, offset, paddr, paddr, len(payload), len(payload), 5, 4)
        )
    section_headers = [bytes(sh_size)]
    for stype, addr, payload in sections:
        offset = data_start + len(blob)
        blob += payload
        section_headers.append(
            struct.pack("<10I", 1, stype, 0, addr, offset, len(payload), 0, 0, 4, 0)
        )
    shoff = data_start + len(blob)
    ident = b"\x7fELF" + bytes([1, 1, 1]) + bytes(9)
    header = ident + struct.pack(
        "<HHIIIIIHHHHHH",
        2,
        94,
        1,
        entry,
        header_size if programs else 0,
        shoff,
        0,
        header_size,
        ph_size,
        len(programs),
        sh_size,
        len(section_headers),
        0,
    )
    return header + b"".join(program_headers) + bytes(blob) + b"".join(section_headers)


class _FakeChip:
    def addr_is_flash(self, addr):
        return addr >= 0x40000000


def test_entry_point():
    image = ElfFirmwareImage.from_bytes(_build_elf(entry=0x400800AC))
    assert image.entry() == 0x400800AC


def test_segments_filter_sections():
    image = ElfFirmwareImage.from_bytes(
        _build_elf(
            sections=[
                (PROGBITS, 0x3FFB0000, b"abcd"),
                (NOBITS, 0x3FFC0000, b"zzzz"),
                (PROGBITS, 0, b"efgh"),
                (PROGBITS, 0x3FFD0000, b""),
            ]
        )
    )
    assert [(s.addr, s.data) for s in image.segments()] == [(0x3FFB0000, b"abcd")]


def test_segments_are_padded():
    image = ElfFirmwareImage.from_bytes(_build_elf(sections=[(PROGBITS, 0x1000, b"abcde")]))
    (segment,) = image.segments()
    assert segment.data == b"abcde\x00\x00\x00"


def test_segments_with_load_addresses():
    image = ElfFirmwareImage.from_bytes(
        _build_elf(
            programs=[(PT_LOAD, 0x42000000, b"\x01\x02\x03\x04"), (PT_NOTE, 0x1000, b"xxxx")]
        )
    )
    result = [(s.addr, s.data) for s in image.segments_with_load_addresses()]
    assert result == [(0x42000000, b"\x01\x02\x03\x04")]


def test_rom_and_ram_segments_partition():
    image = ElfFirmwareImage.from_bytes(
        _build_elf(
            sections=[(PROGBITS, 0x400D0000, b"rom!"), (PROGBITS, 0x3FFB0000, b"ram!")]
        )
    )
    chip = _FakeChip()
    rom = [s.addr for s in image.rom_segments(chip)]
    ram = [s.addr for s in image.ram_segments(chip)]
    assert rom == [0x400D0000]
    assert ram == [0x3FFB0000]
    assert sorted(rom + ram) == sorted(s.addr for s in image.segments())


def test_invalid_magic():
    with pytest.raises(ElfError):
        ElfFirmwareImage.from_bytes(b"not an elf file at all")


def test_truncated_file():
    with pytest.raises(ElfError):
        ElfFirmwareImage.from_bytes(_build_elf()[:30])


def test_invalid_class():
    data = bytearray(_build_elf())
    data[4] = 3
    with pytest.raises(ElfError):
        ElfFirmwareImage.from_bytes(bytes(data))


@pytest.mark.parametrize(
    "text, mode",
    [("qio", FlashMode.QIO), ("QOUT", FlashMode.QOUT), ("Dio", FlashMode.DIO), ("dout", FlashMode.DOUT)],
)
def test_flash_mode_from_str(text, mode):
    assert FlashMode.from_str(text) is mode


def test_flash_mode_invalid():
    with pytest.raises(InvalidFlashModeError):
        FlashMode.from_str("fast")


def test_flash_frequency():
    assert FlashFrequency.from_str("80m") is FlashFrequency.FLASH_80M
    assert int(FlashFrequency.FLASH_80M) == 0xF
    assert str(FlashFrequency.FLASH_40M) == "40M"
    with pytest.raises(InvalidFlashFrequencyError):
        FlashFrequency.from_str("QIO")


def test_code_segment_pads_to_word():
    segment = CodeSegment(0x1000, b"\x01\x02\x03")
    assert segment.size() % 4 == 0
    assert segment.data.startswith(b"\x01\x02\x03")


def test_split_off_head():
    original = bytes(range(12))
    segment = CodeSegment(0x1000, original)
    head = segment.split_off(4)
    assert head.addr == 0x1000
    assert segment.addr == 0x1000 + 4
    assert head.data + segment.data == original


def test_split_off_everything():
    original = bytes(range(8))
    segment = CodeSegment(0x1000, original)
    head = segment.split_off(100)
    assert head.data == original
    assert segment.size() == 0
    assert segment.addr == 0x1000 + len(original)


def test_merge_fills_gap():
    first = CodeSegment(0x1000, b"\xaa" * 4)
    first.merge(CodeSegment(0x1008, b"\xbb" * 4))
    assert first.data == b"\xaa" * 4 + bytes(4) + b"\xbb" * 4


def test_merge_truncates_overlap():
    first = CodeSegment(0x1000, b"\xaa" * 8)
    first += CodeSegment(0x1004, b"\xbb" * 4)
    assert first.data == b"\xaa" * 4 + b"\xbb" * 4


def test_merge_behind_raises():
    with pytest.raises(ValueError):
        CodeSegment(0x2000, b"").merge(CodeSegment(0x1000, b"abcd"))


def test_iadd_bytes_extends():
    segment = CodeSegment(0, b"abcd")
    segment += b"ef"
    assert segment.data == b"abcdef"


def test_ordering_by_address():
    assert CodeSegment(1, b"ab") == CodeSegment(1, b"cd")
    segments = sorted([CodeSegment(3), CodeSegment(1), CodeSegment(2)])
    assert [s.addr for s in segments] == [1, 2, 3]


def test_merge_adjacent_segments():
    a = CodeSegment(0x1000, b"AAAA")
    b = CodeSegment(0x1004, b"BBBB")
    c = CodeSegment(0x2000, b"CCCC")
    merged = merge_adjacent_segments([c, b, a])
    assert [s.addr for s in merged] == [0x1000, 0x2000]
    assert merged[0].data == b"AAAA" + b"BBBB"
    assert merged[1].data == b"CCCC"
    assert a.data == b"AAAA"


def test_update_checksum():
    data = b"firmware"
    assert update_checksum(b"", ESP_CHECKSUM_MAGIC) == 0xEF
    assert update_checksum(data, update_checksum(data, ESP_CHECKSUM_MAGIC)) == ESP_CHECKSUM_MAGIC


def test_rom_segment_from_code_segment():
    segment = CodeSegment(0x10000, b"\x01\x02\x03\x04")
    rom = RomSegment.from_code_segment(segment)
    assert (rom.addr, rom.data) == (segment.addr, segment.data)