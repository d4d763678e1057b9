# espflash

A library for talking to the ROM bootloader of Espressif ESP32 and
ESP8266 chips over a serial port, describing the supported chips, reading
ELF firmware, and preparing firmware built with Cargo.

It needs Python 3.11 or later and depends on `pyserial`, `platformdirs`
and `tomli-w`.

## What is in the package

| Module | Contents |
| --- | --- |
| `espflash.encoder` | SLIP framing: `slip_encode`, `SlipEncoder`, `SlipDecoder` |
| `espflash.command` | Bootloader commands (`Sync`, `ReadReg`, `WriteReg`, `FlashBegin`, `FlashData`, `MemEnd`, `ChangeBaud`, ...), `CommandType` with its timeouts, and `checksum` |
| `espflash.elf` | `ElfFirmwareImage`, `CodeSegment`, `RomSegment`, `FlashMode`, `FlashFrequency`, `merge_adjacent_segments`, `update_checksum` |
| `espflash.connection` | `Connection`, `CommandResponse`, `UsbPortInfo`, `reset_after_flash`, `RomError`, `ConnectionFailedError` |
| `espflash.chip` | The `Chip` enum and its dispatch to chip-specific behaviour |
| `espflash.chips` | `ChipType`, `SpiRegisters`, `ImageFormatId` and the chip families `Esp32`, `Esp32c3`, `Esp32s2`, `Esp32s3`, `Esp8266` |
| `espflash.config` | The persistent user configuration: `Config`, `ConnectionConfig`, `UsbDevice` |
| `espflash.serial_ports` | Detecting and choosing a serial port |
| `espflash.monitor` | `handle_key_event`: the bytes a key press sends to the board |
| `espflash.cargo_config` | Reading `.cargo/config` or `.cargo/config.toml` |
| `espflash.package_metadata` | The `[package.metadata.espflash]` table of `Cargo.toml` |
| `espflash.cargo_build` | Running `cargo build` and finding the executable it produced |
| `espflash.errors` | The errors raised by the Cargo-related modules |

## Encoding commands

Every command is a frozen dataclass that knows its wire format:

```python
from espflash.command import CommandType, ReadReg, Sync
from espflash.encoder import slip_encode

packet = ReadReg(address=0x3FF5A000).to_bytes()
frame = slip_encode(packet)           # ready to write to the serial port

print(CommandType.SYNC.timeout())     # seconds the ROM gets to answer
print(CommandType.FLASH_DATA.timeout_for_size(4_000_000))
```

`Command.write(writer)` writes the unframed bytes to a binary writer.
`SlipEncoder` wraps a writer and escapes everything written through it
into one frame, closed by `finish()`. `SlipDecoder.feed` returns the
frames completed by a chunk of bytes, and `SlipDecoder.decode(reader)`
reads until one frame is available, raising `TimeoutError` when the
reader runs dry.

## Working with ELF images

```python
from pathlib import Path

from espflash.chip import Chip
from espflash.elf import ElfFirmwareImage, merge_adjacent_segments

image = ElfFirmwareImage.from_bytes(Path("firmware.elf").read_bytes())
chip = Chip.from_target("xtensa-esp32-none-elf")

print(hex(image.entry()))
flash_parts = merge_adjacent_segments(list(image.rom_segments(chip)))
ram_parts = list(image.ram_segments(chip))
```

32- and 64-bit ELF files of either byte order are read; anything else
raises `ElfError`. `segments()` yields the non-empty PROGBITS sections
that have an address, and `segments_with_load_addresses()` the loadable
program segments at their physical addresses.

`CodeSegment` pads its data to four bytes, compares and sorts by address,
and can be split with `split_off`, extended with `extend` or `+=`, and
joined with a later segment through `merge`, which zero-fills the gap.

`FlashMode.from_str` and `FlashFrequency.from_str` parse names such as
`"dio"` or `"40m"` case-insensitively and raise
`InvalidFlashModeError` or `InvalidFlashFrequencyError` otherwise.

## Identifying chips

```python
from espflash.chip import Chip

chip = Chip.from_str("esp32-c3")      # case and dashes are ignored
chip.supported_targets()
chip.supports_target("riscv32imc-unknown-none-elf")
chip.addr_is_flash(0x42000100)
chip.spi_registers().w0()
```

`Chip.from_magic` maps the value read from the chip's detection register
to a chip and raises `ChipDetectError` for unknown values;
`Chip.from_str` raises `UnrecognizedChipNameError`. Given a connection,
`chip_features`, `mac_address`, `crystal_freq` and `chip_revision` read
the information from the board (`chip_revision` is `None` for chips that
do not report one). The ESP32 family also carries its default flash
layout as `PARAMS` (an `Esp32Params`), and `Esp32c3.supports_direct_boot`
tells whether a revision can use the direct-boot image format.

## Talking to a board

```python
import serial

from espflash.connection import Connection, UsbPortInfo

port = serial.Serial("/dev/ttyUSB0", 115200)
connection = Connection(port, UsbPortInfo(vid=0x10C4, pid=0xEA60))
connection.begin()                    # reset into the bootloader and sync
value = connection.read_reg(0x3FF5A000)
connection.reset()                    # reboot into the application
```

`begin` retries with alternating reset delays and raises
`ConnectionFailedError` if the chip never answers; a command the ROM
rejects raises `RomError`. `with_timeout(seconds)` is a context manager
that changes the port timeout for the duration of a block.

## Serial ports and configuration

`get_serial_port_info(serial, config)` resolves the port to use: an
explicit name first, then the one in the configuration, and otherwise it
lists the detected ports and asks on the terminal, highlighting known
USB-UART adapters. For an unrecognised USB device it offers to remember
it in the configuration.

`Config.load()` reads `espflash.toml` from the user's configuration
directory (or a given path); a missing file gives an empty
configuration. It holds a `[connection]` table with `serial` and
`[[usb_device]]` entries whose `vid` and `pid` are hexadecimal strings.
`Config.save_with(fn)` writes a copy changed by `fn`.

## Cargo projects

```python
from espflash.cargo_build import BuildOpts, build
from espflash.cargo_config import parse_cargo_config
from espflash.package_metadata import CargoEspFlashMeta

cargo_config = parse_cargo_config(".")
metadata = CargoEspFlashMeta.load("Cargo.toml")
context = build(BuildOpts(release=True), cargo_config, None)
print(context.artifact_path, context.bootloader_path)
```

The target comes from the build options or from the cargo configuration.
`build` runs `cargo build` with JSON messages, prints rendered compiler
diagnostics, and picks up the bootloader and partition table built by
`esp-idf-sys` when present; if cargo fails, the process exits with
cargo's status. `resolve_chip`, `cargo_build_args` and
`collect_artifacts` expose the individual steps.

`CargoEspFlashMeta.load` reads `partition_table` (must end in `.csv`),
`bootloader` (must end in `.bin`) and `format` (`bootloader` or
`direct-boot`). Problems are reported with exceptions from
`espflash.errors`, such as `NoProjectError`, `NoTargetError`,
`UnknownTargetError`, `UnsupportedTargetError`, `NoBuildStdError` for an
Xtensa target without `build-std`, `MultipleArtifactsError`,
`NoArtifactError` and `TomlError` for unreadable TOML.

## What the package does not do

- It has no command-line program; everything is used from Python.
- It does not write firmware to a device's flash or RAM: there is no
  flashing routine, no generation of bootloader or direct-boot images,
  and no partition table reading or writing. `ImageFormatId` and
  `Esp32Params` only describe these.
- `espflash.monitor` only translates key presses into bytes; it does not
  run an interactive serial monitor.

## Running the tests

Install the `test` extra and run `pytest` from the project directory.