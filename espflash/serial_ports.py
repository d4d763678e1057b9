"""Finding and choosing the serial port a board is attached to."""

from __future__ import annotations

import sys
from dataclasses import dataclass
from pathlib import Path

from serial.tools import list_ports

from espflash.config import Config, UsbDevice
from espflash.connection import UsbPortInfo

# USB UART adapters which are known to be on common dev boards.
KNOWN_DEVICES: tuple[UsbDevice, ...] = (
    UsbDevice(vid=0x10C4, pid=0xEA60),  # Silicon Labs CP210x UART Bridge
    UsbDevice(vid=0x1A86, pid=0x7523),  # QinHeng Electronics CH340 serial converter
)

_BOLD = "\x1b[1m"
_RESET = "\x1b[0m"


class SerialNotFoundError(Exception):
    def __init__(self, name: str) -> None:
        super().__init__(f"The serial port '{name}' could not be found")
        self.name = name


class NoSerialError(Exception):
    def __init__(self) -> None:
        super().__init__("No serial ports could be detected")


class CanceledError(Exception):
    def __init__(self) -> None:
        super().__init__("Operation was canceled by the user")


@dataclass(frozen=True)
class SerialPortInfo:
    """A detected serial port; ``usb_info`` is None when its type is unknown."""

    port_name: str
    usb_info: UsbPortInfo | None = None


def _confirm(prompt: str) -> bool | None:
    """Ask a yes/no question; None when input is aborted."""
    while True:
        try:
            answer = input(f"{prompt} [y/n] ")
        except (EOFError, KeyboardInterrupt):
            return None
        answer = answer.strip().lower()
        if answer in ("y", "yes"):
            return True
        if answer in ("n", "no"):
            return False


def _select(items: list[str], default: int = 0) -> int | None:
    """Let the user pick one of ``items``; None when input is aborted."""
    for number, item in enumerate(items, start=1):
        print(f"  {number}) {item}")
    while True:
        try:
            answer = input(f"Select a serial port [{default + 1}]: ")
        except (EOFError, KeyboardInterrupt):
            return None
        answer = answer.strip()
        if not answer:
            return default
        if answer.isdigit() and 1 <= int(answer) <= len(items):
            return int(answer) - 1


def detect_usb_serial_ports() -> list[SerialPortInfo]:
    """Serial ports that are USB devices or of unknown type."""
    ports = []
    for port in list_ports.comports():
        if port.vid is not None and port.pid is not None:
            usb_info = UsbPortInfo(
                vid=port.vid,
                pid=port.pid,
                serial_number=port.serial_number,
                manufacturer=port.manufacturer,
                product=port.product,
            )
        else:
            usb_info = None
        ports.append(SerialPortInfo(port_name=port.device, usb_info=usb_info))
    return ports


def find_serial_port(ports: list[SerialPortInfo], name: str) -> SerialPortInfo:
    """The port whose name matches ``name``, ignoring case."""
    wanted = name.lower()
    for port in ports:
        if port.port_name.lower() == wanted:
            return port
    raise SerialNotFoundError(name)


def _device_matches(config: Config, info: UsbPortInfo) -> bool:
    return any(device.matches(info) for device in (*config.usb_device, *KNOWN_DEVICES))


def _display_name(port: SerialPortInfo, config: Config) -> str:
    info = port.usb_info
    if info is None:
        return port.port_name
    if _device_matches(config, info):
        formatted = f"{_BOLD}{port.port_name}{_RESET}"
    else:
        formatted = port.port_name
    return f"{formatted} - {info.product}" if info.product else formatted


def confirm_port(port_name: str, port_info: UsbPortInfo) -> bool:
    """Ask whether to use the given port."""
    if port_info.product:
        prompt = f"Use serial port '{port_name}' - {port_info.product}?"
    else:
        prompt = f"Use serial port '{port_name}'?"
    answer = _confirm(prompt)
    if answer is None:
        raise CanceledError()
    return answer


def select_serial_port(
    ports: list[SerialPortInfo], config: Config
) -> tuple[SerialPortInfo, bool]:
    """Choose a port, returning it and whether it matches a known device."""
    if len(ports) > 1:
        print(
            f"Detected {len(ports)} serial ports. Ports which match a known common "
            "dev board are highlighted.\n"
        )
        names = [_display_name(port, config) for port in ports]
        index = _select(names, default=0)
        if index is None:
            raise CanceledError()
        port = ports[index]
        matches = port.usb_info is not None and _device_matches(config, port.usb_info)
        return port, matches

    if len(ports) == 1:
        port = ports[0]
        info = port.usb_info if port.usb_info is not None else UsbPortInfo()
        if _device_matches(config, info):
            return port, True
        if confirm_port(port.port_name, info):
            return port, False
        raise SerialNotFoundError(port.port_name)

    raise NoSerialError()


def get_serial_port_info(serial: str | None, config: Config) -> SerialPortInfo:
    """Resolve the port to use from the argument, the config, or the user.

    An explicit ``serial`` takes precedence over the configured one. Otherwise
    the user chooses, and may be offered to remember an unrecognised device.
    """
    try:
        ports = detect_usb_serial_ports()
    except Exception:
        ports = []

    named = serial if serial is not None else config.connection.serial
    if named is not None:
        return find_serial_port(ports, str(Path(named).resolve(strict=True)))

    port, matches = select_serial_port(ports, config)
    usb_info = port.usb_info
    if usb_info is not None and not matches:
        remember = _confirm("Remember this serial port for future use?") or False
        if remember:
            device = UsbDevice(vid=usb_info.vid, pid=usb_info.pid)
            try:
                config.save_with(lambda c: c.usb_device.append(device))
            except (OSError, ValueError) as exc:
                print(f"Failed to save config {exc}", file=sys.stderr)
    return port