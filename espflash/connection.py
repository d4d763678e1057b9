"""Serial connection to the ROM bootloader: reset, sync and command exchange."""

from __future__ import annotations

import struct
import time
from contextlib import contextmanager
from dataclasses import dataclass
from typing import Any, Iterator

from espflash.command import Command, CommandType, ReadReg, Sync, WriteReg
from espflash.encoder import SlipDecoder, slip_encode

DEFAULT_CONNECT_ATTEMPTS = 7
USB_SERIAL_JTAG_PID = 0x1001

_RESPONSE_FORMAT = "<BBHIBB"
_RESPONSE_SIZE = struct.calcsize(_RESPONSE_FORMAT)


class ConnectionFailedError(Exception):
    """No usable response was received from the device."""

    def __init__(self, message: str = "Failed to connect to the device") -> None:
        super().__init__(message)


class RomError(Exception):
    """The bootloader reported a failure for a command."""

    def __init__(self, command_type: CommandType, error_code: int) -> None:
        super().__init__(
            f"Error while running {command_type.name} command: ROM error 0x{error_code:02x}"
        )
        self.command_type = command_type
        self.error_code = error_code


_RECOVERABLE = (OSError, ValueError, RomError, ConnectionFailedError)


@dataclass(frozen=True)
class UsbPortInfo:
    vid: int = 0
    pid: int = 0
    serial_number: str | None = None
    manufacturer: str | None = None
    product: str | None = None


@dataclass(frozen=True)
class CommandResponse:
    resp: int
    return_op: int
    return_length: int
    value: int
    status: int
    error: int

    @classmethod
    def from_bytes(cls, data: bytes) -> CommandResponse:
        """Decode the response header at the start of a frame."""
        if len(data) < _RESPONSE_SIZE:
            raise ValueError(
                f"response too short: {len(data)} bytes, expected {_RESPONSE_SIZE}"
            )
        return cls(*struct.unpack_from(_RESPONSE_FORMAT, data))


class Connection:
    """A serial port speaking the bootloader protocol."""

    def __init__(self, serial: Any, port_info: UsbPortInfo) -> None:
        self._serial = serial
        self._port_info = port_info
        self._decoder = SlipDecoder()

    def begin(self) -> None:
        """Reset the chip into the bootloader and synchronise with it."""
        extra_delay = False
        for attempt in range(DEFAULT_CONNECT_ATTEMPTS):
            try:
                self._connect_attempt(extra_delay)
            except _RECOVERABLE:
                extra_delay = not extra_delay
                delay_text = "extra" if extra_delay else "default"
                print(f"Unable to connect, retrying with {delay_text} delay...")
            else:
                if attempt > 0:
                    print()
                return
        raise ConnectionFailedError()

    def _connect_attempt(self, extra_delay: bool) -> None:
        self.reset_to_flash(extra_delay)
        for _ in range(5):
            self.flush()
            try:
                self._sync()
            except _RECOVERABLE:
                continue
            return
        raise ConnectionFailedError()

    def _sync(self) -> None:
        with self.with_timeout(CommandType.SYNC.timeout()):
            self.write_command(Sync())
            self.flush()
            time.sleep(0.01)
            for _ in range(100):
                response = self.read_response()
                if response.return_op == CommandType.SYNC:
                    if response.status == 1:
                        self._flush_quietly()
                        raise RomError(CommandType.SYNC, response.error)
                    break
        # Consume one further reply to the burst of sync packets.
        self.read_response()

    def _flush_quietly(self) -> None:
        try:
            self.flush()
        except OSError:
            pass

    def reset(self) -> None:
        reset_after_flash(self._serial, self._port_info.pid)

    def reset_to_flash(self, extra_delay: bool) -> None:
        """Toggle DTR/RTS to put the chip into download mode."""
        serial = self._serial
        if self._port_info.pid == USB_SERIAL_JTAG_PID:
            serial.dtr = False
            serial.rts = False
            time.sleep(0.1)
            serial.dtr = True
            serial.rts = False
            time.sleep(0.1)
            serial.rts = True
            serial.dtr = False
            serial.rts = True
            time.sleep(0.1)
            serial.dtr = False
            serial.rts = False
        else:
            serial.dtr = False
            serial.rts = True
            time.sleep(0.1)
            serial.dtr = True
            serial.rts = False
            time.sleep(0.5 if extra_delay else 0.05)
            serial.dtr = False

    def set_timeout(self, timeout: float) -> None:
        self._serial.timeout = timeout

    def set_baud(self, speed: int) -> None:
        self._serial.baudrate = speed

    def get_baud(self) -> int:
        return self._serial.baudrate

    @contextmanager
    def with_timeout(self, timeout: float) -> Iterator[Connection]:
        """Use ``timeout`` for the duration of the block, then restore the old one."""
        old_timeout = self._serial.timeout
        self._serial.timeout = timeout
        try:
            yield self
        finally:
            self._serial.timeout = old_timeout

    def read_response(self) -> CommandResponse:
        """Read frames until a full response header has arrived and decode it."""
        buffer = bytearray()
        while len(buffer) < _RESPONSE_SIZE:
            buffer += self._decoder.decode(self._serial)
        return CommandResponse.from_bytes(bytes(buffer))

    def write_command(self, command: Command) -> None:
        self._serial.reset_input_buffer()
        self._serial.write(slip_encode(command.to_bytes()))

    def command(self, command: Command) -> int:
        """Send ``command`` and return the value of its matching response."""
        command_type = command.command_type
        self.write_command(command)
        for _ in range(100):
            response = self.read_response()
            if response.return_op != command_type:
                continue
            if response.status == 1:
                self._flush_quietly()
                raise RomError(command_type, response.error)
            return response.value
        raise ConnectionFailedError()

    def read_reg(self, reg: int) -> int:
        with self.with_timeout(CommandType.READ_REG.timeout()):
            return self.command(ReadReg(address=reg))

    def write_reg(self, addr: int, value: int, mask: int | None = None) -> None:
        with self.with_timeout(CommandType.WRITE_REG.timeout()):
            self.command(WriteReg(address=addr, value=value, mask=mask))

    def flush(self) -> None:
        self._serial.flush()

    def into_serial(self) -> Any:
        return self._serial

    def get_usb_pid(self) -> int:
        return self._port_info.pid


def reset_after_flash(serial: Any, pid: int) -> None:
    """Toggle DTR/RTS to reboot the chip into the flashed application."""
    time.sleep(0.1)
    if pid == USB_SERIAL_JTAG_PID:
        serial.dtr = False
        time.sleep(0.1)
        serial.rts = True
        serial.dtr = False
        serial.rts = True
        time.sleep(0.1)
        serial.rts = False
    else:
        serial.dtr = False
        serial.rts = True
        time.sleep(0.1)
        serial.rts = False