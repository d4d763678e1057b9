"""SLIP framing used by the ROM bootloader serial protocol."""

from __future__ import annotations

from collections import deque
from typing import BinaryIO

END = 0xC0
ESC = 0xDB
ESC_END = 0xDC
ESC_ESC = 0xDD


def _escape(data: bytes) -> bytes:
    return (
        bytes(data)
        .replace(bytes([ESC]), bytes([ESC, ESC_ESC]))
        .replace(bytes([END]), bytes([ESC, ESC_END]))
    )


def slip_encode(data: bytes) -> bytes:
    """Return ``data`` as a single complete SLIP frame."""
    return bytes([END]) + _escape(data) + bytes([END])


class SlipEncoder:
    """Writer wrapper that escapes everything written to it into one SLIP frame.

    The opening delimiter is written on construction; call :meth:`finish`
    to write the closing one.
    """

    def __init__(self, writer: BinaryIO) -> None:
        self._writer = writer
        self._len = self._write_raw(bytes([END]))

    def _write_raw(self, data: bytes) -> int:
        written = self._writer.write(data)
        return len(data) if written is None else written

    def write(self, data: bytes) -> int:
        """Escape and write ``data``; returns the number of input bytes consumed."""
        self._len += self._write_raw(_escape(data))
        return len(data)

    def flush(self) -> None:
        flush = getattr(self._writer, "flush", None)
        if flush is not None:
            flush()

    def finish(self) -> int:
        """Close the frame and return the total number of bytes written."""
        self._len += self._write_raw(bytes([END]))
        return self._len


class SlipDecoder:
    """Incremental SLIP decoder that yields complete, non-empty frames."""

    def __init__(self) -> None:
        self._frame = bytearray()
        self._escaped = False
        self._pending: deque[bytes] = deque()

    def feed(self, data: bytes) -> list[bytes]:
        """Consume raw bytes and return every frame they complete."""
        frames: list[bytes] = []
        for byte in data:
            if self._escaped:
                self._escaped = False
                if byte == ESC_END:
                    self._frame.append(END)
                elif byte == ESC_ESC:
                    self._frame.append(ESC)
                else:
                    self._frame.clear()
                    raise ValueError(f"malformed SLIP packet: invalid escape 0x{byte:02x}")
            elif byte == END:
                if self._frame:
                    frames.append(bytes(self._frame))
                    self._frame.clear()
            elif byte == ESC:
                self._escaped = True
            else:
                self._frame.append(byte)
        return frames

    def decode(self, reader: BinaryIO) -> bytes:
        """Read from ``reader`` until a full frame is available and return it.

        Raises :class:`TimeoutError` when the reader yields no more data.
        """
        while not self._pending:
            chunk = reader.read(1)
            if not chunk:
                raise TimeoutError("timed out waiting for a SLIP frame")
            self._pending.extend(self.feed(chunk))
        return self._pending.popleft()