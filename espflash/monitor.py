"""Translation of key presses into bytes for the serial monitor."""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum, auto


class KeyCode(Enum):
    BACKSPACE = auto()
    ENTER = auto()
    LEFT = auto()
    RIGHT = auto()
    UP = auto()
    DOWN = auto()
    HOME = auto()
    END = auto()
    PAGE_UP = auto()
    PAGE_DOWN = auto()
    TAB = auto()
    BACK_TAB = auto()
    DELETE = auto()
    INSERT = auto()
    ESC = auto()
    FUNCTION = auto()
    CHAR = auto()


@dataclass(frozen=True)
class KeyEvent:
    """A key press; ``char`` is set for :attr:`KeyCode.CHAR` keys."""

    code: KeyCode
    char: str | None = None
    ctrl: bool = False

    def __post_init__(self) -> None:
        if self.code is KeyCode.CHAR and (self.char is None or len(self.char) != 1):
            raise ValueError("a CHAR key event needs exactly one character")


# Escape sequences as understood by common serial consoles.
_KEY_SEQUENCES: dict[KeyCode, bytes] = {
    KeyCode.BACKSPACE: b"\x08",
    KeyCode.ENTER: b"\r",
    KeyCode.LEFT: b"\x1b[D",
    KeyCode.RIGHT: b"\x1b[C",
    KeyCode.HOME: b"\x1b[H",
    KeyCode.END: b"\x1b[F",
    KeyCode.UP: b"\x1b[A",
    KeyCode.DOWN: b"\x1b[B",
    KeyCode.TAB: b"\x09",
    KeyCode.DELETE: b"\x1b[3~",
    KeyCode.INSERT: b"\x1b[2~",
    KeyCode.ESC: b"\x1b",
}


def handle_key_event(key_event: KeyEvent) -> bytes | None:
    """The bytes to send for a key press, or None for keys that send nothing."""
    if key_event.code is not KeyCode.CHAR:
        return _KEY_SEQUENCES.get(key_event.code)

    ch = key_event.char
    assert ch is not None
    if key_event.ctrl:
        value = ord(ch) & 0xFF
        if "a" <= ch <= "z" or ch == " ":
            return bytes([value & 0x1F])
        if "4" <= ch <= "7":
            # Control-4 through 7 arrive for \x1c through \x1f.
            return bytes([(value + 8) & 0x1F])
    return ch.encode("utf-8")