"""Decoded keystrokes and key identifier parsing.

A :class:`Key` is what the input decoder hands to the line editor. Key
identifiers such as ``"ctrl+a"`` or ``"alt+left"`` are the human form used
in configuration; :func:`key_id_to_bytes` turns them into the raw legacy
byte sequences a VT100-style terminal emits.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Union

# ---------------------------------------------------------------------------
# Type aliases
# ---------------------------------------------------------------------------

KeyId = str
KeyChar = Union[int, str]

# ---------------------------------------------------------------------------
# Constants
# ---------------------------------------------------------------------------

ESC = 0x1B
META_BIT = 0x80

CODEPOINTS: dict[str, int] = {
    "escape": 27,
    "esc": 27,
    "tab": 9,
    "enter": 13,
    "return": 13,
    "space": 32,
    "backspace": 127,
}

# Legacy sequences, unmodified
LEGACY_KEY_SEQUENCES: dict[str, bytes] = {
    "up": b"\x1b[A",
    "down": b"\x1b[B",
    "right": b"\x1b[C",
    "left": b"\x1b[D",
    "home": b"\x1b[H",
    "end": b"\x1b[F",
    "insert": b"\x1b[2~",
    "delete": b"\x1b[3~",
    "pageUp": b"\x1b[5~",
    "pageDown": b"\x1b[6~",
    "f1": b"\x1bOP",
    "f2": b"\x1bOQ",
    "f3": b"\x1bOR",
    "f4": b"\x1bOS",
    "f5": b"\x1b[15~",
    "f6": b"\x1b[17~",
    "f7": b"\x1b[18~",
    "f8": b"\x1b[19~",
    "f9": b"\x1b[20~",
    "f10": b"\x1b[21~",
    "f11": b"\x1b[23~",
    "f12": b"\x1b[24~",
}

# xterm modifier parameter: 1 + shift(1) + alt(2) + ctrl(4)
MODIFIERS: dict[str, int] = {
    "shift": 1,
    "alt": 2,
    "ctrl": 4,
}

_CSI_LETTER_KEYS: dict[str, str] = {
    "up": "A",
    "down": "B",
    "right": "C",
    "left": "D",
    "home": "H",
    "end": "F",
}

_CSI_TILDE_KEYS: dict[str, str] = {
    "insert": "2",
    "delete": "3",
    "pageUp": "5",
    "pageDown": "6",
}


# ---------------------------------------------------------------------------
# Key
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class Key:
    """A decoded logical keystroke.

    ``char`` is the raw byte, or the name of an editing action when the
    sequence was bound to one. ``combined_char`` is ``char | 0x80`` for an
    Alt-modified key and equal to ``char`` otherwise.
    """

    char: KeyChar
    combined_char: KeyChar = field(default=None)  # type: ignore[assignment]
    with_meta: bool = False

    def __post_init__(self) -> None:
        if self.combined_char is None:
            object.__setattr__(self, "combined_char", self.char)

    @classmethod
    def from_byte(cls, byte: int) -> Key:
        return cls(byte, byte, False)

    @classmethod
    def meta(cls, byte: int) -> Key:
        """Alt+*byte*, as sent by terminals that prefix meta keys with ESC."""
        return cls(byte, byte | META_BIT, True)

    @classmethod
    def action(cls, name: str) -> Key:
        return cls(name, name, False)

    @property
    def is_action(self) -> bool:
        return isinstance(self.char, str)

    def __repr__(self) -> str:
        if self.is_action:
            return f"Key({self.char!r})"
        if self.with_meta:
            return f"Key(meta {self.char:#04x})"
        return f"Key({self.char:#04x})"


# ---------------------------------------------------------------------------
# Key identifier parsing
# ---------------------------------------------------------------------------


def _ctrl_byte(base: str) -> int:
    if len(base) == 1:
        code = ord(base.lower())
        if ord("a") <= code <= ord("z"):
            return code - 96
        if base in "@[\\]^_":
            return ord(base) & 0x1F
        if base == "-":
            return 0x1F
        if base == "?":
            return 0x7F
    if base == "space":
        return 0
    raise ValueError(f"No control code for key: ctrl+{base}")


def key_id_to_bytes(key_id: KeyId | bytes) -> bytes:
    """Convert a key identifier to the byte sequence a terminal sends for it.

    Raw ``bytes`` pass through unchanged so configuration can mix both forms.

    >>> key_id_to_bytes("ctrl+a")
    b'\\x01'
    >>> key_id_to_bytes("alt+b")
    b'\\x1bb'
    """
    if isinstance(key_id, (bytes, bytearray)):
        if not key_id:
            raise ValueError("Empty key sequence")
        return bytes(key_id)

    if not key_id:
        raise ValueError("Empty key identifier")

    # "ctrl++" style is not used; "+" itself is spelled "plus"
    parts = key_id.split("+")
    base = parts[-1]
    mods = {p.lower() for p in parts[:-1]}
    unknown = mods - set(MODIFIERS)
    if unknown:
        raise ValueError(f"Unknown modifier in key id {key_id!r}: {sorted(unknown)}")
    if base == "plus":
        base = "+"

    if base in LEGACY_KEY_SEQUENCES:
        if not mods:
            return LEGACY_KEY_SEQUENCES[base]
        param = 1 + sum(MODIFIERS[m] for m in mods)
        if base in _CSI_LETTER_KEYS:
            return f"\x1b[1;{param}{_CSI_LETTER_KEYS[base]}".encode("ascii")
        if base in _CSI_TILDE_KEYS:
            return f"\x1b[{_CSI_TILDE_KEYS[base]};{param}~".encode("ascii")
        raise ValueError(f"Modifiers not supported for key: {key_id!r}")

    if base in CODEPOINTS:
        code = CODEPOINTS[base]
        if "ctrl" in mods and base == "space":
            code = 0
        elif "ctrl" in mods or "shift" in mods:
            raise ValueError(f"No legacy encoding for key: {key_id!r}")
    elif len(base) == 1:
        code = _ctrl_byte(base) if "ctrl" in mods else ord(base)
        if "shift" in mods:
            if "ctrl" in mods or not base.isalpha():
                raise ValueError(f"No legacy encoding for key: {key_id!r}")
            code = ord(base.upper())
        if code > 0x7F:
            return (b"\x1b" if "alt" in mods else b"") + base.encode("utf-8")
    else:
        raise ValueError(f"Unknown key identifier: {key_id!r}")

    prefix = b"\x1b" if "alt" in mods else b""
    return prefix + bytes([code])


def format_bytes(seq: bytes) -> str:
    """Readable form of a raw sequence, e.g. ``^[[A`` for cursor up."""
    out: list[str] = []
    for b in seq:
        if b == ESC:
            out.append("^[")
        elif b < 0x20:
            out.append("^" + chr(b + 64))
        elif b == 0x7F:
            out.append("^?")
        elif b < 0x80:
            out.append(chr(b))
        else:
            out.append(f"\\x{b:02x}")
    return "".join(out)
