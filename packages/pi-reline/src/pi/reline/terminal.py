"""Terminal gates: byte input, raw mode and cursor control.

Provides a ``Terminal`` protocol and two implementations: ``AnsiTerminal``
for POSIX ttys (termios raw mode, ANSI escape sequences) and ``GeneralIO``
for plain streams such as pipes and files, where there is no terminal to
query.
"""

from __future__ import annotations

import logging
import os
import re
import select
import sys
import termios
import tty
from dataclasses import dataclass
from typing import IO, Any, Mapping, Protocol

from pi.reline.keys import KeyId

logger = logging.getLogger(__name__)

# ---------------------------------------------------------------------------
# ANSI escape constants
# ---------------------------------------------------------------------------

_QUERY_CURSOR_POS = "\x1b[6n"
_MOVE_COLUMN_FMT = "\x1b[{}G"
_CURSOR_UP_FMT = "\x1b[{}A"
_CURSOR_DOWN_FMT = "\x1b[{}B"
_ERASE_TO_END_OF_SCREEN = "\x1b[J"
_CLEAR_SCREEN = "\x1b[2J\x1b[H"

_CURSOR_REPORT_RE = re.compile(rb"\x1b\[(?P<row>\d+);(?P<column>\d+)$")

ModeToken = Any


@dataclass(frozen=True)
class CursorPos:
    x: int
    y: int


# ---------------------------------------------------------------------------
# Terminal protocol
# ---------------------------------------------------------------------------


class Terminal(Protocol):
    """Interface the session and decoder use to talk to the terminal."""

    RAW_KEYSTROKE_CONFIG: Mapping[KeyId | bytes, str]
    is_general_io: bool

    def read_byte(self) -> int: ...

    def read_byte_with_timeout(self, timeout: float) -> int | None: ...

    def unread_byte(self, byte: int) -> None: ...

    def prep(self) -> ModeToken: ...

    def deprep(self, token: ModeToken) -> None: ...

    def output_is_tty(self) -> bool: ...

    def get_screen_size(self) -> tuple[int, int]: ...

    def cursor_pos(self) -> CursorPos: ...

    def move_cursor_column(self, column: int) -> None: ...

    def move_cursor_up(self, lines: int) -> None: ...

    def erase_to_end_of_screen(self) -> None: ...

    def clear_screen(self) -> None: ...

    def write(self, data: str) -> None: ...


# ---------------------------------------------------------------------------
# Shared pushback handling
# ---------------------------------------------------------------------------


class _ByteSource:
    """Pushback stack in front of a blocking byte reader."""

    def __init__(self) -> None:
        self._pushback: list[int] = []

    def unread_byte(self, byte: int) -> None:
        """Push *byte* back so the next read returns it."""
        self._pushback.append(byte)

    def _pop_pushback(self) -> int | None:
        if self._pushback:
            return self._pushback.pop()
        return None


# ---------------------------------------------------------------------------
# AnsiTerminal
# ---------------------------------------------------------------------------


class AnsiTerminal(_ByteSource):
    """Gate backed by a tty file descriptor and ANSI escape sequences.

    Bytes are read straight from the descriptor with ``os.read`` so nothing
    is held in a Python-level buffer. The bounded wait polls the descriptor
    with ``select`` and only reads once a byte is known to be there; a wait
    that times out has consumed nothing.
    """

    RAW_KEYSTROKE_CONFIG: Mapping[KeyId | bytes, str] = {
        "up": "ed_prev_history",
        "down": "ed_next_history",
        "right": "forward_char",
        "left": "backward_char",
        "delete": "delete_char",
        "home": "beginning_of_line",
        "end": "end_of_line",
        b"\x1b[1~": "beginning_of_line",
        b"\x1b[4~": "end_of_line",
        b"\x1bOA": "ed_prev_history",
        b"\x1bOB": "ed_next_history",
        b"\x1bOC": "forward_char",
        b"\x1bOD": "backward_char",
        b"\x1bOH": "beginning_of_line",
        b"\x1bOF": "end_of_line",
        "ctrl+right": "forward_word",
        "ctrl+left": "backward_word",
        "alt+right": "forward_word",
        "alt+left": "backward_word",
    }
    is_general_io = False
    # Seconds to wait for each byte of a cursor position report
    CURSOR_REPORT_TIMEOUT = 0.5

    def __init__(self, input: IO[Any] | None = None, output: IO[str] | None = None) -> None:
        super().__init__()
        self.input = input if input is not None else sys.stdin
        self.output = output if output is not None else sys.stdout

    @property
    def input_fd(self) -> int:
        return self.input.fileno()

    # -- input --------------------------------------------------------------

    def read_byte(self) -> int:
        byte = self._pop_pushback()
        if byte is not None:
            return byte
        return self._read_raw()

    def read_byte_with_timeout(self, timeout: float) -> int | None:
        """Return the next byte, or ``None`` if none arrives in *timeout* s."""
        byte = self._pop_pushback()
        if byte is not None:
            return byte
        ready, _, _ = select.select([self.input_fd], [], [], max(0.0, timeout))
        if not ready:
            return None
        return self._read_raw()

    def _read_raw(self) -> int:
        data = os.read(self.input_fd, 1)
        if not data:
            raise EOFError("end of terminal input")
        return data[0]

    # -- raw mode -----------------------------------------------------------

    def prep(self) -> ModeToken:
        """Enter raw input mode and return the previous termios attributes.

        Keeps signal generation (so Ctrl+C still interrupts), turns off echo
        and CR-to-NL translation and, on parity-free lines, stops stripping
        the eighth bit.
        """
        fd = self.input_fd
        if not os.isatty(fd):
            return None
        token = termios.tcgetattr(fd)
        tty.setcbreak(fd, termios.TCSADRAIN)
        attrs = termios.tcgetattr(fd)
        attrs[0] &= ~termios.ICRNL
        if not attrs[2] & termios.PARENB:
            attrs[0] &= ~termios.ISTRIP
            attrs[2] = (attrs[2] & ~termios.CSIZE) | termios.CS8
        attrs[3] &= ~termios.ECHO
        termios.tcsetattr(fd, termios.TCSADRAIN, attrs)
        logger.debug("terminal fd %d switched to raw input mode", fd)
        return token

    def deprep(self, token: ModeToken) -> None:
        if token is None:
            return
        termios.tcsetattr(self.input_fd, termios.TCSADRAIN, token)
        logger.debug("terminal fd %d restored", self.input_fd)

    # -- queries ------------------------------------------------------------

    def output_is_tty(self) -> bool:
        try:
            return os.isatty(self.output.fileno())
        except (AttributeError, ValueError, OSError):
            return False

    def get_screen_size(self) -> tuple[int, int]:
        """Return ``(rows, columns)``."""
        try:
            size = os.get_terminal_size(self.output.fileno())
        except (AttributeError, ValueError, OSError):
            return 24, 80
        return size.lines, size.columns

    def cursor_pos(self) -> CursorPos:
        """Ask the terminal where the cursor is (0-based).

        Bytes the user typed before the ``ESC [ row ; col R`` reply
        (including a typed ``R``) are pushed back so the decoder still sees
        them, in order. If no reply arrives within
        ``CURSOR_REPORT_TIMEOUT`` seconds everything read is pushed back
        and ``(0, 0)`` is returned.
        """
        self.write(_QUERY_CURSOR_POS)
        res = bytearray()
        while True:
            ready, _, _ = select.select([self.input_fd], [], [], self.CURSOR_REPORT_TIMEOUT)
            if not ready:
                logger.debug("no cursor position report, got %r", bytes(res))
                for byte in reversed(res):
                    self.unread_byte(byte)
                return CursorPos(0, 0)
            byte = self._read_raw()
            if byte == ord("R"):
                start = res.rfind(b"\x1b[")
                match = _CURSOR_REPORT_RE.match(bytes(res[start:])) if start != -1 else None
                if match is not None:
                    break
            res.append(byte)
        for byte in reversed(res[:start]):
            self.unread_byte(byte)
        return CursorPos(int(match.group("column")) - 1, int(match.group("row")) - 1)

    # -- output -------------------------------------------------------------

    def move_cursor_column(self, column: int) -> None:
        self.write(_MOVE_COLUMN_FMT.format(column + 1))

    def move_cursor_up(self, lines: int) -> None:
        if lines < 0:
            self.write(_CURSOR_DOWN_FMT.format(-lines))
        elif lines > 0:
            self.write(_CURSOR_UP_FMT.format(lines))

    def erase_to_end_of_screen(self) -> None:
        self.write(_ERASE_TO_END_OF_SCREEN)

    def clear_screen(self) -> None:
        self.write(_CLEAR_SCREEN)

    def write(self, data: str) -> None:
        self.output.write(data)
        self.output.flush()


# ---------------------------------------------------------------------------
# GeneralIO
# ---------------------------------------------------------------------------


class GeneralIO(_ByteSource):
    """Fallback gate for non-terminal input such as pipes or files.

    When the input has a file descriptor it is read directly with
    ``os.read`` and the bounded wait polls it with ``select``, so a lone
    ESC from another process times out just like on a tty. Bytes already
    held in the stream's own Python buffer are not seen. In-memory streams
    without a descriptor are read normally and never time out.
    """

    RAW_KEYSTROKE_CONFIG: Mapping[KeyId | bytes, str] = {}
    is_general_io = True

    def __init__(self, input: IO[Any] | None = None, output: IO[str] | None = None) -> None:
        super().__init__()
        self.input = input if input is not None else sys.stdin.buffer
        self.output = output if output is not None else sys.stdout

    def _input_fd(self) -> int | None:
        try:
            return self.input.fileno()
        except (AttributeError, ValueError, OSError):
            return None

    def read_byte(self) -> int:
        byte = self._pop_pushback()
        if byte is not None:
            return byte
        fd = self._input_fd()
        data = os.read(fd, 1) if fd is not None else self.input.read(1)
        if not data:
            raise EOFError("end of input")
        if isinstance(data, str):
            encoded = data.encode("utf-8")
            for extra in reversed(encoded[1:]):
                self.unread_byte(extra)
            return encoded[0]
        return data[0]

    def read_byte_with_timeout(self, timeout: float) -> int | None:
        """Return the next byte, ``None`` on timeout or end of input."""
        byte = self._pop_pushback()
        if byte is not None:
            return byte
        fd = self._input_fd()
        if fd is not None:
            ready, _, _ = select.select([fd], [], [], max(0.0, timeout))
            if not ready:
                return None
        try:
            return self.read_byte()
        except EOFError:
            return None

    def prep(self) -> ModeToken:
        return None

    def deprep(self, token: ModeToken) -> None:
        pass

    def output_is_tty(self) -> bool:
        return False

    def get_screen_size(self) -> tuple[int, int]:
        return 24, 80

    def cursor_pos(self) -> CursorPos:
        return CursorPos(1, 1)

    def move_cursor_column(self, column: int) -> None:
        pass

    def move_cursor_up(self, lines: int) -> None:
        pass

    def erase_to_end_of_screen(self) -> None:
        pass

    def clear_screen(self) -> None:
        pass

    def write(self, data: str) -> None:
        self.output.write(data)
        self.output.flush()


def default_terminal(input: IO[Any] | None = None, output: IO[str] | None = None) -> Terminal:
    """Pick ``AnsiTerminal`` when the input is a tty, ``GeneralIO`` otherwise."""
    stream = input if input is not None else sys.stdin
    try:
        is_tty = os.isatty(stream.fileno())
    except (AttributeError, ValueError, OSError):
        is_tty = False
    if is_tty:
        return AnsiTerminal(stream, output)
    if input is None:
        stream = getattr(sys.stdin, "buffer", sys.stdin)
    return GeneralIO(stream, output)
