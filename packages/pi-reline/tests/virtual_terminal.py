"""Virtual terminal for testing -- implements the Terminal protocol in-memory.

Input is scripted: bytes are queued with :meth:`VirtualTerminal.feed`, and
bytes queued with :meth:`VirtualTerminal.feed_late` only arrive after a
pending bounded wait has given up. Output and mode changes are recorded for
assertions.
"""

from __future__ import annotations

from collections import deque
from typing import Mapping

from pi.reline.terminal import CursorPos
from pi.reline.width import PROBE_GLYPH


class VirtualTerminal:
    """In-memory terminal gate.

    Parameters
    ----------
    rows, columns:
        Reported screen size.
    tty:
        Whether the output pretends to be an interactive terminal.
    glyph_width:
        Columns the cursor advances when the ambiguous-width probe glyph is
        written; this is what :meth:`cursor_pos` reports afterwards.
    raw_keystrokes:
        Raw keystroke bindings the gate contributes to every table.
    """

    is_general_io = False

    def __init__(
        self,
        rows: int = 24,
        columns: int = 80,
        *,
        tty: bool = True,
        glyph_width: int = 1,
        raw_keystrokes: Mapping[str | bytes, str] | None = None,
    ) -> None:
        self._rows = rows
        self._columns = columns
        self._tty = tty
        self._glyph_width = glyph_width
        self.RAW_KEYSTROKE_CONFIG = dict(raw_keystrokes or {})

        self._events: deque[tuple[int, bool]] = deque()
        self._pushback: list[int] = []
        self._buffer: list[str] = []
        self._column = 0

        self.tokens: list[object] = []
        self.restored: list[object] = []
        self.timeouts: list[float] = []
        self.unread: list[int] = []
        self.cursor_queries = 0

    # -- test helpers -------------------------------------------------------

    def feed(self, data: bytes) -> None:
        """Queue bytes that arrive immediately."""
        for byte in data:
            self._events.append((byte, False))

    def feed_late(self, data: bytes) -> None:
        """Queue bytes whose first byte misses any bounded wait."""
        for i, byte in enumerate(data):
            self._events.append((byte, i == 0))

    @property
    def pending(self) -> int:
        return len(self._events) + len(self._pushback)

    @property
    def output(self) -> str:
        return "".join(self._buffer)

    # -- Terminal protocol: input -------------------------------------------

    def read_byte(self) -> int:
        if self._pushback:
            return self._pushback.pop()
        if not self._events:
            raise EOFError("virtual input exhausted")
        byte, _ = self._events.popleft()
        return byte

    def read_byte_with_timeout(self, timeout: float) -> int | None:
        self.timeouts.append(timeout)
        if self._pushback:
            return self._pushback.pop()
        if not self._events:
            return None
        byte, late = self._events[0]
        if late:
            # Still in flight: this wait gives up, the next read gets it
            self._events[0] = (byte, False)
            return None
        self._events.popleft()
        return byte

    def unread_byte(self, byte: int) -> None:
        self.unread.append(byte)
        self._pushback.append(byte)

    # -- Terminal protocol: mode --------------------------------------------

    def prep(self) -> object:
        token = object()
        self.tokens.append(token)
        return token

    def deprep(self, token: object) -> None:
        self.restored.append(token)

    # -- Terminal protocol: queries -----------------------------------------

    def output_is_tty(self) -> bool:
        return self._tty

    def get_screen_size(self) -> tuple[int, int]:
        return self._rows, self._columns

    def cursor_pos(self) -> CursorPos:
        self.cursor_queries += 1
        return CursorPos(self._column, 0)

    # -- Terminal protocol: output ------------------------------------------

    def move_cursor_column(self, column: int) -> None:
        self._column = column
        self._buffer.append(f"\x1b[{column + 1}G")

    def move_cursor_up(self, lines: int) -> None:
        if lines > 0:
            self._buffer.append(f"\x1b[{lines}A")
        elif lines < 0:
            self._buffer.append(f"\x1b[{-lines}B")

    def erase_to_end_of_screen(self) -> None:
        self._buffer.append("\x1b[J")

    def clear_screen(self) -> None:
        self._buffer.append("\x1b[2J\x1b[H")

    def write(self, data: str) -> None:
        self._buffer.append(data)
        if data == PROBE_GLYPH:
            self._column += self._glyph_width
        else:
            self._column += len(data)
