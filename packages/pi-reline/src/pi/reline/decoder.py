"""Turn raw terminal bytes into logical keys.

Terminals send Alt+key as ESC followed by the key, and also start their
own multi-byte sequences (cursor keys, function keys) with ESC. The only
way to tell a human pressing ESC and then ``a`` from a terminal sending
``ESC a`` in one burst is timing, so the decoder waits a bounded time
(``keyseq_timeout``) for the byte after the first one. Like GNU Readline,
only that second byte is time-bounded; once a sequence is two bytes long
the decoder waits for the rest indefinitely.
"""

from __future__ import annotations

import logging

from pi.reline.key_stroke import KeyStroke, MatchStatus
from pi.reline.keys import ESC, Key
from pi.reline.terminal import Terminal

logger = logging.getLogger(__name__)


class EscapeResolver:
    """Decides what a lone ESC byte means when no binding starts with it."""

    def __init__(self, terminal: Terminal, keyseq_timeout: int) -> None:
        self._terminal = terminal
        self._timeout = keyseq_timeout / 1000.0

    def resolve(self, esc_byte: int) -> list[Key]:
        escaped = self._terminal.read_byte_with_timeout(self._timeout)
        if escaped is None:
            logger.debug("no byte after ESC within %.3fs", self._timeout)
            return [Key.from_byte(esc_byte)]
        if escaped >= 0x80:
            # Probably the lead byte of a multi-byte character, not Meta
            return [Key.from_byte(esc_byte), Key.from_byte(escaped)]
        if escaped == ESC:
            return [Key.from_byte(esc_byte), Key.from_byte(esc_byte)]
        return [Key.meta(escaped)]


class InputDecoder:
    """Reads one logical key group per :meth:`decode_next` call."""

    def __init__(self, terminal: Terminal, key_stroke: KeyStroke, keyseq_timeout: int) -> None:
        self._terminal = terminal
        self._key_stroke = key_stroke
        self._timeout = keyseq_timeout / 1000.0
        self._escape_resolver = EscapeResolver(terminal, keyseq_timeout)

    def decode_next(self) -> list[Key]:
        """Block until a complete key group has been read and return it."""
        buffer = bytearray()
        while True:
            c = self._terminal.read_byte()
            buffer.append(c)
            status = self._key_stroke.match_status(buffer)

            if status is MatchStatus.MATCHED:
                return self._key_stroke.expand(bytes(buffer))

            if status is MatchStatus.MATCHING:
                if len(buffer) == 1:
                    keys = self._wait_for_second_byte(c)
                    if keys is not None:
                        return keys
                continue

            if len(buffer) == 1 and c == ESC:
                return self._escape_resolver.resolve(c)
            return [Key.from_byte(b) for b in buffer]

    def _wait_for_second_byte(self, c: int) -> list[Key] | None:
        """Handle the time-bounded read after a matching first byte.

        Returns the keys to emit, or ``None`` when the second byte continues
        a binding; that byte is pushed back and matching goes on normally.
        """
        succ = self._terminal.read_byte_with_timeout(self._timeout)
        if succ is None:
            logger.debug("keyseq timeout after %#04x, emitting it alone", c)
            return [Key.from_byte(c)]
        if self._key_stroke.match_status(bytes([c, succ])) is MatchStatus.UNMATCHED:
            if c == ESC:
                return [Key.meta(succ)]
            return [Key.from_byte(c), Key.from_byte(succ)]
        self._terminal.unread_byte(succ)
        return None
