"""Prefix classification and expansion of raw byte sequences."""

from __future__ import annotations

from enum import Enum
from typing import Mapping

from pi.reline.config import Config, EditingMode
from pi.reline.keybindings import KeyBindingTable
from pi.reline.keys import Key, format_bytes

MAX_MACRO_DEPTH = 16


class MatchStatus(Enum):
    MATCHED = "matched"
    MATCHING = "matching"
    UNMATCHED = "unmatched"


class KeyStroke:
    """Matches input against the table of the config's current editing mode.

    The tables are built before a session starts and never change while it
    runs; only the selected mode can switch (e.g. vi insert to command).
    """

    def __init__(self, config: Config, tables: Mapping[EditingMode, KeyBindingTable]) -> None:
        self._config = config
        self._tables = dict(tables)
        for table in self._tables.values():
            _check_macros(table)

    @property
    def table(self) -> KeyBindingTable:
        return self._tables[self._config.editing_mode]

    def match_status(self, buffer: bytes) -> MatchStatus:
        """Classify *buffer* against the current table.

        A buffer that is both bound and the prefix of a longer binding is
        still MATCHING, because the longer sequence may be on its way. A
        buffer that has run past a bound sequence (a bound prefix followed
        by bytes no binding continues with) is MATCHED; :meth:`expand`
        consumes the bound part and passes the rest through.
        """
        table = self.table
        buffer = bytes(buffer)
        if table.is_proper_prefix(buffer):
            return MatchStatus.MATCHING
        if buffer in table:
            return MatchStatus.MATCHED
        if table.longest_bound_prefix(buffer) is not None:
            return MatchStatus.MATCHED
        return MatchStatus.UNMATCHED

    def expand(self, buffer: bytes) -> list[Key]:
        return _expand(self.table, bytes(buffer), 0)


def _expand(table: KeyBindingTable, seq: bytes, depth: int) -> list[Key]:
    if depth > MAX_MACRO_DEPTH:
        raise ValueError(f"Macro expansion too deep at {format_bytes(seq)!r}")
    keys: list[Key] = []
    pos = 0
    while pos < len(seq):
        lhs = table.longest_bound_prefix(seq[pos:])
        if lhs is None:
            keys.append(Key.from_byte(seq[pos]))
            pos += 1
            continue
        rhs = table.get(lhs)
        if isinstance(rhs, bytes):
            keys.extend(_expand(table, rhs, depth + 1))
        else:
            keys.append(Key.action(rhs))
        pos += len(lhs)
    return keys


def _check_macros(table: KeyBindingTable) -> None:
    """Reject self-referential macros before any input is decoded."""
    for seq, target in table.mapping.items():
        if isinstance(target, bytes):
            try:
                _expand(table, target, 1)
            except ValueError:
                raise ValueError(
                    f"Macro bound to {format_bytes(seq)!r} in {table.mode} mode expands recursively"
                ) from None
