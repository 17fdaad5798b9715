"""Key binding tables: raw byte sequences mapped to editing actions.

Each editing mode gets its own table, merged from the mode defaults, the
terminal's raw keystroke sequences and user overrides, in that order.
"""

from __future__ import annotations

from types import MappingProxyType
from typing import Iterator, Mapping, Union

from pi.reline.config import EDITING_MODES, BindingTarget, Config, EditingMode
from pi.reline.keys import KeyId, key_id_to_bytes

KeyBindingsSpec = Mapping[Union[KeyId, bytes], BindingTarget]

DEFAULT_EMACS_KEYBINDINGS: dict[KeyId, BindingTarget] = {
    # Cursor movement
    "ctrl+a": "beginning_of_line",
    "ctrl+e": "end_of_line",
    "ctrl+b": "backward_char",
    "ctrl+f": "forward_char",
    "alt+b": "backward_word",
    "alt+f": "forward_word",
    # Deletion
    "backspace": "backward_delete_char",
    "ctrl+h": "backward_delete_char",
    "ctrl+d": "delete_char_or_eof",
    "ctrl+k": "kill_line",
    "ctrl+u": "unix_line_discard",
    # History
    "ctrl+p": "ed_prev_history",
    "ctrl+n": "ed_next_history",
    # Misc
    "enter": "accept_line",
    "ctrl+j": "accept_line",
    "tab": "complete",
    "ctrl+l": "clear_screen",
}

DEFAULT_VI_INSERT_KEYBINDINGS: dict[KeyId, BindingTarget] = {
    "backspace": "backward_delete_char",
    "ctrl+h": "backward_delete_char",
    "ctrl+d": "delete_char_or_eof",
    "ctrl+u": "unix_line_discard",
    "enter": "accept_line",
    "ctrl+j": "accept_line",
    "tab": "complete",
}

DEFAULT_VI_COMMAND_KEYBINDINGS: dict[KeyId, BindingTarget] = {
    "h": "backward_char",
    "l": "forward_char",
    "space": "forward_char",
    "b": "backward_word",
    "w": "forward_word",
    "0": "beginning_of_line",
    "^": "beginning_of_line",
    "$": "end_of_line",
    "x": "delete_char",
    "X": "backward_delete_char",
    "D": "kill_line",
    "k": "ed_prev_history",
    "j": "ed_next_history",
    "i": "vi_insert",
    "a": "vi_add",
    "I": "vi_insert_at_bol",
    "A": "vi_add_at_eol",
    "enter": "accept_line",
    "ctrl+j": "accept_line",
}

DEFAULT_KEYBINDINGS: dict[EditingMode, dict[KeyId, BindingTarget]] = {
    "emacs": DEFAULT_EMACS_KEYBINDINGS,
    "vi_insert": DEFAULT_VI_INSERT_KEYBINDINGS,
    "vi_command": DEFAULT_VI_COMMAND_KEYBINDINGS,
}


class KeyBindingTable:
    """Immutable mapping from raw byte sequences to binding targets.

    Also precomputes the set of proper prefixes of every bound sequence so
    prefix classification does not scan the whole table per byte.
    """

    def __init__(self, bindings: Mapping[bytes, BindingTarget], mode: EditingMode = "emacs") -> None:
        self.mode = mode
        self._bindings: Mapping[bytes, BindingTarget] = MappingProxyType(dict(bindings))
        prefixes: set[bytes] = set()
        for seq in self._bindings:
            for i in range(1, len(seq)):
                prefixes.add(seq[:i])
        self._prefixes = frozenset(prefixes)
        self._max_len = max((len(seq) for seq in self._bindings), default=0)

    @classmethod
    def build(
        cls,
        mode: EditingMode,
        overrides: KeyBindingsSpec | None = None,
        raw_keystrokes: KeyBindingsSpec | None = None,
    ) -> KeyBindingTable:
        """Merge defaults, raw terminal keystrokes and *overrides* for *mode*.

        Key identifiers are converted with :func:`key_id_to_bytes`; an
        unknown identifier raises ``ValueError`` here rather than while
        decoding.
        """
        if mode not in EDITING_MODES:
            raise ValueError(f"Unknown editing mode: {mode!r}")
        merged: dict[bytes, BindingTarget] = {}
        for layer in (DEFAULT_KEYBINDINGS[mode], raw_keystrokes or {}, overrides or {}):
            for key, target in layer.items():
                if not isinstance(target, (str, bytes)):
                    raise TypeError(
                        f"Binding for {key!r} must be an action name or bytes, "
                        f"got {type(target).__name__}"
                    )
                merged[key_id_to_bytes(key)] = target
        return cls(merged, mode)

    @property
    def mapping(self) -> Mapping[bytes, BindingTarget]:
        return self._bindings

    @property
    def max_sequence_length(self) -> int:
        return self._max_len

    def get(self, seq: bytes) -> BindingTarget | None:
        return self._bindings.get(bytes(seq))

    def is_proper_prefix(self, seq: bytes) -> bool:
        """True if a strictly longer bound sequence starts with *seq*."""
        return bytes(seq) in self._prefixes

    def longest_bound_prefix(self, seq: bytes) -> bytes | None:
        seq = bytes(seq)
        for end in range(min(len(seq), self._max_len), 0, -1):
            if seq[:end] in self._bindings:
                return seq[:end]
        return None

    def __contains__(self, seq: object) -> bool:
        return isinstance(seq, (bytes, bytearray)) and bytes(seq) in self._bindings

    def __iter__(self) -> Iterator[bytes]:
        return iter(self._bindings)

    def __len__(self) -> int:
        return len(self._bindings)

    def __repr__(self) -> str:
        return f"KeyBindingTable(mode={self.mode!r}, bindings={len(self)})"


def build_tables(
    config: Config,
    raw_keystrokes: KeyBindingsSpec | None = None,
) -> dict[EditingMode, KeyBindingTable]:
    """Build one table per editing mode from *config* overrides."""
    return {
        mode: KeyBindingTable.build(mode, config.key_bindings.get(mode), raw_keystrokes)
        for mode in EDITING_MODES
    }
