"""pi-reline: Key-stroke decoding and session handling for terminal line editing."""

# Configuration
from pi.reline.config import Config, EditingMode, load_config

# Input decoding
from pi.reline.decoder import EscapeResolver, InputDecoder

# Key matching
from pi.reline.key_stroke import KeyStroke, MatchStatus

# Keybindings
from pi.reline.keybindings import (
    DEFAULT_EMACS_KEYBINDINGS,
    DEFAULT_VI_COMMAND_KEYBINDINGS,
    DEFAULT_VI_INSERT_KEYBINDINGS,
    KeyBindingTable,
    build_tables,
)

# Keys
from pi.reline.keys import ESC, Key, format_bytes, key_id_to_bytes

# Line editor interface
from pi.reline.line_editor import BasicLineEditor, LineEditor

# Session
from pi.reline.session import Session, SessionState

# Terminal gates
from pi.reline.terminal import AnsiTerminal, CursorPos, GeneralIO, Terminal, default_terminal

# Width
from pi.reline.width import (
    AmbiguousWidthProbe,
    char_width,
    get_ambiguous_width,
    reset_ambiguous_width_cache,
    text_width,
)

__all__ = [
    # Config
    "Config",
    "EditingMode",
    "load_config",
    # Decoder
    "EscapeResolver",
    "InputDecoder",
    # Key matching
    "KeyStroke",
    "MatchStatus",
    # Keybindings
    "DEFAULT_EMACS_KEYBINDINGS",
    "DEFAULT_VI_COMMAND_KEYBINDINGS",
    "DEFAULT_VI_INSERT_KEYBINDINGS",
    "KeyBindingTable",
    "build_tables",
    # Keys
    "ESC",
    "Key",
    "format_bytes",
    "key_id_to_bytes",
    # Line editor
    "BasicLineEditor",
    "LineEditor",
    # Session
    "Session",
    "SessionState",
    # Terminal
    "AnsiTerminal",
    "CursorPos",
    "GeneralIO",
    "Terminal",
    "default_terminal",
    # Width
    "AmbiguousWidthProbe",
    "char_width",
    "get_ambiguous_width",
    "reset_ambiguous_width_cache",
    "text_width",
]
