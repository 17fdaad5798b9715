"""Session: owns the terminal for one read and drives the decode loop.

A read moves through ``IDLE -> PREPARED -> RUNNING -> FINISHED ->
RESTORED``. Any exception while running goes straight to ``RESTORED``: the
line editor is finalized, the terminal mode captured at the start is put
back, and the exception is re-raised. The terminal is restored exactly once
per read on every path.
"""

from __future__ import annotations

import logging
from enum import Enum
from typing import IO, Any

from pi.reline.config import Config
from pi.reline.decoder import InputDecoder
from pi.reline.key_stroke import KeyStroke
from pi.reline.keybindings import build_tables
from pi.reline.line_editor import (
    AutoIndentProc,
    BasicLineEditor,
    CompletionProc,
    ConfirmMultilineTermination,
    DigPerfectMatchProc,
    LineEditor,
    OutputModifierProc,
    PreInputHook,
    PromptProc,
)
from pi.reline.terminal import ModeToken, Terminal, default_terminal
from pi.reline.width import AmbiguousWidthProbe, get_ambiguous_width

logger = logging.getLogger(__name__)


class SessionState(Enum):
    IDLE = "idle"
    PREPARED = "prepared"
    RUNNING = "running"
    FINISHED = "finished"
    RESTORED = "restored"


class _Hook:
    """Session attribute that only accepts a callable or ``None``.

    A bad value is rejected when assigned, long before a read starts.
    """

    def __set_name__(self, owner: type, name: str) -> None:
        self._name = name
        self._attr = f"_{name}"

    def __get__(self, obj: Any, objtype: type | None = None) -> Any:
        if obj is None:
            return self
        return getattr(obj, self._attr, None)

    def __set__(self, obj: Any, value: Any) -> None:
        if value is not None and not callable(value):
            raise TypeError(f"{self._name} must be callable or None, got {type(value).__name__}")
        setattr(obj, self._attr, value)


class Session:
    """An explicitly constructed line-reading session.

    Owns its configuration, terminal gate and line editor; two sessions may
    coexist as long as they do not share a terminal.
    """

    completion_proc: CompletionProc | None = _Hook()  # type: ignore[assignment]
    output_modifier_proc: OutputModifierProc | None = _Hook()  # type: ignore[assignment]
    prompt_proc: PromptProc | None = _Hook()  # type: ignore[assignment]
    auto_indent_proc: AutoIndentProc | None = _Hook()  # type: ignore[assignment]
    dig_perfect_match_proc: DigPerfectMatchProc | None = _Hook()  # type: ignore[assignment]
    pre_input_hook: PreInputHook | None = _Hook()  # type: ignore[assignment]

    def __init__(
        self,
        config: Config | None = None,
        terminal: Terminal | None = None,
        line_editor: LineEditor | None = None,
    ) -> None:
        self.config = config if config is not None else Config()
        self.terminal = terminal if terminal is not None else default_terminal()
        self.line_editor: LineEditor = (
            line_editor if line_editor is not None else BasicLineEditor(self.config, self.terminal)
        )
        self.history: list[str] = []
        self.state = SessionState.IDLE
        self.key_stroke: KeyStroke | None = None

        self.completion_append_character = None
        self.completer_word_break_characters = " \t\n`><=;|&{("

    # -- settings -----------------------------------------------------------

    @property
    def completion_append_character(self) -> str | None:
        return self._completion_append_character

    @completion_append_character.setter
    def completion_append_character(self, value: str | None) -> None:
        self._completion_append_character = value[0] if value else None

    @property
    def input(self) -> IO[Any]:
        return self.terminal.input  # type: ignore[attr-defined]

    @input.setter
    def input(self, stream: IO[Any]) -> None:
        if not hasattr(stream, "read"):
            raise TypeError(f"input must be readable, got {type(stream).__name__}")
        self.terminal.input = stream  # type: ignore[attr-defined]

    @property
    def output(self) -> IO[str]:
        return self.terminal.output  # type: ignore[attr-defined]

    @output.setter
    def output(self, stream: IO[str]) -> None:
        if not hasattr(stream, "write"):
            raise TypeError(f"output must be writable, got {type(stream).__name__}")
        self.terminal.output = stream  # type: ignore[attr-defined]

    def vi_editing_mode(self) -> None:
        self.config.editing_mode = "vi_insert"

    def emacs_editing_mode(self) -> None:
        self.config.editing_mode = "emacs"

    @property
    def vi_editing_mode_p(self) -> bool:
        return self.config.editing_mode_is("vi_insert", "vi_command")

    @property
    def emacs_editing_mode_p(self) -> bool:
        return self.config.editing_mode_is("emacs")

    @property
    def ambiguous_width(self) -> int | None:
        return get_ambiguous_width()

    def get_screen_size(self) -> tuple[int, int]:
        return self.terminal.get_screen_size()

    # -- reading ------------------------------------------------------------

    def readline(self, prompt: str = "", add_hist: bool = False) -> str | None:
        """Read one line. Returns ``None`` when the user signals end of input."""
        self._inner_readline(prompt, multiline=False, confirm=None)
        line = self.line_editor.line
        if add_hist and line and line.rstrip("\n"):
            self.history.append(line.rstrip("\n"))
        return line

    def readmultiline(
        self,
        prompt: str = "",
        add_hist: bool = False,
        confirm: ConfirmMultilineTermination | None = None,
    ) -> str | None:
        """Read lines until *confirm* accepts the whole buffer."""
        if confirm is None or not callable(confirm):
            raise TypeError("readmultiline needs a callable to confirm multiline termination")
        self._inner_readline(prompt, multiline=True, confirm=confirm)
        whole = self.line_editor.whole_buffer
        if add_hist and whole and whole.rstrip("\n"):
            self.history.append(whole)
        return whole

    def _inner_readline(
        self,
        prompt: str,
        multiline: bool,
        confirm: ConfirmMultilineTermination | None,
    ) -> None:
        if self.state in (SessionState.PREPARED, SessionState.RUNNING):
            raise RuntimeError("session is already reading")
        self.state = SessionState.IDLE

        token = self.terminal.prep()
        try:
            self._prepare(prompt, multiline, confirm)
            self.state = SessionState.RUNNING
            self._run()
            self.terminal.move_cursor_column(0)
        except BaseException:
            logger.debug("read aborted, restoring terminal")
            try:
                self.line_editor.finalize()
            except Exception:
                # Keep the fault that aborted the read
                logger.debug("line editor finalize failed during abort", exc_info=True)
            finally:
                self._restore(token)
            raise

        self.state = SessionState.FINISHED
        try:
            self.line_editor.finalize()
        finally:
            self._restore(token)

    def _prepare(
        self,
        prompt: str,
        multiline: bool,
        confirm: ConfirmMultilineTermination | None,
    ) -> None:
        self.state = SessionState.PREPARED
        if not self.config.test_mode:
            self.config.read()
        tables = build_tables(self.config, self.terminal.RAW_KEYSTROKE_CONFIG)
        self.key_stroke = KeyStroke(self.config, tables)

        width = AmbiguousWidthProbe(self.terminal).measure()

        editor = self.line_editor
        editor.terminal = self.terminal
        editor.key_stroke = self.key_stroke
        editor.history = self.history
        editor.ambiguous_width = width
        editor.confirm_multiline_termination = confirm
        editor.completion_proc = self.completion_proc
        editor.output_modifier_proc = self.output_modifier_proc
        editor.prompt_proc = self.prompt_proc
        editor.auto_indent_proc = self.auto_indent_proc
        editor.dig_perfect_match_proc = self.dig_perfect_match_proc
        editor.pre_input_hook = self.pre_input_hook
        editor.completer_word_break_characters = self.completer_word_break_characters
        editor.completion_append_character = self.completion_append_character
        editor.reset(prompt, multiline)
        editor.rerender()
        logger.debug("session prepared (mode=%s, multiline=%s)", self.config.editing_mode, multiline)

    def _run(self) -> None:
        assert self.key_stroke is not None
        decoder = InputDecoder(self.terminal, self.key_stroke, self.config.keyseq_timeout)
        editor = self.line_editor
        while True:
            keys = decoder.decode_next()
            for key in keys:
                editor.input_key(key)
            editor.rerender()
            if editor.is_finished():
                break

    def _restore(self, token: ModeToken) -> None:
        self.terminal.deprep(token)
        self.state = SessionState.RESTORED
        logger.debug("terminal restored")
