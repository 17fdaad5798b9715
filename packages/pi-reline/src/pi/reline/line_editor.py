"""Line editor interface and a compact reference implementation.

The session only needs the :class:`LineEditor` protocol. ``BasicLineEditor``
covers single- and multi-line input with the usual Emacs and a small vi
subset of actions, completion and in-memory history navigation; it renders
through the session's terminal gate.
"""

from __future__ import annotations

import codecs
import logging
import os
from typing import Callable, Optional, Protocol

import grapheme

from pi.reline.config import Config
from pi.reline.key_stroke import KeyStroke
from pi.reline.keys import ESC, Key
from pi.reline.terminal import Terminal
from pi.reline.width import DEFAULT_AMBIGUOUS_WIDTH, text_width

logger = logging.getLogger(__name__)

# ---------------------------------------------------------------------------
# Hook signatures
# ---------------------------------------------------------------------------

CompletionProc = Callable[[str], list[str]]
OutputModifierProc = Callable[[str, bool], str]
PromptProc = Callable[[list[str]], list[str]]
AutoIndentProc = Callable[[list[str], int, int, bool], Optional[int]]
DigPerfectMatchProc = Callable[[str], None]
PreInputHook = Callable[[], None]
ConfirmMultilineTermination = Callable[[str], bool]


class LineEditor(Protocol):
    """What a session drives while a line is being read."""

    terminal: Terminal | None
    key_stroke: KeyStroke | None
    history: list[str] | None
    ambiguous_width: int
    completion_proc: CompletionProc | None
    output_modifier_proc: OutputModifierProc | None
    prompt_proc: PromptProc | None
    auto_indent_proc: AutoIndentProc | None
    dig_perfect_match_proc: DigPerfectMatchProc | None
    pre_input_hook: PreInputHook | None
    confirm_multiline_termination: ConfirmMultilineTermination | None
    completer_word_break_characters: str
    completion_append_character: str | None

    def reset(self, prompt: str, multiline: bool = False) -> None: ...

    def input_key(self, key: Key) -> None: ...

    def rerender(self) -> None: ...

    def is_finished(self) -> bool: ...

    def finalize(self) -> None: ...

    def reset_line(self) -> None: ...

    @property
    def line(self) -> str | None: ...

    @property
    def whole_buffer(self) -> str | None: ...


def _rows(width: int, columns: int) -> int:
    return 1 + max(0, width - 1) // columns


class BasicLineEditor:
    def __init__(self, config: Config, terminal: Terminal | None = None) -> None:
        self.config = config
        self.terminal = terminal
        self.key_stroke: KeyStroke | None = None
        self.history: list[str] | None = None
        self.ambiguous_width = DEFAULT_AMBIGUOUS_WIDTH

        self.completion_proc: CompletionProc | None = None
        self.output_modifier_proc: OutputModifierProc | None = None
        self.prompt_proc: PromptProc | None = None
        self.auto_indent_proc: AutoIndentProc | None = None
        self.dig_perfect_match_proc: DigPerfectMatchProc | None = None
        self.pre_input_hook: PreInputHook | None = None
        self.confirm_multiline_termination: ConfirmMultilineTermination | None = None
        self.completer_word_break_characters = " \t\n`><=;|&{("
        self.completion_append_character: str | None = None

        self._prompt = ""
        self._multiline = False
        self.reset_line()

    # -- session interface --------------------------------------------------

    def reset(self, prompt: str, multiline: bool = False) -> None:
        self._prompt = prompt
        self._multiline = multiline
        self.reset_line()
        if self.pre_input_hook is not None:
            self.pre_input_hook()

    def reset_line(self) -> None:
        self._lines: list[str] = [""]
        self._line_index = 0
        self._cursor = 0
        self._finished = False
        self._eof = False
        self._rendered_cursor_row = 0
        self._rendered_once = False
        self._history_index: int | None = None
        self._history_stash = ""
        self._utf8 = codecs.getincrementaldecoder("utf-8")("replace")

    def input_key(self, key: Key) -> None:
        if key.is_action:
            self._run_action(str(key.char))
            return
        if key.with_meta:
            self._split_meta(key)
            return
        byte = int(key.char)
        if byte == ESC:
            if self.config.editing_mode_is("vi_insert"):
                self.config.editing_mode = "vi_command"
                self._cursor = self._prev_boundary()
            return
        if self.config.editing_mode_is("vi_command"):
            return
        if byte < 0x20 or byte == 0x7F:
            return
        text = self._utf8.decode(bytes([byte]))
        if text:
            self._insert(text)

    def _split_meta(self, key: Key) -> None:
        """Replay an unbound Alt+key as ESC followed by the key itself.

        ESC may switch modes (vi insert to command), so the key is looked up
        again in the table of whatever mode is current afterwards.
        """
        logger.debug("unbound meta key %r, replaying as ESC + key", key)
        self.input_key(Key.from_byte(ESC))
        base = bytes([int(key.char)])
        keys = self.key_stroke.expand(base) if self.key_stroke is not None else [Key.from_byte(base[0])]
        for k in keys:
            self.input_key(k)

    def is_finished(self) -> bool:
        return self._finished

    def finalize(self) -> None:
        self._utf8.reset()

    @property
    def eof(self) -> bool:
        return self._eof

    @property
    def line(self) -> str | None:
        if self._eof:
            return None
        return self._lines[self._line_index]

    @property
    def whole_buffer(self) -> str | None:
        if self._eof:
            return None
        return "\n".join(self._lines)

    @property
    def cursor(self) -> int:
        return self._cursor

    # -- rendering ----------------------------------------------------------

    def rerender(self) -> None:
        term = self.terminal
        if term is None:
            return
        if term.is_general_io:
            # Nothing can be redrawn on a plain stream; show the prompt once
            if not self._rendered_once:
                term.write(self._prompt)
                self._rendered_once = True
            if self._finished:
                term.write("\n")
            return

        prompts = self._prompts()
        shown = self._lines
        if self.output_modifier_proc is not None:
            shown = self.output_modifier_proc("\n".join(self._lines), self._finished).split("\n")

        _, columns = term.get_screen_size()
        columns = max(1, columns)
        aw = self.ambiguous_width
        row_counts = [_rows(text_width(p + line, aw), columns) for p, line in zip(prompts, self._lines)]

        term.move_cursor_up(self._rendered_cursor_row)
        term.move_cursor_column(0)
        term.erase_to_end_of_screen()
        term.write("\r\n".join(p + line for p, line in zip(prompts, shown)))
        self._rendered_once = True

        if self._finished:
            term.write("\r\n")
            self._rendered_cursor_row = 0
            return

        current = self._lines[self._line_index]
        cursor_width = text_width(prompts[self._line_index] + current[: self._cursor], aw)
        cursor_row = sum(row_counts[: self._line_index]) + cursor_width // columns
        end_row = sum(row_counts) - 1
        term.move_cursor_up(end_row - cursor_row)
        term.move_cursor_column(cursor_width % columns)
        self._rendered_cursor_row = cursor_row

    def _prompts(self) -> list[str]:
        count = len(self._lines)
        if self.prompt_proc is None:
            return [self._prompt] * count
        prompts = list(self.prompt_proc(list(self._lines)))[:count]
        while len(prompts) < count:
            prompts.append(prompts[-1] if prompts else self._prompt)
        return prompts

    # -- actions ------------------------------------------------------------

    def _run_action(self, name: str) -> None:
        handler = getattr(self, f"_action_{name}", None)
        if handler is None:
            logger.debug("no handler for action %r", name)
            return
        if not name.startswith("ed_") or not name.endswith("_history"):
            self._history_index = None
        handler()

    def _action_accept_line(self) -> None:
        if self.config.editing_mode_is("vi_command"):
            self.config.editing_mode = "vi_insert"
        if not self._multiline:
            self._finished = True
            return
        confirm = self.confirm_multiline_termination
        if confirm is None or confirm("\n".join(self._lines)):
            self._finished = True
            return
        self._insert_newline()

    def _action_backward_delete_char(self) -> None:
        if self._cursor > 0:
            start = self._prev_boundary()
            line = self._current
            self._current = line[:start] + line[self._cursor :]
            self._cursor = start
        elif self._line_index > 0:
            prev = self._lines[self._line_index - 1]
            self._lines[self._line_index - 1] = prev + self._lines.pop(self._line_index)
            self._line_index -= 1
            self._cursor = len(prev)

    def _action_delete_char(self) -> None:
        line = self._current
        if self._cursor < len(line):
            self._current = line[: self._cursor] + line[self._next_boundary() :]
        elif self._line_index + 1 < len(self._lines):
            self._current = line + self._lines.pop(self._line_index + 1)

    def _action_delete_char_or_eof(self) -> None:
        if self._lines == [""]:
            self._eof = True
            self._finished = True
            return
        self._action_delete_char()

    def _action_backward_char(self) -> None:
        self._cursor = self._prev_boundary()

    def _action_forward_char(self) -> None:
        self._cursor = self._next_boundary()

    def _action_beginning_of_line(self) -> None:
        self._cursor = 0

    def _action_end_of_line(self) -> None:
        self._cursor = len(self._current)

    def _action_backward_word(self) -> None:
        line = self._current
        pos = self._cursor
        while pos > 0 and not line[pos - 1].isalnum():
            pos -= 1
        while pos > 0 and line[pos - 1].isalnum():
            pos -= 1
        self._cursor = pos

    def _action_forward_word(self) -> None:
        line = self._current
        pos = self._cursor
        while pos < len(line) and not line[pos].isalnum():
            pos += 1
        while pos < len(line) and line[pos].isalnum():
            pos += 1
        self._cursor = pos

    def _action_kill_line(self) -> None:
        self._current = self._current[: self._cursor]

    def _action_unix_line_discard(self) -> None:
        self._current = self._current[self._cursor :]
        self._cursor = 0

    def _action_clear_screen(self) -> None:
        if self.terminal is not None:
            self.terminal.clear_screen()
        self._rendered_cursor_row = 0

    def _action_ed_prev_history(self) -> None:
        if not self.history:
            return
        if self._history_index is None:
            self._history_stash = "\n".join(self._lines)
            index = len(self.history)
        else:
            index = self._history_index
        if index == 0:
            return
        self._history_index = index - 1
        self._load_text(self.history[index - 1])

    def _action_ed_next_history(self) -> None:
        if self._history_index is None or self.history is None:
            return
        index = self._history_index + 1
        if index >= len(self.history):
            self._history_index = None
            self._load_text(self._history_stash)
        else:
            self._history_index = index
            self._load_text(self.history[index])

    def _action_complete(self) -> None:
        if self.completion_proc is None:
            return
        before = self._current[: self._cursor]
        start = max((before.rfind(ch) for ch in self.completer_word_break_characters), default=-1) + 1
        target = before[start:]
        candidates = [c for c in self.completion_proc(target) if c.startswith(target)]
        if not candidates:
            return
        if len(candidates) == 1:
            completed = candidates[0]
            if self.dig_perfect_match_proc is not None:
                self.dig_perfect_match_proc(completed)
            if self.completion_append_character:
                completed += self.completion_append_character
        else:
            completed = os.path.commonprefix(candidates)
        line = self._current
        self._current = line[:start] + completed + line[self._cursor :]
        self._cursor = start + len(completed)

    def _action_vi_command_mode(self) -> None:
        self.config.editing_mode = "vi_command"
        self._cursor = self._prev_boundary()

    def _action_vi_insert(self) -> None:
        self.config.editing_mode = "vi_insert"

    def _action_vi_add(self) -> None:
        self.config.editing_mode = "vi_insert"
        self._cursor = self._next_boundary()

    def _action_vi_insert_at_bol(self) -> None:
        self.config.editing_mode = "vi_insert"
        self._cursor = 0

    def _action_vi_add_at_eol(self) -> None:
        self.config.editing_mode = "vi_insert"
        self._cursor = len(self._current)

    # -- buffer helpers -----------------------------------------------------

    @property
    def _current(self) -> str:
        return self._lines[self._line_index]

    @_current.setter
    def _current(self, value: str) -> None:
        self._lines[self._line_index] = value

    def _insert(self, text: str) -> None:
        line = self._current
        self._current = line[: self._cursor] + text + line[self._cursor :]
        self._cursor += len(text)

    def _insert_newline(self) -> None:
        line = self._current
        self._current = line[: self._cursor]
        rest = line[self._cursor :]
        self._line_index += 1
        self._lines.insert(self._line_index, rest)
        self._cursor = 0
        if self.auto_indent_proc is not None:
            indent = self.auto_indent_proc(list(self._lines), self._line_index, 0, True)
            if indent:
                self._insert(" " * indent)

    def _load_text(self, text: str) -> None:
        self._lines = text.split("\n") if self._multiline else [text.replace("\n", " ")]
        self._line_index = len(self._lines) - 1
        self._cursor = len(self._current)

    def _prev_boundary(self) -> int:
        clusters = list(grapheme.graphemes(self._current[: self._cursor]))
        return self._cursor - len(clusters[-1]) if clusters else self._cursor

    def _next_boundary(self) -> int:
        first = next(grapheme.graphemes(self._current[self._cursor :]), "")
        return self._cursor + len(first)
