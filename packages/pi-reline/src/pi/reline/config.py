"""Line-editor configuration with JSON persistence.

Settings live in ``~/.pi/reline.json`` (or the file named by
``$PI_RELINE_CONFIG``)::

    {
      "keyseqTimeout": 300,
      "editingMode": "vi_insert",
      "keyBindings": {
        "emacs": {"ctrl+t": "kill_line", "alt+g": {"macro": "git status\\r"}}
      }
    }

A missing file yields the defaults. A file that cannot be parsed is
reported through ``load_error`` and leaves the previous values in place.
"""

from __future__ import annotations

import json
import logging
import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Literal, Union, get_args

logger = logging.getLogger(__name__)

CONFIG_DIR_NAME = ".pi"
CONFIG_FILE_NAME = "reline.json"
CONFIG_ENV_VAR = "PI_RELINE_CONFIG"

DEFAULT_KEYSEQ_TIMEOUT = 500

EditingMode = Literal["emacs", "vi_insert", "vi_command"]
EDITING_MODES: tuple[str, ...] = get_args(EditingMode)

# A binding target is either an action name or a macro replayed as input
BindingTarget = Union[str, bytes]
KeyBindingsConfig = dict[Union[str, bytes], BindingTarget]


@dataclass
class Config:
    """Settings consumed by a :class:`~pi.reline.session.Session`.

    ``keyseq_timeout`` is in milliseconds. ``key_bindings`` holds user
    overrides per editing mode; they are merged over the built-in defaults
    when a session starts. ``test_mode`` stops the session from re-reading
    ``path`` on every read.
    """

    keyseq_timeout: int = DEFAULT_KEYSEQ_TIMEOUT
    editing_mode: EditingMode = "emacs"
    test_mode: bool = False
    key_bindings: dict[EditingMode, KeyBindingsConfig] = field(default_factory=dict)
    path: str | None = None
    load_error: Exception | None = field(default=None, repr=False, compare=False)

    def __post_init__(self) -> None:
        _check_editing_mode(self.editing_mode)
        _check_timeout(self.keyseq_timeout)
        for mode in self.key_bindings:
            _check_editing_mode(mode)

    def editing_mode_is(self, *modes: str) -> bool:
        return self.editing_mode in modes

    def read(self) -> None:
        """Re-read :attr:`path` in place. No-op without a path or file."""
        if not self.path or not os.path.exists(self.path):
            return
        settings, error = _load_from_file(self.path)
        self.load_error = error
        if error is not None:
            logger.warning("Could not read line-editor settings %s: %s", self.path, error)
            return
        try:
            _apply_settings(self, settings)
        except (TypeError, ValueError) as e:
            self.load_error = e
            logger.warning("Invalid line-editor settings in %s: %s", self.path, e)


def default_config_path() -> str:
    env = os.environ.get(CONFIG_ENV_VAR)
    if env:
        return env
    return os.path.join(os.path.expanduser("~"), CONFIG_DIR_NAME, CONFIG_FILE_NAME)


def load_config(path: str | None = None, *, test_mode: bool = False) -> Config:
    """Create a :class:`Config` from the settings file at *path*."""
    config = Config(path=path or default_config_path(), test_mode=test_mode)
    config.read()
    return config


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def _check_editing_mode(mode: str) -> None:
    if mode not in EDITING_MODES:
        raise ValueError(f"Unknown editing mode {mode!r}; expected one of {EDITING_MODES}")


def _check_timeout(timeout: Any) -> None:
    if isinstance(timeout, bool) or not isinstance(timeout, int):
        raise TypeError(f"keyseq_timeout must be an int (ms), got {type(timeout).__name__}")
    if timeout < 0:
        raise ValueError(f"keyseq_timeout must be >= 0, got {timeout}")


def _load_from_file(path: str) -> tuple[dict[str, Any], Exception | None]:
    """Load settings from a JSON file. Returns (settings, error)."""
    if not os.path.exists(path):
        return {}, None
    try:
        content = Path(path).read_text(encoding="utf-8")
        settings = json.loads(content)
    except (OSError, json.JSONDecodeError) as e:
        return {}, e
    if not isinstance(settings, dict):
        return {}, ValueError("settings file must contain a JSON object")
    return settings, None


def _parse_target(value: Any) -> BindingTarget:
    if isinstance(value, str):
        return value
    if isinstance(value, dict) and isinstance(value.get("macro"), str):
        return value["macro"].encode("utf-8")
    raise ValueError(f"Binding target must be an action name or {{'macro': ...}}, got {value!r}")


def _apply_settings(config: Config, settings: dict[str, Any]) -> None:
    timeout = settings.get("keyseqTimeout", config.keyseq_timeout)
    mode = settings.get("editingMode", config.editing_mode)
    _check_timeout(timeout)
    _check_editing_mode(mode)

    bindings = dict(config.key_bindings)
    raw_bindings = settings.get("keyBindings", {})
    if not isinstance(raw_bindings, dict):
        raise ValueError("keyBindings must be an object keyed by editing mode")
    for mode_name, entries in raw_bindings.items():
        _check_editing_mode(mode_name)
        if not isinstance(entries, dict):
            raise ValueError(f"keyBindings.{mode_name} must be an object")
        bindings[mode_name] = {key: _parse_target(target) for key, target in entries.items()}

    config.keyseq_timeout = timeout
    config.editing_mode = mode
    config.key_bindings = bindings
