"""Shared fixtures for pi.reline tests."""

from __future__ import annotations

import pytest

from pi.reline.width import reset_ambiguous_width_cache


@pytest.fixture(autouse=True)
def _fresh_ambiguous_width():
    """The probe result is cached per process; start every test without it."""
    reset_ambiguous_width_cache()
    yield
    reset_ambiguous_width_cache()
