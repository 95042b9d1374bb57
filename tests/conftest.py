"""Shared test fixtures."""

from __future__ import annotations

import os
from pathlib import Path

import pytest


@pytest.fixture
def tmp_data_dir(tmp_path: Path) -> Path:
    """Create a temporary data directory for tests."""
    data_dir = tmp_path / ".evmbootstrap"
    data_dir.mkdir()
    return data_dir


@pytest.fixture(autouse=True)
def _clean_env(monkeypatch: pytest.MonkeyPatch) -> None:
    """Keep EVMBOOTSTRAP_* variables from the developer's shell out of tests."""
    for key in list(os.environ):
        if key.startswith("EVMBOOTSTRAP_"):
            monkeypatch.delenv(key)
