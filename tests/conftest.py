"""Shared fixtures: keep tests independent of the developer's environment."""

from __future__ import annotations

import os
from pathlib import Path

import pytest

_ENV_PREFIXES = ("COMMITLINK_",)
_ENV_NAMES = ("GITHUB_TOKEN",)


@pytest.fixture(autouse=True)
def _isolated_env(monkeypatch: pytest.MonkeyPatch, tmp_path: Path) -> None:
    """Strip COMMITLINK_* / GITHUB_TOKEN and point the config file into tmp_path."""
    for name in list(os.environ):
        if name.startswith(_ENV_PREFIXES) or name in _ENV_NAMES:
            monkeypatch.delenv(name, raising=False)
    monkeypatch.setenv("XDG_CONFIG_HOME", str(tmp_path / "xdg"))
    monkeypatch.setattr(
        "commitlink.core.constants._default_data_dir", lambda: tmp_path / "xdg" / "commitlink"
    )
    monkeypatch.setattr(
        "commitlink.core.config._default_data_dir", lambda: tmp_path / "xdg" / "commitlink"
    )
