from __future__ import annotations

import json
from pathlib import Path

import pytest


@pytest.fixture
def setupgate_home(tmp_path: Path, monkeypatch) -> Path:
    """A SETUPGATE_HOME with reload disabled and cheap password hashing."""

    monkeypatch.setenv("SETUPGATE_HOME", str(tmp_path))
    config_dir = tmp_path / "config"
    config_dir.mkdir(parents=True, exist_ok=True)
    (config_dir / "core.json").write_text(
        json.dumps(
            {
                "reload": {"enabled": False},
                "setup": {"pbkdf2_iterations": 1000},
            }
        ),
        encoding="utf-8",
    )
    return tmp_path
