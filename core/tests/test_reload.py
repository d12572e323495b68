from __future__ import annotations

import logging
import sys
from pathlib import Path

from setupgate_core.config import CoreConfig
from setupgate_core.home import ensure_setupgate_layout
from setupgate_core.reload import (
    CommandReloadNotifier,
    NullReloadNotifier,
    build_reload_notifier,
)


def test_build_reload_notifier_disabled(tmp_path: Path) -> None:
    paths = ensure_setupgate_layout(tmp_path)
    cfg = CoreConfig.model_validate({"reload": {"enabled": False}})
    assert isinstance(build_reload_notifier(paths, cfg), NullReloadNotifier)

    cfg2 = CoreConfig.model_validate({"reload": {"command": []}})
    assert isinstance(build_reload_notifier(paths, cfg2), NullReloadNotifier)


def test_build_reload_notifier_defaults_to_pm2(tmp_path: Path) -> None:
    paths = ensure_setupgate_layout(tmp_path)
    notifier = build_reload_notifier(paths, CoreConfig())
    assert isinstance(notifier, CommandReloadNotifier)
    assert notifier.command == ["pm2", "restart", "all"]


def test_command_runs_in_env_file_directory(tmp_path: Path) -> None:
    paths = ensure_setupgate_layout(tmp_path)
    cfg = CoreConfig.model_validate(
        {
            "reload": {
                "command": [
                    sys.executable,
                    "-c",
                    "import pathlib; pathlib.Path('reloaded.txt').write_text('yes')",
                ]
            }
        }
    )
    notifier = build_reload_notifier(paths, cfg)

    thread = notifier.notify("test")
    assert thread is not None
    thread.join(timeout=30)

    assert (paths.env_file.parent / "reloaded.txt").read_text() == "yes"


def test_missing_command_is_logged_not_raised(tmp_path: Path, caplog) -> None:
    notifier = CommandReloadNotifier(["setupgate-no-such-binary-xyz"], cwd=tmp_path)

    with caplog.at_level(logging.ERROR, logger="setupgate_core.reload"):
        notifier.notify("test").join(timeout=30)

    assert "failed to start" in caplog.text


def test_nonzero_exit_is_logged(tmp_path: Path, caplog) -> None:
    notifier = CommandReloadNotifier(
        [sys.executable, "-c", "import sys; print('boom'); sys.exit(3)"], cwd=tmp_path
    )

    with caplog.at_level(logging.ERROR, logger="setupgate_core.reload"):
        notifier.notify("test").join(timeout=30)

    assert "exited with 3" in caplog.text
    assert "boom" in caplog.text
