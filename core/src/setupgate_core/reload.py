from __future__ import annotations

import logging
import subprocess
import threading
from pathlib import Path
from typing import Protocol

from setupgate_core.config import CoreConfig
from setupgate_core.home import SetupGatePaths

logger = logging.getLogger(__name__)


class ReloadNotifier(Protocol):
    """Told after the env file has been durably written.

    Implementations must not raise: the write is already committed.
    """

    def notify(self, reason: str) -> threading.Thread | None: ...


class NullReloadNotifier:
    def notify(self, reason: str) -> None:
        logger.info("Reload disabled; skipping restart after %s", reason)


class CommandReloadNotifier:
    """Runs the supervisor restart command (pm2 by default) on a background thread."""

    def __init__(self, command: list[str], *, cwd: Path | None, timeout_s: float = 60.0) -> None:
        self._command = list(command)
        self._cwd = cwd
        self._timeout_s = timeout_s

    @property
    def command(self) -> list[str]:
        return list(self._command)

    def notify(self, reason: str) -> threading.Thread:
        t = threading.Thread(
            target=self._run,
            kwargs={"reason": reason},
            name="sg-reload",
            daemon=True,
        )
        t.start()
        return t

    def _run(self, *, reason: str) -> None:
        logger.info("Restarting host application after %s: %s", reason, " ".join(self._command))
        try:
            proc = subprocess.run(
                self._command,
                cwd=str(self._cwd) if self._cwd is not None else None,
                stdout=subprocess.PIPE,
                stderr=subprocess.STDOUT,
                text=True,
                timeout=self._timeout_s,
                check=False,
            )
        except subprocess.TimeoutExpired:
            logger.error("Reload command timed out after %.0fs", self._timeout_s)
            return
        except (OSError, subprocess.SubprocessError) as exc:
            logger.error("Reload command failed to start: %s", exc)
            return

        if proc.returncode != 0:
            output = (proc.stdout or "").strip()
            logger.error("Reload command exited with %d: %s", proc.returncode, output[-2000:])
            return
        logger.info("Reload command finished")


def build_reload_notifier(paths: SetupGatePaths, config: CoreConfig) -> ReloadNotifier:
    if not config.reload.enabled or not config.reload.command:
        return NullReloadNotifier()

    raw_cwd = (config.reload.cwd or "").strip()
    if raw_cwd:
        cwd = Path(raw_cwd).expanduser()
        cwd = cwd if cwd.is_absolute() else (paths.home / cwd)
    else:
        cwd = paths.env_file.parent

    return CommandReloadNotifier(
        config.reload.command, cwd=cwd, timeout_s=config.reload.timeout_seconds
    )
