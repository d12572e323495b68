from __future__ import annotations

import os
import sys
from dataclasses import dataclass
from pathlib import Path

DEFAULT_ENV_FILENAME = "app.env"


@dataclass(frozen=True)
class SetupGatePaths:
    home: Path
    env_file: Path
    state_dir: Path
    logs_dir: Path
    config_dir: Path

    @property
    def core_config_path(self) -> Path:
        return self.config_dir / "core.json"

    @property
    def admin_path(self) -> Path:
        return self.state_dir / "admin.json"

    @property
    def setup_marker_path(self) -> Path:
        return self.state_dir / "setup.lock"


def resolve_setupgate_home(environ: dict[str, str] | None = None) -> Path:
    env = os.environ if environ is None else environ

    raw = (env.get("SETUPGATE_HOME") or "").strip()
    if raw:
        candidate = Path(raw).expanduser()
        # Never interpret SETUPGATE_HOME relative to CWD; services start from arbitrary dirs.
        if not candidate.is_absolute():
            candidate = (Path.home() / candidate).resolve()
        else:
            candidate = candidate.resolve()
        return candidate

    def default_home() -> Path:
        if sys.platform.startswith("win"):
            base = os.environ.get("LOCALAPPDATA") or os.environ.get("APPDATA")
            if base:
                return Path(base) / "SetupGate"
            return Path.home() / "AppData" / "Local" / "SetupGate"

        if sys.platform == "darwin":
            return Path.home() / "Library" / "Application Support" / "SetupGate"

        xdg = os.environ.get("XDG_DATA_HOME")
        if xdg:
            return Path(xdg) / "setupgate"
        return Path.home() / ".local" / "share" / "setupgate"

    return default_home().resolve()


def ensure_setupgate_layout(home: Path) -> SetupGatePaths:
    home.mkdir(parents=True, exist_ok=True)

    state_dir = home / "state"
    logs_dir = home / "logs"
    config_dir = home / "config"

    for path in (state_dir, logs_dir, config_dir):
        path.mkdir(parents=True, exist_ok=True)

    return SetupGatePaths(
        home=home,
        env_file=home / DEFAULT_ENV_FILENAME,
        state_dir=state_dir,
        logs_dir=logs_dir,
        config_dir=config_dir,
    )
