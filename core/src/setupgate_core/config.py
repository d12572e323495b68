from __future__ import annotations

import json
from pathlib import Path
from typing import Any, Literal

from pydantic import BaseModel, Field

from setupgate_core.home import SetupGatePaths


class NetworkConfig(BaseModel):
    bind_host: str = Field(default="0.0.0.0")
    port: int = Field(default=9443, ge=1, le=65535)


class PathOverrides(BaseModel):
    env_file: str | None = Field(
        default=None,
        description=(
            "Env file managed by the console (the host application's .env). If relative, "
            "resolved under SETUPGATE_HOME."
        ),
    )
    state_dir: str | None = None
    logs_dir: str | None = None


class EnvFileConfig(BaseModel):
    duplicate_keys: Literal["first", "all"] = Field(
        default="first",
        description=(
            "Which occurrences of a repeated key an update rewrites. Reads always use the "
            "last occurrence."
        ),
    )


class SessionConfig(BaseModel):
    ttl_seconds: int = Field(
        default=8 * 60 * 60,
        ge=0,
        description="Session lifetime after login; 0 keeps sessions until revoked or restart.",
    )


class SetupField(BaseModel):
    """One env key collected by the first-run form."""

    key: str
    label: str | None = None
    section: str = Field(default="General")
    secret: bool = Field(default=False, description="Render as a password input.")
    required: bool = Field(default=True)
    default: str | None = None


def _default_setup_fields() -> list[SetupField]:
    return [
        SetupField(key="TWILIO_ACCOUNT_SID", label="Account SID", section="Twilio"),
        SetupField(key="TWILIO_AUTH_TOKEN", label="Auth Token", section="Twilio", secret=True),
        SetupField(key="TWILIO_PHONE_NUMBER", label="Phone Number", section="Twilio"),
        SetupField(key="OPENAI_API_KEY", label="OpenAI", section="AI Services", secret=True),
        SetupField(key="ANTHROPIC_API_KEY", label="Anthropic", section="AI Services", secret=True),
        SetupField(key="DOMAIN", label="Domain", section="Domain"),
    ]


class SetupConfig(BaseModel):
    min_password_length: int = Field(default=8, ge=1)
    pbkdf2_iterations: int = Field(default=600_000, ge=1)
    fields: list[SetupField] = Field(
        default_factory=_default_setup_fields,
        description="Env keys shown on the setup form. Any extra submitted keys are stored too.",
    )


class ReloadConfig(BaseModel):
    """How the host application is restarted after the env file changes."""

    enabled: bool = Field(default=True)
    command: list[str] = Field(default_factory=lambda: ["pm2", "restart", "all"])
    cwd: str | None = Field(
        default=None,
        description="Working directory for the command; defaults to the env file's directory.",
    )
    timeout_seconds: float = Field(default=60.0, gt=0)


class LoggingConfig(BaseModel):
    max_size_mb: int = Field(
        default=10, ge=1, description="Max size of a log file in MB before rolling."
    )
    backup_count: int = Field(default=5, ge=1, description="Number of log archives to keep.")


class CoreConfig(BaseModel):
    version: str = Field(default="1")
    network: NetworkConfig = Field(default_factory=NetworkConfig)
    paths: PathOverrides = Field(default_factory=PathOverrides)
    env: EnvFileConfig = Field(default_factory=EnvFileConfig)
    sessions: SessionConfig = Field(default_factory=SessionConfig)
    setup: SetupConfig = Field(default_factory=SetupConfig)
    reload: ReloadConfig = Field(default_factory=ReloadConfig)
    logging: LoggingConfig = Field(default_factory=LoggingConfig)


def _read_json(path: Path) -> dict[str, Any]:
    with path.open("r", encoding="utf-8") as f:
        return json.load(f)


def load_core_config(paths: SetupGatePaths) -> CoreConfig:
    """Load config from ${SETUPGATE_HOME}/config/core.json.

    - If missing: returns defaults.
    - Validation is performed by Pydantic.
    """

    config_path = paths.core_config_path
    if not config_path.exists():
        return CoreConfig()

    raw = _read_json(config_path)
    return CoreConfig.model_validate(raw)


def resolve_configured_paths(paths: SetupGatePaths, config: CoreConfig) -> SetupGatePaths:
    """Apply user-configurable path overrides from config.

    config/ is never configurable: it is where the overrides themselves live.
    """

    def _resolve(raw: str | None, default: Path) -> Path:
        if raw is None or not str(raw).strip():
            return default
        candidate = Path(raw).expanduser()
        if not candidate.is_absolute():
            candidate = (paths.home / candidate).resolve()
        else:
            candidate = candidate.resolve()
        return candidate

    env_file = _resolve(config.paths.env_file, paths.env_file)
    state_dir = _resolve(config.paths.state_dir, paths.state_dir)
    logs_dir = _resolve(config.paths.logs_dir, paths.logs_dir)

    for p in (env_file.parent, state_dir, logs_dir):
        p.mkdir(parents=True, exist_ok=True)

    return SetupGatePaths(
        home=paths.home,
        env_file=env_file,
        state_dir=state_dir,
        logs_dir=logs_dir,
        config_dir=paths.config_dir,
    )
