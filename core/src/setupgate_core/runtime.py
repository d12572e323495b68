from __future__ import annotations

from dataclasses import dataclass
from functools import partial

from fastapi import HTTPException, Request

from setupgate_core.config import CoreConfig
from setupgate_core.envfile import EnvFileStore
from setupgate_core.home import SetupGatePaths
from setupgate_core.identity import IdentityStore, hash_password
from setupgate_core.reload import ReloadNotifier, build_reload_notifier
from setupgate_core.sessions import InMemorySessionStore, SessionStore
from setupgate_core.setup_state import SetupMarker, SetupStateMachine


@dataclass
class Runtime:
    """Everything a request handler needs, built once at startup."""

    paths: SetupGatePaths
    config: CoreConfig
    env_store: EnvFileStore
    identity_store: IdentityStore
    setup: SetupStateMachine
    sessions: SessionStore
    reload: ReloadNotifier


def build_runtime(paths: SetupGatePaths, config: CoreConfig) -> Runtime:
    env_store = EnvFileStore(paths.env_file, duplicates=config.env.duplicate_keys)
    identity_store = IdentityStore(paths.admin_path)
    setup = SetupStateMachine(
        marker=SetupMarker(paths.setup_marker_path),
        env_store=env_store,
        identity_store=identity_store,
        password_hasher=partial(hash_password, iterations=config.setup.pbkdf2_iterations),
        min_password_length=config.setup.min_password_length,
    )
    return Runtime(
        paths=paths,
        config=config,
        env_store=env_store,
        identity_store=identity_store,
        setup=setup,
        sessions=InMemorySessionStore(ttl_seconds=config.sessions.ttl_seconds),
        reload=build_reload_notifier(paths, config),
    )


def get_runtime(request: Request) -> Runtime:
    runtime = getattr(request.app.state, "runtime", None)
    if runtime is None:
        raise HTTPException(status_code=500, detail="Server not initialized")
    return runtime
