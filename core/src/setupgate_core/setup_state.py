from __future__ import annotations

import logging
import threading
from collections.abc import Mapping
from dataclasses import dataclass
from datetime import UTC, datetime
from enum import Enum
from pathlib import Path
from typing import Any, Callable, Final

from setupgate_core.envfile import EnvFileStore
from setupgate_core.errors import (
    AlreadyProvisionedError,
    InvalidEntryError,
    NotProvisionedError,
    StorageError,
)
from setupgate_core.fileio import atomic_write_text
from setupgate_core.identity import AdminIdentity, IdentityStore

logger = logging.getLogger(__name__)

ADMIN_USERNAME_FIELD: Final[str] = "adminUsername"
ADMIN_PASSWORD_FIELD: Final[str] = "adminPassword"
ADMIN_FIELDS: Final[frozenset[str]] = frozenset({ADMIN_USERNAME_FIELD, ADMIN_PASSWORD_FIELD})


class SetupState(str, Enum):
    UNPROVISIONED = "unprovisioned"
    PROVISIONED = "provisioned"


class SetupMarker:
    """Durable "setup finished" flag; the file's presence is the flag."""

    def __init__(self, path: Path) -> None:
        self._path = path

    @property
    def path(self) -> Path:
        return self._path

    def is_set(self) -> bool:
        return self._path.exists()

    def completed_at(self) -> datetime | None:
        try:
            raw = self._path.read_text(encoding="utf-8").strip()
        except FileNotFoundError:
            return None
        try:
            return datetime.fromisoformat(raw.replace("Z", "+00:00"))
        except ValueError:
            return None

    def mark(self, when: datetime) -> None:
        try:
            atomic_write_text(self._path, when.isoformat())
        except OSError as exc:
            raise StorageError(f"Unable to write setup marker: {exc.strerror or exc}") from exc


@dataclass(frozen=True)
class ProvisionRequest:
    admin_username: str
    admin_password: str
    config: dict[str, Any]


def split_provision_payload(
    payload: Mapping[str, Any], *, min_password_length: int = 8
) -> ProvisionRequest:
    username = payload.get(ADMIN_USERNAME_FIELD)
    password = payload.get(ADMIN_PASSWORD_FIELD)

    if not isinstance(username, str) or not username.strip():
        raise InvalidEntryError("Admin username is required")
    if not isinstance(password, str) or not password:
        raise InvalidEntryError("Admin password is required")
    if len(password) < min_password_length:
        raise InvalidEntryError(
            f"Admin password must be at least {min_password_length} characters"
        )

    config = {k: v for k, v in payload.items() if k not in ADMIN_FIELDS}
    return ProvisionRequest(admin_username=username, admin_password=password, config=config)


class SetupStateMachine:
    """UNPROVISIONED -> PROVISIONED, exactly once.

    provision() writes config, then the admin record, then the marker. The marker goes
    last so an interrupted setup stays UNPROVISIONED and a retry overwrites the rest.
    """

    def __init__(
        self,
        *,
        marker: SetupMarker,
        env_store: EnvFileStore,
        identity_store: IdentityStore,
        password_hasher: Callable[[str], str],
        min_password_length: int = 8,
        clock: Callable[[], datetime] = lambda: datetime.now(UTC),
    ) -> None:
        self._marker = marker
        self._env = env_store
        self._identity = identity_store
        self._hash = password_hasher
        self._min_password_length = min_password_length
        self._clock = clock
        self._lock = threading.Lock()

    @property
    def state(self) -> SetupState:
        return SetupState.PROVISIONED if self._marker.is_set() else SetupState.UNPROVISIONED

    @property
    def is_provisioned(self) -> bool:
        return self.state is SetupState.PROVISIONED

    @property
    def completed_at(self) -> datetime | None:
        return self._marker.completed_at()

    def require_provisioned(self) -> None:
        if not self.is_provisioned:
            raise NotProvisionedError()

    def require_unprovisioned(self) -> None:
        if self.is_provisioned:
            raise AlreadyProvisionedError()

    def provision(self, payload: Mapping[str, Any]) -> AdminIdentity:
        with self._lock:
            self.require_unprovisioned()
            request = split_provision_payload(
                payload, min_password_length=self._min_password_length
            )

            now = self._clock()
            self._env.upsert_many(request.config)
            identity = self._identity.create(
                request.admin_username, self._hash(request.admin_password), now
            )
            self._marker.mark(now)

        logger.info(
            "Provisioning complete for admin %r (%d config keys)",
            identity.username,
            len(request.config),
        )
        return identity
