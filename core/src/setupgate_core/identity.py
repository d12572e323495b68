from __future__ import annotations

import hashlib
import hmac
import json
import re
import secrets
from datetime import datetime
from pathlib import Path
from typing import Final

from pydantic import BaseModel, ConfigDict, Field, ValidationError

from setupgate_core.errors import CorruptDataError, NotProvisionedError, StorageError
from setupgate_core.fileio import atomic_write_text

PBKDF2_SCHEME: Final[str] = "pbkdf2_sha256"
DEFAULT_PBKDF2_ITERATIONS: Final[int] = 600_000

_LEGACY_SHA256_RE = re.compile(r"[0-9a-f]{64}")


class AdminIdentity(BaseModel):
    """The single administrator account.

    Serialized with the camelCase keys used by existing admin.json files.
    """

    model_config = ConfigDict(populate_by_name=True, frozen=True)

    username: str = Field(min_length=1)
    password_hash: str = Field(alias="passwordHash", min_length=1)
    created_at: datetime = Field(alias="createdAt")


def hash_password(
    password: str, *, iterations: int = DEFAULT_PBKDF2_ITERATIONS, salt: str | None = None
) -> str:
    salt = salt or secrets.token_hex(16)
    digest = hashlib.pbkdf2_hmac(
        "sha256", password.encode("utf-8"), salt.encode("utf-8"), iterations
    )
    return f"{PBKDF2_SCHEME}${iterations}${salt}${digest.hex()}"


def check_password(password: str, stored_hash: str) -> bool:
    """Check `password` against a stored hash in constant time.

    Accepts the salted PBKDF2 format written by hash_password and the bare SHA-256
    hex digest written by earlier installs.
    """

    if stored_hash.startswith(f"{PBKDF2_SCHEME}$"):
        parts = stored_hash.split("$")
        if len(parts) != 4 or not parts[1].isdigit():
            raise CorruptDataError("Malformed password hash in admin record")
        _, iterations, salt, expected = parts
        candidate = hash_password(password, iterations=int(iterations), salt=salt)
        return hmac.compare_digest(candidate.split("$")[-1], expected)

    if _LEGACY_SHA256_RE.fullmatch(stored_hash):
        candidate = hashlib.sha256(password.encode("utf-8")).hexdigest()
        return hmac.compare_digest(candidate, stored_hash)

    raise CorruptDataError("Unrecognized password hash format in admin record")


class IdentityStore:
    def __init__(self, path: Path) -> None:
        self._path = path

    @property
    def path(self) -> Path:
        return self._path

    def create(self, username: str, password_hash: str, created_at: datetime) -> AdminIdentity:
        """Write the admin record, replacing any partial record from an aborted setup.

        Callers gate this on the setup state; the store itself does not.
        """

        identity = AdminIdentity(
            username=username, password_hash=password_hash, created_at=created_at
        )
        payload = identity.model_dump(mode="json", by_alias=True)
        try:
            atomic_write_text(self._path, json.dumps(payload, indent=2) + "\n")
        except OSError as exc:
            raise StorageError(f"Unable to write admin record: {exc.strerror or exc}") from exc
        return identity

    def load(self) -> AdminIdentity:
        try:
            with self._path.open("r", encoding="utf-8") as f:
                raw = json.load(f)
        except FileNotFoundError as exc:
            raise NotProvisionedError("Admin account has not been created") from exc
        except (json.JSONDecodeError, UnicodeDecodeError) as exc:
            raise CorruptDataError("Admin record is not valid JSON") from exc
        except OSError as exc:
            raise StorageError(f"Unable to read admin record: {exc.strerror or exc}") from exc

        try:
            return AdminIdentity.model_validate(raw)
        except ValidationError as exc:
            raise CorruptDataError("Admin record is missing required fields") from exc

    def verify(self, username: str, password: str) -> bool:
        identity = self.load()
        # Both comparisons always run.
        user_ok = hmac.compare_digest(username.encode("utf-8"), identity.username.encode("utf-8"))
        password_ok = check_password(password, identity.password_hash)
        return user_ok and password_ok
