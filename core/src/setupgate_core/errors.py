from __future__ import annotations


class SetupGateError(Exception):
    """Base class for errors surfaced to API callers.

    Each subclass carries the HTTP status and the machine-readable code used in the
    JSON error body; the message is human-readable and safe to show in the UI.
    """

    status_code: int = 500
    code: str = "internal_error"
    default_message: str = "Internal server error"

    def __init__(self, message: str | None = None) -> None:
        super().__init__(message or self.default_message)

    @property
    def message(self) -> str:
        return str(self)


class NotProvisionedError(SetupGateError):
    status_code = 400
    code = "not_provisioned"
    default_message = "Setup not complete"


class AlreadyProvisionedError(SetupGateError):
    status_code = 403
    code = "already_provisioned"
    default_message = "Setup complete"


class UnauthorizedError(SetupGateError):
    status_code = 401
    code = "unauthorized"
    default_message = "Unauthorized"


class InvalidEntryError(SetupGateError):
    status_code = 400
    code = "invalid_entry"
    default_message = "Invalid configuration entry"


class StorageError(SetupGateError):
    """Filesystem read/write failure (the IOError class of the taxonomy)."""

    status_code = 500
    code = "storage_error"
    default_message = "Storage I/O failure"


class CorruptDataError(SetupGateError):
    status_code = 500
    code = "corrupt_data"
    default_message = "Stored data is corrupt"
