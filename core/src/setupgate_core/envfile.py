from __future__ import annotations

import logging
import threading
from collections.abc import Mapping
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Literal

from setupgate_core.errors import CorruptDataError, InvalidEntryError, StorageError
from setupgate_core.fileio import atomic_write_text

logger = logging.getLogger(__name__)

LineKind = Literal["blank", "comment", "entry", "opaque"]
DuplicatePolicy = Literal["first", "all"]


@dataclass(frozen=True)
class EnvLine:
    """One physical line of an env file.

    `raw` is what gets written back; untouched lines are re-emitted byte for byte.
    """

    kind: LineKind
    raw: str
    key: str | None = None
    value: str | None = None


@dataclass(frozen=True)
class EnvDocument:
    lines: tuple[EnvLine, ...]

    def entries(self) -> dict[str, str]:
        # Last occurrence wins, same as a shell sourcing the file.
        out: dict[str, str] = {}
        for line in self.lines:
            if line.kind == "entry" and line.key is not None:
                out[line.key] = line.value or ""
        return out

    def render(self) -> str:
        if not self.lines:
            return ""
        return "\n".join(line.raw for line in self.lines) + "\n"


def parse_env_line(raw: str) -> EnvLine:
    stripped = raw.strip()
    if not stripped:
        return EnvLine(kind="blank", raw=raw)
    if stripped.startswith("#"):
        return EnvLine(kind="comment", raw=raw)
    if "=" not in stripped:
        return EnvLine(kind="opaque", raw=raw)

    key, value = raw.split("=", 1)
    key = key.strip()
    if not key:
        return EnvLine(kind="opaque", raw=raw)
    return EnvLine(kind="entry", raw=raw, key=key, value=value.strip())


def parse_env_text(text: str) -> EnvDocument:
    if not text:
        return EnvDocument(lines=())
    parts = text.split("\n")
    if parts and parts[-1] == "":
        parts.pop()
    return EnvDocument(lines=tuple(parse_env_line(p) for p in parts))


def coerce_env_value(value: Any) -> str:
    """Render a JSON scalar as env-file text."""

    if value is None:
        return ""
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, (str, int, float)):
        return str(value)
    raise InvalidEntryError(f"Unsupported value type: {type(value).__name__}")


def validate_entry(key: Any, value: str) -> None:
    if not isinstance(key, str) or not key:
        raise InvalidEntryError("Config keys must be non-empty strings")
    if key != key.strip():
        raise InvalidEntryError(f"Config key has surrounding whitespace: {key!r}")
    if "=" in key or key.startswith("#"):
        raise InvalidEntryError(f"Invalid config key: {key!r}")
    if "\n" in key or "\r" in key:
        raise InvalidEntryError("Config keys must not contain line breaks")
    if "\n" in value or "\r" in value:
        raise InvalidEntryError(f"Value for {key} must not contain line breaks")
    if value != value.strip():
        # Values are trimmed on read; padding would not survive a round trip.
        raise InvalidEntryError(f"Value for {key} has surrounding whitespace")


def normalize_updates(updates: Mapping[str, Any]) -> dict[str, str]:
    """Coerce and validate a whole update set before anything touches disk."""

    out: dict[str, str] = {}
    for key, raw_value in updates.items():
        value = coerce_env_value(raw_value)
        validate_entry(key, value)
        out[key] = value
    return out


def apply_updates(
    doc: EnvDocument,
    updates: Mapping[str, str],
    *,
    duplicates: DuplicatePolicy = "first",
) -> EnvDocument:
    """Return a new document with `updates` upserted.

    Existing keys are rewritten in place (first occurrence, or every occurrence with
    duplicates="all"); unknown keys are appended in update order.
    """

    lines = list(doc.lines)
    seen: set[str] = set()
    # Appended lines follow the file's CRLF convention if it has one.
    crlf = any(line.raw.endswith("\r") for line in lines)

    for idx, line in enumerate(lines):
        if line.kind != "entry" or line.key not in updates:
            continue
        if line.key in seen and duplicates == "first":
            continue
        seen.add(line.key)
        value = updates[line.key]
        eol = "\r" if line.raw.endswith("\r") else ""
        lines[idx] = EnvLine(
            kind="entry", raw=f"{line.key}={value}{eol}", key=line.key, value=value
        )

    for key, value in updates.items():
        if key not in seen:
            eol = "\r" if crlf else ""
            lines.append(EnvLine(kind="entry", raw=f"{key}={value}{eol}", key=key, value=value))

    return EnvDocument(lines=tuple(lines))


class EnvFileStore:
    """Key-value view over a line-oriented env file.

    Reads and read-modify-write cycles are serialized per store instance; concurrent
    edits from other processes are not reconciled.
    """

    def __init__(self, path: Path, *, duplicates: DuplicatePolicy = "first") -> None:
        self._path = path
        self._duplicates = duplicates
        self._lock = threading.Lock()

    @property
    def path(self) -> Path:
        return self._path

    def _load(self, *, missing_ok: bool) -> EnvDocument:
        try:
            # newline="" keeps CRLF endings intact on lines we do not rewrite.
            with self._path.open("r", encoding="utf-8", newline="") as f:
                text = f.read()
        except FileNotFoundError as exc:
            if missing_ok:
                return EnvDocument(lines=())
            raise StorageError(f"Env file not found: {self._path}") from exc
        except UnicodeDecodeError as exc:
            raise CorruptDataError(f"Env file is not valid UTF-8: {self._path}") from exc
        except OSError as exc:
            raise StorageError(f"Unable to read env file: {exc.strerror or exc}") from exc
        return parse_env_text(text)

    def read_document(self) -> EnvDocument:
        with self._lock:
            return self._load(missing_ok=False)

    def read_all(self) -> dict[str, str]:
        return self.read_document().entries()

    def upsert_many(self, updates: Mapping[str, Any]) -> None:
        normalized = normalize_updates(updates)

        with self._lock:
            doc = self._load(missing_ok=True)
            patched = apply_updates(doc, normalized, duplicates=self._duplicates)
            try:
                atomic_write_text(self._path, patched.render())
            except OSError as exc:
                raise StorageError(f"Unable to write env file: {exc.strerror or exc}") from exc

        logger.info("Env file updated (%s): %s", self._path, ", ".join(sorted(normalized)))
