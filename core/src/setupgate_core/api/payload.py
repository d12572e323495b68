from __future__ import annotations

import json
from typing import Any

from fastapi import Request
from starlette.datastructures import UploadFile

from setupgate_core.errors import InvalidEntryError

_FORM_TYPES = ("application/x-www-form-urlencoded", "multipart/form-data")


async def read_payload(request: Request) -> dict[str, Any]:
    """Read a flat key/value body sent as JSON or as a submitted HTML form."""

    content_type = (request.headers.get("content-type") or "").split(";")[0].strip().lower()

    if content_type in _FORM_TYPES:
        form = await request.form()
        out: dict[str, Any] = {}
        for key, value in form.multi_items():
            if isinstance(value, UploadFile):
                raise InvalidEntryError(f"File uploads are not accepted ({key})")
            out[key] = value
        return out

    raw = await request.body()
    if not raw.strip():
        return {}
    try:
        data = json.loads(raw)
    except (json.JSONDecodeError, UnicodeDecodeError) as exc:
        raise InvalidEntryError("Request body must be valid JSON") from exc
    if not isinstance(data, dict):
        raise InvalidEntryError("Request body must be a JSON object")
    return data
