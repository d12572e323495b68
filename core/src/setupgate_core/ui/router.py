from __future__ import annotations

from collections import OrderedDict
from pathlib import Path
from typing import Any

from fastapi import APIRouter, Request
from fastapi.responses import HTMLResponse, PlainTextResponse
from fastapi.templating import Jinja2Templates
from starlette.responses import Response

from setupgate_core.auth import SESSION_HEADER, extract_session_token
from setupgate_core.config import SetupField
from setupgate_core.runtime import get_runtime

BASE_DIR = Path(__file__).resolve().parent
TEMPLATES_DIR = BASE_DIR / "templates"

templates = Jinja2Templates(directory=str(TEMPLATES_DIR))

router = APIRouter(tags=["ui"])


def _group_fields(fields: list[SetupField]) -> list[tuple[str, list[SetupField]]]:
    sections: OrderedDict[str, list[SetupField]] = OrderedDict()
    for field in fields:
        sections.setdefault(field.section, []).append(field)
    return list(sections.items())


@router.get("/", response_class=HTMLResponse)
async def index(request: Request) -> HTMLResponse:
    runtime = get_runtime(request)

    if not runtime.setup.is_provisioned:
        context: dict[str, Any] = {
            "title": "Setup",
            "sections": _group_fields(runtime.config.setup.fields),
            "min_password_length": runtime.config.setup.min_password_length,
        }
        return templates.TemplateResponse(request, "setup.html", context)

    return templates.TemplateResponse(request, "login.html", {"title": "Admin Login"})


@router.get("/dashboard", response_class=HTMLResponse, response_model=None)
async def dashboard(request: Request) -> Response:
    runtime = get_runtime(request)
    token = extract_session_token(request)
    if not runtime.setup.is_provisioned or not runtime.sessions.is_valid(token):
        return PlainTextResponse("Unauthorized", status_code=401)

    return templates.TemplateResponse(
        request,
        "dashboard.html",
        {"title": "Admin Dashboard", "session_header": SESSION_HEADER},
    )
