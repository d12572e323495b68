from __future__ import annotations

import logging

from fastapi import APIRouter, Depends, Request
from pydantic import ValidationError
from starlette.concurrency import run_in_threadpool

from setupgate_core.api.models import LoginRequest, LoginResponse, SuccessResponse
from setupgate_core.api.payload import read_payload
from setupgate_core.auth import require_session
from setupgate_core.errors import InvalidEntryError, UnauthorizedError
from setupgate_core.runtime import get_runtime
from setupgate_core.sessions import Session

logger = logging.getLogger(__name__)

router = APIRouter(tags=["setup"])


@router.post("/setup", response_model=SuccessResponse)
async def setup(request: Request) -> SuccessResponse:
    runtime = get_runtime(request)
    # Checked before the body is read.
    runtime.setup.require_unprovisioned()

    payload = await read_payload(request)
    await run_in_threadpool(runtime.setup.provision, payload)
    runtime.reload.notify("initial setup")
    return SuccessResponse()


@router.post("/login", response_model=LoginResponse)
async def login(request: Request) -> LoginResponse:
    runtime = get_runtime(request)
    runtime.setup.require_provisioned()

    payload = await read_payload(request)
    try:
        creds = LoginRequest.model_validate(payload)
    except ValidationError as exc:
        raise InvalidEntryError("Username and password are required") from exc

    verified = await run_in_threadpool(
        runtime.identity_store.verify, creds.username, creds.password
    )
    if not verified:
        logger.warning("Failed login attempt for %r", creds.username)
        raise UnauthorizedError("Invalid credentials")

    session = runtime.sessions.create(creds.username)
    logger.info("Admin %r logged in", creds.username)
    return LoginResponse(session_id=session.token)


@router.post("/logout", response_model=SuccessResponse)
async def logout(request: Request, session: Session = Depends(require_session)) -> SuccessResponse:
    get_runtime(request).sessions.revoke(session.token)
    logger.info("Admin %r logged out", session.username)
    return SuccessResponse()
