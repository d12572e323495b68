from __future__ import annotations

import logging

from fastapi import APIRouter, Depends, Request
from starlette.concurrency import run_in_threadpool

from setupgate_core.api.models import ConfigResponse, SuccessResponse
from setupgate_core.api.payload import read_payload
from setupgate_core.auth import require_session
from setupgate_core.runtime import get_runtime
from setupgate_core.sessions import Session

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api", tags=["config"])


@router.get("/config", response_model=ConfigResponse)
async def get_config(
    request: Request, session: Session = Depends(require_session)
) -> ConfigResponse:
    runtime = get_runtime(request)
    entries = await run_in_threadpool(runtime.env_store.read_all)
    return ConfigResponse(config=entries)


@router.post("/config", response_model=SuccessResponse)
async def update_config(
    request: Request, session: Session = Depends(require_session)
) -> SuccessResponse:
    runtime = get_runtime(request)
    updates = await read_payload(request)

    await run_in_threadpool(runtime.env_store.upsert_many, updates)
    logger.info("Admin %r updated %d config keys", session.username, len(updates))

    # The write is committed; reload problems are logged by the notifier, never raised.
    runtime.reload.notify("config update")
    return SuccessResponse()
