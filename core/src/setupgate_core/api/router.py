from __future__ import annotations

from fastapi import APIRouter

from setupgate_core.api.env_config import router as env_config_router
from setupgate_core.api.setup import router as setup_router

router = APIRouter()

router.include_router(setup_router)
router.include_router(env_config_router)
