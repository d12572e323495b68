from __future__ import annotations

import logging
from contextlib import asynccontextmanager
from logging.handlers import RotatingFileHandler

from fastapi import FastAPI, HTTPException, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from setupgate_core import __version__
from setupgate_core.api.models import fail
from setupgate_core.api.router import router as api_router
from setupgate_core.config import load_core_config, resolve_configured_paths
from setupgate_core.errors import SetupGateError
from setupgate_core.home import ensure_setupgate_layout, resolve_setupgate_home
from setupgate_core.runtime import build_runtime, get_runtime
from setupgate_core.ui.router import router as ui_router

logger = logging.getLogger(__name__)


def create_app() -> FastAPI:
    @asynccontextmanager
    async def _lifespan(app: FastAPI):
        home = resolve_setupgate_home()
        paths = ensure_setupgate_layout(home)
        config = load_core_config(paths)
        paths = resolve_configured_paths(paths, config)

        # Configure Logging
        log_path = paths.logs_dir / "core.log"
        file_handler = RotatingFileHandler(
            log_path,
            maxBytes=config.logging.max_size_mb * 1024 * 1024,
            backupCount=config.logging.backup_count,
            encoding="utf-8",
        )
        formatter = logging.Formatter("%(asctime)s - %(name)s - %(levelname)s - %(message)s")
        file_handler.setFormatter(formatter)

        root = logging.getLogger()
        root.setLevel(logging.INFO)
        # Avoid adding duplicate handlers if reloaded
        if not any(isinstance(h, RotatingFileHandler) for h in root.handlers):
            root.addHandler(file_handler)

        runtime = build_runtime(paths, config)
        app.state.setupgate_home = home
        app.state.runtime = runtime

        logger.info("SetupGate Core starting up (state: %s)", runtime.setup.state.value)
        logger.info("Managing env file %s", paths.env_file)

        yield

    app = FastAPI(title="SetupGate Core", version=__version__, lifespan=_lifespan)

    @app.middleware("http")
    async def log_requests(request: Request, call_next):
        response = await call_next(request)
        logger.info(f"{request.method} {request.url.path} - {response.status_code}")
        return response

    @app.exception_handler(SetupGateError)
    async def _setupgate_error_handler(request: Request, exc: SetupGateError) -> JSONResponse:
        if exc.status_code >= 500:
            logger.error("%s %s failed: %s", request.method, request.url.path, exc.message)
        return JSONResponse(
            status_code=exc.status_code,
            content=fail(code=exc.code, message=exc.message),
        )

    @app.exception_handler(RequestValidationError)
    async def _validation_error_handler(
        request: Request, exc: RequestValidationError
    ) -> JSONResponse:
        return JSONResponse(
            status_code=422,
            content=fail(
                code="validation_error",
                message="Request validation failed",
                details=exc.errors(),
            ),
        )

    def _status_to_code(status_code: int) -> str:
        if status_code == 401:
            return "unauthorized"
        if status_code == 403:
            return "forbidden"
        if status_code == 404:
            return "not_found"
        if status_code == 405:
            return "method_not_allowed"
        if 400 <= status_code < 500:
            return "client_error"
        return "server_error"

    @app.exception_handler(HTTPException)
    async def _http_exception_handler(request: Request, exc: HTTPException) -> JSONResponse:
        return JSONResponse(
            status_code=exc.status_code,
            content=fail(code=_status_to_code(exc.status_code), message=str(exc.detail)),
        )

    @app.exception_handler(StarletteHTTPException)
    async def _starlette_http_exception_handler(
        request: Request, exc: StarletteHTTPException
    ) -> JSONResponse:
        return JSONResponse(
            status_code=exc.status_code,
            content=fail(
                code=_status_to_code(exc.status_code),
                message=exc.detail if isinstance(exc.detail, str) else "HTTP error",
            ),
        )

    @app.exception_handler(Exception)
    async def _unhandled_error_handler(request: Request, exc: Exception) -> JSONResponse:
        logger.exception("Unhandled error on %s %s", request.method, request.url.path)
        # Avoid leaking internals to the client.
        return JSONResponse(
            status_code=500,
            content=fail(code="internal_error", message="Internal server error"),
        )

    app.include_router(api_router)
    app.include_router(ui_router)

    @app.get("/healthz")
    async def healthz(request: Request) -> dict[str, str]:
        return {"status": "ok", "state": get_runtime(request).setup.state.value}

    return app
