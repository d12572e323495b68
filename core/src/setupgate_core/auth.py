from __future__ import annotations

from typing import Final

from fastapi import Request, Security
from fastapi.security import APIKeyHeader, APIKeyQuery

from setupgate_core.errors import UnauthorizedError
from setupgate_core.runtime import get_runtime
from setupgate_core.sessions import Session

SESSION_HEADER: Final[str] = "X-Session-Id"
SESSION_QUERY: Final[str] = "session"

_session_header_scheme = APIKeyHeader(name=SESSION_HEADER, auto_error=False)
_session_query_scheme = APIKeyQuery(name=SESSION_QUERY, auto_error=False)


def pick_session_token(header_token: str | None, query_token: str | None) -> str | None:
    """Header first, then query; blank values count as absent."""

    for candidate in (header_token, query_token):
        if candidate and candidate.strip():
            return candidate.strip()
    return None


def extract_session_token(request: Request) -> str | None:
    return pick_session_token(
        request.headers.get(SESSION_HEADER), request.query_params.get(SESSION_QUERY)
    )


async def require_session(
    request: Request,
    header_token: str | None = Security(_session_header_scheme),  # noqa: B008
    query_token: str | None = Security(_session_query_scheme),  # noqa: B008
) -> Session:
    """Require a live admin session for protected endpoints.

    Accepts either:
    - X-Session-Id: <token>
    - ?session=<token>

    Before setup has finished there is nothing to log into, so this fails with
    not_provisioned rather than unauthorized.
    """

    runtime = get_runtime(request)
    runtime.setup.require_provisioned()

    provided = pick_session_token(header_token, query_token)
    if provided is None:
        raise UnauthorizedError("Missing session token")

    session = runtime.sessions.get(provided)
    if session is None:
        raise UnauthorizedError("Invalid or expired session")
    return session
