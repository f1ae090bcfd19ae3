"""Inbound bearer-token middleware for FastAPI.

Callers present the same platform access token our poller uses (or another
token for the same account).  The token is accepted only if
``TokenValidator`` confirms it against the platform; the accepted context
is stored on ``request.state.auth`` for ``get_current_session``.
"""

from __future__ import annotations

import logging

from fastapi import Request, Response
from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint

from src.dependencies import AuthContext
from src.leaderboard.credentials import TokenValidator
from src.leaderboard.tokens import strip_bearer

logger = logging.getLogger("squadboard.auth")

# Paths that do not require authentication
PUBLIC_PATHS: set[str] = {
    "/health",
    "/docs",
    "/openapi.json",
    "/redoc",
}


def _is_public(path: str) -> bool:
    return path in PUBLIC_PATHS or path.startswith("/docs") or path.startswith("/redoc")


def _unauthorized() -> Response:
    return Response(
        content='{"error":"Unauthorized"}',
        status_code=401,
        media_type="application/json",
    )


class SessionAuthMiddleware(BaseHTTPMiddleware):
    """Reject requests whose bearer token the platform does not tie to our session."""

    async def dispatch(
        self, request: Request, call_next: RequestResponseEndpoint
    ) -> Response:
        if _is_public(request.url.path):
            return await call_next(request)

        # OPTIONS requests pass through (CORS preflight)
        if request.method == "OPTIONS":
            return await call_next(request)

        validator: TokenValidator | None = getattr(
            request.app.state, "token_validator", None
        )
        if validator is None:
            return Response(
                content='{"error":"Service starting"}',
                status_code=503,
                media_type="application/json",
            )

        header = request.headers.get("Authorization")
        if not await validator.is_valid(header):
            return _unauthorized()

        request.state.auth = AuthContext(
            subject_user_id=validator.subject_user_id or "",
            token=strip_bearer(header),
        )
        return await call_next(request)
