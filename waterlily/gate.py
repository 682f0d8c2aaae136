"""
Edge request gate.

A single stateless decision per request, made before routing: the session
cookie is only checked for presence here.  Pages that act on the identity
verify the cookie themselves.
"""

import logging
from typing import Optional, Sequence

from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request
from starlette.responses import RedirectResponse

from . import config

logger = logging.getLogger(__name__)

# Paths the gate looks at at all
GATED_PREFIXES = ("/dashboard", "/surveys", "/auth")
PROTECTED_PREFIXES = ("/dashboard", "/surveys/create", "/surveys/edit")
AUTH_PAGES_PREFIX = "/auth/"

SIGN_IN_PATH = "/auth/signin"
SIGNED_IN_HOME = "/dashboard"


def _under(path: str, prefix: str) -> bool:
    return path == prefix or path.startswith(prefix.rstrip("/") + "/")


def gate_redirect(
    path: str,
    has_session: bool,
    protected_prefixes: Sequence[str] = PROTECTED_PREFIXES,
) -> Optional[str]:
    """Where to send the request instead, or None to let it through."""
    if not any(_under(path, prefix) for prefix in GATED_PREFIXES):
        return None
    if not has_session and any(path.startswith(prefix) for prefix in protected_prefixes):
        return SIGN_IN_PATH
    if has_session and path.startswith(AUTH_PAGES_PREFIX):
        return SIGNED_IN_HOME
    return None


class SessionGateMiddleware(BaseHTTPMiddleware):
    def __init__(self, app, cookie_name: str = None) -> None:
        super().__init__(app)
        self.cookie_name = cookie_name or config.SESSION_COOKIE_NAME

    async def dispatch(self, request: Request, call_next):
        has_session = bool(request.cookies.get(self.cookie_name))
        target = gate_redirect(request.url.path, has_session)
        if target is not None:
            logger.debug("Gate redirect %s -> %s", request.url.path, target)
            return RedirectResponse(url=target, status_code=307)
        return await call_next(request)
