"""Per-request access control based on the session cookie."""

from dataclasses import dataclass
from enum import Enum
from typing import Optional

from starlette.datastructures import Headers
from starlette.responses import PlainTextResponse, RedirectResponse
from starlette.types import ASGIApp, Receive, Scope, Send

from simple_docker_manager.managers.session_manager import SessionManager
from simple_docker_manager.models.sessions import Session
from simple_docker_manager.utils import get_logger

logger = get_logger(__name__)

SESSION_COOKIE = "session_id"
LOGIN_PATH = "/login"
LOGOUT_PATH = "/logout"
API_PREFIX = "/api/"

EXEMPT_PREFIXES = ("/health", "/ready", "/static/")
EXEMPT_PATHS = frozenset({LOGIN_PATH, LOGOUT_PATH})


class GateOutcome(str, Enum):
    """What to do with a request."""

    ALLOW = "allow"
    REDIRECT = "redirect"
    UNAUTHORIZED = "unauthorized"


@dataclass
class GateDecision:
    """Outcome of evaluating one request, with the session when there is one."""

    outcome: GateOutcome
    session: Optional[Session] = None


def extract_cookie(cookie_header: Optional[str], name: str = SESSION_COOKIE) -> Optional[str]:
    """
    Pull one cookie value out of a raw Cookie header.

    Args:
        cookie_header: Raw header value ("a=1; session_id=abc")
        name: Cookie name, matched exactly

    Returns:
        The first matching non-empty value, or None
    """
    if not cookie_header:
        return None

    for part in cookie_header.split(";"):
        key, sep, value = part.strip().partition("=")
        if sep and key == name:
            return value or None

    return None


def is_exempt(path: str) -> bool:
    """Paths reachable without a session."""
    return path in EXEMPT_PATHS or path.startswith(EXEMPT_PREFIXES)


async def evaluate_request(
    path: str,
    cookie_header: Optional[str],
    sessions: SessionManager,
    auth_enabled: bool = True,
) -> GateDecision:
    """
    Decide whether a request may proceed.

    Args:
        path: Request path
        cookie_header: Raw Cookie header, if any
        sessions: Session store (a successful lookup refreshes the session)
        auth_enabled: Whether authentication is enforced at all

    Returns:
        GateDecision
    """
    if is_exempt(path) or not auth_enabled:
        return GateDecision(GateOutcome.ALLOW)

    session_id = extract_cookie(cookie_header)
    if session_id:
        session = await sessions.get(session_id)
        if session is not None:
            return GateDecision(GateOutcome.ALLOW, session)

    if path.startswith(API_PREFIX):
        return GateDecision(GateOutcome.UNAUTHORIZED)
    return GateDecision(GateOutcome.REDIRECT)


class AccessGateMiddleware:
    """ASGI middleware applying evaluate_request to HTTP and WebSocket traffic."""

    def __init__(self, app: ASGIApp, sessions: SessionManager, auth_enabled: bool = True) -> None:
        self.app = app
        self.sessions = sessions
        self.auth_enabled = auth_enabled

    async def __call__(self, scope: Scope, receive: Receive, send: Send) -> None:
        if scope["type"] not in ("http", "websocket"):
            await self.app(scope, receive, send)
            return

        path = scope.get("path", "")
        headers = Headers(scope=scope)
        decision = await evaluate_request(
            path, headers.get("cookie"), self.sessions, self.auth_enabled
        )

        if decision.outcome is GateOutcome.ALLOW:
            scope.setdefault("state", {})["session"] = decision.session
            await self.app(scope, receive, send)
            return

        logger.debug("Request rejected", extra={"path": path, "outcome": decision.outcome.value})

        if scope["type"] == "websocket":
            # Close the handshake before it is accepted (403 to the client)
            await send({"type": "websocket.close", "code": 1008})
            return

        if decision.outcome is GateOutcome.UNAUTHORIZED:
            response = PlainTextResponse("Unauthorized", status_code=401)
        else:
            response = RedirectResponse(LOGIN_PATH, status_code=303)
        await response(scope, receive, send)
