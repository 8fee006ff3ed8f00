"""Session tokens: mint and verify the caller's identity.

- HS256 signed with AUTH_SECRET
- Claims: sub=user_id, iat, exp (now + SESSION_TTL_SECONDS), optional email/name
- Read from ``Authorization: Bearer <token>`` or the ``session-token`` cookie

Login flows are handled elsewhere; this module only turns a presented token
into a Viewer, or into nothing.
"""

import time
from dataclasses import dataclass
from uuid import UUID

import jwt
from fastapi import Request

from termsmith.config import get_settings
from termsmith.errors import ApiError, ApiErrorCode
from termsmith.logging import get_logger, set_user_id

logger = get_logger(__name__)

AUTHORIZATION_HEADER = "authorization"
SESSION_COOKIE = "session-token"
SESSION_TOKEN_ALGORITHM = "HS256"


@dataclass(frozen=True)
class Viewer:
    """Authenticated caller identity.

    Attributes:
        user_id: The caller's user ID (from the token's sub claim).
        email: Email claim, when present.
        name: Display name claim, when present.
    """

    user_id: UUID
    email: str | None = None
    name: str | None = None


def mint_session_token(
    user_id: UUID,
    *,
    email: str | None = None,
    name: str | None = None,
    ttl_seconds: int | None = None,
) -> str:
    """Sign a session token for user_id."""
    settings = get_settings()
    now = int(time.time())
    ttl = settings.session_ttl_seconds if ttl_seconds is None else ttl_seconds

    payload: dict = {"sub": str(user_id), "iat": now, "exp": now + ttl}
    if email is not None:
        payload["email"] = email
    if name is not None:
        payload["name"] = name

    return jwt.encode(payload, settings.auth_secret, algorithm=SESSION_TOKEN_ALGORITHM)


def verify_session_token(token: str) -> Viewer:
    """Verify a session token.

    Raises:
        jwt.InvalidTokenError: If the token is malformed, expired, badly
            signed, or its subject is not a UUID.
    """
    settings = get_settings()
    payload = jwt.decode(
        token,
        settings.auth_secret,
        algorithms=[SESSION_TOKEN_ALGORITHM],
        options={"require": ["sub", "exp", "iat"]},
    )

    try:
        user_id = UUID(payload["sub"])
    except (TypeError, ValueError) as e:
        raise jwt.InvalidTokenError("sub is not a UUID") from e

    return Viewer(user_id=user_id, email=payload.get("email"), name=payload.get("name"))


def extract_session_token(request: Request) -> str | None:
    """Bearer header wins over the cookie."""
    auth_header = request.headers.get(AUTHORIZATION_HEADER)
    if auth_header and auth_header.lower().startswith("bearer "):
        token = auth_header[7:].strip()
        if token:
            return token

    return request.cookies.get(SESSION_COOKIE) or None


def resolve_session(request: Request) -> Viewer | None:
    """Viewer for the request's session token, or None if there is no valid one.

    Failures are logged as ``auth_failure`` with a reason and never raised.
    """
    token = extract_session_token(request)
    if token is None:
        logger.info("auth_failure", reason="missing_token")
        return None

    try:
        viewer = verify_session_token(token)
    except jwt.ExpiredSignatureError:
        logger.info("auth_failure", reason="expired")
        return None
    except jwt.InvalidTokenError as e:
        logger.warning("auth_failure", reason="invalid_token", error_type=type(e).__name__)
        return None

    request.state.viewer = viewer
    set_user_id(str(viewer.user_id))
    return viewer


def get_viewer(request: Request) -> Viewer:
    """FastAPI dependency to get the authenticated viewer.

    Raises:
        ApiError: E_UNAUTHENTICATED when the request has no valid session.
    """
    viewer = resolve_session(request)
    if viewer is None:
        raise ApiError(ApiErrorCode.E_UNAUTHENTICATED, "Authentication required")
    return viewer

