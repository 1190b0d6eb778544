"""Session tokens, the ``require_auth`` decorator and the auth cookie."""
from __future__ import annotations

import hashlib
import secrets
from functools import wraps

from flask import Response, current_app, g, request
from itsdangerous import BadSignature, SignatureExpired, URLSafeTimedSerializer
from werkzeug.security import check_password_hash, generate_password_hash

from .errors import Unauthorized
from .extensions import db
from .models import User, UserSession, utc_now

MIN_PASSWORD_LENGTH = 6


def hash_password(password: str) -> str:
    return generate_password_hash(password)


def verify_password(password_hash: str, password: str) -> bool:
    return check_password_hash(password_hash, password)


def hash_token(token: str) -> str:
    """SHA-256 of the token; only the hash is stored with the session."""
    return hashlib.sha256(token.encode("utf-8")).hexdigest()


def _serializer() -> URLSafeTimedSerializer:
    return URLSafeTimedSerializer(current_app.config["SECRET_KEY"], salt="auth-token")


def _build_token(payload: dict[str, object]) -> str:
    return _serializer().dumps(payload)


def create_session(
    user: User,
    device: str | None = None,
    ip: str | None = None,
    location: str | None = None,
) -> tuple[UserSession, str]:
    """Issue a token for ``user`` and add its session row to the current transaction."""
    token = _build_token({"user_id": user.user_id, "nonce": secrets.token_urlsafe(12)})
    session = UserSession(
        user_id=user.user_id,
        device=device or "Unknown Device",
        ip=ip or "Unknown",
        location=location or "Unknown",
        token_hash=hash_token(token),
        last_active=utc_now(),
    )
    db.session.add(session)
    return session, token


def read_request_token() -> str | None:
    """Token from an ``Authorization: Bearer`` header, falling back to the auth cookie."""
    auth_header = request.headers.get("Authorization", "")
    if auth_header.startswith("Bearer ") and auth_header[7:]:
        return auth_header[7:]
    return request.cookies.get(current_app.config["AUTH_COOKIE_NAME"]) or None


def resolve_session(token: str) -> UserSession | None:
    """Return the live session for ``token``; None if it is forged, expired or revoked."""
    try:
        payload = _serializer().loads(token, max_age=current_app.config["TOKEN_MAX_AGE"])
    except SignatureExpired:
        current_app.logger.info("Rejected expired auth token")
        return None
    except BadSignature:
        current_app.logger.warning("Rejected auth token with bad signature")
        return None

    session = UserSession.query.filter_by(token_hash=hash_token(token)).first()
    if session is None or session.user_id != payload.get("user_id"):
        return None
    return session


def require_auth(f):
    """Require a valid session; sets ``g.current_user`` and ``g.current_session``."""

    @wraps(f)
    def decorated_function(*args, **kwargs):
        token = read_request_token()
        if not token:
            raise Unauthorized("not authorized, no token")

        session = resolve_session(token)
        if session is None:
            raise Unauthorized("not authorized, token failed")

        session.last_active = utc_now()
        db.session.commit()

        g.current_user = session.user
        g.current_session = session
        return f(*args, **kwargs)

    return decorated_function


def set_auth_cookie(response: Response, token: str) -> Response:
    response.set_cookie(
        current_app.config["AUTH_COOKIE_NAME"],
        token,
        max_age=current_app.config["TOKEN_MAX_AGE"],
        httponly=True,
        secure=current_app.config["AUTH_COOKIE_SECURE"],
        samesite="Strict",
    )
    return response


def clear_auth_cookie(response: Response) -> Response:
    response.delete_cookie(
        current_app.config["AUTH_COOKIE_NAME"],
        httponly=True,
        secure=current_app.config["AUTH_COOKIE_SECURE"],
        samesite="Strict",
    )
    return response
