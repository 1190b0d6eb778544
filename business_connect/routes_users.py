"""Identity routes: registration, login/logout, profile, sessions and activity feed."""
from __future__ import annotations

import re

from flask import Blueprint, current_app, g, jsonify, request
from sqlalchemy import or_
from sqlalchemy.exc import IntegrityError, SQLAlchemyError

from .activity import recent_activities, record_activity
from .auth import (MIN_PASSWORD_LENGTH, clear_auth_cookie, create_session,
                   hash_password, read_request_token, require_auth,
                   resolve_session, set_auth_cookie, verify_password)
from .errors import json_body
from .extensions import db
from .models import User, UserSession

bp_users = Blueprint("users", __name__)

USERNAME_RE = re.compile(r"^[a-zA-Z0-9_]+$")
SELF_SERVICE_ROLES = ("user", "business_owner")
THEMES = ("light", "dark", "system")
NOTIFICATION_CHANNELS = ("email", "push", "sms")


def _text(payload: dict, key: str) -> str:
    value = payload.get(key)
    return value.strip() if isinstance(value, str) else ""


def _invalid(message: str, error: str = "invalid_payload") -> tuple[dict[str, str], int]:
    # Drop any half-applied profile edits along with the refusal.
    db.session.rollback()
    return jsonify({"error": error, "message": message}), 400


def _database_error(exc: SQLAlchemyError, message: str) -> tuple[dict[str, str], int]:
    db.session.rollback()
    current_app.logger.exception(message, exc_info=exc)
    return jsonify({"error": "database_error"}), 500


def _auth_response(user: User, token: str, status: int):
    response = jsonify({"token": token, "user": user.to_dict()})
    response.status_code = status
    return set_auth_cookie(response, token)


@bp_users.post("/register")
def register_user():
    """Register a new user or business owner and start a session.
    ---
    tags:
      - Authentication
    parameters:
      - name: body
        in: body
        required: true
        schema:
          type: object
          properties:
            name:
              type: string
            username:
              type: string
            email:
              type: string
            password:
              type: string
            role:
              type: string
              enum: [user, business_owner]
          required:
            - name
            - email
            - password
    responses:
      201:
        description: User registered, token issued
      400:
        description: Invalid payload or user already exists
      500:
        description: Server error
    """
    payload = json_body()

    name = _text(payload, "name")
    email = _text(payload, "email").lower()
    username = _text(payload, "username").lower() or None
    password = payload.get("password") if isinstance(payload.get("password"), str) else ""
    role = _text(payload, "role").lower() or "user"

    if not name or not email or not password:
        return _invalid("name, email, and password are required")
    if "@" not in email:
        return _invalid("email address is not valid", "invalid_email")
    if len(password) < MIN_PASSWORD_LENGTH:
        return _invalid(f"password must be at least {MIN_PASSWORD_LENGTH} characters", "invalid_password")
    if username is not None and not USERNAME_RE.match(username):
        return _invalid(
            "Username can only contain letters, numbers, and underscores", "invalid_username"
        )
    if role not in SELF_SERVICE_ROLES:
        return _invalid("role must be 'user' or 'business_owner'", "invalid_role")

    conditions = [User.email == email]
    if username:
        conditions.append(User.username == username)
    if User.query.filter(or_(*conditions)).first():
        return _invalid("User with this email or username already exists", "user_exists")

    try:
        user = User(
            name=name,
            username=username,
            email=email,
            password_hash=hash_password(password),
            role=role,
        )
        db.session.add(user)
        db.session.flush()

        _, token = create_session(
            user,
            device=_text(payload, "device"),
            ip=_text(payload, "ip") or request.remote_addr,
            location=_text(payload, "location"),
        )
        db.session.commit()
    except IntegrityError:
        db.session.rollback()
        return _invalid("User with this email or username already exists", "user_exists")
    except SQLAlchemyError as exc:
        return _database_error(exc, "Failed to register new user")

    current_app.logger.info("Registered user %s with role %s", user.user_id, user.role)
    return _auth_response(user, token, 201)


@bp_users.post("/login")
def login():
    """Authenticate by email or username and password; records a session.
    ---
    tags:
      - Authentication
    parameters:
      - name: body
        in: body
        required: true
        schema:
          type: object
          properties:
            email:
              type: string
              description: Email address or username
            password:
              type: string
            device:
              type: string
            ip:
              type: string
            location:
              type: string
          required:
            - email
            - password
    responses:
      200:
        description: Login successful, returns token and sets the auth cookie
      400:
        description: Missing credentials
      401:
        description: Invalid credentials
    """
    payload = json_body()

    identifier = (_text(payload, "email") or _text(payload, "username")).lower()
    password = payload.get("password") if isinstance(payload.get("password"), str) else ""

    if not identifier or not password:
        return _invalid("email and password are required")

    user = User.query.filter(or_(User.email == identifier, User.username == identifier)).first()
    if user is None or not verify_password(user.password_hash, password):
        return (
            jsonify({"error": "unauthorized", "message": "Invalid email/username or password"}),
            401,
        )

    try:
        _, token = create_session(
            user,
            device=_text(payload, "device"),
            ip=_text(payload, "ip") or request.remote_addr,
            location=_text(payload, "location"),
        )
        db.session.commit()
    except SQLAlchemyError as exc:
        return _database_error(exc, "Failed to record login session")

    return _auth_response(user, token, 200)


@bp_users.post("/logout")
def logout():
    """End the current session (if any) and clear the auth cookie.
    ---
    tags:
      - Authentication
    responses:
      200:
        description: Logged out
    """
    token = read_request_token()
    if token:
        session = resolve_session(token)
        if session is not None:
            try:
                db.session.delete(session)
                db.session.commit()
            except SQLAlchemyError as exc:
                return _database_error(exc, "Failed to end session")

    response = jsonify({"message": "Logged out successfully"})
    return clear_auth_cookie(response)


@bp_users.get("/profile")
@require_auth
def get_profile() -> tuple[dict[str, object], int]:
    """Return the caller's profile."""
    return jsonify(g.current_user.to_dict()), 200


@bp_users.put("/profile")
@require_auth
def update_profile() -> tuple[dict[str, object], int]:
    """Update name, username, phone, location, website, bio and preferences.
    ---
    tags:
      - Users
    responses:
      200:
        description: Updated profile
      400:
        description: Invalid payload or username taken
    """
    user = g.current_user
    payload = json_body()

    if "name" in payload:
        name = _text(payload, "name")
        if not name:
            return _invalid("name cannot be blank")
        user.name = name

    if "username" in payload:
        username = _text(payload, "username").lower() or None
        if username is not None and not USERNAME_RE.match(username):
            return _invalid(
                "Username can only contain letters, numbers, and underscores", "invalid_username"
            )
        if username and User.query.filter(User.username == username, User.user_id != user.user_id).first():
            return _invalid("username is already in use", "username_taken")
        user.username = username

    for key in ("phone", "location", "website", "bio"):
        if key in payload:
            setattr(user, key, _text(payload, key))

    if "preferences" in payload:
        preferences = payload.get("preferences")
        if not isinstance(preferences, dict):
            return _invalid("preferences must be an object")
        merged = user.merged_preferences()
        if "theme" in preferences:
            if preferences["theme"] not in THEMES:
                return _invalid("theme must be one of: light, dark, system", "invalid_theme")
            merged["theme"] = preferences["theme"]
        notifications = preferences.get("notifications") or {}
        if not isinstance(notifications, dict):
            return _invalid("notifications must be an object")
        for channel in NOTIFICATION_CHANNELS:
            if channel in notifications:
                merged["notifications"][channel] = bool(notifications[channel])
        user.preferences = merged

    record_activity(user, "profile_update", f"{user.name} updated their profile")

    try:
        db.session.commit()
    except IntegrityError:
        db.session.rollback()
        return _invalid("username is already in use", "username_taken")
    except SQLAlchemyError as exc:
        return _database_error(exc, "Failed to update profile")

    return jsonify(user.to_dict()), 200


@bp_users.put("/profile/bio")
@require_auth
def update_bio() -> tuple[dict[str, str], int]:
    """Replace the caller's bio."""
    user = g.current_user
    payload = json_body()
    if "bio" not in payload:
        return _invalid("bio is required")

    user.bio = _text(payload, "bio")
    record_activity(user, "profile_update", f"{user.name} updated their bio")

    try:
        db.session.commit()
    except SQLAlchemyError as exc:
        return _database_error(exc, "Failed to update bio")

    return jsonify({"bio": user.bio}), 200


@bp_users.put("/profile/personal-info")
@require_auth
def update_personal_info() -> tuple[dict[str, str], int]:
    """Update email, phone, location and website; email must stay unique.
    ---
    tags:
      - Users
    responses:
      200:
        description: Updated contact details
      400:
        description: Email already in use
    """
    user = g.current_user
    payload = json_body()

    if "email" in payload:
        email = _text(payload, "email").lower()
        if not email or "@" not in email:
            return _invalid("email address is not valid", "invalid_email")
        if email != user.email:
            if User.query.filter(User.email == email).first():
                return _invalid("Email is already in use", "email_in_use")
            user.email = email

    for key in ("phone", "location", "website"):
        if key in payload:
            setattr(user, key, _text(payload, key))

    record_activity(user, "profile_update", f"{user.name} updated their personal information")

    try:
        db.session.commit()
    except IntegrityError:
        db.session.rollback()
        return _invalid("Email is already in use", "email_in_use")
    except SQLAlchemyError as exc:
        return _database_error(exc, "Failed to update personal information")

    return (
        jsonify({
            "email": user.email,
            "phone": user.phone,
            "location": user.location,
            "website": user.website,
        }),
        200,
    )


@bp_users.get("/sessions")
@require_auth
def list_sessions() -> tuple[list[dict[str, object]], int]:
    """Active sessions of the caller; the calling one is flagged ``isCurrent``."""
    current_hash = g.current_session.token_hash
    sessions = UserSession.query.filter(UserSession.user_id == g.current_user.user_id).all()
    return jsonify([session.to_dict(current_hash) for session in sessions]), 200


@bp_users.delete("/sessions/<int:session_id>")
@require_auth
def revoke_session(session_id: int) -> tuple[dict[str, str], int]:
    """Revoke another of the caller's sessions.
    ---
    tags:
      - Users
    responses:
      200:
        description: Session revoked
      400:
        description: Attempt to revoke the calling session
      404:
        description: No such session for the caller
    """
    session = UserSession.query.filter_by(
        session_id=session_id, user_id=g.current_user.user_id
    ).first()
    if session is None:
        return jsonify({"error": "session_not_found", "message": "Session not found"}), 404

    if session.session_id == g.current_session.session_id:
        return _invalid("Cannot revoke current session", "cannot_revoke_current")

    try:
        db.session.delete(session)
        db.session.commit()
    except SQLAlchemyError as exc:
        return _database_error(exc, "Failed to revoke session")

    return jsonify({"message": "Session revoked successfully"}), 200


@bp_users.get("/activities")
@require_auth
def list_activities() -> tuple[list[dict[str, object]], int]:
    """The caller's ten most recent activities, newest first."""
    activities = recent_activities(g.current_user.user_id)
    return jsonify([activity.to_dict() for activity in activities]), 200
