"""
Flask application: the two user-mirror routes and session-based route gating.

Gating rules:
- `/dashboard...` and `/api...` need a live session, except the mirror routes
  under `/api/auth/`, which are called while the user is still signing in.
- A signed-in request to `/auth...` is sent back to `/`.

A session is found from an `Authorization: Bearer <token>` header or the
`kard-session` cookie.
"""

import logging
import uuid
from typing import Any, Dict, Optional

from flask import Flask, g, jsonify, redirect, request

from . import config as kard_config
from .auth import AuthService
from .constants import SESSION_COOKIE_NAME
from .db import KardDatabase
from .exceptions import DatabaseError
from .models import AuthSession
from .storage import LocalStorage

logger = logging.getLogger(__name__)

PROTECTED_PREFIXES = ("/dashboard", "/api")
PUBLIC_API_PREFIX = "/api/auth/"
AUTH_PAGE = "/auth"


def _request_token() -> Optional[str]:
    header = request.headers.get("Authorization", "")
    if header.startswith("Bearer "):
        return header[len("Bearer "):].strip() or None
    return request.cookies.get(SESSION_COOKIE_NAME)


def _path_matches(path: str, prefix: str) -> bool:
    return path == prefix or path.startswith(prefix + "/")


def _is_protected(path: str) -> bool:
    if path.startswith(PUBLIC_API_PREFIX):
        return False
    return any(_path_matches(path, prefix) for prefix in PROTECTED_PREFIXES)


def create_app(
    db: KardDatabase,
    auth: Optional[AuthService] = None,
    config: Optional[Dict[str, Any]] = None,
) -> Flask:
    """
    Build the Flask app around an open KardDatabase.

    Args:
        db: Database backing the routes. The caller owns its lifecycle.
        auth: Session validator; defaults to one over `db` with throwaway storage.
        config: Extra Flask config values.
    """
    app = Flask(__name__)
    app.config["SECRET_KEY"] = kard_config.settings.secret_key
    if config:
        app.config.update(config)

    if auth is None:
        auth = AuthService(db, LocalStorage.in_memory())
    app.extensions["kard_db"] = db
    app.extensions["kard_auth"] = auth

    @app.before_request
    def gate_routes():
        path = request.path
        protected = _is_protected(path)
        on_auth_page = _path_matches(path, AUTH_PAGE)
        if not protected and not on_auth_page:
            return None

        try:
            session = auth.validate_token(_request_token())
        except DatabaseError as e:
            logger.error(f"Session lookup failed for {path}: {e}")
            session = None
        g.auth_session = session

        if protected and session is None:
            return redirect(AUTH_PAGE)
        if on_auth_page and session is not None:
            return redirect("/")
        return None

    @app.route("/", methods=["GET"])
    def index():
        return jsonify({"app": "kard"}), 200

    @app.route(AUTH_PAGE, methods=["GET"])
    def auth_page():
        return jsonify({"view": "auth"}), 200

    @app.route("/dashboard", methods=["GET"])
    def dashboard():
        session: AuthSession = g.auth_session
        try:
            decks = db.list_decks(session.user_id)
        except DatabaseError as e:
            logger.error(f"Failed to load dashboard for {session.user_id}: {e}")
            return jsonify({"error": "Failed to load decks"}), 500
        return jsonify(
            {
                "user": {"id": str(session.user_id), "email": session.email},
                "decks": [
                    {
                        "id": str(deck.id),
                        "name": deck.name,
                        "description": deck.description,
                        "card_count": deck.card_count,
                    }
                    for deck in decks
                ],
            }
        ), 200

    @app.route("/api/auth/signin", methods=["POST"])
    def signin():
        try:
            data = request.get_json(force=True)
            user_id = uuid.UUID(str(data["userId"]))
            user = db.update_last_login(user_id)
        except Exception as e:
            logger.error(f"Signin error: {e}")
            return jsonify({"error": "Failed to update user"}), 500
        return jsonify({"user": user.model_dump(mode="json")}), 200

    @app.route("/api/auth/signup", methods=["POST"])
    def signup():
        try:
            data = request.get_json(force=True)
            user_id = uuid.UUID(str(data["id"]))
            user = db.create_user_record(user_id, data["email"])
        except Exception as e:
            logger.error(f"Signup error: {e}")
            return jsonify({"error": "Failed to create user"}), 500
        return jsonify({"user": user.model_dump(mode="json")}), 200

    return app
