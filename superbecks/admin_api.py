"""Privileged password-reset endpoint for the owner.

``POST /api/admin/reset-password`` resets either the owner's own password or
the shared cashier account's, after checking the caller's bearer token and
owner role.
"""

from __future__ import annotations

from typing import Any, Callable, Dict, Optional

from flask import Blueprint, Flask, current_app, jsonify, request
from werkzeug.exceptions import HTTPException

from superbecks.backend import Backend
from superbecks.config import ADMIN_HOST, ADMIN_PORT, BackendSettings, load_backend_settings
from superbecks.constant import (
    CASHIER_USER_SETTING_KEY,
    MIN_PASSWORD_LENGTH,
    RESET_MODES,
    ROLE_CASHIER,
    ROLE_OWNER,
)
from superbecks.errors import AuthRequired, BackendError, ConfigError, SuperbecksError, ValidationError
from superbecks.logs import get_logger

_logger = get_logger("admin_api")

admin_bp = Blueprint("admin", __name__)

BackendFactory = Callable[..., Backend]


def _bearer_token() -> str | None:
    header = request.headers.get("Authorization", "")
    if not header.lower().startswith("bearer "):
        return None
    token = header[7:].strip()
    return token or None


def _settings() -> BackendSettings:
    return current_app.config["BACKEND_SETTINGS_LOADER"]()


def _backend(settings: BackendSettings, **kwargs: Any) -> Backend:
    factory: BackendFactory = current_app.config["BACKEND_FACTORY"]
    return factory(settings, **kwargs)


def _caller_id(settings: BackendSettings, token: str) -> str:
    viewer = _backend(settings, access_token=token)
    result = viewer.auth.get_user()
    user = result.data if result.ok else None
    if not user or not user.get("id"):
        raise AuthRequired("Invalid session")
    return str(user["id"])


def _require_owner(admin: Backend, caller_id: str) -> None:
    result = admin.table("profiles").select("role").eq("user_id", caller_id).maybe_single().execute()
    if not result.ok:
        raise BackendError(result.error or "Profile lookup failed")
    if not result.data or result.data.get("role") != ROLE_OWNER:
        raise AuthRequired("Forbidden", status_code=403)


def _parse_body() -> tuple[str, str]:
    body = request.get_json(silent=True)
    if not isinstance(body, dict):
        body = {}
    mode = body.get("mode")
    new_password = body.get("newPassword")
    if not mode or not new_password:
        raise ValidationError("Missing mode or newPassword")
    if mode not in RESET_MODES:
        raise ValidationError(f"mode must be one of: {', '.join(RESET_MODES)}")
    if not isinstance(new_password, str) or len(new_password) < MIN_PASSWORD_LENGTH:
        raise ValidationError(f"Password must be at least {MIN_PASSWORD_LENGTH} characters")
    return str(mode), new_password


def _cashier_user_id(admin: Backend) -> str:
    result = (
        admin.table("app_settings")
        .select("value")
        .eq("key", CASHIER_USER_SETTING_KEY)
        .maybe_single()
        .execute()
    )
    if not result.ok:
        raise BackendError(result.error or "Settings lookup failed")
    value = (result.data or {}).get("value")
    if not value:
        raise ConfigError(f"{CASHIER_USER_SETTING_KEY} not set in app_settings")
    return str(value)


@admin_bp.route("/api/admin/reset-password", methods=["POST"])
def reset_password():
    token = _bearer_token()
    if not token:
        raise AuthRequired("Missing auth token")

    settings = _settings()
    settings.require_public()
    caller_id = _caller_id(settings, token)

    admin = _backend(settings, service_role=True)
    _require_owner(admin, caller_id)

    mode, new_password = _parse_body()
    target_user_id = _cashier_user_id(admin) if mode == ROLE_CASHIER else caller_id

    result = admin.auth.admin.update_user_by_id(target_user_id, {"password": new_password})
    if not result.ok:
        raise BackendError(result.error or "Password update failed", status_code=400)

    _logger.info("password_reset caller=%s mode=%s target=%s", caller_id, mode, target_user_id)
    return jsonify({"ok": True})


def create_app(config: Optional[Dict[str, Any]] = None) -> Flask:
    app = Flask(__name__)
    app.config["BACKEND_SETTINGS_LOADER"] = load_backend_settings
    app.config["BACKEND_FACTORY"] = Backend.from_settings
    if config:
        # Tests swap in their own settings loader and backend factory.
        app.config.update(config)

    app.register_blueprint(admin_bp)

    @app.route("/healthz")
    def health():
        return {"status": "ok"}

    @app.errorhandler(SuperbecksError)
    def handle_app_error(e: SuperbecksError):
        _logger.info("request_rejected path=%s status=%s error=%r", request.path, e.status_code, e.message)
        return jsonify({"error": e.message}), e.status_code

    @app.errorhandler(Exception)
    def handle_errors(e):  # type: ignore
        if isinstance(e, HTTPException):
            return jsonify({"error": e.description}), e.code
        app.logger.exception("Unhandled exception")
        _logger.error("request_failed path=%s error=%r", request.path, e)
        return jsonify({"error": str(e) or "Unknown error"}), 500

    return app


def main() -> None:
    """Serve the admin endpoint with Flask's development server."""
    create_app().run(host=ADMIN_HOST, port=ADMIN_PORT)


if __name__ == "__main__":
    main()
