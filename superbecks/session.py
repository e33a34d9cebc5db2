"""Sign-in, profile lookup and role routing."""

from __future__ import annotations

from superbecks.backend import Backend
from superbecks.constant import ROLE_CASHIER, ROLE_OWNER
from superbecks.errors import AuthRequired, BackendError
from superbecks.logs import get_logger
from superbecks.models import Profile

_logger = get_logger("session")


def fetch_profile(backend: Backend, user_id: str) -> Profile:
    result = backend.table("profiles").select("role,branch_id").eq("user_id", user_id).single().execute()
    if not result.ok:
        raise BackendError(result.error or "Profile lookup failed")
    row = result.data or {}
    return Profile(user_id=user_id, role=str(row.get("role") or ""), branch_id=row.get("branch_id"))


def current_user_id(backend: Backend) -> str:
    result = backend.auth.get_user()
    user = result.data if result.ok else None
    if not user or not user.get("id"):
        raise AuthRequired("Login required")
    return str(user["id"])


def current_profile(backend: Backend) -> Profile:
    """Profile of the signed-in user; ``AuthRequired`` without a session."""
    return fetch_profile(backend, current_user_id(backend))


def sign_in(backend: Backend, email: str, password: str) -> Profile:
    result = backend.auth.sign_in_with_password(email.strip(), password)
    if not result.ok:
        _logger.info("sign_in_failed email=%r error=%r", email, result.error)
        raise AuthRequired(result.error or "Sign-in failed")
    profile = current_profile(backend)
    _logger.info("sign_in user_id=%s role=%s", profile.user_id, profile.role)
    return profile


def require_role(profile: Profile, role: str) -> Profile:
    if profile.role != role:
        raise AuthRequired(f"Not a {role} account.", status_code=403)
    return profile


def home_screen_for(profile: Profile) -> str:
    """Owners land on the dashboard, everyone else on the cashier screen."""
    if profile.role == ROLE_OWNER:
        return ROLE_OWNER
    return ROLE_CASHIER


def sign_out(backend: Backend) -> None:
    result = backend.auth.sign_out()
    _logger.info("sign_out error=%r", result.error)
    result.unwrap()
