"""Adapter over the hosted backend's Python client.

Every call returns a ``QueryResult`` holding either ``data`` or an ``error``
message. Nothing here retries, and nothing spans more than one request.
"""

from __future__ import annotations

from dataclasses import dataclass
from decimal import Decimal
from typing import Any, Iterable

import httpx
from postgrest.exceptions import APIError
from supabase import AuthError, Client, ClientOptions, create_client

from superbecks.config import BackendSettings
from superbecks.errors import BackendError
from superbecks.logs import get_logger

_logger = get_logger("backend")

# PostgREST answers an empty maybe-single read with 204 on older clients.
_NO_CONTENT_CODE = "204"


@dataclass(frozen=True)
class QueryResult:
    """Outcome of one backend call."""

    data: Any = None
    error: str | None = None

    @property
    def ok(self) -> bool:
        return self.error is None

    def unwrap(self) -> Any:
        """Return ``data`` or raise ``BackendError`` with the backend's message."""
        if self.error is not None:
            raise BackendError(self.error)
        return self.data


@dataclass(frozen=True)
class AuthSession:
    """Tokens issued by a password sign-in."""

    access_token: str
    user_id: str
    email: str | None = None


def _jsonable(value: Any) -> Any:
    if isinstance(value, Decimal):
        return float(value)
    if isinstance(value, dict):
        return {key: _jsonable(item) for key, item in value.items()}
    if isinstance(value, list):
        return [_jsonable(item) for item in value]
    return value


def _filter_value(value: Any) -> Any:
    if isinstance(value, bool):
        return "true" if value else "false"
    return value


def _auth_failure(action: str, exc: Exception) -> QueryResult:
    message = str(exc) or type(exc).__name__
    if isinstance(exc, httpx.HTTPError):
        message = f"Network error: {exc}"
    _logger.info("auth_error action=%s message=%r", action, message)
    return QueryResult(error=message)


class TableQuery:
    """One PostgREST request composed on the client's request builder."""

    def __init__(self, builder: Any, table: str) -> None:
        self._builder = builder
        self._table = table
        self._maybe_single = False

    def _chain(self, builder: Any) -> "TableQuery":
        self._builder = builder
        return self

    def select(self, columns: str = "*") -> "TableQuery":
        return self._chain(self._builder.select(columns))

    def insert(self, rows: dict[str, Any] | list[dict[str, Any]]) -> "TableQuery":
        return self._chain(self._builder.insert(_jsonable(rows)))

    def update(self, values: dict[str, Any]) -> "TableQuery":
        return self._chain(self._builder.update(_jsonable(values)))

    def delete(self) -> "TableQuery":
        return self._chain(self._builder.delete())

    def eq(self, column: str, value: Any) -> "TableQuery":
        return self._chain(self._builder.eq(column, _filter_value(value)))

    def neq_or_null(self, column: str, value: Any) -> "TableQuery":
        """Match rows where ``column`` is null or differs from ``value``."""
        return self._chain(self._builder.or_(f"{column}.is.null,{column}.neq.{_filter_value(value)}"))

    def gte(self, column: str, value: Any) -> "TableQuery":
        return self._chain(self._builder.gte(column, _filter_value(value)))

    def lt(self, column: str, value: Any) -> "TableQuery":
        return self._chain(self._builder.lt(column, _filter_value(value)))

    def in_(self, column: str, values: Iterable[Any]) -> "TableQuery":
        return self._chain(self._builder.in_(column, [str(value) for value in values]))

    def not_null(self, column: str) -> "TableQuery":
        return self._chain(self._builder.not_.is_(column, "null"))

    def order(self, column: str, *, ascending: bool = True) -> "TableQuery":
        return self._chain(self._builder.order(column, desc=not ascending))

    def single(self) -> "TableQuery":
        """Expect exactly one row; anything else is an error."""
        return self._chain(self._builder.single())

    def maybe_single(self) -> "TableQuery":
        """Expect zero or one row; zero yields ``None``."""
        self._maybe_single = True
        return self._chain(self._builder.maybe_single())

    def execute(self) -> QueryResult:
        try:
            response = self._builder.execute()
        except APIError as exc:
            if self._maybe_single and str(exc.code) == _NO_CONTENT_CODE:
                return QueryResult(data=None)
            message = exc.message or str(exc)
            _logger.info("query_error table=%s code=%s message=%r", self._table, exc.code, message)
            return QueryResult(error=message)
        except httpx.HTTPError as exc:
            _logger.warning("query_failed table=%s error=%r", self._table, exc)
            return QueryResult(error=f"Network error: {exc}")
        if response is None:
            return QueryResult(data=None)
        return QueryResult(data=response.data)


class AuthAdminApi:
    """Privileged user management; needs a service-role backend."""

    def __init__(self, backend: "Backend") -> None:
        self._backend = backend

    def update_user_by_id(self, user_id: str, attributes: dict[str, Any]) -> QueryResult:
        try:
            response = self._backend.client.auth.admin.update_user_by_id(user_id, attributes)
        except (AuthError, httpx.HTTPError) as exc:
            return _auth_failure("update_user", exc)
        user = getattr(response, "user", None)
        return QueryResult(data={"id": str(user.id) if user else user_id})


class AuthApi:
    """Password sign-in, current user lookup and sign-out."""

    def __init__(self, backend: "Backend") -> None:
        self._backend = backend
        self.admin = AuthAdminApi(backend)

    def sign_in_with_password(self, email: str, password: str) -> QueryResult:
        try:
            response = self._backend.client.auth.sign_in_with_password({"email": email, "password": password})
        except (AuthError, httpx.HTTPError) as exc:
            return _auth_failure("sign_in", exc)
        if response.session is None or response.user is None:
            return QueryResult(error="Sign-in response did not include a session")
        session = AuthSession(
            access_token=response.session.access_token,
            user_id=str(response.user.id),
            email=response.user.email,
        )
        self._backend.access_token = session.access_token
        return QueryResult(data=session)

    def get_user(self) -> QueryResult:
        if not self._backend.access_token:
            return QueryResult(error="Auth session missing")
        try:
            response = self._backend.client.auth.get_user(self._backend.access_token)
        except (AuthError, httpx.HTTPError) as exc:
            return _auth_failure("get_user", exc)
        if response is None or response.user is None:
            return QueryResult(error="Auth session missing")
        return QueryResult(data={"id": str(response.user.id), "email": response.user.email})

    def sign_out(self) -> QueryResult:
        if not self._backend.access_token:
            return QueryResult()
        try:
            self._backend.client.auth.sign_out()
        except (AuthError, httpx.HTTPError) as exc:
            return _auth_failure("sign_out", exc)
        finally:
            self._backend.access_token = None
        return QueryResult()


class Backend:
    """Connection to the hosted backend for one API key and optional user token."""

    def __init__(self, client: Client, url: str, access_token: str | None = None) -> None:
        self.client = client
        self.url = url.rstrip("/")
        self.access_token = access_token
        self.auth = AuthApi(self)

    @classmethod
    def from_settings(
        cls,
        settings: BackendSettings,
        *,
        service_role: bool = False,
        access_token: str | None = None,
    ) -> "Backend":
        if service_role:
            settings.require_service_role()
            key = settings.service_role_key
        else:
            settings.require_public()
            key = settings.anon_key
        # Only the interactive client keeps and refreshes its own session.
        interactive = not service_role and access_token is None
        options = ClientOptions(
            postgrest_client_timeout=settings.timeout_seconds,
            auto_refresh_token=interactive,
            persist_session=interactive,
        )
        client = create_client(settings.url, key, options=options)
        if access_token:
            client.postgrest.auth(access_token)
        return cls(client, settings.url, access_token=access_token)

    def table(self, name: str) -> TableQuery:
        return TableQuery(self.client.table(name), name)
