"""Shared fixtures: an in-memory stand-in for the hosted backend."""

from __future__ import annotations

import copy
import itertools
from decimal import Decimal
from types import SimpleNamespace
from typing import Any

import pytest

from superbecks.backend import QueryResult


class FakeAuth:
    def __init__(self, backend: "FakeBackend") -> None:
        self._backend = backend
        self.admin = self
        self.password_updates: list[tuple[str, dict[str, Any]]] = []
        self.update_error: str | None = None

    def sign_in_with_password(self, email: str, password: str) -> QueryResult:
        account = self._backend.accounts.get(email)
        if account is None or account[0] != password:
            return QueryResult(error="Invalid login credentials")
        self._backend.user_id = account[1]
        self._backend.access_token = f"token-{account[1]}"
        return QueryResult(data={"id": account[1]})

    def get_user(self) -> QueryResult:
        if not self._backend.user_id:
            return QueryResult(error="Auth session missing")
        return QueryResult(data={"id": self._backend.user_id})

    def sign_out(self) -> QueryResult:
        self._backend.user_id = None
        self._backend.access_token = None
        return QueryResult()

    def update_user_by_id(self, user_id: str, attributes: dict[str, Any]) -> QueryResult:
        if self.update_error:
            return QueryResult(error=self.update_error)
        self.password_updates.append((user_id, attributes))
        return QueryResult(data={"id": user_id})


class FakeQuery:
    """Evaluates the query-builder calls against the backend's in-memory tables."""

    def __init__(self, backend: "FakeBackend", table: str) -> None:
        self._backend = backend
        self._table = table
        self._op = "select"
        self._payload: Any = None
        self._filters: list[Any] = []
        self._order: list[tuple[str, bool]] = []
        self._expect: str | None = None

    def select(self, columns: str = "*") -> "FakeQuery":
        return self

    def insert(self, rows: Any) -> "FakeQuery":
        self._op = "insert"
        self._payload = rows
        return self

    def update(self, values: dict[str, Any]) -> "FakeQuery":
        self._op = "update"
        self._payload = values
        return self

    def delete(self) -> "FakeQuery":
        self._op = "delete"
        return self

    def eq(self, column: str, value: Any) -> "FakeQuery":
        self._filters.append(lambda row: row.get(column) == value)
        return self

    def neq_or_null(self, column: str, value: Any) -> "FakeQuery":
        self._filters.append(lambda row: row.get(column) is None or row.get(column) != value)
        return self

    def gte(self, column: str, value: Any) -> "FakeQuery":
        self._filters.append(lambda row: row.get(column) is not None and row.get(column) >= value)
        return self

    def lt(self, column: str, value: Any) -> "FakeQuery":
        self._filters.append(lambda row: row.get(column) is not None and row.get(column) < value)
        return self

    def in_(self, column: str, values: Any) -> "FakeQuery":
        wanted = set(values)
        self._filters.append(lambda row: row.get(column) in wanted)
        return self

    def not_null(self, column: str) -> "FakeQuery":
        self._filters.append(lambda row: row.get(column) is not None)
        return self

    def order(self, column: str, *, ascending: bool = True) -> "FakeQuery":
        self._order.append((column, ascending))
        return self

    def single(self) -> "FakeQuery":
        self._expect = "single"
        return self

    def maybe_single(self) -> "FakeQuery":
        self._expect = "maybe_single"
        return self

    def _matches(self, row: dict[str, Any]) -> bool:
        return all(check(row) for check in self._filters)

    def execute(self) -> QueryResult:
        self._backend.calls.append((self._op, self._table))
        failure = self._backend.take_failure(self._table, self._op)
        if failure is not None:
            return QueryResult(error=failure)

        table = self._backend.tables.setdefault(self._table, [])
        if self._op == "insert":
            rows = self._payload if isinstance(self._payload, list) else [self._payload]
            stored = [self._backend.store(self._table, row) for row in rows]
            self._backend.writes.append(("insert", self._table, copy.deepcopy(rows)))
            data: Any = [dict(row) for row in stored]
        elif self._op == "update":
            changed = [row for row in table if self._matches(row)]
            for row in changed:
                row.update(self._payload)
            self._backend.writes.append(("update", self._table, dict(self._payload)))
            data = [dict(row) for row in changed]
        elif self._op == "delete":
            removed = [row for row in table if self._matches(row)]
            self._backend.tables[self._table] = [row for row in table if not self._matches(row)]
            self._backend.writes.append(("delete", self._table, len(removed)))
            data = [dict(row) for row in removed]
        else:
            data = [dict(row) for row in table if self._matches(row)]
            for column, ascending in reversed(self._order):
                data.sort(key=lambda row: row.get(column) or "", reverse=not ascending)

        if self._expect == "single":
            if len(data) != 1:
                return QueryResult(error=f"JSON object requested, multiple (or no) rows returned ({len(data)})")
            return QueryResult(data=data[0])
        if self._expect == "maybe_single":
            if len(data) > 1:
                return QueryResult(error=f"Expected at most one row from {self._table}, got {len(data)}")
            return QueryResult(data=data[0] if data else None)
        return QueryResult(data=data)


class FakeBackend:
    """Tables as lists of dicts plus a log of every write."""

    def __init__(self) -> None:
        self.tables: dict[str, list[dict[str, Any]]] = {}
        self.writes: list[tuple[str, str, Any]] = []
        self.calls: list[tuple[str, str]] = []
        self.accounts: dict[str, tuple[str, str]] = {}
        self.user_id: str | None = None
        self.access_token: str | None = None
        self.url = "https://fake.backend"
        self._failures: list[list[Any]] = []
        self._ids = itertools.count(1)
        self.auth = FakeAuth(self)

    def table(self, name: str) -> FakeQuery:
        return FakeQuery(self, name)

    def store(self, table: str, row: dict[str, Any]) -> dict[str, Any]:
        stored = dict(row)
        if table == "orders":
            stored.setdefault("id", f"order-{next(self._ids)}")
            stored.setdefault("created_at", "2024-05-01T04:00:00.000Z")
        self.tables.setdefault(table, []).append(stored)
        return stored

    def fail(self, table: str, op: str, message: str = "boom", times: int = 1) -> None:
        """Make the next ``times`` calls of ``op`` on ``table`` return an error."""
        self._failures.append([table, op, message, times])

    def take_failure(self, table: str, op: str) -> str | None:
        for failure in self._failures:
            if failure[0] == table and failure[1] == op and failure[3] > 0:
                failure[3] -= 1
                return failure[2]
        return None

    def rows(self, table: str, **match: Any) -> list[dict[str, Any]]:
        return [row for row in self.tables.get(table, []) if all(row.get(k) == v for k, v in match.items())]

    def row(self, table: str, **match: Any) -> dict[str, Any]:
        found = self.rows(table, **match)
        assert len(found) == 1, found
        return found[0]


@pytest.fixture
def backend() -> FakeBackend:
    return FakeBackend()


class StubRequest:
    """Records chained request-builder calls and replays a canned outcome."""

    def __init__(self, outcome: Any) -> None:
        self.calls: list[tuple[str, tuple, dict]] = []
        self.outcome = outcome

    def __getattr__(self, name: str):
        def record(*args: Any, **kwargs: Any) -> "StubRequest":
            self.calls.append((name, args, kwargs))
            return self

        return record

    @property
    def not_(self) -> "StubRequest":
        self.calls.append(("not_", (), {}))
        return self

    def execute(self) -> Any:
        if isinstance(self.outcome, Exception):
            raise self.outcome
        return self.outcome


class StubAuthAdmin:
    def __init__(self) -> None:
        self.updates: list[tuple[str, dict[str, Any]]] = []
        self.error: Exception | None = None

    def update_user_by_id(self, user_id: str, attributes: dict[str, Any]) -> Any:
        if self.error is not None:
            raise self.error
        self.updates.append((user_id, attributes))
        return SimpleNamespace(user=SimpleNamespace(id=user_id))


class StubAuth:
    def __init__(self) -> None:
        self.admin = StubAuthAdmin()
        self.users: dict[str, str] = {}
        self.sign_in_error: Exception | None = None
        self.signed_out = False
        self.checked_tokens: list[str] = []

    def sign_in_with_password(self, credentials: dict[str, str]) -> Any:
        if self.sign_in_error is not None:
            raise self.sign_in_error
        return SimpleNamespace(
            session=SimpleNamespace(access_token="jwt-1"),
            user=SimpleNamespace(id="u1", email=credentials["email"]),
        )

    def get_user(self, jwt: str) -> Any:
        self.checked_tokens.append(jwt)
        user_id = self.users.get(jwt)
        return SimpleNamespace(user=SimpleNamespace(id=user_id, email=None) if user_id else None)

    def sign_out(self) -> None:
        self.signed_out = True


class StubPostgrest:
    def __init__(self) -> None:
        self.token: str | None = None

    def auth(self, token: str) -> None:
        self.token = token


class StubClient:
    def __init__(self, url: str, key: str, options: Any, outcomes: dict[str, Any]) -> None:
        self.url = url
        self.key = key
        self.options = options
        self.outcomes = outcomes
        self.requests: list[tuple[str, StubRequest]] = []
        self.auth = StubAuth()
        self.postgrest = StubPostgrest()

    def table(self, name: str) -> StubRequest:
        outcome = self.outcomes.get(name, SimpleNamespace(data=[]))
        request = StubRequest(outcome)
        self.requests.append((name, request))
        return request


class StubClientFactory:
    """Replacement for ``create_client`` that remembers every client it made."""

    def __init__(self) -> None:
        self.clients: list[StubClient] = []
        self.outcomes: dict[str, Any] = {}
        self.users: dict[str, str] = {}

    def __call__(self, url: str, key: str, options: Any = None) -> StubClient:
        client = StubClient(url, key, options, self.outcomes)
        client.auth.users = self.users
        self.clients.append(client)
        return client


@pytest.fixture
def stub_clients(monkeypatch) -> StubClientFactory:
    factory = StubClientFactory()
    monkeypatch.setattr("superbecks.backend.create_client", factory)
    return factory


def add_menu_item(backend: FakeBackend, item_id: str, name: str, price: str, category: str = "meals", active: bool = True) -> dict[str, Any]:
    return backend.store(
        "menu_items",
        {"id": item_id, "name": name, "category": category, "price": Decimal(price), "is_active": active},
    )


def add_order(
    backend: FakeBackend,
    order_id: str,
    *,
    branch_id: str = "b1",
    created_at: str = "2024-05-01T04:00:00.000Z",
    payment_type: str = "CASH",
    total: str = "0.00",
    status: str | None = "NEW",
    **extra: Any,
) -> dict[str, Any]:
    row = {
        "id": order_id,
        "branch_id": branch_id,
        "created_at": created_at,
        "payment_type": payment_type,
        "total_amount": Decimal(total),
        "status": status,
        "created_by": "cashier-1",
        "replaces": None,
        "replaced_by": None,
        "voided_at": None,
        "voided_by": None,
        "void_reason": None,
    }
    row.update(extra)
    return backend.store("orders", row)


def add_line(backend: FakeBackend, order_id: str, item_id: str, qty: int, unit_price: str) -> dict[str, Any]:
    price = Decimal(unit_price)
    return backend.store(
        "order_lines",
        {"order_id": order_id, "menu_item_id": item_id, "qty": qty, "unit_price": price, "line_total": price * qty},
    )
