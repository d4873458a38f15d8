# tests/test_auth.py

from __future__ import annotations

from contextlib import contextmanager

import httpx
import pytest
from supabase_auth.errors import AuthApiError

from tasklist.core.supabase_auth import (
    AUTH_MAX_RETRIES,
    get_auth_error_status,
    is_network_error,
    run_auth_operation_with_retry,
    validate_credentials,
)


@pytest.mark.parametrize(
    ("email", "password", "expected"),
    [
        ("u@example.com", "secret1", {}),
        ("", "secret1", {"email": "Email is required"}),
        ("   ", "secret1", {"email": "Email is required"}),
        ("u@example", "secret1", {"email": "Please enter a valid email address"}),
        ("u@example.com", "", {"password": "Password is required"}),
        ("u@example.com", "12345", {"password": "Password must be at least 6 characters"}),
        (None, None, {"email": "Email is required", "password": "Password is required"}),
    ],
)
def test_validate_credentials(email, password, expected) -> None:
    assert validate_credentials(email, password) == expected


class Clients:
    """Counts how many auth clients were opened."""

    def __init__(self) -> None:
        self.opened = 0

    @contextmanager
    def __call__(self):
        self.opened += 1
        yield object()


def test_retry_returns_first_success() -> None:
    clients = Clients()

    assert run_auth_operation_with_retry("login", lambda c: "ok", clients) == "ok"
    assert clients.opened == 1


def test_retry_backs_off_on_network_errors() -> None:
    clients = Clients()
    delays: list[float] = []
    attempts = iter([httpx.ConnectTimeout("timed out"), httpx.ConnectError("refused")])

    def operation(client):
        error = next(attempts, None)
        if error:
            raise error
        return "session"

    result = run_auth_operation_with_retry("login", operation, clients, sleep=delays.append)

    assert result == "session"
    assert clients.opened == 3
    assert len(delays) == 2
    assert delays[1] == 2 * delays[0]


def test_retry_gives_up_after_max_attempts() -> None:
    clients = Clients()

    def operation(client):
        raise httpx.ConnectError("connection refused")

    with pytest.raises(httpx.ConnectError):
        run_auth_operation_with_retry("login", operation, clients, sleep=lambda _: None)

    assert clients.opened == AUTH_MAX_RETRIES


def test_auth_api_errors_are_not_retried() -> None:
    clients = Clients()

    def operation(client):
        raise AuthApiError("Invalid login credentials", 400, "invalid_credentials")

    with pytest.raises(AuthApiError):
        run_auth_operation_with_retry("login", operation, clients, sleep=lambda _: None)

    assert clients.opened == 1


def test_other_errors_are_not_retried() -> None:
    clients = Clients()

    def operation(client):
        raise ValueError("bad payload")

    with pytest.raises(ValueError):
        run_auth_operation_with_retry("login", operation, clients, sleep=lambda _: None)

    assert clients.opened == 1


def test_error_helpers() -> None:
    assert is_network_error(httpx.ReadTimeout("slow"))
    assert is_network_error(RuntimeError("SSL handshake failed"))
    assert not is_network_error(ValueError("bad payload"))

    assert get_auth_error_status(AuthApiError("expired", 403, "expired"), 401) == 403
    assert get_auth_error_status(RuntimeError("x"), 401) == 401
