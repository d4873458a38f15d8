"""
Supabase auth access for the sign-in/sign-up/session endpoints.

Auth calls use a short-lived sync client over a bounded httpx pool, retry
transient network failures with exponential backoff, and never retry an
answer from the auth service itself (bad password, expired token...).
"""

import logging
import os
import re
import time
from contextlib import contextmanager
from dataclasses import dataclass
from typing import Any, Callable, ContextManager, Dict, Iterator, Optional

import httpx
from supabase import Client, ClientOptions, create_client
from supabase_auth.errors import AuthApiError

logger = logging.getLogger(__name__)

MIN_PASSWORD_LENGTH = 6
_EMAIL_PATTERN = re.compile(r"\S+@\S+\.\S+")

_NETWORK_HINTS = ("ssl", "handshake", "timed out", "timeout", "connection", "pool")


def _env_float(name: str, default: str, fallback: Optional[str] = None) -> float:
    if fallback:
        default = os.environ.get(fallback, default)
    return float(os.environ.get(name, default))


@dataclass(frozen=True)
class AuthSettings:
    """Auth endpoint and connection pool settings, read from the environment."""

    url: str
    anon_key: str
    timeout: float = 30.0
    pool_timeout: float = 10.0
    max_connections: int = 200
    max_keepalive: int = 50
    keepalive_expiry: float = 30.0
    max_retries: int = 3
    retry_base_delay: float = 0.5

    @classmethod
    def from_env(cls) -> "AuthSettings":
        return cls(
            url=os.environ.get("SUPABASE_URL", ""),
            anon_key=os.environ.get("SUPABASE_ANON_KEY", ""),
            timeout=_env_float("SUPABASE_AUTH_TIMEOUT", "30", fallback="HTTPX_TIMEOUT"),
            pool_timeout=_env_float("SUPABASE_AUTH_POOL_TIMEOUT", "10"),
            max_connections=int(os.environ.get("SUPABASE_AUTH_MAX_CONNECTIONS", "200")),
            max_keepalive=int(os.environ.get("SUPABASE_AUTH_MAX_KEEPALIVE_CONNECTIONS", "50")),
            keepalive_expiry=_env_float("SUPABASE_AUTH_KEEPALIVE_EXPIRY", "30"),
            max_retries=max(1, int(os.environ.get("AUTH_MAX_RETRIES", "3"))),
            retry_base_delay=_env_float("AUTH_RETRY_BASE_DELAY", "0.5"),
        )

    def http_client(self) -> httpx.Client:
        return httpx.Client(
            timeout=httpx.Timeout(timeout=self.timeout, pool=self.pool_timeout),
            limits=httpx.Limits(
                max_connections=self.max_connections,
                max_keepalive_connections=self.max_keepalive,
                keepalive_expiry=self.keepalive_expiry,
            ),
        )


settings = AuthSettings.from_env()
AUTH_MAX_RETRIES = settings.max_retries


@contextmanager
def supabase_auth_client() -> Iterator[Client]:
    """Open an auth-only Supabase client; its HTTP pool closes on exit."""
    http_client = settings.http_client()
    client = create_client(
        settings.url,
        settings.anon_key,
        options=ClientOptions(
            auto_refresh_token=False,
            persist_session=False,
            httpx_client=http_client,
        ),
    )
    try:
        yield client
    finally:
        http_client.close()


def is_network_error(error: Exception) -> bool:
    """True for timeouts, dropped connections and TLS failures."""
    if isinstance(error, (httpx.TimeoutException, httpx.NetworkError)):
        return True
    text = str(error).lower()
    return any(hint in text for hint in _NETWORK_HINTS)


def get_auth_error_status(error: Exception, default_status: int) -> int:
    """HTTP status carried by an auth error, or ``default_status``."""
    status = getattr(error, "status", None)
    if isinstance(status, int) and 100 <= status <= 599:
        return status
    return default_status


def run_auth_operation_with_retry(
    operation_name: str,
    operation: Callable[[Client], Any],
    client_factory: Callable[[], ContextManager[Any]] = supabase_auth_client,
    sleep: Callable[[float], None] = time.sleep,
) -> Any:
    """
    Run ``operation`` with a fresh auth client per attempt.

    Network failures are retried up to AUTH_MAX_RETRIES attempts with
    exponential backoff. AuthApiError and any other error propagate at once.
    """
    attempts = settings.max_retries

    for attempt in range(1, attempts + 1):
        try:
            with client_factory() as client:
                return operation(client)
        except AuthApiError:
            raise
        except Exception as error:
            if attempt == attempts or not is_network_error(error):
                raise

            delay = settings.retry_base_delay * (2 ** (attempt - 1))
            logger.warning(
                "Auth op %s failed (attempt %s/%s), retrying in %.1fs: %s",
                operation_name,
                attempt,
                attempts,
                delay,
                error,
            )
            sleep(delay)

    raise RuntimeError(f"Auth operation {operation_name} made no attempt")


def validate_credentials(email: Optional[str], password: Optional[str]) -> Dict[str, str]:
    """
    Check sign-in/sign-up input before calling the auth service.

    Returns:
        Mapping of field name to message; empty when the input is valid
    """
    errors: Dict[str, str] = {}

    if not email or not email.strip():
        errors["email"] = "Email is required"
    elif not _EMAIL_PATTERN.search(email):
        errors["email"] = "Please enter a valid email address"

    if not password:
        errors["password"] = "Password is required"
    elif len(password) < MIN_PASSWORD_LENGTH:
        errors["password"] = f"Password must be at least {MIN_PASSWORD_LENGTH} characters"

    return errors
