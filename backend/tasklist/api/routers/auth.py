"""Authentication router with HttpOnly cookie-based token management."""

import logging
import os

from fastapi import APIRouter, HTTPException, Request, Response
from supabase_auth.errors import AuthApiError

from tasklist.core.supabase_auth import (
    get_auth_error_status,
    is_network_error,
    run_auth_operation_with_retry,
    validate_credentials,
)
from tasklist.dependencies import COOKIE_NAME_ACCESS, COOKIE_NAME_REFRESH
from tasklist.schemas.auth import (
    AuthResponse,
    CredentialsRequest,
    LoginRequest,
    LogoutResponse,
    RefreshResponse,
    RegisterRequest,
    SessionResponse,
)

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/auth", tags=["auth"])

COOKIE_MAX_AGE = 60 * 60 * 24 * 7  # 7 days
COOKIE_HTTPONLY = True
COOKIE_SECURE = os.environ.get("COOKIE_SECURE", "false").lower() == "true"
COOKIE_SAMESITE = "lax"

SERVICE_UNAVAILABLE = "Authentication service unavailable. Please retry."


def set_auth_cookies(response: Response, access_token: str, refresh_token: str) -> None:
    """Set HttpOnly cookies for access and refresh tokens."""
    for key, value in (
        (COOKIE_NAME_ACCESS, access_token),
        (COOKIE_NAME_REFRESH, refresh_token),
    ):
        response.set_cookie(
            key=key,
            value=value,
            max_age=COOKIE_MAX_AGE,
            httponly=COOKIE_HTTPONLY,
            secure=COOKIE_SECURE,
            samesite=COOKIE_SAMESITE,
        )


def clear_auth_cookies(response: Response) -> None:
    """Clear authentication cookies."""
    response.delete_cookie(key=COOKIE_NAME_ACCESS)
    response.delete_cookie(key=COOKIE_NAME_REFRESH)


def check_credentials(request: CredentialsRequest) -> None:
    """Reject malformed credentials before contacting the auth service."""
    errors = validate_credentials(request.email, request.password)
    if errors:
        raise HTTPException(status_code=400, detail="; ".join(errors.values()))


def _credentials(request: CredentialsRequest) -> dict:
    return {"email": request.email.strip(), "password": request.password}


@router.post("/login", response_model=AuthResponse)
async def login(request: LoginRequest, response: Response):
    """
    Sign in with email and password.
    Sets HttpOnly cookies with access and refresh tokens.
    """
    check_credentials(request)

    try:
        auth_response = run_auth_operation_with_retry(
            "login",
            lambda client: client.auth.sign_in_with_password(_credentials(request)),
        )

        user = auth_response.user
        session = auth_response.session

        if not user or not session:
            raise HTTPException(status_code=401, detail="Invalid credentials")

        set_auth_cookies(response, session.access_token, session.refresh_token)
        logger.info("User signed in", extra={"user_id": user.id})

        return AuthResponse(
            user_id=user.id,
            email=user.email or "",
            access_token=session.access_token,
            refresh_token=session.refresh_token,
        )

    except AuthApiError as error:
        status_code = get_auth_error_status(error, 401)
        logger.warning(f"Sign in failed: {error}")
        raise HTTPException(status_code=status_code, detail=str(error))
    except HTTPException:
        raise
    except Exception as error:
        if is_network_error(error):
            logger.warning("Sign in temporary auth service error: %s", error)
            raise HTTPException(status_code=503, detail=SERVICE_UNAVAILABLE)

        logger.error(f"Sign in error: {error}", extra={"error": str(error)})
        raise HTTPException(
            status_code=500, detail="An unexpected error occurred during sign in"
        )


@router.post("/register", response_model=AuthResponse)
async def register(request: RegisterRequest, response: Response):
    """
    Sign up with email and password.
    Sets cookies when the project does not require email confirmation.
    """
    check_credentials(request)

    try:
        auth_response = run_auth_operation_with_retry(
            "register",
            lambda client: client.auth.sign_up(_credentials(request)),
        )

        user = auth_response.user
        session = auth_response.session

        if not user:
            raise HTTPException(status_code=400, detail="Registration failed")

        # With email confirmation enabled there is no session yet
        if session:
            set_auth_cookies(response, session.access_token, session.refresh_token)

        logger.info("User registered", extra={"user_id": user.id})

        return AuthResponse(
            user_id=user.id,
            email=user.email or "",
            access_token=session.access_token if session else None,
            refresh_token=session.refresh_token if session else None,
        )

    except AuthApiError as error:
        status_code = get_auth_error_status(error, 400)
        logger.warning(f"Sign up failed: {error}")
        raise HTTPException(status_code=status_code, detail=str(error))
    except HTTPException:
        raise
    except Exception as error:
        if is_network_error(error):
            logger.warning("Sign up temporary auth service error: %s", error)
            raise HTTPException(status_code=503, detail=SERVICE_UNAVAILABLE)

        logger.error(f"Sign up error: {error}", extra={"error": str(error)})
        raise HTTPException(
            status_code=500, detail="An unexpected error occurred during sign up"
        )


@router.post("/logout", response_model=LogoutResponse)
async def logout(response: Response):
    """Sign out by clearing the authentication cookies."""
    clear_auth_cookies(response)
    logger.info("User signed out")
    return LogoutResponse(success=True)


@router.get("/session", response_model=SessionResponse)
async def get_session(request: Request, response: Response):
    """
    Check the current session.
    If the access token is rejected but the refresh token is valid, refresh cookies.
    """
    access_token = request.cookies.get(COOKIE_NAME_ACCESS)
    refresh_token_cookie = request.cookies.get(COOKIE_NAME_REFRESH)

    if not access_token and not refresh_token_cookie:
        return SessionResponse(authenticated=False)

    if access_token:
        try:
            user_response = run_auth_operation_with_retry(
                "session.get_user",
                lambda client: client.auth.get_user(access_token),
            )
            user = user_response.user if user_response else None
            if user:
                return SessionResponse(authenticated=True, user_id=user.id, email=user.email)
        except AuthApiError:
            logger.debug("Access token rejected, trying refresh token")
        except Exception as error:
            logger.warning("Session check failed: %s", error)
            return SessionResponse(authenticated=False)

    if not refresh_token_cookie:
        clear_auth_cookies(response)
        return SessionResponse(authenticated=False)

    try:
        refresh_response = run_auth_operation_with_retry(
            "session.refresh",
            lambda client: client.auth.refresh_session(refresh_token_cookie),
        )
        session = refresh_response.session
        user = refresh_response.user

        if not session or not user:
            clear_auth_cookies(response)
            return SessionResponse(authenticated=False)

        set_auth_cookies(response, session.access_token, session.refresh_token)
        return SessionResponse(authenticated=True, user_id=user.id, email=user.email)

    except AuthApiError as error:
        if get_auth_error_status(error, 401) in {400, 401, 403}:
            clear_auth_cookies(response)
        logger.warning("Session refresh failed: %s", error)
        return SessionResponse(authenticated=False)
    except Exception as error:
        logger.warning("Session refresh failed: %s", error)
        return SessionResponse(authenticated=False)


@router.post("/refresh", response_model=RefreshResponse)
async def refresh_token(request: Request, response: Response):
    """Rotate the access token using the refresh token cookie."""
    refresh_token_cookie = request.cookies.get(COOKIE_NAME_REFRESH)

    if not refresh_token_cookie:
        raise HTTPException(status_code=401, detail="No refresh token")

    try:
        auth_response = run_auth_operation_with_retry(
            "refresh",
            lambda client: client.auth.refresh_session(refresh_token_cookie),
        )
        session = auth_response.session

        if not session:
            clear_auth_cookies(response)
            raise HTTPException(status_code=401, detail="Failed to refresh session")

        set_auth_cookies(response, session.access_token, session.refresh_token)
        logger.debug("Token refreshed successfully")

        return RefreshResponse(success=True, message="Token refreshed")

    except AuthApiError as error:
        status_code = get_auth_error_status(error, 401)
        logger.warning(f"Token refresh failed: {error}")
        if status_code in {400, 401, 403}:
            clear_auth_cookies(response)
        raise HTTPException(status_code=status_code, detail=str(error))
    except HTTPException:
        raise
    except Exception as error:
        if is_network_error(error):
            logger.warning("Token refresh temporary auth service error: %s", error)
            raise HTTPException(status_code=503, detail=SERVICE_UNAVAILABLE)

        logger.error("Token refresh error", exc_info=True)
        raise HTTPException(status_code=500, detail="Internal server error")
