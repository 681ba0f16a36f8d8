from __future__ import annotations

from urllib.parse import urlencode

from flask import current_app

from livemarks.backend import Backend, SessionExchangeError
from livemarks.services.common import safe_next_path


MISSING_CODE_MESSAGE = "No authorization code received. Check OAuth configuration."
VERIFICATION_FAILED_MESSAGE = "Session verification failed. Please try again."


def login_redirect(login_path: str, message: str) -> str:
    return f"{login_path}?{urlencode({'error': message})}"


def handle_auth_callback(
    backend: Backend,
    params,
    login_path: str,
    default_next: str,
    redirect_uri: str,
) -> str:
    """Resolve an OAuth provider redirect into the location to send the browser to.

    Every failure ends at the login page with a short ``error`` message;
    success ends at ``next`` when it is a same-origin relative path.
    """
    logger = current_app.logger
    code = params.get("code")
    error = params.get("error")
    error_description = params.get("error_description")

    logger.info(
        "Auth callback received: code=%s error=%s",
        "present" if code else "missing",
        error or "-",
    )

    if error:
        logger.warning("OAuth provider returned error %s: %s", error, error_description)
        return login_redirect(login_path, error_description or error)

    if not code:
        logger.error("No authorization code received in callback")
        return login_redirect(login_path, MISSING_CODE_MESSAGE)

    try:
        backend.sessions.exchange_code_for_session(
            code, params.get("state"), redirect_uri
        )
    except SessionExchangeError as exc:
        logger.error("Session exchange failed: %s", exc.reason)
        return login_redirect(login_path, f"Authentication failed: {exc.reason}")

    user = backend.sessions.get_user()
    if not user:
        logger.error("Session established but no user found")
        return login_redirect(login_path, VERIFICATION_FAILED_MESSAGE)

    logger.info("Authentication successful for user %s", user.email or user.id)
    return safe_next_path(params.get("next"), default_next)
