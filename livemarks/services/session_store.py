from __future__ import annotations

import secrets
from urllib.parse import urlencode

import httpx
from flask import current_app, session
from flask_login import current_user, login_user, logout_user
from sqlalchemy.exc import SQLAlchemyError

from livemarks.backend import SessionExchangeError, SessionUser
from livemarks.extensions import db
from livemarks.models import User, utcnow


STATE_SESSION_KEY = "oauth_state"

REASON_INVALID_STATE = "invalid state"
REASON_PROVIDER_UNAVAILABLE = "provider unavailable"
REASON_CODE_REJECTED = "code rejected"
REASON_INCOMPLETE_PROFILE = "incomplete profile"
REASON_STORAGE_UNAVAILABLE = "session storage unavailable"


class OAuthSessionStore:
    """Authorization-code sign-in against an OAuth2/OIDC provider.

    The resulting session lives in the Flask-Login cookie; this class only
    triggers setting and clearing it.
    """

    def __init__(
        self,
        client_id: str,
        client_secret: str,
        authorize_url: str,
        token_url: str,
        userinfo_url: str,
        scope: str = "openid email profile",
        timeout: float = 10.0,
        http_client: httpx.Client | None = None,
    ):
        self.client_id = client_id
        self.client_secret = client_secret
        self.authorize_url = authorize_url
        self.token_url = token_url
        self.userinfo_url = userinfo_url
        self.scope = scope
        self.timeout = timeout
        self._http_client = http_client

    @classmethod
    def from_config(cls, config, http_client: httpx.Client | None = None):
        return cls(
            client_id=config["OAUTH_CLIENT_ID"],
            client_secret=config["OAUTH_CLIENT_SECRET"],
            authorize_url=config["OAUTH_AUTHORIZE_URL"],
            token_url=config["OAUTH_TOKEN_URL"],
            userinfo_url=config["OAUTH_USERINFO_URL"],
            scope=config["OAUTH_SCOPE"],
            timeout=config["OAUTH_TIMEOUT"],
            http_client=http_client,
        )

    def authorization_url(self, redirect_uri: str) -> str:
        state = secrets.token_urlsafe(24)
        session[STATE_SESSION_KEY] = state
        params = {
            "client_id": self.client_id,
            "redirect_uri": redirect_uri,
            "response_type": "code",
            "scope": self.scope,
            "state": state,
            "prompt": "select_account",
        }
        return f"{self.authorize_url}?{urlencode(params)}"

    def exchange_code_for_session(
        self, code: str, state: str | None, redirect_uri: str
    ) -> SessionUser:
        expected_state = session.pop(STATE_SESSION_KEY, None)
        if (
            not expected_state
            or not state
            or not secrets.compare_digest(expected_state, state)
        ):
            raise SessionExchangeError(REASON_INVALID_STATE)

        access_token = self._request_access_token(code, redirect_uri)
        profile = self._fetch_profile(access_token)
        user = self._upsert_user(profile)
        login_user(user)
        return SessionUser(id=user.id, email=user.email, name=user.name)

    def get_user(self) -> SessionUser | None:
        if not current_user.is_authenticated:
            return None
        return SessionUser(
            id=current_user.id, email=current_user.email, name=current_user.name
        )

    def sign_out(self) -> None:
        session.pop(STATE_SESSION_KEY, None)
        logout_user()

    def _send(self, method: str, url: str, **kwargs) -> httpx.Response:
        try:
            if self._http_client is not None:
                return self._http_client.request(method, url, **kwargs)
            with httpx.Client(timeout=self.timeout) as client:
                return client.request(method, url, **kwargs)
        except httpx.HTTPError as exc:
            current_app.logger.warning("OAuth request to %s failed: %s", url, exc)
            raise SessionExchangeError(REASON_PROVIDER_UNAVAILABLE) from exc

    def _request_access_token(self, code: str, redirect_uri: str) -> str:
        response = self._send(
            "POST",
            self.token_url,
            data={
                "grant_type": "authorization_code",
                "code": code,
                "redirect_uri": redirect_uri,
                "client_id": self.client_id,
                "client_secret": self.client_secret,
            },
            headers={"Accept": "application/json"},
        )
        if response.status_code != 200:
            current_app.logger.warning(
                "Token endpoint answered %s: %s", response.status_code, response.text
            )
            raise SessionExchangeError(REASON_CODE_REJECTED)
        try:
            payload = response.json()
        except ValueError as exc:
            raise SessionExchangeError(REASON_CODE_REJECTED) from exc
        access_token = payload.get("access_token") if isinstance(payload, dict) else None
        if not access_token:
            raise SessionExchangeError(REASON_CODE_REJECTED)
        return access_token

    def _fetch_profile(self, access_token: str) -> dict:
        response = self._send(
            "GET",
            self.userinfo_url,
            headers={
                "Authorization": f"Bearer {access_token}",
                "Accept": "application/json",
            },
        )
        if response.status_code != 200:
            current_app.logger.warning(
                "Userinfo endpoint answered %s", response.status_code
            )
            raise SessionExchangeError(REASON_PROVIDER_UNAVAILABLE)
        try:
            profile = response.json()
        except ValueError as exc:
            raise SessionExchangeError(REASON_INCOMPLETE_PROFILE) from exc
        if not isinstance(profile, dict) or not profile.get("sub"):
            raise SessionExchangeError(REASON_INCOMPLETE_PROFILE)
        return profile

    def _upsert_user(self, profile: dict) -> User:
        subject = str(profile["sub"])
        try:
            user = db.session.get(User, subject)
            if not user:
                user = User(id=subject)
                db.session.add(user)
            user.email = profile.get("email") or user.email
            user.name = profile.get("name") or user.name
            user.last_sign_in_at = utcnow()
            db.session.commit()
        except SQLAlchemyError as exc:
            db.session.rollback()
            current_app.logger.error("Could not persist user %s: %s", subject, exc)
            raise SessionExchangeError(REASON_STORAGE_UNAVAILABLE) from exc
        return user
