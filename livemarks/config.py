import os
from pathlib import Path


BASE_DIR = Path(__file__).resolve().parent.parent


class Config:
    SECRET_KEY = os.environ.get("SECRET_KEY", "default-secret-key")
    SQLALCHEMY_DATABASE_URI = os.environ.get(
        "DATABASE_URL", f"sqlite:///{BASE_DIR / 'livemarks.db'}"
    )
    SQLALCHEMY_TRACK_MODIFICATIONS = False
    LOG_LEVEL = os.environ.get("LOG_LEVEL", "INFO")

    OAUTH_CLIENT_ID = os.environ.get("OAUTH_CLIENT_ID", "")
    OAUTH_CLIENT_SECRET = os.environ.get("OAUTH_CLIENT_SECRET", "")
    OAUTH_AUTHORIZE_URL = os.environ.get(
        "OAUTH_AUTHORIZE_URL", "https://accounts.google.com/o/oauth2/v2/auth"
    )
    OAUTH_TOKEN_URL = os.environ.get(
        "OAUTH_TOKEN_URL", "https://oauth2.googleapis.com/token"
    )
    OAUTH_USERINFO_URL = os.environ.get(
        "OAUTH_USERINFO_URL", "https://openidconnect.googleapis.com/v1/userinfo"
    )
    OAUTH_SCOPE = os.environ.get("OAUTH_SCOPE", "openid email profile")
    OAUTH_TIMEOUT = float(os.environ.get("OAUTH_TIMEOUT", "10"))

    LOGIN_PATH = os.environ.get("LOGIN_PATH", "/login")
    DEFAULT_NEXT_PATH = os.environ.get("DEFAULT_NEXT_PATH", "/bookmarks")
    DELETE_CONFIRM_TTL_SECONDS = int(
        os.environ.get("DELETE_CONFIRM_TTL_SECONDS", "300")
    )
    STREAM_POLL_INTERVAL = float(os.environ.get("STREAM_POLL_INTERVAL", "1.0"))
    # 0 keeps the stream open until the client disconnects.
    STREAM_MAX_POLLS = int(os.environ.get("STREAM_MAX_POLLS", "0"))


class TestConfig(Config):
    TESTING = True
    SECRET_KEY = "test-secret-key"
    SQLALCHEMY_DATABASE_URI = "sqlite:///:memory:"
    OAUTH_CLIENT_ID = "test-client"
    OAUTH_CLIENT_SECRET = "test-secret"
    OAUTH_AUTHORIZE_URL = "https://idp.test/authorize"
    OAUTH_TOKEN_URL = "https://idp.test/token"
    OAUTH_USERINFO_URL = "https://idp.test/userinfo"
    STREAM_POLL_INTERVAL = 0
    STREAM_MAX_POLLS = 1
