# backend/poscloud/config.py
from __future__ import annotations
import os


def _env_bool(name: str, default: bool = False) -> bool:
    value = os.environ.get(name)
    if value is None:
        return default
    return value.strip().lower() in {"1", "true", "yes"}


class Config:
    # Optional "SECRET_KEY", with default dev key
    SECRET_KEY = os.environ.get("SECRET_KEY", "dev-secret-key-change-me")

    # SQLite DB stored in backend/instance/poscloud.sqlite3
    SQLALCHEMY_DATABASE_URI = os.environ.get(
        "DATABASE_URL", #optional alternative location
        "sqlite:///poscloud.sqlite3", #default local location
    )
    SQLALCHEMY_TRACK_MODIFICATIONS = False

    # Shared key POS terminals send as X-Override-Key / X-Cloud-Key.
    # Empty key leaves terminal endpoints open (local installs).
    OVERRIDE_API_KEY = os.environ.get("OVERRIDE_API_KEY", "")
    ALLOW_PUBLIC_CLOUD = _env_bool("ALLOW_PUBLIC_CLOUD")

    OVERRIDE_DEFAULT_TTL_SECONDS = 180

    AUDIT_DEFAULT_LIMIT = 100
    REQUESTS_DEFAULT_LIMIT = 50
    MAX_PAGE_SIZE = 200

    VIRTUAL_TOKEN_ISSUER = os.environ.get("VIRTUAL_TOKEN_ISSUER", "FULLPOS")
