"""
firestore_rest configuration: all environment variables in one place.

Read from environment at import time. Never hardcode secrets.
Nothing is validated here: missing credentials surface as AuthenticationFailed
on the first token request.
"""

from __future__ import annotations

import os

DEFAULT_BASE_URL = "https://firestore.googleapis.com/v1"
DEFAULT_TOKEN_URI = "https://oauth2.googleapis.com/token"


def _private_key_from_env() -> str:
    # Keys pasted into .env files usually carry literal "\n" sequences
    return os.environ.get("FIREBASE_PRIVATE_KEY", "").replace("\\n", "\n")


class Settings:
    """Client settings from environment variables."""

    # Service account
    FIREBASE_TYPE: str = os.environ.get("FIREBASE_TYPE", "service_account")
    FIREBASE_PROJECT_ID: str = os.environ.get("FIREBASE_PROJECT_ID", "")
    FIREBASE_PRIVATE_KEY_ID: str = os.environ.get("FIREBASE_PRIVATE_KEY_ID", "")
    FIREBASE_PRIVATE_KEY: str = _private_key_from_env()
    FIREBASE_CLIENT_EMAIL: str = os.environ.get("FIREBASE_CLIENT_EMAIL", "")
    FIREBASE_CLIENT_ID: str = os.environ.get("FIREBASE_CLIENT_ID", "")
    FIREBASE_AUTH_URI: str = os.environ.get("FIREBASE_AUTH_URI", "")
    FIREBASE_TOKEN_URI: str = os.environ.get("FIREBASE_TOKEN_URI", DEFAULT_TOKEN_URI)
    FIREBASE_AUTH_PROVIDER_X509_CERT_URL: str = os.environ.get("FIREBASE_AUTH_PROVIDER_X509_CERT_URL", "")
    FIREBASE_CLIENT_X509_CERT_URL: str = os.environ.get("FIREBASE_CLIENT_X509_CERT_URL", "")
    FIREBASE_UNIVERSE_DOMAIN: str = os.environ.get("FIREBASE_UNIVERSE_DOMAIN", "googleapis.com")

    # Firestore
    FIRESTORE_DATABASE: str = os.environ.get("FIRESTORE_DATABASE", "(default)")
    FIRESTORE_EMULATOR_HOST: str = os.environ.get("FIRESTORE_EMULATOR_HOST", "")
    FIRESTORE_HTTP_TIMEOUT: float = float(os.environ.get("FIRESTORE_HTTP_TIMEOUT", "30"))
    FIRESTORE_MAX_TRANSACTION_ATTEMPTS: int = int(os.environ.get("FIRESTORE_MAX_TRANSACTION_ATTEMPTS", "5"))

    # Token refresh margin before expiry (5 minutes)
    TOKEN_REFRESH_MARGIN_MS: int = 5 * 60 * 1000

    @property
    def FIRESTORE_BASE_URL(self) -> str:
        if self.FIRESTORE_EMULATOR_HOST:
            return f"http://{self.FIRESTORE_EMULATOR_HOST}/v1"
        return os.environ.get("FIRESTORE_BASE_URL", DEFAULT_BASE_URL).rstrip("/")

    @property
    def USE_EMULATOR(self) -> bool:
        return bool(self.FIRESTORE_EMULATOR_HOST)


# Singleton instance
settings = Settings()
