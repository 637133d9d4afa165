"""
Bearer tokens for the Firestore REST API.

A service account signs an RS256 JWT assertion, trades it at the OAuth2 token
endpoint for an access token, and the token is cached until five minutes
before it expires.
"""

from __future__ import annotations

import asyncio
import logging
import time
from dataclasses import dataclass
from typing import Protocol

import jwt
from pydantic import ValidationError as PydanticValidationError

from firestore_rest.config import settings
from firestore_rest.errors import AuthenticationFailed
from firestore_rest.models.auth import ServiceAccount, TokenResponse
from firestore_rest.services.transport import HttpxTransport, Transport

logger = logging.getLogger(__name__)

SCOPES = "https://www.googleapis.com/auth/cloud-platform https://www.googleapis.com/auth/datastore"
JWT_BEARER_GRANT = "urn:ietf:params:oauth:grant-type:jwt-bearer"
ASSERTION_LIFETIME_SECONDS = 3600

# Token the Firestore emulator accepts for admin access
EMULATOR_TOKEN = "owner"


def now_ms() -> int:
    return int(time.time() * 1000)


@dataclass(frozen=True)
class BearerToken:
    value: str
    expires_at: int  # epoch millis

    def is_fresh(self, at_ms: int, margin_ms: int = settings.TOKEN_REFRESH_MARGIN_MS) -> bool:
        return self.expires_at > at_ms + margin_ms


class TokenProvider(Protocol):
    async def get_token(self) -> BearerToken: ...


class StaticTokenProvider:
    """Always hands out the same token. For the emulator and tests."""

    def __init__(self, token: str = EMULATOR_TOKEN):
        self._token = BearerToken(token, expires_at=2**62)

    async def get_token(self) -> BearerToken:
        return self._token


class ServiceAccountTokenProvider:
    """Exchanges a signed service-account assertion for an access token."""

    def __init__(
        self,
        service_account: ServiceAccount,
        transport: Transport | None = None,
        clock=now_ms,
    ) -> None:
        self.service_account = service_account
        self._transport = transport
        self._clock = clock
        self._cached: BearerToken | None = None
        self._lock = asyncio.Lock()

    def _sign_assertion(self) -> str:
        issued_at = self._clock() // 1000
        payload = {
            "iss": self.service_account.client_email,
            "sub": self.service_account.client_email,
            "aud": self.service_account.token_uri,
            "iat": issued_at,
            "exp": issued_at + ASSERTION_LIFETIME_SECONDS,
            "scope": SCOPES,
        }
        headers = {"kid": self.service_account.private_key_id} if self.service_account.private_key_id else None
        try:
            return jwt.encode(payload, self.service_account.private_key, algorithm="RS256", headers=headers)
        except (jwt.PyJWTError, ValueError, TypeError) as e:
            raise AuthenticationFailed(f"Failed to sign service account assertion: {e}") from e

    async def _exchange(self, assertion: str) -> BearerToken:
        transport = self._transport or HttpxTransport()
        try:
            response = await transport.send(
                "POST",
                self.service_account.token_uri,
                headers={"Content-Type": "application/x-www-form-urlencoded"},
                form={"grant_type": JWT_BEARER_GRANT, "assertion": assertion},
            )
        finally:
            if self._transport is None:
                await transport.aclose()

        if not response.ok:
            raise AuthenticationFailed(f"Failed to get access token: {response.status} {response.body}")
        try:
            data = TokenResponse.model_validate(response.body)
        except PydanticValidationError as e:
            raise AuthenticationFailed(f"Malformed token response: {e}") from e

        return BearerToken(data.access_token, expires_at=self._clock() + data.expires_in * 1000)

    async def get_token(self) -> BearerToken:
        """
        Return a cached token, refreshing it when it is within the margin of expiry.

        Raises:
            AuthenticationFailed: Credentials missing, signing failed, or the
                token endpoint refused the assertion
        """
        async with self._lock:
            if self._cached and self._cached.is_fresh(self._clock()):
                return self._cached

            if not self.service_account.is_complete:
                raise AuthenticationFailed("Invalid service account credentials")

            token = await self._exchange(self._sign_assertion())
            logger.info(
                "auth: refreshed access token for %s (expires in %ds)",
                self.service_account.client_email,
                (token.expires_at - self._clock()) // 1000,
            )
            self._cached = token
            return token

    def invalidate(self) -> None:
        """Drop the cached token so the next call fetches a new one."""
        self._cached = None


_default_provider: TokenProvider | None = None


def default_token_provider() -> TokenProvider:
    """
    Process-wide provider built from settings, created on first use.

    The emulator gets a static "owner" token; everything else signs with the
    FIREBASE_* service account.
    """
    global _default_provider
    if _default_provider is None:
        if settings.USE_EMULATOR:
            _default_provider = StaticTokenProvider()
        else:
            _default_provider = ServiceAccountTokenProvider(ServiceAccount.from_settings())
    return _default_provider


def reset_default_token_provider() -> None:
    global _default_provider
    _default_provider = None
