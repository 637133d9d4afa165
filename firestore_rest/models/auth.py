"""Credential models: service account, token exchange response."""

from __future__ import annotations

from pydantic import BaseModel, Field

from firestore_rest.config import DEFAULT_TOKEN_URI, settings


class ServiceAccount(BaseModel):
    """The fields of a Google service account key that token signing needs."""

    model_config = {"extra": "ignore"}

    type: str = "service_account"
    project_id: str = ""
    private_key_id: str = ""
    private_key: str = ""
    client_email: str = ""
    client_id: str = ""
    token_uri: str = DEFAULT_TOKEN_URI

    @property
    def is_complete(self) -> bool:
        return bool(self.client_email and self.private_key)

    @classmethod
    def from_settings(cls) -> ServiceAccount:
        return cls(
            type=settings.FIREBASE_TYPE,
            project_id=settings.FIREBASE_PROJECT_ID,
            private_key_id=settings.FIREBASE_PRIVATE_KEY_ID,
            private_key=settings.FIREBASE_PRIVATE_KEY,
            client_email=settings.FIREBASE_CLIENT_EMAIL,
            client_id=settings.FIREBASE_CLIENT_ID,
            token_uri=settings.FIREBASE_TOKEN_URI or DEFAULT_TOKEN_URI,
        )


class TokenResponse(BaseModel):
    """What the OAuth2 token endpoint returns for a jwt-bearer grant."""

    access_token: str = Field(min_length=1)
    expires_in: int = Field(gt=0)
    token_type: str = "Bearer"
