"""
Configuration for the demo API service.

Covers the API-key filter, Azure AD B2C bearer validation, the B2C sign-in
web flow and the downstream weather API it calls on the user's behalf.
"""

import os
from functools import lru_cache
from typing import List, Optional

from pydantic import BaseModel, Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class AzureAdB2CSettings(BaseModel):
    """B2C tenant, policy and app registration."""

    INSTANCE: str = Field(
        default="https://contoso.b2clogin.com",
        description="B2C login host, e.g. https://<tenant>.b2clogin.com",
    )
    DOMAIN: str = Field(default="contoso.onmicrosoft.com", description="B2C tenant domain")
    TENANT_ID: Optional[str] = Field(None, description="Tenant ID; enables issuer validation")
    CLIENT_ID: str = Field(default="", description="Application (client) ID; the token audience")
    CLIENT_SECRET: Optional[str] = Field(None, description="Secret for the sign-in code exchange")
    SIGN_IN_POLICY: str = Field(default="B2C_1_susi", description="Sign-up/sign-in user flow")
    SCOPES: str = Field(
        default="access_as_user",
        description="Space-separated scopes, at least one must be present in the token",
    )
    CALLBACK_PATH: str = Field(default="/auth/callback", description="Redirect path registered in B2C")
    SIGNED_OUT_CALLBACK_PATH: str = Field(default="/", description="Where B2C returns after sign-out")

    @property
    def policy_authority(self) -> str:
        return f"{self.INSTANCE.rstrip('/')}/{self.DOMAIN}/{self.SIGN_IN_POLICY}"

    @property
    def authorize_endpoint(self) -> str:
        return f"{self.policy_authority}/oauth2/v2.0/authorize"

    @property
    def token_endpoint(self) -> str:
        return f"{self.policy_authority}/oauth2/v2.0/token"

    @property
    def logout_endpoint(self) -> str:
        return f"{self.policy_authority}/oauth2/v2.0/logout"

    @property
    def jwks_uri(self) -> str:
        return f"{self.policy_authority}/discovery/v2.0/keys"

    @property
    def issuer(self) -> Optional[str]:
        if not self.TENANT_ID:
            return None
        return f"{self.INSTANCE.rstrip('/')}/{self.TENANT_ID}/v2.0/"

    @property
    def scopes_list(self) -> List[str]:
        return [scope for scope in self.SCOPES.split() if scope]


class DownstreamApiSettings(BaseModel):
    BASE_URL: str = Field(default="http://localhost:8081", description="Protected weather API root")
    SCOPES: str = Field(
        default="",
        description="Full scope URIs requested at sign-in for the downstream API",
    )


class Settings(BaseSettings):
    """
    Application settings loaded from environment variables.
    """

    # =========================================================================
    # API Key Filter
    # =========================================================================

    API_KEY: Optional[str] = Field(None, description="Value expected in the X-API-KEY header")

    # =========================================================================
    # Azure AD B2C
    # =========================================================================

    AZURE_AD: AzureAdB2CSettings = Field(default_factory=AzureAdB2CSettings)

    JWKS_CACHE_SECONDS: int = Field(
        default=3600,
        description="Time to cache B2C JWKS keys in seconds",
        ge=0,
        le=86400,
    )

    DOWNSTREAM_API: DownstreamApiSettings = Field(default_factory=DownstreamApiSettings)

    SESSION_SECRET: str = Field(
        default="change-me-session-secret-change-me",
        description="Key for signing the sign-in session cookie",
        min_length=16,
    )

    # =========================================================================
    # Hosting Environment
    # =========================================================================

    ENVIRONMENT_NAME: str = Field(default="Production", description="Development, Staging or Production")
    APPLICATION_NAME: str = Field(default="webapi")
    CONTENT_ROOT_PATH: str = Field(default_factory=os.getcwd)
    WEB_ROOT_PATH: Optional[str] = Field(None)

    ALLOWED_ORIGINS: Optional[str] = Field(None, description="Comma-separated CORS origins")

    LOG_LEVEL: str = Field(default="INFO", description="Logging level")

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        env_nested_delimiter="__",
        case_sensitive=True,
        extra="ignore",
    )

    @property
    def allowed_origins_list(self) -> List[str]:
        if not self.ALLOWED_ORIGINS:
            return []
        return [origin.strip() for origin in self.ALLOWED_ORIGINS.split(",") if origin.strip()]

    @field_validator("LOG_LEVEL")
    @classmethod
    def validate_log_level(cls, v: str) -> str:
        allowed = ["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"]
        level = v.upper()
        if level not in allowed:
            raise ValueError(f"LOG_LEVEL must be one of {allowed}, got: {v}")
        return level


@lru_cache()
def get_settings() -> Settings:
    return Settings()
