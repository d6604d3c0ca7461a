"""
Configuration module for the CIAM API connector service.

This module uses Pydantic Settings to load and validate environment variables
for the Entra External ID tenant, the API connector basic-auth credentials,
Microsoft Graph access and the request log database.

Nested sections use a double underscore, so ``AZURE_AD__CLIENT_ID`` sets
``settings.AZURE_AD.CLIENT_ID``. Environment variables are loaded from
.env file or system environment.
"""

from functools import lru_cache
from typing import List, Literal, Optional

from pydantic import BaseModel, Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


APP_VERSION = "1.0.0"


# =============================================================================
# Nested Sections
# =============================================================================

class ClientCredential(BaseModel):
    """One entry of the AzureAd ClientCredentials list."""

    SOURCE_TYPE: str = Field(default="ClientSecret", description="Credential source type")
    CLIENT_SECRET: Optional[str] = Field(None, description="Secret value for ClientSecret sources")


class AzureAdSettings(BaseModel):
    """Entra External ID (CIAM) tenant and app registration."""

    INSTANCE: str = Field(
        default="https://login.microsoftonline.com/",
        description="Authority host used for MSAL flows",
    )
    TENANT_ID: str = Field(default="", description="Tenant ID (GUID)")
    TENANT_NAME: str = Field(
        default="",
        description="Tenant subdomain, e.g. 'contoso' for contoso.ciamlogin.com",
    )
    CLIENT_ID: str = Field(default="", description="Application (client) ID")
    CLIENT_SECRET: Optional[str] = Field(
        None,
        description="Client secret; takes precedence over CLIENT_CREDENTIALS",
    )
    CLIENT_CREDENTIALS: List[ClientCredential] = Field(
        default_factory=list,
        description="Credential descriptors, first ClientSecret entry is used",
    )
    DOMAIN: str = Field(
        default="ciamprod.onmicrosoft.com",
        description="Issuer used for emailAddress identities on created users",
    )

    @property
    def authority(self) -> str:
        return f"{self.INSTANCE.rstrip('/')}/{self.TENANT_ID}"

    @property
    def ciam_token_endpoint(self) -> str:
        """Legacy token endpoint that accepts the ROPC grant with ``nca=1``."""
        return f"https://{self.TENANT_NAME}.ciamlogin.com/{self.TENANT_ID}/oauth2/token"

    @property
    def client_secret(self) -> Optional[str]:
        """
        Resolve the client secret.

        Returns:
            CLIENT_SECRET if set, otherwise the secret of the first
            CLIENT_CREDENTIALS entry whose source type is ClientSecret.
        """
        if self.CLIENT_SECRET:
            return self.CLIENT_SECRET
        for credential in self.CLIENT_CREDENTIALS:
            if credential.SOURCE_TYPE == "ClientSecret" and credential.CLIENT_SECRET:
                return credential.CLIENT_SECRET
        return None


class BasicAuthSettings(BaseModel):
    """Credentials the identity platform presents when calling the connector."""

    USER: Optional[str] = Field(None, description="Basic auth user name (empty disables the check)")
    PASS: Optional[str] = Field(None, description="Basic auth password")
    ENFORCE: bool = Field(
        default=False,
        description="Reject requests that fail the check instead of only logging them",
    )


class DatabaseSettings(BaseModel):
    URL: str = Field(
        default="sqlite+aiosqlite:///./connector.db",
        description="SQLAlchemy async database URL for the Logs table",
    )
    ECHO_SQL: bool = Field(default=False, description="Echo SQL statements")


class GraphSettings(BaseModel):
    BASE_URL: str = Field(
        default="https://graph.microsoft.com/v1.0",
        description="Microsoft Graph REST base URL",
    )
    RESOURCE: str = Field(
        default="https://graph.microsoft.com",
        description="Resource requested by the ROPC token endpoint",
    )
    SCOPES: List[str] = Field(
        default_factory=lambda: ["https://graph.microsoft.com/.default"],
        description="Scopes for the client credentials flow",
    )
    ROPC_SCOPES: List[str] = Field(
        default_factory=lambda: ["User.Read"],
        description="Delegated scopes requested by the MSAL password flow",
    )


class Settings(BaseSettings):
    """
    Application settings loaded from environment variables.
    """

    # =========================================================================
    # Identity
    # =========================================================================

    AZURE_AD: AzureAdSettings = Field(default_factory=AzureAdSettings)

    AUTH: BasicAuthSettings = Field(default_factory=BasicAuthSettings)

    GRAPH: GraphSettings = Field(default_factory=GraphSettings)

    ROPC_FLOW: Literal["token_endpoint", "msal"] = Field(
        default="token_endpoint",
        description="How the 'auth' method exchanges a password for a token",
    )

    # =========================================================================
    # Enrolment Retry
    # =========================================================================

    ENROLMENT_RETRY_ATTEMPTS: int = Field(
        default=10,
        description="Attempts to register the email method on a new user",
        ge=1,
    )

    ENROLMENT_RETRY_DELAY_SECONDS: float = Field(
        default=1.0,
        description="Delay between email method registration attempts",
        ge=0,
    )

    # =========================================================================
    # Persistence
    # =========================================================================

    DATABASE: DatabaseSettings = Field(default_factory=DatabaseSettings)

    # =========================================================================
    # Server
    # =========================================================================

    HTTP_TIMEOUT_SECONDS: float = Field(
        default=10.0,
        description="Timeout for outbound calls to the identity platform and Graph",
        gt=0,
    )

    ALLOWED_ORIGINS: Optional[str] = Field(
        None,
        description="Comma-separated list of allowed CORS origins (leave empty for no CORS)",
    )

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
    """
    Get or create a singleton Settings instance.

    Returns:
        Settings instance with all configuration loaded and validated.
    """
    return Settings()
