"""Application settings loaded from environment variables.

Environment Configuration:
    TOKENAUTH_ENV: Deployment environment (local | test | staging | prod)
    LOG_JSON: Emit JSON logs (default true)

Token Configuration:
    TOKENAUTH_SECRET: Secret (HMAC key or PEM key) used to sign and verify tokens
        (required in staging/prod)
    TOKENAUTH_ALGORITHM: Signing algorithm (default HS256)
    TOKENAUTH_EXPIRES_IN: Default token lifetime, e.g. "3600", "15m", "1h"
    TOKENAUTH_ISSUER: Issuer written when signing and expected when verifying
    TOKENAUTH_AUDIENCES: Comma-separated list of audiences
    TOKENAUTH_CLOCK_TOLERANCE: Leeway in seconds for exp/nbf checks
    TOKENAUTH_MAX_AGE: Maximum token age measured from iat
"""

from enum import Enum
from functools import lru_cache

from pydantic import Field, model_validator
from pydantic_settings import BaseSettings

from tokenauth.auth.options import DEFAULT_SIGN_ALGORITHM, SignOptions, VerifyOptions
from tokenauth.auth.provider import TokenProvider


class Environment(str, Enum):
    """Valid deployment environments."""

    LOCAL = "local"
    TEST = "test"
    STAGING = "staging"
    PROD = "prod"


class Settings(BaseSettings):
    """Application configuration.

    Settings are loaded from environment variables.
    Validation rules:
    - TOKENAUTH_SECRET is required in staging and prod only
    - TOKENAUTH_CLOCK_TOLERANCE must be >= 0
    """

    tokenauth_env: Environment = Field(default=Environment.LOCAL, alias="TOKENAUTH_ENV")
    log_json: bool = Field(default=True, alias="LOG_JSON")

    secret: str | None = Field(default=None, alias="TOKENAUTH_SECRET")
    algorithm: str = Field(default=DEFAULT_SIGN_ALGORITHM, alias="TOKENAUTH_ALGORITHM")
    expires_in: str | None = Field(default=None, alias="TOKENAUTH_EXPIRES_IN")
    issuer: str | None = Field(default=None, alias="TOKENAUTH_ISSUER")
    audiences: str | None = Field(default=None, alias="TOKENAUTH_AUDIENCES")
    clock_tolerance: int = Field(default=0, alias="TOKENAUTH_CLOCK_TOLERANCE")
    max_age: str | None = Field(default=None, alias="TOKENAUTH_MAX_AGE")

    model_config = {
        "env_file": ".env",
        "env_file_encoding": "utf-8",
        "extra": "ignore",
    }

    @model_validator(mode="after")
    def validate_required_settings(self) -> "Settings":
        """Ensure required settings are set for the environment."""
        if self.tokenauth_env in (Environment.STAGING, Environment.PROD):
            if not self.secret:
                raise ValueError(
                    f"TOKENAUTH_SECRET is required for TOKENAUTH_ENV={self.tokenauth_env.value}"
                )

        if self.clock_tolerance < 0:
            raise ValueError("TOKENAUTH_CLOCK_TOLERANCE must be >= 0")

        return self

    @property
    def audience_list(self) -> list[str]:
        """Parse comma-separated audiences into a list."""
        if self.audiences:
            return [a.strip() for a in self.audiences.split(",") if a.strip()]
        return []

    @property
    def default_sign_options(self) -> SignOptions:
        """Sign options derived from settings (unset fields stay None)."""
        audiences = self.audience_list
        return SignOptions(
            algorithm=self.algorithm,
            expires_in=self.expires_in,
            issuer=self.issuer,
            audience=(audiences[0] if len(audiences) == 1 else audiences) or None,
        )

    @property
    def default_verify_options(self) -> VerifyOptions:
        """Verify options derived from settings (unset fields stay None)."""
        return VerifyOptions(
            algorithms=[self.algorithm],
            issuer=self.issuer,
            audience=self.audience_list or None,
            clock_tolerance=self.clock_tolerance or None,
            max_age=self.max_age,
        )


@lru_cache
def get_settings() -> Settings:
    """Get cached application settings.

    Returns:
        Settings instance loaded from environment.

    Raises:
        ValidationError: If required settings are missing or invalid.
    """
    return Settings()


def clear_settings_cache() -> None:
    """Clear the settings cache. Useful for testing."""
    get_settings.cache_clear()


def create_token_provider(settings: Settings | None = None) -> TokenProvider:
    """Create a TokenProvider configured from settings.

    Args:
        settings: Settings to use; defaults to get_settings().

    Returns:
        TokenProvider with secret and default options applied.
    """
    settings = settings or get_settings()
    provider = TokenProvider()
    if settings.secret:
        provider.set_secret(settings.secret)
    provider.set_default_sign_options(settings.default_sign_options)
    provider.set_default_verify_options(settings.default_verify_options)
    return provider
