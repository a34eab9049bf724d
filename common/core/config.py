from typing import Optional, List
from pydantic_settings import BaseSettings, SettingsConfigDict

from common.core.constants import Environment


class Settings(BaseSettings):
    model_config = SettingsConfigDict(env_file=".env", env_file_encoding="utf-8")

    # Environment Profile
    environment: Environment = Environment.LOCAL

    # API Settings
    app_name: str = "credits-api"
    api_version: str = "0.1.0"
    debug: bool = False
    frontend_url: str = "http://localhost:3000"

    # Database Components
    db_user: str = "postgres"
    db_password: str = "postgres"
    db_host: str = "localhost"
    db_port: int = 5432
    db_name: str = "credits"
    db_use_nullpool: bool = False
    db_pool_size: int = 10
    db_pool_overflow: int = 5
    db_command_timeout: float = 10.0  # Seconds before a statement is abandoned

    @property
    def database_url(self) -> str:
        """Construct database URL from components."""
        return f"postgresql://{self.db_user}:{self.db_password}@{self.db_host}:{self.db_port}/{self.db_name}"

    # Redis (rate limiter storage)
    redis_host: str = "localhost"
    redis_port: int = 6379
    redis_password: Optional[str] = None
    redis_db: int = 0

    @property
    def redis_connection_url(self) -> str:
        """Construct Redis URL from components."""
        if self.redis_password:
            return f"redis://:{self.redis_password}@{self.redis_host}:{self.redis_port}/{self.redis_db}"
        else:
            return f"redis://{self.redis_host}:{self.redis_port}/{self.redis_db}"

    # Rate limiting (storage defaults to the Redis URL above)
    rate_limit_enabled: bool = True
    rate_limit_defaults: List[str] = ["10/second", "300/minute"]
    rate_limit_storage_uri: Optional[str] = None  # e.g. "memory://" for local runs

    # OpenTelemetry
    otel_service_name: str = "credits-api"
    otel_service_version: str = "0.1.0"

    # Axiom (export disabled when token is empty)
    axiom_token: str = ""
    axiom_dataset: str = ""

    # Clerk (identity provider)
    clerk_issuer: str = ""
    clerk_jwks_url: Optional[str] = None  # Defaults to {issuer}/.well-known/jwks.json
    clerk_secret_key: str = ""  # Backend API key, used for email lookup
    clerk_api_url: str = "https://api.clerk.com/v1"
    clerk_authorized_parties: List[str] = []
    clerk_timeout_seconds: float = 5.0
    clerk_jwks_min_refresh_seconds: float = 60.0  # Floor between JWKS refetches on unknown kids

    @property
    def clerk_jwks_endpoint(self) -> str:
        if self.clerk_jwks_url:
            return self.clerk_jwks_url
        return f"{self.clerk_issuer.rstrip('/')}/.well-known/jwks.json"

    # Billing - Stripe (payments)
    stripe_secret_key: str = ""
    stripe_webhook_secret: str = ""
    stripe_webhook_tolerance_seconds: int = 300
    stripe_timeout_seconds: float = 20.0
    # Stripe price IDs for paid plans
    stripe_price_id_standard: str = "price_1QSAcoK0eQ0Y39horWvdPMdy"
    stripe_price_id_enterprise: str = "price_1QVT99K0eQ0Y39holLxNEwGu"

    # Email - Resend
    resend_api_key: str = ""
    resend_api_url: str = "https://api.resend.com"
    resend_timeout_seconds: float = 10.0
    mail_from_name: str = "Credits"
    mail_from_email: str = "no-reply@example.com"

    # CMS - Strapi
    strapi_url: str = "http://localhost:1337"
    strapi_api_token: str = ""
    strapi_timeout_seconds: float = 10.0
    strapi_max_retries: int = 3
    strapi_initial_retry_delay: float = 1.0
    strapi_max_retry_delay: float = 5.0

    @property
    def cors_allowed_origins(self) -> List[str]:
        """Auto-select CORS origins based on environment."""
        if self.environment == Environment.LOCAL:
            return [
                "http://localhost:3000",
                "http://localhost:3001",
            ]
        return [self.frontend_url]


settings = Settings()
