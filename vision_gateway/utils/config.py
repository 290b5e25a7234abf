from typing import Annotated, Any, Dict, List, Optional
from pydantic_settings import BaseSettings, NoDecode, SettingsConfigDict
from pydantic import AliasChoices, Field, field_validator

APP_VERSION = "2.0.0"


class Settings(BaseSettings):
    # Service
    environment: str = Field(default="development")
    app_version: str = Field(default=APP_VERSION)
    port: int = Field(default=3000)
    log_level: str = Field(default="INFO")
    landing_page: str = Field(default="/general.html")

    # Cloudinary AI Vision
    cloudinary_cloud_name: str = Field(default="")
    cloudinary_api_key: str = Field(default="")
    cloudinary_api_secret: str = Field(default="")
    cloudinary_api_base: str = Field(default="https://api.cloudinary.com")
    upstream_timeout_seconds: float = Field(default=30.0)

    # Notifications
    webhook_url: Optional[str] = Field(
        default=None,
        validation_alias=AliasChoices("webhook_url", "zapier_webhook_url"),
    )
    webhook_timeout_seconds: float = Field(default=10.0)

    # Security profile
    security_enabled: bool = Field(default=True)
    api_keys: Annotated[List[str], NoDecode] = Field(default_factory=list)
    allowed_origins: Annotated[List[str], NoDecode] = Field(default_factory=list)
    require_timestamp: bool = Field(default=False)
    timestamp_tolerance_ms: int = Field(default=5 * 60 * 1000)
    trust_forwarded_for: bool = Field(default=False)

    # Rate limiting
    rate_limit_window_ms: int = Field(default=15 * 60 * 1000)
    rate_limit_max: int = Field(default=100)
    rate_limit_backend: str = Field(default="memory")

    # Redis (rate limit backend)
    redis_url: str = Field(default="redis://localhost:6379/0")
    redis_key_prefix: str = Field(default="vision-gateway:ratelimit")

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore"
    )

    @field_validator("api_keys", "allowed_origins", mode="before")
    def split_comma_separated(cls, v):
        if v is None:
            return []
        if isinstance(v, str):
            return [item.strip() for item in v.split(",") if item.strip()]
        return v

    @field_validator("webhook_url", mode="before")
    def blank_webhook_is_none(cls, v):
        if isinstance(v, str) and not v.strip():
            return None
        return v

    @field_validator("rate_limit_backend")
    def validate_backend(cls, v):
        v = v.strip().lower()
        if v not in ("memory", "redis"):
            raise ValueError("rate_limit_backend must be 'memory' or 'redis'")
        return v

    @field_validator("rate_limit_window_ms", "rate_limit_max", "timestamp_tolerance_ms")
    def validate_positive(cls, v, info):
        if v <= 0:
            raise ValueError(f"{info.field_name} must be positive")
        return v

    # Utility Methods
    def is_production(self) -> bool:
        return self.environment.lower() == "production"

    def is_development(self) -> bool:
        return self.environment.lower() == "development"

    def provider_configured(self) -> bool:
        return bool(
            self.cloudinary_cloud_name
            and self.cloudinary_api_key
            and self.cloudinary_api_secret
        )

    def security_summary(self) -> Dict[str, Any]:
        """Non-secret view of the active security posture"""
        if not self.security_enabled:
            return {"profile": "serverless", "gate": "disabled"}
        return {
            "profile": "secured",
            "gate": "enabled",
            "api_key_auth": "enforced" if self.api_keys else "open",
            "configured_keys": len(self.api_keys),
            "cors_origins": len(self.allowed_origins) or "any",
            "timestamp_required": self.require_timestamp,
            "rate_limit": {
                "window_ms": self.rate_limit_window_ms,
                "max_requests": self.rate_limit_max,
                "backend": self.rate_limit_backend,
            },
        }


settings = Settings()
