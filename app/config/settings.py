from pydantic_settings import BaseSettings, SettingsConfigDict
from typing import Optional, List

from app.core.errors import ConfigurationError


class Settings(BaseSettings):
    # Supabase
    supabase_url: str = ""
    supabase_key: str = ""
    supabase_service_role_key: Optional[str] = None  # Used by the rate-limit cleanup job

    # Encryption of 2FA secrets at rest (ENCRYPTION_KEY)
    encryption_key: str = ""

    # Two-factor / device trust
    totp_issuer: str = "Supauth"
    trusted_device_days: int = 30
    fingerprint_hash_rounds: int = 1000
    ip_lookup_url: str = "https://api.ipify.org?format=json"
    ip_lookup_timeout: float = 3.0

    # Rate limiting
    rate_limit_fail_open: bool = False  # demo/offline mode only: allow when the store is unreachable
    rate_limit_cleanup_interval_seconds: int = 3600

    # App
    app_name: str = "authguard-backend"
    debug: bool = False
    environment: str = "development"  # development | staging | production
    log_level: str = "INFO"
    cors_origins: str = "http://localhost:3000,http://localhost:5173,http://127.0.0.1:3000,http://127.0.0.1:5173"
    rate_limit: str = "100/minute"  # slowapi format, e.g. "100/minute"

    @property
    def is_production(self) -> bool:
        return self.environment == "production"

    def get_cors_origins_list(self) -> List[str]:
        return [o.strip() for o in self.cors_origins.split(",") if o.strip()]

    def validate_security_settings(self) -> None:
        """Fail fast when settings required by the 2FA core are missing."""
        if not self.encryption_key:
            raise ConfigurationError(
                "Encryption key not configured. Please set ENCRYPTION_KEY environment variable."
            )
        if self.fingerprint_hash_rounds < 0:
            raise ConfigurationError("FINGERPRINT_HASH_ROUNDS must not be negative")
        if self.trusted_device_days <= 0:
            raise ConfigurationError("TRUSTED_DEVICE_DAYS must be positive")

    model_config = SettingsConfigDict(
        env_file=".env",
        case_sensitive=False,
        env_prefix="",  # No prefix needed
        extra="ignore"
    )


settings = Settings()
