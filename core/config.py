from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(env_file=".env", env_file_encoding="utf-8", extra="ignore")

    # Database
    database_url: str
    db_pool_size: int = 10
    db_max_overflow: int = 10  # pool_size + max_overflow = 20 connections max
    db_pool_timeout: float = 2.0

    # Redis
    redis_url: str

    # API
    public_base_url: str = "http://localhost:5173"
    api_port: int = 8000
    cors_origins: list[str] = ["http://localhost:5173"]

    # Security
    jwt_secret: str
    jwt_algorithm: str = "HS256"
    jwt_expires_hours: int = 24 * 7

    # Email (HTTP mail API, SendGrid-compatible)
    mail_api_url: str = "https://api.sendgrid.com/v3/mail/send"
    mail_api_key: str = ""
    mail_from: str = ""

    # IP geolocation
    geo_primary_url: str = "http://ipapi.co"
    geo_fallback_url: str = "http://ip-api.com"

    # Environment
    environment: str = "development"

    @property
    def is_production(self) -> bool:
        return self.environment == "production"

    @property
    def is_development(self) -> bool:
        return self.environment == "development"


settings = Settings()
