"""
Configuration management for Analytics Hub
"""
from pydantic_settings import BaseSettings
from functools import lru_cache


class Settings(BaseSettings):
    """Application settings"""

    # Application
    app_name: str = "Analytics Hub"
    environment: str = "development"
    debug: bool = False
    log_level: str = "INFO"

    # API
    api_host: str = "0.0.0.0"
    port: int = 3000

    # Google OAuth2 (required - startup fails without them)
    oauth_client_id: str
    oauth_client_secret: str
    oauth_redirect_uri: str

    # Sessions
    session_secret: str
    session_duration_hours: int = 24

    # CORS
    frontend_url: str = "http://localhost:3000"

    # Logging
    log_dir: str = "logs"

    # Snapshot persistence
    account_data_dir: str = "./account_data"

    class Config:
        env_file = ".env"
        case_sensitive = False

    @property
    def is_production(self) -> bool:
        return self.environment == "production"


@lru_cache()
def get_settings() -> Settings:
    """Get cached settings instance"""
    return Settings()
