# feedstore/core/config.py
from pydantic_settings import BaseSettings, SettingsConfigDict

class Settings(BaseSettings):
    # Storage / DB
    DB_URL: str = "sqlite:///./data/feed/packages.db"
    DB_TIMEOUT_SECONDS: float = 30.0
    DB_ECHO: bool = False

    # Feed policy (read on every repository call)
    ALLOW_OVERRIDE_EXISTING_PACKAGE_ON_PUSH: bool = True
    IGNORE_SYMBOLS_PACKAGES: bool = False
    ENABLE_DELISTING: bool = False
    ENABLE_FRAMEWORK_FILTERING: bool = False
    SEARCH_CASE_SENSITIVE: bool = False

    # Payload cache
    PAYLOAD_CACHE_SIZE: int = 64

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore"
    )

_settings: Settings | None = None

def get_settings() -> Settings:
    global _settings
    if _settings is None:
        _settings = Settings()
    return _settings

def reload_settings() -> Settings:
    """Drop the cached settings so the next read picks up env/.env changes."""
    global _settings
    _settings = None
    return get_settings()
