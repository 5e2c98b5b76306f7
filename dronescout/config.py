"""
Configuration management for the DroneScout edge API
"""

from pydantic_settings import BaseSettings
from typing import Optional
from functools import lru_cache
import logging
from logging.handlers import RotatingFileHandler
import sys


class Settings(BaseSettings):
    """Application settings with environment variable support"""

    APP_NAME: str = "DroneScout Edge API"
    APP_VERSION: str = "1.0.0"
    DEBUG: bool = False

    HOST: str = "0.0.0.0"
    PORT: int = 8000

    # Organization API token, forwarded verbatim (no "Bearer" prefix)
    SKYDIO_API_TOKEN: Optional[str] = None
    SKYDIO_API_BASE: str = "https://api.skydio.com"

    OPENWEATHER_API_KEY: Optional[str] = None
    OPENWEATHER_BASE_URL: str = "https://api.openweathermap.org/data/2.5"

    OPENSKY_BASE_URL: str = "https://opensky-network.org/api"
    OPENSKY_USERNAME: Optional[str] = None
    OPENSKY_PASSWORD: Optional[str] = None

    FLIGHTS_PAGE_SIZE: int = 50
    SYNC_MAX_PAGES: int = 20

    UPSTREAM_TIMEOUT_SECONDS: float = 15.0

    LOG_LEVEL: str = "INFO"
    LOG_FILE: Optional[str] = None

    CORS_ORIGINS: list = ["*"]

    class Config:
        env_file = ".env"
        case_sensitive = True


@lru_cache()
def get_settings() -> Settings:
    """Get cached settings instance"""
    return Settings()


def setup_logging(settings: Settings):
    """Configure application logging"""

    logger = logging.getLogger("dronescout")
    logger.setLevel(getattr(logging, settings.LOG_LEVEL.upper(), logging.INFO))

    # Reloads and test clients import the app more than once
    if logger.handlers:
        return logger

    console_handler = logging.StreamHandler(sys.stdout)
    console_handler.setLevel(logging.INFO)
    console_format = logging.Formatter(
        '%(asctime)s - %(name)s - %(levelname)s - %(message)s'
    )
    console_handler.setFormatter(console_format)
    logger.addHandler(console_handler)

    if settings.LOG_FILE:
        file_handler = RotatingFileHandler(
            settings.LOG_FILE,
            maxBytes=10485760,
            backupCount=5
        )
        file_handler.setLevel(logging.DEBUG)
        file_format = logging.Formatter(
            '%(asctime)s - %(name)s - %(levelname)s - %(funcName)s:%(lineno)d - %(message)s'
        )
        file_handler.setFormatter(file_format)
        logger.addHandler(file_handler)

    return logger


if __name__ == "__main__":
    settings = get_settings()
    print(f"Skydio API base: {settings.SKYDIO_API_BASE}")
    print(f"Skydio token set: {bool(settings.SKYDIO_API_TOKEN)}")
    print(f"Log level: {settings.LOG_LEVEL}")
