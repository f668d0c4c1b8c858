"""
Application settings and logging setup for the expense tracker.
Values are read from environment variables or a local .env file.
"""

import logging
from typing import Optional

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    # Load settings from a .env file
    model_config = SettingsConfigDict(env_file=".env", env_file_encoding="utf-8", extra='ignore')

    # SQLite database file
    DATABASE_PATH: str = "expenses.db"

    # Tesseract language identifier passed to the recognizer
    OCR_LANGUAGE: str = "eng"

    # Upload limit for scanned receipts (10MB)
    MAX_UPLOAD_BYTES: int = 10 * 1024 * 1024

    LOG_LEVEL: str = "INFO"
    LOG_FILE: Optional[str] = "expense_tracker.log"


# Create a single, importable instance of the settings
settings = Settings()


def configure_logging(config: Settings = settings) -> None:
    """Configure root logging for the application.

    Args:
        config: Settings providing log level and log file
    """
    handlers = [logging.StreamHandler()]
    if config.LOG_FILE:
        handlers.append(logging.FileHandler(config.LOG_FILE))

    logging.basicConfig(
        level=getattr(logging, config.LOG_LEVEL.upper(), logging.INFO),
        format='%(asctime)s - %(name)s - %(levelname)s - %(message)s',
        handlers=handlers
    )
