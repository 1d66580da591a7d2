import os
from typing import Optional
from pydantic import ConfigDict
from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    """Application configuration"""

    model_config = ConfigDict(
        extra='ignore',
        env_file='.env',
        env_file_encoding='utf-8'
    )

    # Person/appearance snapshot
    PERSONS_DATA_PATH: str = os.getenv("PERSONS_DATA_PATH", "data/persons.json")
    PERSONS_SOURCE_URL: str = (
        "https://raw.githubusercontent.com/RhysSullivan/epstein-files-browser/main/celebrity-results.json"
    )
    PERSONS_SOURCE_PREFIX: str = "/Users/rhyssullivan/src/epstein-files-browser/files/"

    # Page images
    IMAGE_BASE_URL: str = "https://epstein-files.rhys-669.workers.dev/pdfs-as-jpegs"
    PAGE_FETCH_TIMEOUT: float = 30.0

    # Ranking: "max_confidence" or "first_seen"
    REPRESENTATIVE_APPEARANCE: str = "max_confidence"

    # Gallery
    GALLERY_DIR: str = "gallery"
    MAX_CARD_IMAGE_MB: int = 50

    # Card canvas
    CARD_WIDTH: int = 800
    CARD_HEIGHT: int = 600

    # Gemini (optional greeting generation)
    GEMINI_API_KEY: Optional[str] = None
    GEMINI_MODEL: str = "gemini-2.5-flash"
    GREETING_TIMEOUT: float = 15.0

    # API
    API_HOST: str = "0.0.0.0"
    API_PORT: int = 3000
    API_DEBUG: bool = False

    # Logging
    LOG_LEVEL: str = "INFO"
    LOG_FILE: Optional[str] = None  # set via .env


settings = Settings()
