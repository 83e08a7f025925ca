# config.py
import os
from dataclasses import dataclass
from pathlib import Path
from typing import Optional

from dotenv import load_dotenv

ROOT = Path(__file__).resolve().parent

# .env.local wins over .env; neither overrides the real environment
load_dotenv(ROOT / ".env.local")
load_dotenv(ROOT / ".env")


def _int(name: str, default: int) -> int:
    raw = os.getenv(name)
    try:
        return int(raw) if raw else default
    except ValueError:
        return default


@dataclass(frozen=True)
class Settings:
    port: int = 3001
    environment: str = "development"
    log_level: str = "INFO"

    spotify_client_id: Optional[str] = None
    spotify_client_secret: Optional[str] = None
    spotify_redirect_uri: Optional[str] = None
    playlist_public: bool = False

    session_secret: str = "your-secret-key"
    session_max_age: int = 24 * 60 * 60

    openai_api_key: Optional[str] = None
    openai_model: str = "gpt-3.5-turbo"

    google_credentials_file: Optional[str] = None
    google_credentials_json: Optional[str] = None
    google_credentials_base64: Optional[str] = None

    max_upload_bytes: int = 5 * 1024 * 1024
    image_cache_size: int = 64
    analysis_cache_size: int = 256
    recommendation_cache_size: int = 256

    @property
    def production(self) -> bool:
        return self.environment == "production"


def load_settings() -> Settings:
    return Settings(
        port=_int("PORT", 3001),
        environment=os.getenv("APP_ENV") or os.getenv("NODE_ENV") or "development",
        log_level=os.getenv("LOG_LEVEL", "INFO").upper(),
        spotify_client_id=os.getenv("SPOTIFY_CLIENT_ID"),
        spotify_client_secret=os.getenv("SPOTIFY_CLIENT_SECRET"),
        spotify_redirect_uri=os.getenv("SPOTIFY_REDIRECT_URI"),
        playlist_public=os.getenv("PLAYLIST_PRIVACY", "private").lower() == "public",
        session_secret=os.getenv("SESSION_SECRET", "your-secret-key"),
        openai_api_key=os.getenv("OPENAI_API_KEY"),
        openai_model=os.getenv("OPENAI_MODEL", "gpt-3.5-turbo"),
        google_credentials_file=os.getenv("GOOGLE_APPLICATION_CREDENTIALS"),
        google_credentials_json=os.getenv("GOOGLE_CREDENTIALS"),
        google_credentials_base64=os.getenv("GOOGLE_CREDENTIALS_BASE64"),
        image_cache_size=_int("IMAGE_CACHE_SIZE", 64),
        analysis_cache_size=_int("ANALYSIS_CACHE_SIZE", 256),
        recommendation_cache_size=_int("RECOMMENDATION_CACHE_SIZE", 256),
    )
