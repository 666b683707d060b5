from functools import lru_cache
from pathlib import Path
from typing import List, Literal

from pydantic_settings import BaseSettings, SettingsConfigDict

BASE_DIR = Path(__file__).resolve().parent


class Settings(BaseSettings):
    """Feed service configuration, read from FEED_* environment variables or .env"""

    model_config = SettingsConfigDict(env_prefix="FEED_", env_file=".env", extra="ignore")

    database_url: str = "sqlite:///./feed.db"

    # JWT
    secret_key: str = "supersecretkey"  # override via FEED_SECRET_KEY
    algorithm: str = "HS256"
    access_token_expire_minutes: int = 60

    posts_per_page: int = 2

    # Image storage, locators are relative to base_dir
    base_dir: Path = BASE_DIR
    images_dir: str = "images"
    allowed_image_types: List[str] = ["image/png", "image/jpg", "image/jpeg"]

    # "local" broadcasts to this process' sockets, "redis" fans out through pub/sub
    notification_backend: Literal["local", "redis"] = "local"
    redis_url: str = "redis://localhost:6379"
    notification_channel: str = "posts"

    cors_origins: List[str] = ["*"]
    log_level: str = "INFO"


@lru_cache
def get_settings() -> Settings:
    return Settings()
