import os

from pydantic_settings import BaseSettings

_APP_DIR = os.path.dirname(__file__)


class Settings(BaseSettings):
    database_url: str = "sqlite+aiosqlite:///./data/db.sqlite3"
    api_key: str = ""  # empty = no auth check (local dev)
    openai_api_key: str = ""
    openai_api_key_file: str = ""  # takes precedence over openai_api_key when set
    openai_model: str = "gpt-4o"
    openai_timeout_seconds: float = 25.0
    data_dir: str = "./data"
    max_photo_size_bytes: int = 20 * 1024 * 1024  # 20MB
    min_photo_size_bytes: int = 12
    # base64 inflates ~33%, keeps the encoded image well under the vision payload ceiling
    max_ai_image_bytes: int = 1_500_000
    analysis_ttl_seconds: int = 7 * 24 * 60 * 60
    presign_expiry_seconds: int = 15 * 60
    url_signing_secret: str = "change-me"
    public_base_url: str = "http://localhost:8000"
    zip_zones_path: str = os.path.join(_APP_DIR, "data", "zip_zones.json")
    max_recommendations: int = 10
    cors_origins: list[str] = ["http://localhost:5173", "http://localhost:8000"]
    log_level: str = "INFO"

    model_config = {"env_file": ".env", "env_file_encoding": "utf-8"}


settings = Settings()
