from functools import lru_cache
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    model_config = SettingsConfigDict(
        env_file=".env",
        extra="ignore",
    )

    # ─────────── APP ───────────
    app_name: str = "DC Installation Tracker"
    environment: str = "dev"
    log_level: str = "INFO"

    # ─────────── API ───────────
    api_prefix: str = "/api/v1"
    request_id_header: str = "X-Request-Id"
    default_page_size: int = 15

    # ─────────── DATABASE ───────────
    database_url: str

    # ─────────── JWT / AUTH ───────────
    jwt_secret_key: str
    jwt_algorithm: str = "HS256"
    jwt_access_token_minutes: int = 1440  # 24 hours
    share_link_hours: int = 24

    # ─────────── FILES ───────────
    storage_root: str = "storage/public"
    temp_dir: str = "storage/temp"
    max_upload_bytes: int = 10 * 1024 * 1024
    image_max_width: int = 1920
    image_jpeg_quality: int = 85
    png_jpeg_threshold_bytes: int = 2 * 1024 * 1024
    image_max_pixels: int = 40_000_000

    # ─────────── RECORDS ───────────
    sr_allocation_attempts: int = 3


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    return Settings()
