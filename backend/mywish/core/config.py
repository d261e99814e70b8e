import json
import os

from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    app_name: str = "MyWish API"
    backend_url: str = "http://localhost:8000"
    frontend_url: str = "http://localhost:3000"
    environment: str = "local"
    backend_cors_origins_raw: str = ""  # Comma-separated or JSON array

    model_config = {
        "env_file": ".env",
        "env_file_encoding": "utf-8",
        "extra": "allow",
    }

    @property
    def backend_cors_origins(self) -> list[str]:
        """Parse CORS origins from raw string."""
        raw = os.getenv("BACKEND_CORS_ORIGINS", self.backend_cors_origins_raw).strip()
        if not raw:
            return ["http://localhost:3000", "http://127.0.0.1:3000"]
        if raw.startswith("["):
            try:
                parsed = json.loads(raw)
                if isinstance(parsed, list):
                    return [str(item).strip() for item in parsed if str(item).strip()]
            except ValueError:
                pass
        return [item.strip() for item in raw.split(",") if item.strip()]

    # Database: sqlite+aiosqlite:///./mywish.db (dev) | postgresql+asyncpg://... (prod)
    database_url: str = "sqlite+aiosqlite:///./mywish.db"
    db_pool_size: int = 5
    db_max_overflow: int = 10
    db_pool_recycle: int = 1800
    db_pool_timeout: int = 30

    access_token_expire_minutes: int = 60 * 24 * 7
    upload_token_expire_minutes: int = 10
    # SECURITY: override via JWT_SECRET_KEY env var; app refuses to start with default outside local
    jwt_secret_key: str = "CHANGE_ME"
    jwt_algorithm: str = "HS256"

    google_client_id: str = ""
    google_client_secret: str = ""

    # Blob store (local media directory served as static files)
    media_root: str = "media"
    media_path: str = "/media"
    image_upload_max_mb: int = 5

    # Registry rules
    slug_max_attempts: int = 10
    event_search_limit: int = 20
    event_max_hosts: int = 5

    # Content feed (blog articles served by an external CMS)
    content_base_url: str = ""
    content_project_slug: str = "mywish-app"
    content_cache_ttl_seconds: int = 5 * 60
    content_webhook_secret: str = ""
    content_timeout_seconds: float = 10.0
    # Optional shared cache; empty keeps the cache in process memory
    content_cache_redis_dsn: str = ""
    content_cache_max_items: int = 200

    log_level: str = "INFO"
    log_file: str = ""


settings = Settings()
