"""
Configuration management using Pydantic BaseSettings.
All values can be overridden via environment variables or a .env file.
"""
from typing import Optional

from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    # ── Database (TiDB / MySQL-protocol by default) ────────────────────────
    db_host: str = "tidb"
    db_port: int = 4000
    db_user: str = "root"
    db_password: str = ""
    db_name: str = "vidshare"
    # Full SQLAlchemy URL; takes precedence over the parts above when set
    database_url: Optional[str] = None

    @property
    def sqlalchemy_url(self) -> str:
        if self.database_url:
            return self.database_url
        return (
            f"mysql+aiomysql://{self.db_user}:{self.db_password}"
            f"@{self.db_host}:{self.db_port}/{self.db_name}"
        )

    # ── Auth ───────────────────────────────────────────────────────────────
    access_token_secret: str = "change-me-access"
    access_token_expire_minutes: int = 15
    refresh_token_secret: str = "change-me-refresh"
    refresh_token_expire_days: int = 10
    jwt_algorithm: str = "HS256"
    bcrypt_rounds: int = 12
    cookie_secure: bool = True

    # ── MinIO (S3-compatible media host) ───────────────────────────────────
    minio_endpoint: str = "minio:9000"
    minio_access_key: str = "minioadmin"
    minio_secret_key: str = "minioadmin"
    minio_bucket: str = "media"
    minio_use_ssl: bool = False
    # Public base URL for stored objects; defaults to <endpoint>/<bucket>
    media_public_url: Optional[str] = None
    upload_temp_dir: str = "/tmp/vidshare-uploads"
    upload_chunk_size: int = 1024 * 1024

    @property
    def media_base_url(self) -> str:
        if self.media_public_url:
            return self.media_public_url.rstrip("/")
        scheme = "https" if self.minio_use_ssl else "http"
        return f"{scheme}://{self.minio_endpoint}/{self.minio_bucket}"

    # ── Listings ───────────────────────────────────────────────────────────
    default_page_size: int = 10
    max_page_size: int = 100

    # ── Observability ──────────────────────────────────────────────────────
    otel_enabled: bool = True
    otel_exporter_otlp_endpoint: str = "http://jaeger:4317"
    service_name: str = "vidshare-api"
    environment: str = "development"

    class Config:
        env_file = ".env"
        env_file_encoding = "utf-8"


settings = Settings()
