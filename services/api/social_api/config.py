"""
Configuration management using Pydantic BaseSettings.
All values can be overridden via environment variables or a .env file.
"""
from typing import Optional

from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    # ── Database (MySQL protocol: TiDB / MySQL) ────────────────────────────
    db_host: str = "tidb"
    db_port: int = 4000
    db_user: str = "root"
    db_password: str = ""
    db_name: str = "social_post"
    db_pool_size: int = 20
    db_max_overflow: int = 10
    # Full SQLAlchemy async URL; wins over the db_* fields when set,
    # e.g. sqlite+aiosqlite:///./local.db for a laptop run.
    database_url: Optional[str] = None

    @property
    def sqlalchemy_url(self) -> str:
        if self.database_url:
            return self.database_url
        return (
            f"mysql+aiomysql://{self.db_user}:{self.db_password}"
            f"@{self.db_host}:{self.db_port}/{self.db_name}"
        )

    # ── MinIO (S3-compatible) ──────────────────────────────────────────────
    minio_endpoint: str = "minio:9000"
    minio_access_key: str = "minioadmin"
    minio_secret_key: str = "minioadmin"
    minio_bucket: str = "media"
    minio_use_ssl: bool = False
    media_max_bytes: int = 5 * 1024 * 1024   # 5 MiB per image
    media_url_ttl: int = 3600                # pre-signed URL lifetime (s)

    # ── Auth ───────────────────────────────────────────────────────────────
    jwt_secret_key: str = "change-me-to-a-long-random-secret-in-production"
    jwt_algorithm: str = "HS256"
    access_token_expire_minutes: int = 60 * 24 * 7

    # ── Content limits ─────────────────────────────────────────────────────
    post_max_length: int = 5000
    comment_max_length: int = 1000
    user_search_limit: int = 10

    # ── HTTP ───────────────────────────────────────────────────────────────
    frontend_url: str = "*"

    # ── Observability ──────────────────────────────────────────────────────
    otel_enabled: bool = True
    otel_exporter_otlp_endpoint: str = "http://jaeger:4317"
    service_name: str = "social-post-api"
    environment: str = "development"
    log_level: str = "INFO"

    class Config:
        env_file = ".env"
        env_file_encoding = "utf-8"


settings = Settings()
