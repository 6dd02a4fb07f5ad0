import os


def _env_bool(name: str, default: str) -> bool:
    return os.getenv(name, default).strip().lower() in ("1", "true", "yes", "on")


class Settings:
    SECRET_KEY: str = os.getenv("SECRET_KEY", "your-secret-key")
    ALGORITHM: str = "HS256"
    ACCESS_TOKEN_EXPIRE_MINUTES: int = int(os.getenv("ACCESS_TOKEN_EXPIRE_MINUTES", "30"))

    DATABASE_URL: str = os.getenv("DATABASE_URL", "sqlite+aiosqlite:///./linksecure.db")
    DATABASE_ECHO: bool = _env_bool("DATABASE_ECHO", "false")

    MINIO_ENDPOINT: str = os.getenv("MINIO_ENDPOINT", "minio:9000")
    MINIO_ACCESS_KEY: str = os.getenv("MINIO_ACCESS_KEY", "minioadmin")
    MINIO_SECRET_KEY: str = os.getenv("MINIO_SECRET_KEY", "minioadmin")
    MINIO_BUCKET: str = os.getenv("MINIO_BUCKET", "linksecure")
    MINIO_REGION: str | None = os.getenv("MINIO_REGION") or None
    # signed URLs are only ever handed out over https
    MINIO_SECURE: bool = _env_bool("MINIO_SECURE", "true")

    PUBLIC_BASE_URL: str = os.getenv("PUBLIC_BASE_URL", "")
    CORS_ORIGINS: str = os.getenv("CORS_ORIGINS", "*")

    SECURE_LINK_DEFAULT_EXPIRY_HOURS: int = int(os.getenv("SECURE_LINK_DEFAULT_EXPIRY_HOURS", "24"))
    SECURE_LINK_MIN_EXPIRY_HOURS: int = int(os.getenv("SECURE_LINK_MIN_EXPIRY_HOURS", "1"))
    SECURE_LINK_MAX_EXPIRY_HOURS: int = int(os.getenv("SECURE_LINK_MAX_EXPIRY_HOURS", "168"))

    SHORT_LINK_DEFAULT_EXPIRY_MINUTES: int = int(os.getenv("SHORT_LINK_DEFAULT_EXPIRY_MINUTES", "1440"))
    SHORT_LINK_MIN_EXPIRY_MINUTES: int = int(os.getenv("SHORT_LINK_MIN_EXPIRY_MINUTES", "60"))
    SHORT_LINK_MAX_EXPIRY_MINUTES: int = int(os.getenv("SHORT_LINK_MAX_EXPIRY_MINUTES", "10080"))

    SHORT_CODE_MAX_ATTEMPTS: int = int(os.getenv("SHORT_CODE_MAX_ATTEMPTS", "5"))
    DOWNLOAD_TOKEN_TTL_SECONDS: int = int(os.getenv("DOWNLOAD_TOKEN_TTL_SECONDS", "300"))
    REDIRECT_URL_TTL_SECONDS: int = int(os.getenv("REDIRECT_URL_TTL_SECONDS", "60"))

    MAX_FILE_SIZE: int = int(os.getenv("MAX_FILE_SIZE", str(1024 * 1024 * 1024)))
    TRASH_RETENTION_DAYS: int = int(os.getenv("TRASH_RETENTION_DAYS", "30"))

    CLEANUP_INTERVAL_SECONDS: int = int(os.getenv("CLEANUP_INTERVAL_SECONDS", "300"))
    CLEANUP_MAX_RECORDS_PER_LOOP: int = int(os.getenv("CLEANUP_MAX_RECORDS_PER_LOOP", "200"))
    CLEANUP_RETRY_ATTEMPTS: int = int(os.getenv("CLEANUP_RETRY_ATTEMPTS", "3"))
    CLEANUP_RETRY_BACKOFF_SECS: float = float(os.getenv("CLEANUP_RETRY_BACKOFF_SECS", "0.5"))

    @property
    def cors_origins(self) -> list[str]:
        return [item.strip() for item in self.CORS_ORIGINS.split(",") if item.strip()]


settings = Settings()
