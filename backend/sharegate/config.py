import os
import threading
from urllib.parse import urlparse

from dotenv import load_dotenv
from pydantic import BaseModel, Field


load_dotenv()


def _parse_bool(name: str, raw: str) -> bool:
    value = raw.strip().lower()
    if value in {"1", "true", "yes", "on"}:
        return True
    if value in {"0", "false", "no", "off"}:
        return False
    raise ValueError(f"{name} must be a boolean value")


def _parse_positive_int(name: str, raw: str, *, minimum: int = 1) -> int:
    try:
        value = int(raw)
    except ValueError as exc:
        raise ValueError(f"{name} must be an integer") from exc
    if value < minimum:
        raise ValueError(f"{name} must be greater than or equal to {minimum}")
    return value


class Settings(BaseModel):
    app_name: str = Field(default="Sharegate")
    debug: bool = Field(default=False)
    database_url: str = Field(default="")
    db_pool_size: int = Field(default=5)
    db_max_overflow: int = Field(default=10)
    db_pool_recycle: int = Field(default=1800)
    db_pool_pre_ping: bool = Field(default=True)
    secret_key: str | None = Field(default=None)
    algorithm: str = Field(default="HS256")

    share_base_url: str = Field(default="")
    share_url_ttl_seconds: int = Field(default=3600)
    share_password_bcrypt_rounds: int = Field(default=10)
    share_password_max_attempts: int = Field(default=5)
    share_password_window_seconds: int = Field(default=60)

    minio_endpoint: str = Field(default="localhost:9000")
    minio_access_key: str = Field(default="")
    minio_secret_key: str = Field(default="")
    minio_secure: bool = Field(default=False)
    minio_bucket: str = Field(default="assets")

    @classmethod
    def from_env(cls) -> "Settings":
        defaults = cls.model_fields

        secret_key = os.getenv("SECRET_KEY", "").strip()
        if not secret_key:
            raise ValueError("SECRET_KEY environment variable must be set")

        database_url = os.getenv("DATABASE_URL", "").strip()
        if not database_url:
            raise ValueError("DATABASE_URL environment variable must be set")

        parsed_db = urlparse(database_url)
        if parsed_db.scheme != "postgresql+asyncpg":
            raise ValueError("DATABASE_URL must start with 'postgresql+asyncpg://'")
        if not parsed_db.hostname:
            raise ValueError("DATABASE_URL must include hostname")

        share_base_url = os.getenv("SHARE_BASE_URL", "").strip().rstrip("/")
        if not share_base_url:
            raise ValueError("SHARE_BASE_URL environment variable must be set")
        parsed_share = urlparse(share_base_url)
        if parsed_share.scheme not in {"http", "https"} or not parsed_share.netloc:
            raise ValueError("SHARE_BASE_URL must be a valid http/https URL with host")

        db_pool_size = _parse_positive_int(
            "DB_POOL_SIZE", os.getenv("DB_POOL_SIZE", str(defaults["db_pool_size"].default))
        )
        db_max_overflow = _parse_positive_int(
            "DB_MAX_OVERFLOW",
            os.getenv("DB_MAX_OVERFLOW", str(defaults["db_max_overflow"].default)),
            minimum=0,
        )
        db_pool_recycle = _parse_positive_int(
            "DB_POOL_RECYCLE",
            os.getenv("DB_POOL_RECYCLE", str(defaults["db_pool_recycle"].default)),
        )
        db_pool_pre_ping = _parse_bool(
            "DB_POOL_PRE_PING",
            os.getenv("DB_POOL_PRE_PING", str(defaults["db_pool_pre_ping"].default)),
        )

        share_url_ttl_seconds = _parse_positive_int(
            "SHARE_URL_TTL_SECONDS",
            os.getenv(
                "SHARE_URL_TTL_SECONDS", str(defaults["share_url_ttl_seconds"].default)
            ),
        )
        # presigned URLs are capped at 7 days by S3-compatible stores
        if share_url_ttl_seconds > 7 * 24 * 3600:
            raise ValueError("SHARE_URL_TTL_SECONDS must not exceed 604800")

        bcrypt_rounds = _parse_positive_int(
            "SHARE_PASSWORD_BCRYPT_ROUNDS",
            os.getenv(
                "SHARE_PASSWORD_BCRYPT_ROUNDS",
                str(defaults["share_password_bcrypt_rounds"].default),
            ),
            minimum=4,
        )
        if bcrypt_rounds > 31:
            raise ValueError("SHARE_PASSWORD_BCRYPT_ROUNDS must be between 4 and 31")

        return cls(
            app_name=os.getenv("APP_NAME", defaults["app_name"].default),
            debug=os.getenv("DEBUG", "false").lower() == "true",
            database_url=database_url,
            db_pool_size=db_pool_size,
            db_max_overflow=db_max_overflow,
            db_pool_recycle=db_pool_recycle,
            db_pool_pre_ping=db_pool_pre_ping,
            secret_key=secret_key,
            algorithm=os.getenv("ALGORITHM", defaults["algorithm"].default),
            share_base_url=share_base_url,
            share_url_ttl_seconds=share_url_ttl_seconds,
            share_password_bcrypt_rounds=bcrypt_rounds,
            share_password_max_attempts=_parse_positive_int(
                "SHARE_PASSWORD_MAX_ATTEMPTS",
                os.getenv(
                    "SHARE_PASSWORD_MAX_ATTEMPTS",
                    str(defaults["share_password_max_attempts"].default),
                ),
            ),
            share_password_window_seconds=_parse_positive_int(
                "SHARE_PASSWORD_WINDOW_SECONDS",
                os.getenv(
                    "SHARE_PASSWORD_WINDOW_SECONDS",
                    str(defaults["share_password_window_seconds"].default),
                ),
            ),
            minio_endpoint=os.getenv("MINIO_ENDPOINT", defaults["minio_endpoint"].default),
            minio_access_key=os.getenv("MINIO_ACCESS_KEY", ""),
            minio_secret_key=os.getenv("MINIO_SECRET_KEY", ""),
            minio_secure=_parse_bool(
                "MINIO_SECURE", os.getenv("MINIO_SECURE", str(defaults["minio_secure"].default))
            ),
            minio_bucket=os.getenv("MINIO_BUCKET", defaults["minio_bucket"].default),
        )


_settings_instance: Settings | None = None
_settings_lock = threading.Lock()


def get_settings() -> Settings:
    """Get settings instance, creating it on first access.

    Settings validation happens when first accessed (typically during startup),
    so modules can be imported without a populated environment.

    Raises:
        ValueError: If required environment variables are missing or invalid
    """
    global _settings_instance

    if _settings_instance is not None:
        return _settings_instance

    with _settings_lock:
        if _settings_instance is None:
            _settings_instance = Settings.from_env()

    return _settings_instance


def reset_settings() -> None:
    """Drop the cached settings so the next access re-reads the environment."""
    global _settings_instance
    with _settings_lock:
        _settings_instance = None


class _SettingsProxy:
    """Proxy to defer settings creation until first attribute access."""

    def __getattr__(self, name: str):
        return getattr(get_settings(), name)


settings = _SettingsProxy()  # type: ignore[assignment]
