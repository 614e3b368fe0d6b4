import json
import os
import threading
from urllib.parse import urlparse

from dotenv import load_dotenv
from pydantic import BaseModel, Field


load_dotenv()


def _parse_allowed_origins(raw_allowed_origins: str) -> list[str]:
    # Support both CSV format and JSON array format
    allowed_origins: list[str] = []
    if raw_allowed_origins.startswith("["):
        try:
            parsed_list = json.loads(raw_allowed_origins)
        except json.JSONDecodeError as exc:
            raise ValueError(f"ALLOWED_ORIGINS JSON is malformed: {exc}") from exc
        if not isinstance(parsed_list, list):
            raise ValueError("ALLOWED_ORIGINS JSON must be an array")
        allowed_origins = [
            origin.strip() for origin in parsed_list if isinstance(origin, str) and origin.strip()
        ]
    else:
        allowed_origins = [
            origin.strip() for origin in raw_allowed_origins.split(",") if origin.strip()
        ]

    if not allowed_origins:
        raise ValueError("ALLOWED_ORIGINS must contain at least one origin")

    if "*" in allowed_origins:
        raise ValueError(
            "ALLOWED_ORIGINS cannot contain '*' when credentialed requests are used"
        )

    for origin in allowed_origins:
        parsed = urlparse(origin)
        if parsed.scheme not in {"http", "https"} or not parsed.netloc:
            raise ValueError(
                "ALLOWED_ORIGINS must contain valid http/https origins with host"
            )
    return allowed_origins


def _parse_bool(name: str, raw: str) -> bool:
    value = raw.strip().lower()
    if value in {"1", "true", "yes", "on"}:
        return True
    if value in {"0", "false", "no", "off"}:
        return False
    raise ValueError(f"{name} must be a boolean value")


class Settings(BaseModel):
    app_name: str = Field(default="Agency Admin")
    debug: bool = Field(default=False)
    database_url: str = Field(default="")
    allowed_origins: list[str] = Field(default_factory=list)
    db_pool_size: int = Field(default=5)
    db_max_overflow: int = Field(default=10)
    db_pool_recycle: int = Field(default=1800)
    db_pool_pre_ping: bool = Field(default=True)
    supabase_url: str = Field(default="")
    supabase_anon_key: str = Field(default="")
    supabase_jwt_secret: str | None = Field(default=None)
    supabase_service_role_key: str | None = Field(default=None)
    site_url: str | None = Field(default=None)
    jwt_audience: str = Field(default="authenticated")
    auth_timeout_seconds: float = Field(default=5.0)
    admin_entry_path: str = Field(default="/admin")

    @property
    def invite_redirect_url(self) -> str | None:
        if not self.site_url:
            return None
        return f"{self.site_url}{self.admin_entry_path}"

    @classmethod
    def from_env(cls) -> "Settings":
        raw_allowed_origins = os.getenv("ALLOWED_ORIGINS", "").strip()
        if not raw_allowed_origins:
            raise ValueError("ALLOWED_ORIGINS environment variable must be set")
        allowed_origins = _parse_allowed_origins(raw_allowed_origins)

        database_url = os.getenv("DATABASE_URL", "").strip()
        if not database_url:
            raise ValueError("DATABASE_URL environment variable must be set")

        parsed_db = urlparse(database_url)
        if parsed_db.scheme != "postgresql+asyncpg":
            raise ValueError("DATABASE_URL must start with 'postgresql+asyncpg://'")
        if not parsed_db.hostname:
            raise ValueError("DATABASE_URL must include hostname")

        supabase_url = os.getenv("SUPABASE_URL", "").strip().rstrip("/")
        if not supabase_url:
            raise ValueError("SUPABASE_URL environment variable must be set")
        parsed_supabase = urlparse(supabase_url)
        if parsed_supabase.scheme not in {"http", "https"} or not parsed_supabase.netloc:
            raise ValueError("SUPABASE_URL must be a valid http/https URL")

        supabase_anon_key = os.getenv("SUPABASE_ANON_KEY", "").strip()
        if not supabase_anon_key:
            raise ValueError("SUPABASE_ANON_KEY environment variable must be set")

        supabase_jwt_secret = os.getenv("SUPABASE_JWT_SECRET", "").strip()
        if not supabase_jwt_secret:
            raise ValueError("SUPABASE_JWT_SECRET environment variable must be set")

        # Optional: without it new admins are created but not emailed an invite
        supabase_service_role_key = os.getenv("SUPABASE_SERVICE_ROLE_KEY", "").strip() or None

        site_url = os.getenv("SITE_URL", "").strip().rstrip("/") or None
        if site_url is not None:
            parsed_site = urlparse(site_url)
            if parsed_site.scheme not in {"http", "https"} or not parsed_site.netloc:
                raise ValueError("SITE_URL must be a valid http/https URL")

        try:
            auth_timeout_seconds = float(
                os.getenv(
                    "AUTH_TIMEOUT_SECONDS", cls.model_fields["auth_timeout_seconds"].default
                )
            )
        except ValueError as exc:
            raise ValueError("AUTH_TIMEOUT_SECONDS must be a number") from exc
        if auth_timeout_seconds <= 0:
            raise ValueError("AUTH_TIMEOUT_SECONDS must be greater than 0")

        admin_entry_path = os.getenv(
            "ADMIN_ENTRY_PATH", cls.model_fields["admin_entry_path"].default
        ).strip()
        if not admin_entry_path.startswith("/"):
            raise ValueError("ADMIN_ENTRY_PATH must start with '/'")

        db_pool_size = int(os.getenv("DB_POOL_SIZE", cls.model_fields["db_pool_size"].default))
        if db_pool_size <= 0:
            raise ValueError("DB_POOL_SIZE must be greater than 0")

        db_max_overflow = int(
            os.getenv("DB_MAX_OVERFLOW", cls.model_fields["db_max_overflow"].default)
        )
        if db_max_overflow < 0:
            raise ValueError("DB_MAX_OVERFLOW must be greater than or equal to 0")

        db_pool_recycle = int(
            os.getenv("DB_POOL_RECYCLE", cls.model_fields["db_pool_recycle"].default)
        )
        if db_pool_recycle <= 0:
            raise ValueError("DB_POOL_RECYCLE must be greater than 0")

        db_pool_pre_ping = _parse_bool(
            "DB_POOL_PRE_PING",
            os.getenv("DB_POOL_PRE_PING", str(cls.model_fields["db_pool_pre_ping"].default)),
        )

        return cls(
            app_name=os.getenv("APP_NAME", cls.model_fields["app_name"].default),
            debug=os.getenv("DEBUG", "false").lower() == "true",
            database_url=database_url,
            allowed_origins=allowed_origins,
            supabase_url=supabase_url,
            supabase_anon_key=supabase_anon_key,
            supabase_jwt_secret=supabase_jwt_secret,
            supabase_service_role_key=supabase_service_role_key,
            site_url=site_url,
            jwt_audience=os.getenv("JWT_AUDIENCE", cls.model_fields["jwt_audience"].default),
            auth_timeout_seconds=auth_timeout_seconds,
            admin_entry_path=admin_entry_path,
            db_pool_size=db_pool_size,
            db_max_overflow=db_max_overflow,
            db_pool_recycle=db_pool_recycle,
            db_pool_pre_ping=db_pool_pre_ping,
        )


# Settings are validated on first access, not at import time.
_settings_instance: Settings | None = None
_settings_lock = threading.Lock()


def get_settings() -> Settings:
    """Get settings instance, creating it on first access.

    Uses double-checked locking so concurrent first calls build the
    settings exactly once.

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
