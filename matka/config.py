"""Environment-based configuration."""

from __future__ import annotations

import os
from dataclasses import dataclass, fields
from typing import Any

from sqlalchemy.engine import URL


def _env_bool(name: str, default: bool = False) -> bool:
    raw = os.getenv(name)
    if raw is None:
        return default
    return raw.strip().lower() in ("1", "true", "yes", "on")


def _env_int(name: str, default: int) -> int:
    try:
        return int(os.getenv(name, "") or default)
    except ValueError:
        return default


def _env_float(name: str, default: float) -> float:
    try:
        return float(os.getenv(name, "") or default)
    except ValueError:
        return default


def resolve_database_url() -> str:
    """Resolve DB connection string.

    Priority:
      1) DATABASE_URL (explicit)
      2) Build from PG* env vars (common Postgres convention)
      3) Fallback to local sqlite
    """

    explicit = os.getenv("DATABASE_URL")
    if explicit:
        return explicit

    host = os.getenv("PGHOST")
    user = os.getenv("PGUSER")
    database = os.getenv("PGDATABASE")

    if host and user and database:
        sslmode = os.getenv("PGSSLMODE", "require")
        url = URL.create(
            drivername="postgresql+psycopg2",
            username=user,
            password=os.getenv("PGPASSWORD"),
            host=host,
            port=_env_int("PGPORT", 5432),
            database=database,
            query={"sslmode": sslmode} if sslmode else {},
        )
        return url.render_as_string(hide_password=False)

    return "sqlite:///./matka.db"


@dataclass(frozen=True)
class BaseConfig:
    """Base configuration shared by all environments."""

    APP_ENV: str = os.getenv("APP_ENV", "development")
    SECRET_KEY: str = os.getenv("SECRET_KEY", "dev-secret")
    DATABASE_URL: str = resolve_database_url()
    LOG_LEVEL: str = os.getenv("LOG_LEVEL", "INFO")

    # External result feed
    FEED_BASE_URL: str = os.getenv("FEED_BASE_URL", "https://clmadmin.cloud/api/checkResponse")
    FEED_API_KEY: str = os.getenv("FEED_API_KEY", "")
    FEED_API_SECRET: str = os.getenv("FEED_API_SECRET", "")
    FEED_TIMEOUT_SECONDS: float = _env_float("FEED_TIMEOUT_SECONDS", 10.0)
    FEED_RETRIES: int = _env_int("FEED_RETRIES", 0)

    # Auto result (recovery scheduler)
    AUTO_RESULT_ENABLED: bool = _env_bool("AUTO_RESULT_ENABLED", False)
    AUTO_RESULT_INTERVAL_SECONDS: float = _env_float("AUTO_RESULT_INTERVAL_SECONDS", 60.0)
    AUTO_RESULT_TOLERANCE_MINUTES: int = _env_int("AUTO_RESULT_TOLERANCE_MINUTES", 10)
    AUTO_RESULT_WORKERS: int = _env_int("AUTO_RESULT_WORKERS", 1)
    MARKET_TIMEZONE: str = os.getenv("MARKET_TIMEZONE", "Asia/Kolkata")


@dataclass(frozen=True)
class DevelopmentConfig(BaseConfig):
    """Development configuration."""

    DEBUG: bool = True


@dataclass(frozen=True)
class ProductionConfig(BaseConfig):
    """Production configuration."""

    DEBUG: bool = False


@dataclass(frozen=True)
class TestingConfig(BaseConfig):
    """Test configuration: never starts the background scheduler."""

    TESTING: bool = True
    DEBUG: bool = False
    DATABASE_URL: str = "sqlite:///:memory:"
    AUTO_RESULT_ENABLED: bool = False


def get_config() -> type[BaseConfig]:
    """Resolve configuration class based on APP_ENV."""

    env = os.getenv("APP_ENV", "development").lower().strip()
    if env == "production":
        return ProductionConfig
    if env == "testing":
        return TestingConfig
    return DevelopmentConfig


_ENV_READERS = {"bool": _env_bool, "int": _env_int, "float": _env_float}


def _reread(name: str, kind: str, default: Any) -> Any:
    if name == "DATABASE_URL":
        return resolve_database_url()
    reader = _ENV_READERS.get(kind)
    if reader is None:
        return os.getenv(name, default)
    return reader(name, default)


def load_config(config_cls: type[BaseConfig] | None = None) -> dict[str, Any]:
    """Snapshot a config class as a dict, re-reading the environment now.

    Class defaults are evaluated when this module is imported, which is too
    early for entry points that call ``load_dotenv()`` afterwards. Values a
    subclass pins (``TestingConfig.DATABASE_URL``) are kept as declared.
    """

    config_cls = config_cls or get_config()
    pinned = {name for klass in config_cls.__mro__ if klass not in (BaseConfig, object) for name in vars(klass)}
    values: dict[str, Any] = {}
    for f in fields(config_cls):
        value = getattr(config_cls, f.name)
        if f.name not in pinned:
            value = _reread(f.name, str(f.type), value)
        values[f.name] = value
    return values
