from __future__ import annotations

import os
from dataclasses import dataclass
from typing import Literal

AppEnv = Literal["dev", "test", "prod"]
LogLevel = Literal["debug", "info", "warning", "error"]

_TRUTHY = ("1", "true", "yes", "on")
_FALSY = ("0", "false", "no", "off")


def _getenv(name: str, default: str) -> str:
    return os.environ.get(name, default).strip()


def _getbool(name: str, default: str) -> bool:
    raw = _getenv(name, default).lower()
    if raw in _TRUTHY:
        return True
    if raw in _FALSY:
        return False
    raise ValueError(f"{name} must be a boolean (got {raw!r})")


@dataclass(frozen=True)
class Settings:
    app_env: AppEnv
    log_level: LogLevel
    log_json: bool
    port: int
    database_url: str | None
    redis_url: str | None
    config_service_url: str = "http://config:8000/api/v1/config"
    permission_service_url: str = "http://permission:8000/api/v1/permission"
    identity_service_url_template: str = "http://{service}:8000/api/v1/{service}/whoisthis"
    upstream_timeout_seconds: float = 5.0
    secret_cache_ttl_seconds: int = 0
    enforce_revocation: bool = False

    @property
    def is_dev(self) -> bool:
        return self.app_env == "dev"

    @property
    def is_test(self) -> bool:
        return self.app_env == "test"

    @property
    def is_prod(self) -> bool:
        return self.app_env == "prod"


def load_settings() -> Settings:
    app_env_raw = _getenv("APP_ENV", "dev").lower()
    log_level_raw = _getenv("LOG_LEVEL", "info").lower()
    port_raw = _getenv("PORT", "8000")
    timeout_raw = _getenv("UPSTREAM_TIMEOUT_SECONDS", "5.0")
    cache_ttl_raw = _getenv("SECRET_CACHE_TTL_SECONDS", "0")

    if app_env_raw not in ("dev", "test", "prod"):
        raise ValueError(f"APP_ENV must be dev|test|prod (got {app_env_raw!r})")

    if log_level_raw not in ("debug", "info", "warning", "error"):
        raise ValueError(
            f"LOG_LEVEL must be debug|info|warning|error (got {log_level_raw!r})"
        )

    try:
        port = int(port_raw)
    except ValueError:
        raise ValueError(f"PORT must be an integer (got {port_raw!r})") from None

    try:
        upstream_timeout = float(timeout_raw)
    except ValueError:
        raise ValueError(
            f"UPSTREAM_TIMEOUT_SECONDS must be a number (got {timeout_raw!r})"
        ) from None
    if upstream_timeout <= 0:
        raise ValueError("UPSTREAM_TIMEOUT_SECONDS must be positive")

    try:
        secret_cache_ttl = int(cache_ttl_raw)
    except ValueError:
        raise ValueError(
            f"SECRET_CACHE_TTL_SECONDS must be an integer (got {cache_ttl_raw!r})"
        ) from None
    if secret_cache_ttl < 0:
        raise ValueError("SECRET_CACHE_TTL_SECONDS must be >= 0")

    identity_template = _getenv(
        "IDENTITY_SERVICE_URL_TEMPLATE",
        Settings.identity_service_url_template,
    )
    if "{service}" not in identity_template:
        raise ValueError(
            "IDENTITY_SERVICE_URL_TEMPLATE must contain a {service} placeholder"
        )

    return Settings(  # type: ignore[arg-type]
        app_env=app_env_raw,
        log_level=log_level_raw,
        log_json=_getbool("LOG_JSON", "false"),
        port=port,
        database_url=_getenv("DATABASE_URL", "") or None,
        redis_url=_getenv("REDIS_URL", "") or None,
        config_service_url=_getenv(
            "CONFIG_SERVICE_URL", Settings.config_service_url
        ).rstrip("/"),
        permission_service_url=_getenv(
            "PERMISSION_SERVICE_URL", Settings.permission_service_url
        ).rstrip("/"),
        identity_service_url_template=identity_template,
        upstream_timeout_seconds=upstream_timeout,
        secret_cache_ttl_seconds=secret_cache_ttl,
        enforce_revocation=_getbool("ENFORCE_REVOCATION", "false"),
    )


# Module-level singleton, read once at import
SETTINGS = load_settings()
