from __future__ import annotations

import os
import re
from dataclasses import dataclass, field

from dotenv import load_dotenv

# Carrega o .env da raiz do projeto
load_dotenv()

_TRUTHY = {"1", "true", "yes", "on"}


def _env(name: str, default: str = "") -> str:
    return os.getenv(name, default).strip()


def _env_flag(name: str, default: str = "0") -> bool:
    return _env(name, default).lower() in _TRUTHY


def _env_list(name: str) -> list[str]:
    raw = _env(name)
    return [item.strip() for item in raw.split(",") if item.strip() and item.strip() != "*"]


def _build_cors_origin_regex(env_name: str, platform_domain: str) -> str:
    explicit = _env("CORS_ALLOW_ORIGIN_REGEX")
    if explicit:
        return explicit

    parts = [
        r"^https?://(localhost|127\.0\.0\.1)(:\d+)?$",
        r"^https?://portal-autonomia\.vercel\.app$",
        r"^https?://([a-z0-9-]+\.)*hub2you\.ai$",
    ]
    if platform_domain:
        parts.append(rf"^https?://([a-z0-9-]+\.)*{re.escape(platform_domain)}$")
    if env_name in {"dev", "development", "local", "stage", "staging", "homolog"}:
        parts.append(r"^https://([a-z0-9-]+\.)*vercel\.app$")
    return "|".join(parts)


@dataclass(frozen=True)
class Settings:
    database_url: str = "sqlite:///./autonomia.db"
    env: str = "dev"
    log_level: str = "INFO"
    redis_url: str = ""
    cache_ttl_seconds: int = 300
    db_pool_timeout: int = 10
    jwt_secret_key: str = ""
    jwt_algorithm: str = "HS256"
    default_tenant_slug: str = "autonomia"
    platform_domain: str = "autonomia.site"
    super_admin_profile_code: str = "super-admin"
    client_admin_profile_code: str = "client-admin"
    expose_error_traces: bool = False
    cors_origins: list[str] = field(default_factory=list)
    cors_allow_origin_regex: str | None = None
    partner_registration_url: str = ""
    partner_api_token: str = ""
    partner_product_ids: list[str] = field(default_factory=list)
    partner_timeout_seconds: float = 15.0
    auto_apply_migrations: str = ""

    @property
    def is_dev(self) -> bool:
        return self.env in {"dev", "development", "local"}

    @property
    def is_staging(self) -> bool:
        return self.env in {"stage", "staging", "homolog"}

    @property
    def is_prod(self) -> bool:
        return self.env in {"prod", "production"}

    @property
    def is_test(self) -> bool:
        return self.env == "test"


def load_settings() -> Settings:
    env_name = _env("ENV", "dev").lower()
    platform_domain = _env("PLATFORM_DOMAIN", "autonomia.site").lower()

    cors_origins = _env_list("CORS_ORIGINS")
    if not cors_origins:
        cors_origins = [
            "http://localhost:3000",
            "http://127.0.0.1:3000",
            "http://localhost:5173",
            "http://127.0.0.1:5173",
        ]

    expose_traces = _env_flag("EXPOSE_ERROR_TRACES")
    if env_name in {"prod", "production"}:
        expose_traces = False

    return Settings(
        database_url=_env("DATABASE_URL", "sqlite:///./autonomia.db"),
        env=env_name,
        log_level=_env("LOG_LEVEL", "INFO").upper(),
        redis_url=_env("REDIS_URL"),
        cache_ttl_seconds=int(_env("CACHE_TTL_SECONDS", "300")),
        db_pool_timeout=int(_env("DB_POOL_TIMEOUT", "10")),
        jwt_secret_key=_env("JWT_SECRET_KEY"),
        jwt_algorithm=_env("JWT_ALGORITHM", "HS256"),
        default_tenant_slug=_env("DEFAULT_TENANT_SLUG", "autonomia").lower(),
        platform_domain=platform_domain,
        super_admin_profile_code=_env("SUPER_ADMIN_PROFILE_CODE", "super-admin"),
        client_admin_profile_code=_env("CLIENT_ADMIN_PROFILE_CODE", "client-admin"),
        expose_error_traces=expose_traces,
        cors_origins=cors_origins,
        cors_allow_origin_regex=_build_cors_origin_regex(env_name, platform_domain),
        partner_registration_url=_env("PARTNER_REGISTRATION_URL"),
        partner_api_token=_env("PARTNER_API_TOKEN"),
        partner_product_ids=_env_list("PARTNER_PRODUCT_IDS"),
        partner_timeout_seconds=float(_env("PARTNER_TIMEOUT_SECONDS", "15")),
        auto_apply_migrations=_env("AUTO_APPLY_MIGRATIONS").lower(),
    )
