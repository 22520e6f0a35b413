import logging
import os
from contextlib import asynccontextmanager
from pathlib import Path

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from sqlalchemy import inspect

from autonomia_api.core.cache import CacheBackend, build_cache
from autonomia_api.core.config import Settings, load_settings
from autonomia_api.core.database import Database
from autonomia_api.core.logging_setup import configure_logging
from autonomia_api.core.responses import register_exception_handlers, success
from autonomia_api.core.startup_checks import (
    apply_migrations,
    ensure_migrations_applied,
    validate_database_environment,
)
from autonomia_api.middleware.observability import ObservabilityMiddleware
import autonomia_api.models  # garante que os models são importados antes do create_all

from autonomia_api.routers.accounts import router as accounts_router
from autonomia_api.routers.funnel import router as funnel_router
from autonomia_api.routers.funnels import router as funnels_router
from autonomia_api.routers.settings import router as settings_router
from autonomia_api.routers.tenants import router as tenants_router

logger = logging.getLogger(__name__)
STARTUP_PREFIX = "[STARTUP]"
REPO_ROOT = Path(__file__).resolve().parents[1]
ALEMBIC_CONFIG_PATH = Path(os.getenv("ALEMBIC_CONFIG", str(REPO_ROOT / "alembic.ini")))
REQUIRED_TABLES = {"account", "user_session", "user_session_conversation_funnel_step_message"}


def _ensure_core_tables_exist(database: Database) -> None:
    inspector = inspect(database.engine)
    missing = [table for table in sorted(REQUIRED_TABLES) if not inspector.has_table(table)]
    if missing:
        logger.error("%s tables missing / migrations not applied missing=%s", STARTUP_PREFIX, ",".join(missing))
        raise RuntimeError("tables missing / migrations not applied")


def _startup_tasks(settings: Settings, database: Database) -> None:
    try:
        validate_database_environment(settings)
        if database.is_sqlite:
            # Cria tabelas (dev). Em produção, use migrations.
            database.create_all()
            logger.info("%s sqlite schema created from models; migration check skipped", STARTUP_PREFIX)
        else:
            apply_migrations(settings, alembic_config_path=ALEMBIC_CONFIG_PATH)
            ensure_migrations_applied(settings, engine=database.engine, alembic_config_path=ALEMBIC_CONFIG_PATH)
        _ensure_core_tables_exist(database)
    except Exception:
        logger.exception("%s ERROR startup failed", STARTUP_PREFIX)
        raise


def create_app(
    settings: Settings | None = None,
    database: Database | None = None,
    cache: CacheBackend | None = None,
) -> FastAPI:
    settings = settings or load_settings()
    configure_logging(settings.log_level)
    database = database or Database(settings.database_url, pool_timeout=settings.db_pool_timeout)
    cache = cache or build_cache(settings.redis_url, default_ttl_seconds=settings.cache_ttl_seconds)

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        _startup_tasks(settings, database)
        yield
        close = getattr(cache, "close", None)
        if close is not None:
            close()
        database.dispose()

    app = FastAPI(
        title="Autonomia SaaS API",
        lifespan=lifespan,
        docs_url="/docs",
        redoc_url="/redoc",
        openapi_url="/openapi.json",
    )
    app.state.settings = settings
    app.state.database = database
    app.state.cache = cache

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_origin_regex=settings.cors_allow_origin_regex,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )
    app.add_middleware(ObservabilityMiddleware)
    register_exception_handlers(app, expose_traces=settings.expose_error_traces)

    # Routers
    app.include_router(tenants_router)
    app.include_router(funnel_router)
    app.include_router(settings_router)
    app.include_router(accounts_router)
    app.include_router(funnels_router)

    @app.get("/health")
    def health():
        return success({"status": "ok", "env": settings.env})

    logger.info("%s app created env=%s sqlite=%s", STARTUP_PREFIX, settings.env, database.is_sqlite)
    return app


app = create_app()
