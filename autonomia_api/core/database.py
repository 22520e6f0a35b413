from __future__ import annotations

import logging
from typing import Iterator

from sqlalchemy import create_engine, event
from sqlalchemy.engine import Engine
from sqlalchemy.orm import Session, declarative_base, sessionmaker
from sqlalchemy.pool import StaticPool

logger = logging.getLogger(__name__)

Base = declarative_base()


def _enable_sqlite_savepoints(engine: Engine) -> None:
    # pysqlite only emits BEGIN before DML; take over so SAVEPOINT nests correctly.
    @event.listens_for(engine, "connect")
    def _on_connect(dbapi_connection, connection_record):
        dbapi_connection.isolation_level = None

    @event.listens_for(engine, "begin")
    def _on_begin(connection):
        connection.exec_driver_sql("BEGIN")


class Database:
    """Engine + session factory shared by every request of the process.

    Built once by ``create_app`` and handed to the routers through
    ``app.state``; tests build their own against in-memory SQLite.
    """

    def __init__(self, url: str, *, pool_timeout: int = 10, echo: bool = False) -> None:
        self.url = url
        self.engine = self._build_engine(url, pool_timeout=pool_timeout, echo=echo)
        self.session_factory = sessionmaker(autocommit=False, autoflush=False, bind=self.engine)

    @staticmethod
    def _build_engine(url: str, *, pool_timeout: int, echo: bool) -> Engine:
        if url.startswith("sqlite"):
            kwargs: dict = {"connect_args": {"check_same_thread": False}, "echo": echo}
            if ":memory:" in url:
                kwargs["poolclass"] = StaticPool
            engine = create_engine(url, **kwargs)
            _enable_sqlite_savepoints(engine)
            return engine
        return create_engine(url, pool_pre_ping=True, pool_timeout=pool_timeout, echo=echo)

    @property
    def is_sqlite(self) -> bool:
        return self.url.startswith("sqlite")

    def session(self) -> Session:
        return self.session_factory()

    def sessions(self) -> Iterator[Session]:
        db = self.session()
        try:
            yield db
        finally:
            db.close()

    def create_all(self) -> None:
        import autonomia_api.models  # noqa: F401

        Base.metadata.create_all(bind=self.engine)

    def dispose(self) -> None:
        logger.info("disposing database engine url=%s", self.engine.url.render_as_string(hide_password=True))
        self.engine.dispose()
