# autonomia_api/deps.py
from __future__ import annotations

import logging
from typing import Iterator, Optional

from fastapi import Depends, Header, Request
from sqlalchemy.orm import Session

from autonomia_api.core.cache import CacheBackend
from autonomia_api.core.config import Settings
from autonomia_api.core.database import Database
from autonomia_api.services.auth import user_id_from_authorization

logger = logging.getLogger(__name__)


def get_settings(request: Request) -> Settings:
    return request.app.state.settings


def get_database(request: Request) -> Database:
    return request.app.state.database


def get_db(database: Database = Depends(get_database)) -> Iterator[Session]:
    """Uma sessão SQLAlchemy por requisição."""
    yield from database.sessions()


def get_cache(request: Request) -> CacheBackend:
    return request.app.state.cache


def get_claims_user_id(
    request: Request,
    authorization: Optional[str] = Header(default=None),
    settings: Settings = Depends(get_settings),
) -> Optional[int]:
    """Usuário do Bearer token, ou None quando ausente/inválido (não é fatal)."""
    user_id = user_id_from_authorization(authorization, settings)
    request.state.claims_user_id = user_id
    return user_id
