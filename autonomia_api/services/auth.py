from __future__ import annotations

import logging
from datetime import datetime, timedelta, timezone
from typing import Any, Dict, Optional

from jose import JWTError, jwt

from autonomia_api.core.config import Settings

logger = logging.getLogger(__name__)


# =========================
# JWT HELPERS
# Os tokens são emitidos pelo provedor de identidade; aqui só validamos.
# =========================
def decode_access_token(token: str, settings: Settings) -> Dict[str, Any]:
    """
    Retorna o payload do JWT ou levanta ValueError se inválido.
    """
    if not settings.jwt_secret_key:
        raise ValueError("JWT_SECRET_KEY não configurado")
    try:
        return jwt.decode(token, settings.jwt_secret_key, algorithms=[settings.jwt_algorithm])
    except JWTError as e:
        raise ValueError("Token inválido ou expirado") from e


def extract_user_id(payload: Dict[str, Any]) -> Optional[int]:
    """Extrai o user_id do payload do JWT.

    Aceita:
    - sub (padrão JWT) como string/int
    - user_id como string/int (compatibilidade)
    """
    raw = payload.get("sub", None)
    if raw is None:
        raw = payload.get("user_id", None)

    if raw is None:
        return None

    if isinstance(raw, int) and not isinstance(raw, bool):
        return raw

    if isinstance(raw, str):
        raw = raw.strip()
        if raw.isdecimal():
            return int(raw)

    return None


def user_id_from_authorization(authorization: str | None, settings: Settings) -> Optional[int]:
    """Resolve o usuário do header Authorization; falhas retornam None."""
    if not authorization:
        return None
    scheme, _, token = authorization.partition(" ")
    if scheme.lower() != "bearer" or not token.strip():
        return None
    try:
        payload = decode_access_token(token.strip(), settings)
    except ValueError as exc:
        logger.info("bearer token not usable: %s", exc)
        return None
    return extract_user_id(payload)


def create_access_token(user_id: int, settings: Settings, expires_minutes: int = 60) -> str:
    """Emite um token no formato do provedor; usado por scripts locais e testes."""
    now = datetime.now(timezone.utc)
    payload: Dict[str, Any] = {
        "sub": str(user_id),
        "user_id": str(user_id),
        "iat": int(now.timestamp()),
        "exp": int((now + timedelta(minutes=expires_minutes)).timestamp()),
    }
    return jwt.encode(payload, settings.jwt_secret_key, algorithm=settings.jwt_algorithm)
