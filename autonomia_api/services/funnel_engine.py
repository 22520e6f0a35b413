from __future__ import annotations

import logging
from datetime import datetime, timedelta, timezone
from typing import Any, Mapping

from fastapi.encoders import jsonable_encoder
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from autonomia_api.core.cache import CacheBackend
from autonomia_api.core.errors import NotFoundError, ValidationError
from autonomia_api.models.account import Account
from autonomia_api.models.funnel import (
    ConversationFunnel,
    ConversationFunnelRegister,
    ConversationFunnelStep,
    ConversationFunnelStepMessage,
    DeliveryRecord,
)
from autonomia_api.models.parameter import AccountParameter, ProductParameter
from autonomia_api.models.user_session import UserSession
from autonomia_api.services import parameter_store
from autonomia_api.services.serializers import model_to_dict

logger = logging.getLogger(__name__)

ACCOUNT_FUNNEL_CACHE_PREFIX = "account-funnel"
ACCOUNT_FUNNEL_CACHE_TTL_SECONDS = 60 * 5
TEAM_ID_PARAMETER = "team-id"
WEBHOOK_PARAMETERS = ("agent_webhook", "funnel_agent_webhook")


def account_funnel_cache_key(account_id: int) -> str:
    return f"{ACCOUNT_FUNNEL_CACHE_PREFIX}:{account_id}"


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _load_account(db: Session, account_id: int) -> Account:
    account = db.get(Account, account_id)
    if account is None:
        raise NotFoundError(f"Conta não encontrada para o ID: {account_id}")
    return account


def _step_to_dict(step: ConversationFunnelStep, *, with_messages: bool) -> dict[str, Any]:
    payload = model_to_dict(step)
    if with_messages:
        payload["messages"] = [model_to_dict(message) for message in step.messages]
    return payload


def _build_account_funnel_data(db: Session, account_id: int) -> dict[str, Any]:
    account = _load_account(db, account_id)
    account_data = model_to_dict(account)

    team_id = (
        db.query(AccountParameter.value)
        .filter(AccountParameter.account_id == account_id, AccountParameter.name == TEAM_ID_PARAMETER)
        .first()
    )
    if team_id is not None:
        account_data["teamId"] = team_id[0]

    if account.conversation_funnel_id is None:
        logger.info("account has no funnel account_id=%s", account_id)
        return {"account": account_data, "conversationFunnel": None, "steps": []}

    funnel = db.get(ConversationFunnel, account.conversation_funnel_id)
    if funnel is None:
        raise NotFoundError(f"Funil de conversação não encontrado para o ID: {account.conversation_funnel_id}")

    steps = (
        db.query(ConversationFunnelStep)
        .filter(ConversationFunnelStep.conversation_funnel_id == funnel.id)
        .order_by(ConversationFunnelStep.order, ConversationFunnelStep.id)
        .all()
    )
    return {
        "account": account_data,
        "conversationFunnel": model_to_dict(funnel),
        "steps": [_step_to_dict(step, with_messages=True) for step in steps],
    }


def get_account_funnel_data(db: Session, cache: CacheBackend, account_id: int) -> dict[str, Any]:
    key = account_funnel_cache_key(account_id)
    cached = cache.get(key)
    if cached is not None:
        logger.debug("account funnel served from cache account_id=%s", account_id)
        return cached

    data = jsonable_encoder(_build_account_funnel_data(db, account_id))
    cache.set(key, data, ACCOUNT_FUNNEL_CACHE_TTL_SECONDS)
    return data


def invalidate_account_funnel(cache: CacheBackend, account_id: int) -> None:
    cache.delete(account_funnel_cache_key(account_id))


def invalidate_funnel_accounts(db: Session, cache: CacheBackend, funnel_id: int) -> None:
    account_ids = db.query(Account.id).filter(Account.conversation_funnel_id == funnel_id).all()
    for (account_id,) in account_ids:
        invalidate_account_funnel(cache, account_id)


def _find_delivery(db: Session, step_message_id: int, session_id: int) -> DeliveryRecord | None:
    return (
        db.query(DeliveryRecord)
        .filter(
            DeliveryRecord.user_session_id == session_id,
            DeliveryRecord.conversation_funnel_step_message_id == step_message_id,
        )
        .first()
    )


def register_sent_message(db: Session, step_message_id: int, session_id: int) -> tuple[DeliveryRecord, bool]:
    if not step_message_id or not session_id:
        raise ValidationError("conversationFunnelStepMessageId e userSessionId são obrigatórios")

    message = db.get(ConversationFunnelStepMessage, step_message_id)
    if message is None:
        raise NotFoundError("Mensagem da etapa do funil não encontrada")
    session = db.get(UserSession, session_id)
    if session is None:
        raise NotFoundError("Sessão de usuário não encontrada")

    account = db.get(Account, session.account_id)
    step = db.get(ConversationFunnelStep, message.conversation_funnel_step_id)
    if account is None or step is None or account.conversation_funnel_id != step.conversation_funnel_id:
        raise ValidationError(
            "A mensagem não pertence ao funil da conta da sessão",
            detail={"accountId": session.account_id, "stepId": message.conversation_funnel_step_id},
        )

    existing = _find_delivery(db, step_message_id, session_id)
    if existing is not None:
        logger.info("delivery already registered record_id=%s", existing.id)
        return existing, False

    record = DeliveryRecord(user_session_id=session_id, conversation_funnel_step_message_id=step_message_id)
    try:
        with db.begin_nested():
            db.add(record)
            db.flush()
    except IntegrityError:
        winner = _find_delivery(db, step_message_id, session_id)
        if winner is None:
            raise
        return winner, False

    db.commit()
    db.refresh(record)
    logger.info(
        "delivery registered record_id=%s session_id=%s message_id=%s",
        record.id,
        session_id,
        step_message_id,
    )
    return record, True


def register_conversation(
    db: Session, data: Mapping[str, Any], *, now: datetime | None = None
) -> ConversationFunnelRegister:
    """Store a conversation summary and move the session to the reported step.

    The register insert and the session update share one transaction, so the
    session's ``last_access`` always matches its newest register. A missing
    ``conversation_funnel_step_id`` clears the session step.
    """
    session_id = _coerce_id(data.get("user_session_id"))
    if session_id is None:
        raise ValidationError("user_session_id é obrigatório")
    session = db.get(UserSession, session_id)
    if session is None:
        raise NotFoundError("Sessão de usuário não encontrada")

    account_id = data.get("account_id")
    if account_id is not None and _coerce_id(account_id) != session.account_id:
        raise ValidationError(
            "account_id inválido para a sessão informada",
            detail={"accountId": account_id, "sessionAccountId": session.account_id},
        )

    step_id = None
    raw_step_id = data.get("conversation_funnel_step_id")
    if raw_step_id is not None:
        step_id = _coerce_id(raw_step_id)
        step = db.get(ConversationFunnelStep, step_id) if step_id is not None else None
        account = db.get(Account, session.account_id)
        if step is None or account is None or account.conversation_funnel_id != step.conversation_funnel_id:
            raise ValidationError(
                "conversation_funnel_step_id inválido para o funil da conta",
                detail={"accountId": session.account_id, "stepId": raw_step_id},
            )

    now = now or _utcnow()
    register = ConversationFunnelRegister(
        user_session_id=session.id,
        account_id=session.account_id,
        conversation_funnel_step_id=step_id,
        summary=data.get("summary"),
        last_timestamptz=data.get("last_timestamptz") or now,
    )
    db.add(register)
    session.conversation_funnel_step_id = step_id
    session.last_access = now
    db.commit()
    db.refresh(register)
    logger.info(
        "conversation registered register_id=%s session_id=%s step_id=%s",
        register.id,
        session.id,
        step_id,
    )
    return register


def _coerce_id(value: Any) -> int | None:
    if value is None or isinstance(value, bool):
        return None
    try:
        coerced = int(str(value).strip())
    except (TypeError, ValueError):
        return None
    return coerced if coerced > 0 else None


def check_message_sent(db: Session, step_message_id: Any, session_id: Any) -> bool:
    message_id = _coerce_id(step_message_id)
    user_session_id = _coerce_id(session_id)
    if message_id is None or user_session_id is None:
        return False
    return _find_delivery(db, message_id, user_session_id) is not None


def _agent_webhooks(db: Session, product_id: int | None) -> dict[str, str | None]:
    webhooks: dict[str, str | None] = {name: None for name in WEBHOOK_PARAMETERS}
    if product_id is None:
        return webhooks
    rows = (
        db.query(ProductParameter.name, ProductParameter.value)
        .filter(ProductParameter.product_id == product_id, ProductParameter.name.in_(WEBHOOK_PARAMETERS))
        .all()
    )
    for name, value in rows:
        webhooks[name] = value
    return webhooks


def _latest_register(db: Session, session_id: int, step_id: int) -> ConversationFunnelRegister | None:
    return (
        db.query(ConversationFunnelRegister)
        .filter(
            ConversationFunnelRegister.user_session_id == session_id,
            ConversationFunnelRegister.conversation_funnel_step_id == step_id,
        )
        .order_by(ConversationFunnelRegister.created_at.desc(), ConversationFunnelRegister.id.desc())
        .first()
    )


def get_pending_messages(db: Session, account_id: int, *, now: datetime | None = None) -> dict[str, Any]:
    """List scheduled step messages that are due for inactive sessions.

    A message is due for a session sitting on its step once the session's
    ``last_access`` is older than ``shipping_time`` minutes and no delivery
    record exists for the pair. Each session yields at most one message, the
    first due one in ``shipping_order``.
    """
    account = _load_account(db, account_id)
    parameters = parameter_store.get_parameters(db, parameter_store.ACCOUNT_SCOPE, account_id)
    result: dict[str, Any] = {
        "account": model_to_dict(account),
        "accountParameters": parameter_store.parameters_as_mapping(parameters),
        **_agent_webhooks(db, account.product_id),
        "messages": [],
    }

    if account.conversation_funnel_id is None:
        return result
    funnel = db.get(ConversationFunnel, account.conversation_funnel_id)
    if funnel is None:
        return result

    now = now or _utcnow()
    funnel_data = model_to_dict(funnel)
    steps = (
        db.query(ConversationFunnelStep)
        .filter(ConversationFunnelStep.conversation_funnel_id == funnel.id)
        .order_by(ConversationFunnelStep.order, ConversationFunnelStep.id)
        .all()
    )

    served_sessions: set[int] = set()
    for step in steps:
        scheduled = [message for message in step.messages if (message.shipping_time or 0) > 0]
        if not scheduled:
            continue

        step_data = _step_to_dict(step, with_messages=False)
        for message in scheduled:
            threshold = now - timedelta(minutes=message.shipping_time)
            sessions = (
                db.query(UserSession)
                .filter(
                    UserSession.account_id == account_id,
                    UserSession.conversation_funnel_step_id == step.id,
                    UserSession.last_access.isnot(None),
                    UserSession.last_access < threshold,
                )
                .order_by(UserSession.last_access, UserSession.id)
                .all()
            )
            for session in sessions:
                if session.id in served_sessions:
                    continue
                if _find_delivery(db, message.id, session.id) is not None:
                    continue

                served_sessions.add(session.id)
                result["messages"].append(
                    {
                        "conversation_funnel": funnel_data,
                        "conversation_funnel_step": step_data,
                        "conversation_funnel_step_message": model_to_dict(message),
                        "user_session": model_to_dict(session),
                        "conversation_funnel_register": model_to_dict(_latest_register(db, session.id, step.id)),
                    }
                )

    logger.info("pending messages computed account_id=%s count=%s", account_id, len(result["messages"]))
    return result
