from __future__ import annotations

import logging
from typing import Any, Mapping

from sqlalchemy.orm import Session

from autonomia_api.core.cache import CacheBackend
from autonomia_api.core.errors import ConflictError, NotFoundError, ValidationError
from autonomia_api.models.account import Account
from autonomia_api.models.funnel import (
    ConversationFunnel,
    ConversationFunnelRegister,
    ConversationFunnelStep,
    ConversationFunnelStepMessage,
    DeliveryRecord,
)
from autonomia_api.models.product import Product
from autonomia_api.models.user_session import UserSession
from autonomia_api.services.funnel_engine import invalidate_account_funnel, invalidate_funnel_accounts

logger = logging.getLogger(__name__)

FUNNEL_FIELDS = frozenset({"name", "description", "is_default", "auto_assignment"})
STEP_FIELDS = frozenset({"name", "description", "first_step", "order", "assign_to_team", "kanban_code"})
MESSAGE_FIELDS = frozenset(
    {"name", "description", "message_instruction", "fixed_message", "shipping_time", "shipping_order"}
)
ACCOUNT_FIELDS = frozenset({"name", "social_name", "email", "phone", "document", "domain", "conversation_funnel_id"})


def _apply(instance, changes: Mapping[str, Any], allowed: frozenset[str]) -> None:
    unknown = sorted(set(changes) - allowed)
    if unknown:
        raise ValidationError(f"Campos não permitidos: {', '.join(unknown)}")
    for key, value in changes.items():
        setattr(instance, key, value)


def _require_name(data: Mapping[str, Any]) -> None:
    name = data.get("name")
    if not name or not str(name).strip():
        raise ValidationError("name é obrigatório")


# Funnels


def list_funnels(db: Session, *, default_only: bool = False, account_id: int | None = None) -> list[ConversationFunnel]:
    if account_id is not None:
        account = db.get(Account, account_id)
        if account is None:
            raise NotFoundError("Conta não encontrada")
        if account.conversation_funnel_id is None:
            return []
        funnel = db.get(ConversationFunnel, account.conversation_funnel_id)
        return [funnel] if funnel is not None else []

    query = db.query(ConversationFunnel)
    if default_only:
        query = query.filter(ConversationFunnel.is_default.is_(True))
    return query.order_by(ConversationFunnel.name, ConversationFunnel.id).all()


def get_funnel(db: Session, funnel_id: int) -> ConversationFunnel:
    funnel = db.get(ConversationFunnel, funnel_id)
    if funnel is None:
        raise NotFoundError("Funil não encontrado")
    return funnel


def create_funnel(db: Session, data: Mapping[str, Any]) -> ConversationFunnel:
    _require_name(data)
    funnel = ConversationFunnel()
    _apply(funnel, data, FUNNEL_FIELDS)
    db.add(funnel)
    db.commit()
    db.refresh(funnel)
    logger.info("funnel created funnel_id=%s", funnel.id)
    return funnel


def update_funnel(db: Session, cache: CacheBackend, funnel_id: int, changes: Mapping[str, Any]) -> ConversationFunnel:
    if not changes:
        raise ValidationError("Nenhum dado fornecido para atualização")
    funnel = get_funnel(db, funnel_id)
    _apply(funnel, changes, FUNNEL_FIELDS)
    db.commit()
    db.refresh(funnel)
    invalidate_funnel_accounts(db, cache, funnel_id)
    return funnel


def _ensure_messages_undelivered(db: Session, message_ids: list[int]) -> None:
    if not message_ids:
        return
    delivered = (
        db.query(DeliveryRecord.id)
        .filter(DeliveryRecord.conversation_funnel_step_message_id.in_(message_ids))
        .first()
    )
    if delivered is not None:
        raise ConflictError("Mensagens com envios registrados não podem ser removidas")


def _detach_steps(db: Session, step_ids: list[int]) -> None:
    if not step_ids:
        return
    db.query(UserSession).filter(UserSession.conversation_funnel_step_id.in_(step_ids)).update(
        {UserSession.conversation_funnel_step_id: None}, synchronize_session=False
    )
    db.query(ConversationFunnelRegister).filter(
        ConversationFunnelRegister.conversation_funnel_step_id.in_(step_ids)
    ).update({ConversationFunnelRegister.conversation_funnel_step_id: None}, synchronize_session=False)


def delete_funnel(db: Session, cache: CacheBackend, funnel_id: int) -> None:
    funnel = get_funnel(db, funnel_id)
    step_ids = [step.id for step in funnel.steps]
    message_ids = [message.id for step in funnel.steps for message in step.messages]
    _ensure_messages_undelivered(db, message_ids)

    invalidate_funnel_accounts(db, cache, funnel_id)
    db.query(Account).filter(Account.conversation_funnel_id == funnel_id).update(
        {Account.conversation_funnel_id: None}, synchronize_session=False
    )
    db.query(Product).filter(Product.conversation_funnel_id == funnel_id).update(
        {Product.conversation_funnel_id: None}, synchronize_session=False
    )
    _detach_steps(db, step_ids)
    db.delete(funnel)
    db.commit()
    logger.info("funnel deleted funnel_id=%s", funnel_id)


# Steps


def list_steps(db: Session, funnel_id: int) -> list[ConversationFunnelStep]:
    return get_funnel(db, funnel_id).steps


def get_step(db: Session, step_id: int) -> ConversationFunnelStep:
    step = db.get(ConversationFunnelStep, step_id)
    if step is None:
        raise NotFoundError("Etapa de funil não encontrada")
    return step


def _clear_other_first_steps(db: Session, step: ConversationFunnelStep) -> None:
    if not step.first_step:
        return
    query = db.query(ConversationFunnelStep).filter(
        ConversationFunnelStep.conversation_funnel_id == step.conversation_funnel_id,
        ConversationFunnelStep.first_step.is_(True),
    )
    if step.id is not None:
        query = query.filter(ConversationFunnelStep.id != step.id)
    query.update({ConversationFunnelStep.first_step: False}, synchronize_session=False)


def create_step(db: Session, cache: CacheBackend, funnel_id: int, data: Mapping[str, Any]) -> ConversationFunnelStep:
    _require_name(data)
    get_funnel(db, funnel_id)
    step = ConversationFunnelStep(conversation_funnel_id=funnel_id)
    _apply(step, data, STEP_FIELDS)
    _clear_other_first_steps(db, step)
    db.add(step)
    db.commit()
    db.refresh(step)
    invalidate_funnel_accounts(db, cache, funnel_id)
    return step


def update_step(db: Session, cache: CacheBackend, step_id: int, changes: Mapping[str, Any]) -> ConversationFunnelStep:
    if not changes:
        raise ValidationError("Nenhum dado fornecido para atualização")
    step = get_step(db, step_id)
    _apply(step, changes, STEP_FIELDS)
    _clear_other_first_steps(db, step)
    db.commit()
    db.refresh(step)
    invalidate_funnel_accounts(db, cache, step.conversation_funnel_id)
    return step


def delete_step(db: Session, cache: CacheBackend, step_id: int) -> None:
    step = get_step(db, step_id)
    funnel_id = step.conversation_funnel_id
    _ensure_messages_undelivered(db, [message.id for message in step.messages])
    _detach_steps(db, [step.id])
    db.delete(step)
    db.commit()
    invalidate_funnel_accounts(db, cache, funnel_id)


# Step messages


def list_messages(db: Session, step_id: int) -> list[ConversationFunnelStepMessage]:
    return get_step(db, step_id).messages


def get_message(db: Session, message_id: int) -> ConversationFunnelStepMessage:
    message = db.get(ConversationFunnelStepMessage, message_id)
    if message is None:
        raise NotFoundError("Mensagem de etapa não encontrada")
    return message


def _validate_shipping(message: ConversationFunnelStepMessage) -> None:
    if message.shipping_time is not None and message.shipping_time < 0:
        raise ValidationError("shipping_time não pode ser negativo")


def create_message(
    db: Session, cache: CacheBackend, step_id: int, data: Mapping[str, Any]
) -> ConversationFunnelStepMessage:
    _require_name(data)
    step = get_step(db, step_id)
    message = ConversationFunnelStepMessage(conversation_funnel_step_id=step_id)
    _apply(message, data, MESSAGE_FIELDS)
    _validate_shipping(message)
    db.add(message)
    db.commit()
    db.refresh(message)
    invalidate_funnel_accounts(db, cache, step.conversation_funnel_id)
    return message


def update_message(
    db: Session, cache: CacheBackend, message_id: int, changes: Mapping[str, Any]
) -> ConversationFunnelStepMessage:
    if not changes:
        raise ValidationError("Nenhum dado fornecido para atualização")
    message = get_message(db, message_id)
    _apply(message, changes, MESSAGE_FIELDS)
    _validate_shipping(message)
    db.commit()
    db.refresh(message)
    invalidate_funnel_accounts(db, cache, message.step.conversation_funnel_id)
    return message


def delete_message(db: Session, cache: CacheBackend, message_id: int) -> None:
    message = get_message(db, message_id)
    funnel_id = message.step.conversation_funnel_id
    _ensure_messages_undelivered(db, [message.id])
    db.delete(message)
    db.commit()
    invalidate_funnel_accounts(db, cache, funnel_id)


# Accounts


def get_account(db: Session, account_id: int) -> Account:
    account = db.get(Account, account_id)
    if account is None:
        raise NotFoundError("Conta não encontrada")
    return account


def update_account(db: Session, cache: CacheBackend, account_id: int, changes: Mapping[str, Any]) -> Account:
    if not changes:
        raise ValidationError("Nenhum dado fornecido para atualização")
    account = get_account(db, account_id)
    funnel_id = changes.get("conversation_funnel_id")
    if funnel_id is not None:
        get_funnel(db, funnel_id)
    _apply(account, changes, ACCOUNT_FIELDS)
    db.commit()
    db.refresh(account)
    invalidate_account_funnel(cache, account_id)
    logger.info("account updated account_id=%s fields=%s", account_id, sorted(changes))
    return account
