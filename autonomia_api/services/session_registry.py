from __future__ import annotations

import logging
from typing import Any, Mapping

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session
from sqlalchemy.orm.attributes import flag_modified

from autonomia_api.core.errors import ConflictError, NotFoundError, ValidationError
from autonomia_api.models.account import Account
from autonomia_api.models.contact import Contact
from autonomia_api.models.funnel import ConversationFunnelStep
from autonomia_api.models.product import Product
from autonomia_api.models.user_session import UserSession
from autonomia_api.services.serializers import model_to_dict

logger = logging.getLogger(__name__)

SESSION_REQUIRED_FIELDS = (
    ("name", "Nome é obrigatório para criar sessão"),
    ("phone", "Telefone é obrigatório para criar sessão"),
    ("account_id", "ID da conta é obrigatório para criar sessão"),
    ("product_id", "ID do produto é obrigatório para criar sessão"),
)

SESSION_UPDATABLE_FIELDS = frozenset(
    {
        "name",
        "phone",
        "product_id",
        "contact_id",
        "conversation_funnel_step_id",
        "inbox_id",
        "conversation_id",
        "message_time",
        "last_access",
    }
)


def _find_session(db: Session, account_id: int, phone: str) -> UserSession | None:
    return (
        db.query(UserSession)
        .filter(UserSession.account_id == account_id, UserSession.phone == phone)
        .first()
    )


def _first_step_id(db: Session, account: Account) -> int | None:
    if account.conversation_funnel_id is None:
        logger.info("account has no funnel; session starts without step account_id=%s", account.id)
        return None

    step = (
        db.query(ConversationFunnelStep)
        .filter(
            ConversationFunnelStep.conversation_funnel_id == account.conversation_funnel_id,
            ConversationFunnelStep.first_step.is_(True),
        )
        .order_by(ConversationFunnelStep.order, ConversationFunnelStep.id)
        .first()
    )
    if step is None:
        logger.info(
            "funnel has no first step funnel_id=%s account_id=%s",
            account.conversation_funnel_id,
            account.id,
        )
        return None
    return step.id


def create_or_get_session(db: Session, data: Mapping[str, Any]) -> tuple[UserSession, bool]:
    for field_name, message in SESSION_REQUIRED_FIELDS:
        value = data.get(field_name)
        if value is None or (isinstance(value, str) and not value.strip()):
            raise ValidationError(message)

    try:
        account_id = int(data["account_id"])
        product_id = int(data["product_id"])
    except (TypeError, ValueError) as exc:
        raise ValidationError("account_id e product_id devem ser numéricos") from exc
    phone = str(data["phone"]).strip()

    account = db.get(Account, account_id)
    if account is None:
        raise NotFoundError("Conta não encontrada")
    if db.get(Product, product_id) is None:
        raise NotFoundError("Produto não encontrado")
    if account.product_id != product_id:
        raise ValidationError("Produto não pertence à conta informada")

    existing = _find_session(db, account_id, phone)
    if existing is not None:
        logger.info("existing session found session_id=%s account_id=%s", existing.id, account_id)
        return existing, False

    session = UserSession(
        name=str(data["name"]).strip(),
        phone=phone,
        account_id=account_id,
        product_id=product_id,
        contact_id=data.get("contact_id"),
        message_time=data.get("message_time"),
        conversation_funnel_step_id=_first_step_id(db, account),
    )
    try:
        with db.begin_nested():
            db.add(session)
            db.flush()
    except IntegrityError:
        # Outra requisição criou a sessão entre a busca e o insert.
        winner = _find_session(db, account_id, phone)
        if winner is None:
            raise
        logger.info("concurrent session insert resolved to session_id=%s", winner.id)
        return winner, False

    db.commit()
    db.refresh(session)
    logger.info("session created session_id=%s account_id=%s step_id=%s", session.id, account_id, session.conversation_funnel_step_id)
    return session, True


def get_session(db: Session, session_id: int) -> UserSession:
    session = db.get(UserSession, session_id)
    if session is None:
        raise NotFoundError("Sessão não encontrada")
    return session


def update_session(db: Session, session_id: int, changes: Mapping[str, Any]) -> UserSession:
    if not changes:
        raise ValidationError("Nenhum dado fornecido para atualização")
    if "account_id" in changes:
        raise ValidationError("account_id não pode ser alterado")
    unknown = sorted(set(changes) - SESSION_UPDATABLE_FIELDS)
    if unknown:
        raise ValidationError(f"Campos não permitidos: {', '.join(unknown)}")

    session = get_session(db, session_id)
    for key, value in changes.items():
        setattr(session, key, value)

    try:
        db.commit()
    except IntegrityError as exc:
        db.rollback()
        raise ConflictError("Já existe uma sessão com este telefone para a conta") from exc
    db.refresh(session)
    return session


def create_contact(db: Session, data: Mapping[str, Any]) -> Contact:
    name = data.get("name")
    if not name or not str(name).strip():
        raise ValidationError("Nome é obrigatório para criar contato")
    if not data.get("account_id"):
        raise ValidationError("account_id é obrigatório para criar contato")

    account_id = int(data["account_id"])
    if db.get(Account, account_id) is None:
        raise NotFoundError("Conta não encontrada")

    contact = Contact(
        name=str(name).strip(),
        phone=data.get("phone"),
        contact_data=data.get("contact_data"),
        campaign_id=data.get("campaign_id"),
        external_code=data.get("external_code"),
        external_status=data.get("external_status") or "pending",
        account_id=account_id,
    )
    db.add(contact)
    try:
        db.commit()
    except IntegrityError as exc:
        db.rollback()
        raise ConflictError("external_code já cadastrado") from exc
    db.refresh(contact)
    return contact


def list_contacts(
    db: Session,
    account_id: int,
    *,
    phone: str | None = None,
    limit: int | None = None,
    offset: int | None = None,
) -> list[Contact]:
    query = db.query(Contact).filter(Contact.account_id == account_id)
    if phone:
        query = query.filter(Contact.phone == phone)
    query = query.order_by(Contact.created_at.desc(), Contact.id.desc())
    if offset:
        query = query.offset(offset)
    if limit:
        query = query.limit(limit)
    return query.all()


def _contact_view(db: Session, contact: Contact) -> dict[str, Any]:
    latest_session = (
        db.query(UserSession)
        .filter(UserSession.contact_id == contact.id)
        .order_by(UserSession.created_at.desc(), UserSession.id.desc())
        .first()
    )
    return {
        "contact": model_to_dict(contact),
        "account": model_to_dict(db.get(Account, contact.account_id)),
        "user_session": model_to_dict(latest_session),
    }


def _find_contact_by_code(db: Session, external_code: str) -> Contact | None:
    if not external_code:
        raise ValidationError("Campo external_code é obrigatório")
    return db.query(Contact).filter(Contact.external_code == external_code).first()


def get_contact_by_external_code(db: Session, external_code: str) -> dict[str, Any] | None:
    contact = _find_contact_by_code(db, external_code)
    if contact is None:
        return None
    return _contact_view(db, contact)


def update_contact_by_external_code(
    db: Session,
    external_code: str,
    *,
    status: Any = None,
    final_link: str | None = None,
) -> dict[str, Any] | None:
    contact = _find_contact_by_code(db, external_code)
    if contact is None:
        logger.info("unknown external code; nothing updated code=%s", external_code)
        return None

    data = dict(contact.contact_data or {})
    if final_link:
        data["finalLink"] = final_link
    contact.contact_data = data
    flag_modified(contact, "contact_data")
    if isinstance(status, str) and status:
        contact.external_status = status

    db.commit()
    db.refresh(contact)
    logger.info("contact updated by external code contact_id=%s status=%s", contact.id, contact.external_status)
    return _contact_view(db, contact)
