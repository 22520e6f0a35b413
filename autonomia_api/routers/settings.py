from __future__ import annotations

from typing import Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from autonomia_api.core.errors import NotFoundError, ValidationError
from autonomia_api.core.responses import success
from autonomia_api.deps import get_db
from autonomia_api.schemas.settings import (
    ContactCreate,
    ContactExternalUpdate,
    UserSessionCreate,
    UserSessionUpdate,
)
from autonomia_api.services import session_registry
from autonomia_api.services.serializers import model_to_dict, models_to_dicts

router = APIRouter(prefix="/api/settings", tags=["settings"])


@router.post("/user-sessions")
def create_user_session(body: UserSessionCreate, db: Session = Depends(get_db)):
    session, created = session_registry.create_or_get_session(db, body.model_dump())
    if created:
        return success(model_to_dict(session), message="Sessão criada com sucesso", status_code=201)
    return success(model_to_dict(session), message="Sessão existente retornada")


@router.get("/user-sessions/{session_id}")
def get_user_session(session_id: int, db: Session = Depends(get_db)):
    return success(model_to_dict(session_registry.get_session(db, session_id)))


@router.patch("/user-sessions/{session_id}")
def update_user_session(session_id: int, body: UserSessionUpdate, db: Session = Depends(get_db)):
    changes = body.model_dump(exclude_unset=True)
    session = session_registry.update_session(db, session_id, changes)
    return success(model_to_dict(session), message="Sessão atualizada com sucesso")


@router.post("/contacts")
def create_contact(body: ContactCreate, db: Session = Depends(get_db)):
    contact = session_registry.create_contact(db, body.model_dump())
    return success(model_to_dict(contact), message="Contato criado com sucesso", status_code=201)


@router.get("/contacts")
def list_contacts(
    account_id: Optional[int] = Query(default=None),
    phone: Optional[str] = Query(default=None),
    limit: Optional[int] = Query(default=None, ge=1, le=500),
    offset: Optional[int] = Query(default=None, ge=0),
    db: Session = Depends(get_db),
):
    if not account_id:
        raise ValidationError("account_id é obrigatório")
    contacts = session_registry.list_contacts(db, account_id, phone=phone, limit=limit, offset=offset)
    return success(models_to_dicts(contacts))


@router.get("/contacts/by-external-code")
def get_contact_by_external_code(
    external_code: Optional[str] = Query(default=None),
    externalCode: Optional[str] = Query(default=None),
    db: Session = Depends(get_db),
):
    code = external_code or externalCode
    if not code:
        raise ValidationError("Campo external_code é obrigatório")
    view = session_registry.get_contact_by_external_code(db, code)
    if view is None:
        raise NotFoundError("Contato não encontrado")
    return success(view)


@router.post("/contacts/by-external-code")
def update_contact_by_external_code(body: ContactExternalUpdate, db: Session = Depends(get_db)):
    if not body.code:
        raise ValidationError("Campo external_code é obrigatório")
    view = session_registry.update_contact_by_external_code(db, body.code, status=body.status, final_link=body.link)
    if view is None:
        raise NotFoundError("Contato não encontrado")
    return success(view, message="Contato atualizado")
