from __future__ import annotations

from typing import Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from autonomia_api.core.cache import CacheBackend
from autonomia_api.core.responses import success
from autonomia_api.deps import get_cache, get_db
from autonomia_api.schemas.funnel import (
    FunnelCreate,
    FunnelUpdate,
    StepCreate,
    StepMessageCreate,
    StepMessageUpdate,
    StepUpdate,
)
from autonomia_api.services import funnel_admin
from autonomia_api.services.serializers import model_to_dict, models_to_dicts

router = APIRouter(prefix="/api/saas/conversation-funnels", tags=["conversation-funnels"])


@router.get("")
def list_funnels(
    defaultOnly: bool = Query(default=False),
    accountId: Optional[int] = Query(default=None),
    db: Session = Depends(get_db),
):
    funnels = funnel_admin.list_funnels(db, default_only=defaultOnly, account_id=accountId)
    return success(models_to_dicts(funnels))


@router.post("")
def create_funnel(body: FunnelCreate, db: Session = Depends(get_db)):
    funnel = funnel_admin.create_funnel(db, body.model_dump())
    return success(model_to_dict(funnel), message="Funil criado com sucesso", status_code=201)


@router.get("/steps/{step_id}")
def get_step(step_id: int, db: Session = Depends(get_db)):
    return success(model_to_dict(funnel_admin.get_step(db, step_id)))


@router.patch("/steps/{step_id}")
def update_step(step_id: int, body: StepUpdate, db: Session = Depends(get_db), cache: CacheBackend = Depends(get_cache)):
    step = funnel_admin.update_step(db, cache, step_id, body.model_dump(exclude_unset=True))
    return success(model_to_dict(step), message="Etapa atualizada com sucesso")


@router.delete("/steps/{step_id}")
def delete_step(step_id: int, db: Session = Depends(get_db), cache: CacheBackend = Depends(get_cache)):
    funnel_admin.delete_step(db, cache, step_id)
    return success(message="Etapa removida com sucesso")


@router.get("/steps/{step_id}/messages")
def list_messages(step_id: int, db: Session = Depends(get_db)):
    return success(models_to_dicts(funnel_admin.list_messages(db, step_id)))


@router.post("/steps/{step_id}/messages")
def create_message(
    step_id: int,
    body: StepMessageCreate,
    db: Session = Depends(get_db),
    cache: CacheBackend = Depends(get_cache),
):
    message = funnel_admin.create_message(db, cache, step_id, body.model_dump())
    return success(model_to_dict(message), message="Mensagem criada com sucesso", status_code=201)


@router.get("/messages/{message_id}")
def get_message(message_id: int, db: Session = Depends(get_db)):
    return success(model_to_dict(funnel_admin.get_message(db, message_id)))


@router.patch("/messages/{message_id}")
def update_message(
    message_id: int,
    body: StepMessageUpdate,
    db: Session = Depends(get_db),
    cache: CacheBackend = Depends(get_cache),
):
    message = funnel_admin.update_message(db, cache, message_id, body.model_dump(exclude_unset=True))
    return success(model_to_dict(message), message="Mensagem atualizada com sucesso")


@router.delete("/messages/{message_id}")
def delete_message(message_id: int, db: Session = Depends(get_db), cache: CacheBackend = Depends(get_cache)):
    funnel_admin.delete_message(db, cache, message_id)
    return success(message="Mensagem removida com sucesso")


@router.get("/{funnel_id}")
def get_funnel(funnel_id: int, db: Session = Depends(get_db)):
    return success(model_to_dict(funnel_admin.get_funnel(db, funnel_id)))


@router.patch("/{funnel_id}")
def update_funnel(
    funnel_id: int,
    body: FunnelUpdate,
    db: Session = Depends(get_db),
    cache: CacheBackend = Depends(get_cache),
):
    funnel = funnel_admin.update_funnel(db, cache, funnel_id, body.model_dump(exclude_unset=True))
    return success(model_to_dict(funnel), message="Funil atualizado com sucesso")


@router.delete("/{funnel_id}")
def delete_funnel(funnel_id: int, db: Session = Depends(get_db), cache: CacheBackend = Depends(get_cache)):
    funnel_admin.delete_funnel(db, cache, funnel_id)
    return success(message="Funil removido com sucesso")


@router.get("/{funnel_id}/steps")
def list_steps(funnel_id: int, db: Session = Depends(get_db)):
    return success(models_to_dicts(funnel_admin.list_steps(db, funnel_id)))


@router.post("/{funnel_id}/steps")
def create_step(
    funnel_id: int,
    body: StepCreate,
    db: Session = Depends(get_db),
    cache: CacheBackend = Depends(get_cache),
):
    step = funnel_admin.create_step(db, cache, funnel_id, body.model_dump())
    return success(model_to_dict(step), message="Etapa criada com sucesso", status_code=201)
