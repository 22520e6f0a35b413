from __future__ import annotations

from typing import Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from autonomia_api.core.cache import CacheBackend
from autonomia_api.core.errors import ValidationError
from autonomia_api.core.responses import success
from autonomia_api.deps import get_cache, get_db
from autonomia_api.schemas.funnel import ConversationRegisterIn, SentMessageIn
from autonomia_api.services import funnel_engine
from autonomia_api.services.serializers import model_to_dict

router = APIRouter(prefix="/api/funnel", tags=["funnel"])


@router.get("/accounts/{account_id}")
def get_account_funnel(account_id: int, db: Session = Depends(get_db), cache: CacheBackend = Depends(get_cache)):
    data = funnel_engine.get_account_funnel_data(db, cache, account_id)
    return success(data, message="Dados do funil encontrados com sucesso")


@router.post("/sent-messages")
def register_sent_message(body: SentMessageIn, db: Session = Depends(get_db)):
    if not body.conversationFunnelStepMessageId:
        raise ValidationError("conversationFunnelStepMessageId é obrigatório")
    if not body.userSessionId:
        raise ValidationError("userSessionId é obrigatório")

    record, created = funnel_engine.register_sent_message(
        db, body.conversationFunnelStepMessageId, body.userSessionId
    )
    if created:
        return success(model_to_dict(record), message="Envio registrado com sucesso", status_code=201)
    return success(model_to_dict(record), message="Envio já registrado anteriormente")


@router.post("/conversation-registers")
def register_conversation(body: ConversationRegisterIn, db: Session = Depends(get_db)):
    register = funnel_engine.register_conversation(db, body.model_dump())
    return success(model_to_dict(register), message="Registro de conversa criado com sucesso", status_code=201)


@router.get("/sent-messages/check")
def check_sent_message(
    conversationFunnelStepMessageId: Optional[str] = Query(default=None),
    userSessionId: Optional[str] = Query(default=None),
    db: Session = Depends(get_db),
):
    sent = funnel_engine.check_message_sent(db, conversationFunnelStepMessageId, userSessionId)
    return success({"sent": sent})


@router.get("/pending-messages")
def pending_messages(accountId: Optional[int] = Query(default=None), db: Session = Depends(get_db)):
    if not accountId:
        raise ValidationError("O parâmetro accountId é obrigatório")
    data = funnel_engine.get_pending_messages(db, accountId)
    return success(data, message="Mensagens pendentes encontradas com sucesso")
