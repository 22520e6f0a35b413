from __future__ import annotations

from typing import Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from autonomia_api.core.cache import CacheBackend
from autonomia_api.core.config import Settings
from autonomia_api.core.errors import NotFoundError
from autonomia_api.core.responses import success
from autonomia_api.deps import get_cache, get_claims_user_id, get_db, get_settings
from autonomia_api.models.product import Product
from autonomia_api.schemas.settings import AccountUpdate, OnboardingRequest, ParameterUpsert
from autonomia_api.services import funnel_admin, parameter_store
from autonomia_api.services.onboarding import OnboardingOrchestrator
from autonomia_api.services.serializers import model_to_dict

router = APIRouter(prefix="/api/saas", tags=["saas"])


def get_onboarding_orchestrator(settings: Settings = Depends(get_settings)) -> OnboardingOrchestrator:
    return OnboardingOrchestrator(settings)


@router.post("/accounts/onboarding")
def create_account_onboarding(
    body: OnboardingRequest,
    db: Session = Depends(get_db),
    claims_user_id: Optional[int] = Depends(get_claims_user_id),
    orchestrator: OnboardingOrchestrator = Depends(get_onboarding_orchestrator),
):
    outcome = orchestrator.run(db, body.model_dump(), claims_user_id=claims_user_id)
    return success(outcome.as_dict(), message="Conta criada com sucesso", status_code=201)


@router.get("/accounts/{account_id}")
def get_account(account_id: int, db: Session = Depends(get_db)):
    return success(model_to_dict(funnel_admin.get_account(db, account_id)))


@router.patch("/accounts/{account_id}")
def update_account(
    account_id: int,
    body: AccountUpdate,
    db: Session = Depends(get_db),
    cache: CacheBackend = Depends(get_cache),
):
    account = funnel_admin.update_account(db, cache, account_id, body.model_dump(exclude_unset=True))
    return success(model_to_dict(account), message="Conta atualizada com sucesso")


@router.get("/accounts/{account_id}/parameters")
def get_account_parameters(
    account_id: int,
    onboarding: bool = Query(default=False),
    db: Session = Depends(get_db),
):
    funnel_admin.get_account(db, account_id)
    rows = parameter_store.get_parameters(
        db, parameter_store.ACCOUNT_SCOPE, account_id, onboarding_visible_only=onboarding
    )
    return success(rows)


@router.put("/accounts/{account_id}/parameters/{name}")
def upsert_account_parameter(
    account_id: int,
    name: str,
    body: ParameterUpsert,
    db: Session = Depends(get_db),
    cache: CacheBackend = Depends(get_cache),
):
    row, created = parameter_store.upsert_parameter(
        db,
        parameter_store.ACCOUNT_SCOPE,
        account_id,
        name,
        body.value,
        short_description=body.short_description,
        help_text=body.help_text,
        default_value=body.default_value,
    )
    # team-id faz parte do payload do funil em cache
    funnel_admin.invalidate_account_funnel(cache, account_id)
    return success(row, message="Parâmetro salvo com sucesso", status_code=201 if created else 200)


@router.get("/products/{product_id}/parameters")
def get_product_parameters(
    product_id: int,
    onboarding: bool = Query(default=False),
    db: Session = Depends(get_db),
):
    if db.get(Product, product_id) is None:
        raise NotFoundError("Produto não encontrado")
    rows = parameter_store.get_parameters(
        db, parameter_store.PRODUCT_SCOPE, product_id, onboarding_visible_only=onboarding
    )
    return success(rows)
