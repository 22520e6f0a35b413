from __future__ import annotations

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from autonomia_api.core.config import Settings
from autonomia_api.core.responses import success
from autonomia_api.deps import get_db, get_settings
from autonomia_api.services.serializers import model_to_dict
from autonomia_api.services.tenant_resolver import TenantResolver

router = APIRouter(prefix="/api/tenants", tags=["tenants"])


def get_tenant_resolver(settings: Settings = Depends(get_settings)) -> TenantResolver:
    return TenantResolver(default_slug=settings.default_tenant_slug, platform_domain=settings.platform_domain)


@router.get("/resolve")
def resolve_domain(
    domain: str = Query(..., min_length=1),
    db: Session = Depends(get_db),
    resolver: TenantResolver = Depends(get_tenant_resolver),
):
    slug = resolver.extract_slug(domain)
    company = resolver.resolve_company(db, domain)
    return success(
        {"slug": slug, "companyId": company.id, "company": model_to_dict(company)},
        message="Empresa encontrada",
    )


@router.get("/resolve-prefix")
def resolve_prefix(
    prefix: str = Query(..., min_length=1),
    db: Session = Depends(get_db),
    resolver: TenantResolver = Depends(get_tenant_resolver),
):
    account = resolver.resolve_account_by_prefix(db, prefix)
    return success({"accountId": account.id, "account": model_to_dict(account)}, message="Conta encontrada")
