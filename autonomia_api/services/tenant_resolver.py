from __future__ import annotations

import logging
from urllib.parse import urlsplit

from sqlalchemy import func
from sqlalchemy.orm import Session

from autonomia_api.core.errors import AmbiguousResolutionError, NotFoundError
from autonomia_api.models.account import Account
from autonomia_api.models.company import Company
from autonomia_api.models.parameter import AccountParameter

logger = logging.getLogger(__name__)

LOCAL_HOSTS = {"localhost", "127.0.0.1"}
PREFIX_PARAMETER_NAME = "prefix"
KNOWN_DOMAINS_IN_ERROR = 5


class TenantResolver:
    """Resolve company/account identity from a hostname or an explicit prefix."""

    def __init__(self, *, default_slug: str = "autonomia", platform_domain: str = "autonomia.site") -> None:
        self.default_slug = default_slug
        self.platform_domain = platform_domain.lower().lstrip(".")

    @staticmethod
    def normalize_host(raw: str) -> str:
        normalized = (raw or "").split(",")[0].strip().lower()
        if not normalized:
            return ""

        if "://" in normalized:
            return (urlsplit(normalized).hostname or "").lower()

        for separator in ("/", "?", "#"):
            normalized = normalized.split(separator)[0]
        if ":" in normalized:
            normalized = normalized.split(":")[0]
        return normalized.strip().rstrip(".")

    def _fallback(self, hostname: str) -> str:
        logger.warning("hostname did not match any tenant pattern; using default tenant host=%s", hostname)
        return self.default_slug

    def extract_slug(self, raw: str) -> str:
        hostname = self.normalize_host(raw)
        if not hostname:
            return self._fallback(hostname)

        if "." not in hostname:
            if hostname == "localhost":
                return self.default_slug
            return hostname

        if hostname in LOCAL_HOSTS:
            return self.default_slug

        labels = hostname.split(".")
        if labels[0] == "portal":
            if len(labels) < 3:
                return self._fallback(hostname)
            return labels[1]

        if self.platform_domain and hostname.endswith(f".{self.platform_domain}"):
            return labels[0]

        return self._fallback(hostname)

    def resolve_company(self, db: Session, raw: str) -> Company:
        slug = self.extract_slug(raw)
        logger.info("resolving company raw=%s slug=%s", raw, slug)

        exact = db.query(Company).filter(func.lower(Company.domain) == slug).order_by(Company.id).first()
        if exact is not None:
            return exact

        candidates = (
            db.query(Company)
            .filter(func.lower(Company.domain).contains(slug, autoescape=True))
            .order_by(Company.id)
            .all()
        )
        if len(candidates) == 1:
            return candidates[0]
        if len(candidates) > 1:
            domains = [company.domain for company in candidates]
            logger.warning("ambiguous company domain slug=%s candidates=%s", slug, domains)
            raise AmbiguousResolutionError(
                f"Domínio ambíguo: '{slug}' corresponde a mais de uma empresa",
                candidates=domains,
            )

        known = [
            row[0]
            for row in db.query(Company.domain)
            .filter(Company.domain.isnot(None), Company.domain != "")
            .order_by(Company.domain)
            .limit(KNOWN_DOMAINS_IN_ERROR)
            .all()
        ]
        raise NotFoundError(
            f"Empresa não encontrada para o domínio '{slug}'. Domínios conhecidos: {', '.join(known) or 'nenhum'}",
            detail={"slug": slug, "knownDomains": known},
        )

    def resolve_account_by_prefix(self, db: Session, prefix: str) -> Account:
        raw = (prefix or "").strip()
        if not raw:
            raise NotFoundError("Prefixo não informado")

        if raw.isdecimal():
            account = db.get(Account, int(raw))
            if account is None:
                raise NotFoundError(f"Conta não encontrada para o prefixo '{raw}'")
            return account

        bare = raw.strip("/")
        if not bare:
            raise NotFoundError(f"Conta não encontrada para o prefixo '{raw}'")

        parameter = (
            db.query(AccountParameter)
            .filter(
                AccountParameter.name == PREFIX_PARAMETER_NAME,
                AccountParameter.value.in_([f"/{bare}/", f"/{bare}", bare]),
            )
            .order_by(AccountParameter.account_id)
            .first()
        )
        if parameter is None:
            raise NotFoundError(f"Conta não encontrada para o prefixo '{raw}'")
        return parameter.account
