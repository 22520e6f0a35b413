from __future__ import annotations

import json
import logging
import re
from dataclasses import dataclass, field
from typing import Any

import httpx

from autonomia_api.core.config import Settings
from autonomia_api.core.errors import UpstreamError

logger = logging.getLogger(__name__)

_NON_DIGITS = re.compile(r"\D")


@dataclass(frozen=True)
class PartnerRegistration:
    external_code: str | None
    external_status: str | None
    payload: dict[str, Any] = field(default_factory=dict)


def split_document(document: Any) -> tuple[str | None, str | None]:
    """Return ``(cpf, cnpj)`` from a raw document, keeping digits only."""
    digits = _NON_DIGITS.sub("", str(document or ""))
    if len(digits) == 11:
        return digits, None
    if len(digits) == 14:
        return None, digits
    return None, None


def _parse_body(response: httpx.Response) -> dict[str, Any]:
    try:
        data = response.json()
    except json.JSONDecodeError:
        return {"raw": response.text}
    return data if isinstance(data, dict) else {"data": data}


def _first_present(payload: dict[str, Any], *keys: str) -> Any:
    nested = payload.get("data") if isinstance(payload.get("data"), dict) else {}
    for key in keys:
        for source in (payload, nested):
            value = source.get(key)
            if value not in (None, ""):
                return value
    return None


class PartnerClient:
    """Partial client registration on the partner platform."""

    def __init__(
        self,
        *,
        url: str,
        token: str = "",
        product_ids: list[str] | None = None,
        timeout: float = 15.0,
        transport: httpx.BaseTransport | None = None,
    ) -> None:
        self.url = url
        self.token = token
        self.product_ids = {str(product_id) for product_id in (product_ids or [])}
        self.timeout = timeout
        self._transport = transport

    @classmethod
    def from_settings(cls, settings: Settings) -> "PartnerClient":
        return cls(
            url=settings.partner_registration_url,
            token=settings.partner_api_token,
            product_ids=settings.partner_product_ids,
            timeout=settings.partner_timeout_seconds,
        )

    @property
    def configured(self) -> bool:
        return bool(self.url)

    def applies_to(self, product_id: Any) -> bool:
        return self.configured and str(product_id) in self.product_ids

    def register(self, *, name: str, email: str, document: Any) -> PartnerRegistration:
        cpf, cnpj = split_document(document)
        body = {"name": name, "email": email, "cpf": cpf, "cnpj": cnpj}
        headers = {"Content-Type": "application/json"}
        if self.token:
            headers["Authorization"] = f"Bearer {self.token}"

        logger.info("partner registration request url=%s has_cpf=%s has_cnpj=%s", self.url, bool(cpf), bool(cnpj))
        try:
            with httpx.Client(timeout=self.timeout, transport=self._transport) as client:
                response = client.post(self.url, headers=headers, json=body)
        except (httpx.HTTPError, httpx.InvalidURL) as exc:
            logger.warning("partner registration transport error: %s", exc)
            raise UpstreamError("Falha ao comunicar com o parceiro", detail=str(exc)) from exc

        payload = _parse_body(response)
        logger.info("partner registration response status=%s", response.status_code)
        if response.is_error:
            raise UpstreamError(
                f"Erro na chamada ao parceiro: status {response.status_code}",
                detail=payload,
            )

        code = _first_present(payload, "external_code", "code", "id", "client_id")
        status = _first_present(payload, "status")
        return PartnerRegistration(
            external_code=str(code) if code is not None else None,
            external_status=str(status) if status is not None else None,
            payload=payload,
        )
