import json

import httpx
import pytest

from autonomia_api.core.errors import UpstreamError
from autonomia_api.integrations.partner_client import PartnerClient, split_document
from tests.fixtures_data import build_test_settings


def test_split_document_keeps_digits_and_detects_type():
    assert split_document("123.456.789-01") == ("12345678901", None)
    assert split_document("12.345.678/0001-90") == (None, "12345678000190")
    assert split_document("123") == (None, None)
    assert split_document(None) == (None, None)


def test_applies_only_to_configured_products():
    client = PartnerClient(url="https://parceiro.local/api", product_ids=["1", "7"])
    unconfigured = PartnerClient(url="", product_ids=["1"])

    assert client.applies_to(1) is True
    assert client.applies_to("7") is True
    assert client.applies_to(2) is False
    assert unconfigured.applies_to(1) is False


def test_from_settings_reads_partner_configuration():
    settings = build_test_settings(
        partner_registration_url="https://parceiro.local/api",
        partner_api_token="abc",
        partner_product_ids=["3"],
    )

    client = PartnerClient.from_settings(settings)

    assert client.configured is True
    assert client.token == "abc"
    assert client.applies_to(3) is True


def test_register_posts_payload_and_reads_external_code():
    captured = {}

    def handler(request: httpx.Request) -> httpx.Response:
        captured["method"] = request.method
        captured["url"] = str(request.url)
        captured["body"] = json.loads(request.content)
        captured["authorization"] = request.headers.get("Authorization")
        return httpx.Response(200, json={"external_code": "ABC-1", "status": "pending"})

    client = PartnerClient(
        url="https://parceiro.local/api/clients",
        token="segredo",
        transport=httpx.MockTransport(handler),
    )

    registration = client.register(name="Client Co", email="owner@clientco.io", document="123.456.789-01")

    assert captured["method"] == "POST"
    assert captured["url"] == "https://parceiro.local/api/clients"
    assert captured["body"] == {
        "name": "Client Co",
        "email": "owner@clientco.io",
        "cpf": "12345678901",
        "cnpj": None,
    }
    assert captured["authorization"] == "Bearer segredo"
    assert registration.external_code == "ABC-1"
    assert registration.external_status == "pending"


def test_register_without_code_returns_empty_registration():
    client = PartnerClient(
        url="https://parceiro.local/api/clients",
        transport=httpx.MockTransport(lambda request: httpx.Response(200, text="ok")),
    )

    registration = client.register(name="Client Co", email="owner@clientco.io", document="12345678901")

    assert registration.external_code is None
    assert registration.payload == {"raw": "ok"}


def test_register_http_error_raises_upstream_error():
    client = PartnerClient(
        url="https://parceiro.local/api/clients",
        transport=httpx.MockTransport(lambda request: httpx.Response(422, json={"error": "cpf inválido"})),
    )

    with pytest.raises(UpstreamError) as exc_info:
        client.register(name="Client Co", email="owner@clientco.io", document="12345678901")

    assert "422" in exc_info.value.message
    assert exc_info.value.detail == {"error": "cpf inválido"}


def test_register_transport_error_raises_upstream_error():
    def handler(request: httpx.Request) -> httpx.Response:
        raise httpx.ConnectError("conexão recusada", request=request)

    client = PartnerClient(url="https://parceiro.local/api/clients", transport=httpx.MockTransport(handler))

    with pytest.raises(UpstreamError):
        client.register(name="Client Co", email="owner@clientco.io", document="12345678901")


def test_register_malformed_url_raises_upstream_error():
    client = PartnerClient(url="https://parceiro.local:porta/api/clients")

    with pytest.raises(UpstreamError):
        client.register(name="Client Co", email="owner@clientco.io", document="12345678901")
