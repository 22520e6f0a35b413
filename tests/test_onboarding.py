import json

import httpx
from sqlalchemy.exc import SQLAlchemyError

from autonomia_api.integrations.partner_client import PartnerClient
from autonomia_api.models import (
    AccessProfile,
    Account,
    AccountParameter,
    AccountParameterStandard,
    Contact,
    Inbox,
    User,
    UserAccessProfile,
    UserAccount,
)
from autonomia_api.routers.accounts import get_onboarding_orchestrator
from autonomia_api.services import parameter_store
from autonomia_api.services.auth import create_access_token
from autonomia_api.services.onboarding import OnboardingOrchestrator
from autonomia_api.services.step_result import StepResult
from tests.fixtures_data import (
    ONBOARDING_PAYLOAD,
    build_client,
    build_test_settings,
    seed_access_profiles,
    seed_tenant_graph,
)


def _build_onboarding_client():
    client, database, cache = build_client()
    seed_tenant_graph(database)
    seed_access_profiles(database)
    with database.session() as db:
        db.add(AccountParameterStandard(name="welcome-message", default_value="X", short_description="Boas-vindas"))
        db.add(AccountParameterStandard(name="max-attempts", default_value="3"))
        db.add(AccountParameterStandard(name="knowledgeBase", default_value="{}"))
        db.commit()
    return client, database


def _bearer(user_id: int) -> dict:
    token = create_access_token(user_id, build_test_settings())
    return {"Authorization": f"Bearer {token}"}


def _step(body: dict, name: str) -> dict:
    return next(step for step in body["data"]["steps"] if step["name"] == name)


def test_onboarding_missing_required_fields_creates_nothing():
    client, database = _build_onboarding_client()

    for missing in ("productId", "accountName", "accountEmail", "accountPhone"):
        payload = {key: value for key, value in ONBOARDING_PAYLOAD.items() if key != missing}
        response = client.post("/api/saas/accounts/onboarding", json=payload)

        assert response.status_code == 400
        assert missing in response.json()["message"]

    with database.session() as db:
        assert db.query(Account).count() == 1


def test_onboarding_unknown_product_returns_not_found():
    client, database = _build_onboarding_client()

    response = client.post("/api/saas/accounts/onboarding", json={**ONBOARDING_PAYLOAD, "productId": 999})

    assert response.status_code == 404
    with database.session() as db:
        assert db.query(Account).count() == 1


def test_onboarding_invalid_email_is_rejected():
    client, _ = _build_onboarding_client()

    response = client.post("/api/saas/accounts/onboarding", json={**ONBOARDING_PAYLOAD, "accountEmail": "nao-e-email"})

    assert response.status_code == 400


def test_onboarding_creates_account_and_wires_defaults():
    client, database = _build_onboarding_client()
    payload = {
        **ONBOARDING_PAYLOAD,
        "document": "123.456.789-01",
        "metadata": {"faq": ["Horário de atendimento?"]},
        "parameters": {"welcome-message": "Y", "max-attempts": 5},
    }

    response = client.post("/api/saas/accounts/onboarding", json=payload)

    assert response.status_code == 201
    body = response.json()
    assert body["success"] is True
    data = body["data"]
    account_id = data["id"]
    assert data["conversation_funnel_id"] == 1
    assert data["parametersCreated"] is True
    assert data["warnings"] == []
    assert _step(body, "partner_registration")["skipped"] is True
    assert _step(body, "user_association")["skipped"] is True

    with database.session() as db:
        values = {
            row.name: row.value
            for row in db.query(AccountParameter).filter(AccountParameter.account_id == account_id).all()
        }
        inbox = db.query(Inbox).filter(Inbox.account_id == account_id).one()

        assert values == {
            "document": "123.456.789-01",
            "knowledgeBase": json.dumps({"faq": ["Horário de atendimento?"]}, ensure_ascii=False),
            "welcome-message": "Y",
            "max-attempts": "5",
        }
        assert inbox.name == ONBOARDING_PAYLOAD["accountPhone"]


def test_onboarding_invalid_metadata_json_skips_knowledge_base_only():
    client, database = _build_onboarding_client()

    response = client.post("/api/saas/accounts/onboarding", json={**ONBOARDING_PAYLOAD, "metadata": '{"faq": '})

    assert response.status_code == 201
    body = response.json()
    assert _step(body, "knowledge_base_parameter")["skipped"] is True
    assert body["data"]["parametersCreated"] is True

    with database.session() as db:
        names = {
            row.name
            for row in db.query(AccountParameter).filter(AccountParameter.account_id == body["data"]["id"]).all()
        }
    assert names == {"welcome-message", "max-attempts"}


def test_onboarding_links_client_admin_profile_to_claims_user():
    client, database = _build_onboarding_client()

    response = client.post(
        "/api/saas/accounts/onboarding",
        json={**ONBOARDING_PAYLOAD, "user_id": 11},
        headers=_bearer(10),
    )

    assert response.status_code == 201
    body = response.json()
    account_id = body["data"]["id"]
    assert _step(body, "user_association")["user_id"] == 10

    with database.session() as db:
        profiles = db.query(UserAccessProfile).filter(UserAccessProfile.user_id == 10).all()
        links = db.query(UserAccount).filter(UserAccount.user_id == 10).all()

        assert [profile.access_profile_id for profile in profiles] == [2]
        assert [link.account_id for link in links] == [account_id]
        assert db.get(User, 10).is_first_login is False
        assert db.query(UserAccount).filter(UserAccount.user_id == 11).count() == 0


def test_onboarding_uses_supplied_user_when_token_is_missing():
    client, database = _build_onboarding_client()

    response = client.post(
        "/api/saas/accounts/onboarding",
        json={**ONBOARDING_PAYLOAD, "user_id": 10},
        headers={"Authorization": "Bearer token-invalido"},
    )

    assert response.status_code == 201
    with database.session() as db:
        assert db.query(UserAccount).filter(UserAccount.user_id == 10).count() == 1


def test_onboarding_skips_super_admin_user():
    client, database = _build_onboarding_client()
    with database.session() as db:
        db.add(UserAccessProfile(user_id=11, access_profile_id=1))
        db.commit()

    response = client.post("/api/saas/accounts/onboarding", json=ONBOARDING_PAYLOAD, headers=_bearer(11))

    assert response.status_code == 201
    step = _step(response.json(), "user_association")
    assert step["skipped"] is True

    with database.session() as db:
        assert db.query(UserAccount).count() == 0
        assert db.query(UserAccessProfile).filter(UserAccessProfile.user_id == 11).count() == 1
        assert db.get(User, 11).is_first_login is True


def test_onboarding_unknown_user_is_skipped():
    client, _ = _build_onboarding_client()

    response = client.post("/api/saas/accounts/onboarding", json={**ONBOARDING_PAYLOAD, "user_id": 999})

    assert response.status_code == 201
    assert _step(response.json(), "user_association")["skipped"] is True


def test_onboarding_registers_partner_contact():
    client, database = _build_onboarding_client()
    seen = {}

    def handler(request: httpx.Request) -> httpx.Response:
        seen["body"] = json.loads(request.content)
        seen["authorization"] = request.headers.get("Authorization")
        return httpx.Response(201, json={"data": {"id": "PARC-42", "status": "analysis"}})

    partner = PartnerClient(
        url="https://parceiro.local/api/clients",
        token="segredo",
        product_ids=["1"],
        transport=httpx.MockTransport(handler),
    )
    client.app.dependency_overrides[get_onboarding_orchestrator] = lambda: OnboardingOrchestrator(
        build_test_settings(), partner_client=partner
    )

    response = client.post(
        "/api/saas/accounts/onboarding",
        json={**ONBOARDING_PAYLOAD, "document": "12.345.678/0001-90"},
    )

    assert response.status_code == 201
    assert seen["body"]["cnpj"] == "12345678000190"
    assert seen["body"]["cpf"] is None
    assert seen["authorization"] == "Bearer segredo"
    assert _step(response.json(), "partner_registration")["external_code"] == "PARC-42"

    with database.session() as db:
        contact = db.query(Contact).filter(Contact.external_code == "PARC-42").one()
        assert contact.external_status == "analysis"
        assert contact.account_id == response.json()["data"]["id"]


def test_onboarding_partner_failure_becomes_warning():
    client, database = _build_onboarding_client()

    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(500, json={"error": "indisponível"})

    partner = PartnerClient(
        url="https://parceiro.local/api/clients",
        product_ids=["1"],
        transport=httpx.MockTransport(handler),
    )
    client.app.dependency_overrides[get_onboarding_orchestrator] = lambda: OnboardingOrchestrator(
        build_test_settings(), partner_client=partner
    )

    response = client.post(
        "/api/saas/accounts/onboarding",
        json={**ONBOARDING_PAYLOAD, "document": "123.456.789-01"},
    )

    assert response.status_code == 201
    data = response.json()["data"]
    assert any(warning.startswith("partner_registration") for warning in data["warnings"])

    with database.session() as db:
        assert db.get(Account, data["id"]) is not None
        assert db.query(Contact).count() == 0


def test_onboarding_malformed_partner_url_becomes_warning():
    client, database = _build_onboarding_client()
    partner = PartnerClient(url="https://parceiro.local:porta/api/clients", product_ids=["1"])
    client.app.dependency_overrides[get_onboarding_orchestrator] = lambda: OnboardingOrchestrator(
        build_test_settings(), partner_client=partner
    )

    response = client.post(
        "/api/saas/accounts/onboarding",
        json={**ONBOARDING_PAYLOAD, "document": "123.456.789-01"},
    )

    assert response.status_code == 201
    data = response.json()["data"]
    assert any(warning.startswith("partner_registration") for warning in data["warnings"])
    with database.session() as db:
        assert db.get(Account, data["id"]) is not None


def test_unexpected_step_error_is_reported_as_failure():
    def _explode() -> StepResult:
        raise RuntimeError("falha inesperada")

    result = OnboardingOrchestrator._run_step("inbox", _explode)

    assert result.ok is False
    assert result.name == "inbox"
    assert result.detail == "falha inesperada"


def test_onboarding_parameter_seeding_failure_keeps_account(monkeypatch):
    client, database = _build_onboarding_client()

    def _unavailable_catalog(*args, **kwargs):
        raise SQLAlchemyError("catálogo indisponível")

    monkeypatch.setattr(parameter_store.StandardParameterCatalog, "load", _unavailable_catalog)

    response = client.post(
        "/api/saas/accounts/onboarding",
        json={**ONBOARDING_PAYLOAD, "document": "123.456.789-01"},
    )

    assert response.status_code == 201
    data = response.json()["data"]
    assert data["parametersCreated"] is False
    assert any(warning.startswith("standard_parameters") for warning in data["warnings"])

    with database.session() as db:
        assert db.get(Account, data["id"]) is not None
        names = {
            row.name for row in db.query(AccountParameter).filter(AccountParameter.account_id == data["id"]).all()
        }
        inbox_count = db.query(Inbox).filter(Inbox.account_id == data["id"]).count()
    assert names == {"document"}
    assert inbox_count == 1


def test_onboarding_user_substeps_run_without_client_admin_profile():
    client, database, _ = build_client()
    seed_tenant_graph(database)
    with database.session() as db:
        db.add(AccessProfile(id=1, name="Super Admin", code="super-admin", admin=True))
        db.add(User(id=10, email="owner@clientco.io", name="Owner", is_first_login=True))
        db.commit()

    response = client.post("/api/saas/accounts/onboarding", json=ONBOARDING_PAYLOAD, headers=_bearer(10))

    assert response.status_code == 201
    data = response.json()["data"]
    step = _step(response.json(), "user_association")
    assert step["ok"] is False
    assert "perfil client admin não encontrado" in step["detail"]
    assert any(warning.startswith("user_association") for warning in data["warnings"])

    with database.session() as db:
        links = db.query(UserAccount).filter(UserAccount.user_id == 10).all()
        assert [link.account_id for link in links] == [data["id"]]
        assert db.query(UserAccessProfile).filter(UserAccessProfile.user_id == 10).count() == 0
        assert db.get(User, 10).is_first_login is False
