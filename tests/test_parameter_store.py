from autonomia_api.models import (
    Account,
    AccountParameter,
    AccountParameterStandard,
    ProductParameter,
    ProductParameterStandard,
)
from autonomia_api.services import parameter_store
from autonomia_api.services.parameter_store import StandardParameter, StandardParameterCatalog
from tests.fixtures_data import STANDARD_PARAMETERS, build_client, seed_tenant_graph


def _seed_catalog(database):
    with database.session() as db:
        for entry in STANDARD_PARAMETERS:
            db.add(AccountParameterStandard(**entry))
        db.add(AccountParameterStandard(name="auto-reply", default_value="false", short_description="Resposta"))
        db.commit()


def test_standard_parameter_resolves_supplied_value_or_default():
    entry = StandardParameter(name="welcome-message", default_value="X")
    no_default = StandardParameter(name="empty-default", default_value=None)

    assert entry.resolve_value({}) == "X"
    assert entry.resolve_value({"welcome-message": ""}) == "X"
    assert entry.resolve_value({"welcome-message": "Y"}) == "Y"
    assert entry.resolve_value({"welcome-message": 5}) == "5"
    assert entry.resolve_value({"welcome-message": True}) == "true"
    assert entry.resolve_value({"welcome-message": {"a": 1}}) == '{"a": 1}'
    assert no_default.resolve_value({}) == ""


def test_catalog_seedable_skips_special_names():
    catalog = StandardParameterCatalog(StandardParameter(name=entry["name"]) for entry in STANDARD_PARAMETERS)

    names = [entry.name for entry in catalog.seedable()]

    assert len(catalog) == 6
    assert "document" in catalog
    assert sorted(names) == ["empty-default", "max-attempts", "welcome-message"]


def test_seed_standard_parameters_creates_one_row_per_catalog_entry():
    _, database, _ = build_client()
    seed_tenant_graph(database)
    _seed_catalog(database)

    with database.session() as db:
        db.add(Account(id=2, name="Conta Nova", product_id=1))
        db.flush()
        result = parameter_store.seed_standard_parameters(
            db, 2, {"max-attempts": 5, "auto-reply": True, "document": "123"}
        )
        db.commit()

        values = {
            row.name: row.value
            for row in db.query(AccountParameter).filter(AccountParameter.account_id == 2).all()
        }

    assert result.ok is True
    assert result.data["count"] == 4
    assert values == {
        "welcome-message": "X",
        "max-attempts": "5",
        "empty-default": "",
        "auto-reply": "true",
    }


def test_seed_standard_parameters_skips_existing_names():
    _, database, _ = build_client()
    seed_tenant_graph(database)
    _seed_catalog(database)

    with database.session() as db:
        db.add(AccountParameter(account_id=1, name="welcome-message", value="Mantido"))
        db.flush()
        result = parameter_store.seed_standard_parameters(db, 1, {"welcome-message": "Y"})
        db.commit()
        value = parameter_store.get_parameter_value(db, parameter_store.ACCOUNT_SCOPE, 1, "welcome-message")

    assert result.ok is True
    assert value == "Mantido"


def test_knowledge_base_parameter_rules():
    _, database, _ = build_client()
    seed_tenant_graph(database)

    with database.session() as db:
        invalid = parameter_store.create_knowledge_base_parameter(db, 1, '{"faq": ')
        plain = parameter_store.create_knowledge_base_parameter(db, 1, "apenas texto")
        assert db.query(AccountParameter).filter(AccountParameter.name == "knowledgeBase").count() == 0

        created = parameter_store.create_knowledge_base_parameter(db, 1, {"faq": ["Horário?"]})
        db.commit()
        value = parameter_store.get_parameter_value(db, parameter_store.ACCOUNT_SCOPE, 1, "knowledgeBase")

    assert invalid.ok is True and invalid.data.get("skipped") is True
    assert plain.data.get("skipped") is True
    assert created.ok is True
    assert value == '{"faq": ["Horário?"]}'


def test_document_parameter_only_for_non_blank_document():
    _, database, _ = build_client()
    seed_tenant_graph(database)

    with database.session() as db:
        blank = parameter_store.create_document_parameter(db, 1, "   ")
        created = parameter_store.create_document_parameter(db, 1, " 12345678901 ")
        db.commit()
        row = db.query(AccountParameter).filter(AccountParameter.name == "document").one()

        assert row.value == "12345678901"
        assert row.short_description == "Documento"
        assert row.help_text == "Documento (CPF/CNPJ) associado à conta."

    assert blank.data.get("skipped") is True
    assert created.ok is True


def test_account_parameters_endpoint_filters_onboarding_visibility():
    client, database, _ = build_client()
    seed_tenant_graph(database)
    with database.session() as db:
        db.add(AccountParameterStandard(name="welcome-message", visible_onboarding=True, short_description="Boas-vindas"))
        db.add(AccountParameterStandard(name="internal-flag", visible_onboarding=False))
        db.add(AccountParameter(account_id=1, name="welcome-message", value="Oi", short_description="Boas-vindas"))
        db.add(AccountParameter(account_id=1, name="internal-flag", value="1"))
        db.commit()

    everything = client.get("/api/saas/accounts/1/parameters")
    onboarding = client.get("/api/saas/accounts/1/parameters", params={"onboarding": "true"})

    assert everything.status_code == 200
    assert [row["name"] for row in everything.json()["data"]] == ["welcome-message", "internal-flag", "team-id"]
    assert [row["name"] for row in onboarding.json()["data"]] == ["welcome-message"]


def test_product_parameters_endpoint():
    client, database, _ = build_client()
    seed_tenant_graph(database)
    with database.session() as db:
        db.add(ProductParameterStandard(name="agent_webhook", visible_onboarding=False))
        db.add(ProductParameter(product_id=1, name="welcome", value="Olá"))
        db.commit()

    response = client.get("/api/saas/products/1/parameters")
    missing = client.get("/api/saas/products/999/parameters")

    assert response.status_code == 200
    assert {row["name"] for row in response.json()["data"]} == {"agent_webhook", "welcome"}
    assert missing.status_code == 404


def test_upsert_account_parameter_creates_then_updates():
    client, database, _ = build_client()
    seed_tenant_graph(database)

    created = client.put("/api/saas/accounts/1/parameters/prefix", json={"value": "/conta-um/"})
    updated = client.put("/api/saas/accounts/1/parameters/prefix", json={"value": "/conta-1/"})
    coerced = client.put("/api/saas/accounts/1/parameters/auto-reply", json={"value": False})
    unknown_account = client.put("/api/saas/accounts/999/parameters/prefix", json={"value": "x"})

    assert created.status_code == 201
    assert updated.status_code == 200
    assert updated.json()["data"]["value"] == "/conta-1/"
    assert coerced.json()["data"]["value"] == "false"
    assert unknown_account.status_code == 404

    with database.session() as db:
        assert db.query(AccountParameter).filter(AccountParameter.name == "prefix").count() == 1
