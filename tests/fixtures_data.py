"""Conjunto de dados reutilizável para cenários de teste backend."""

from __future__ import annotations

from dataclasses import replace
from datetime import datetime, timedelta, timezone

from fastapi.testclient import TestClient

from autonomia_api.core.cache import InMemoryCache
from autonomia_api.core.config import Settings
from autonomia_api.core.database import Database
from autonomia_api.main import create_app
from autonomia_api.models import (
    AccessProfile,
    Account,
    AccountParameter,
    Company,
    ConversationFunnel,
    ConversationFunnelStep,
    ConversationFunnelStepMessage,
    Product,
    ProductParameter,
    User,
)

TEST_JWT_SECRET = "test-secret"

ONBOARDING_PAYLOAD = {
    "productId": 1,
    "accountName": "Client Co",
    "accountEmail": "owner@clientco.io",
    "accountPhone": "5511999990000",
}

SESSION_PAYLOAD = {
    "name": "Maria",
    "phone": "5511988887777",
    "account_id": 1,
    "product_id": 1,
}

STANDARD_PARAMETERS = [
    {"name": "welcome-message", "default_value": "X", "short_description": "Boas-vindas"},
    {"name": "max-attempts", "default_value": "3", "short_description": "Tentativas"},
    {"name": "empty-default", "default_value": None, "short_description": None},
    {"name": "document", "default_value": "ignored"},
    {"name": "knowledgeBase", "default_value": "ignored"},
    {"name": "metadata", "default_value": "ignored"},
]


def build_test_settings(**overrides) -> Settings:
    settings = Settings(
        database_url="sqlite+pysqlite:///:memory:",
        env="test",
        log_level="WARNING",
        jwt_secret_key=TEST_JWT_SECRET,
    )
    return replace(settings, **overrides)


def build_client(**settings_overrides) -> tuple[TestClient, Database, InMemoryCache]:
    settings = build_test_settings(**settings_overrides)
    database = Database(settings.database_url)
    database.create_all()
    cache = InMemoryCache()
    app = create_app(settings=settings, database=database, cache=cache)
    return TestClient(app), database, cache


def seed_tenant_graph(database: Database) -> None:
    """Empresa clientco, produto 1, funil 1 (etapas 1 e 2) e conta 1."""
    with database.session() as db:
        funnel = ConversationFunnel(id=1, name="Funil Padrão", is_default=True)
        db.add(funnel)
        db.add(Company(id=1, social_name="Client Co Ltda", domain="clientco"))
        db.add(Product(id=1, name="Atendimento", company_id=1, conversation_funnel_id=1, is_approved=True))
        db.flush()
        db.add(ConversationFunnelStep(id=1, conversation_funnel_id=1, name="Boas-vindas", first_step=True, order=1))
        db.add(ConversationFunnelStep(id=2, conversation_funnel_id=1, name="Follow-up", first_step=False, order=2))
        db.flush()
        db.add(
            ConversationFunnelStepMessage(
                id=1,
                conversation_funnel_step_id=1,
                name="Lembrete 2",
                fixed_message="Ainda por aí?",
                shipping_time=60,
                shipping_order=2,
            )
        )
        db.add(
            ConversationFunnelStepMessage(
                id=2,
                conversation_funnel_step_id=1,
                name="Lembrete 1",
                fixed_message="Olá!",
                shipping_time=10,
                shipping_order=1,
            )
        )
        db.add(
            ConversationFunnelStepMessage(
                id=3,
                conversation_funnel_step_id=2,
                name="Imediata",
                fixed_message="Sem agendamento",
                shipping_time=0,
                shipping_order=1,
            )
        )
        db.add(Account(id=1, name="Conta Um", email="um@clientco.io", phone="5511000000001", product_id=1, conversation_funnel_id=1))
        db.add(AccountParameter(account_id=1, name="team-id", value="7"))
        db.add(ProductParameter(product_id=1, name="agent_webhook", value="https://hooks.example/agent"))
        db.commit()


def seed_access_profiles(database: Database) -> None:
    with database.session() as db:
        db.add(AccessProfile(id=1, name="Super Admin", code="super-admin", admin=True))
        db.add(AccessProfile(id=2, name="Client Admin", code="client-admin", admin=True))
        db.add(User(id=10, email="owner@clientco.io", name="Owner", is_first_login=True))
        db.add(User(id=11, email="root@autonomia.site", name="Root", is_first_login=True))
        db.commit()


def minutes_ago(minutes: int) -> datetime:
    return datetime.now(timezone.utc) - timedelta(minutes=minutes)
