from autonomia_api.models import (
    Account,
    ConversationFunnelStep,
    DeliveryRecord,
    Product,
    UserSession,
)
from tests.fixtures_data import build_client, seed_tenant_graph


def test_funnel_crud_flow():
    client, database, _ = build_client()

    created = client.post("/api/saas/conversation-funnels", json={"name": "Vendas", "is_default": True})
    assert created.status_code == 201
    funnel_id = created.json()["data"]["id"]

    listed = client.get("/api/saas/conversation-funnels")
    defaults = client.get("/api/saas/conversation-funnels", params={"defaultOnly": "true"})
    fetched = client.get(f"/api/saas/conversation-funnels/{funnel_id}")
    updated = client.patch(f"/api/saas/conversation-funnels/{funnel_id}", json={"description": "Funil comercial"})

    assert [item["name"] for item in listed.json()["data"]] == ["Vendas"]
    assert [item["id"] for item in defaults.json()["data"]] == [funnel_id]
    assert fetched.json()["data"]["name"] == "Vendas"
    assert updated.json()["data"]["description"] == "Funil comercial"

    deleted = client.delete(f"/api/saas/conversation-funnels/{funnel_id}")
    assert deleted.status_code == 200
    assert client.get(f"/api/saas/conversation-funnels/{funnel_id}").status_code == 404


def test_list_funnels_for_account():
    client, database, _ = build_client()
    seed_tenant_graph(database)

    response = client.get("/api/saas/conversation-funnels", params={"accountId": 1})
    unknown = client.get("/api/saas/conversation-funnels", params={"accountId": 999})

    assert [item["id"] for item in response.json()["data"]] == [1]
    assert unknown.status_code == 404


def test_only_one_first_step_per_funnel():
    client, database, _ = build_client()
    funnel_id = client.post("/api/saas/conversation-funnels", json={"name": "Suporte"}).json()["data"]["id"]

    first = client.post(f"/api/saas/conversation-funnels/{funnel_id}/steps", json={"name": "A", "first_step": True})
    second = client.post(
        f"/api/saas/conversation-funnels/{funnel_id}/steps",
        json={"name": "B", "first_step": True, "order": 1},
    )

    assert first.status_code == 201
    assert second.status_code == 201

    steps = client.get(f"/api/saas/conversation-funnels/{funnel_id}/steps").json()["data"]
    assert {step["name"]: step["first_step"] for step in steps} == {"A": False, "B": True}

    client.patch(f"/api/saas/conversation-funnels/steps/{first.json()['data']['id']}", json={"first_step": True})

    with database.session() as db:
        firsts = (
            db.query(ConversationFunnelStep.name)
            .filter(
                ConversationFunnelStep.conversation_funnel_id == funnel_id,
                ConversationFunnelStep.first_step.is_(True),
            )
            .all()
        )
    assert [row[0] for row in firsts] == ["A"]


def test_step_message_crud_and_validation():
    client, database, _ = build_client()
    seed_tenant_graph(database)

    negative = client.post("/api/saas/conversation-funnels/steps/2/messages", json={"name": "X", "shipping_time": -1})
    created = client.post(
        "/api/saas/conversation-funnels/steps/2/messages",
        json={"name": "Lembrete", "fixed_message": "Oi", "shipping_time": 30, "shipping_order": 2},
    )
    missing_step = client.post("/api/saas/conversation-funnels/steps/999/messages", json={"name": "X"})

    assert negative.status_code == 400
    assert created.status_code == 201
    assert missing_step.status_code == 404

    message_id = created.json()["data"]["id"]
    listed = client.get("/api/saas/conversation-funnels/steps/2/messages").json()["data"]
    assert [item["id"] for item in listed] == [3, message_id]

    updated = client.patch(f"/api/saas/conversation-funnels/messages/{message_id}", json={"shipping_time": 45})
    assert updated.json()["data"]["shipping_time"] == 45

    deleted = client.delete(f"/api/saas/conversation-funnels/messages/{message_id}")
    assert deleted.status_code == 200
    assert client.get(f"/api/saas/conversation-funnels/messages/{message_id}").status_code == 404


def test_delivered_messages_cannot_be_deleted():
    client, database, _ = build_client()
    seed_tenant_graph(database)
    with database.session() as db:
        db.add(UserSession(id=1, account_id=1, product_id=1, phone="5511900000001", name="Ana"))
        db.flush()
        db.add(DeliveryRecord(user_session_id=1, conversation_funnel_step_message_id=2))
        db.commit()

    message = client.delete("/api/saas/conversation-funnels/messages/2")
    step = client.delete("/api/saas/conversation-funnels/steps/1")
    funnel = client.delete("/api/saas/conversation-funnels/1")

    assert message.status_code == 409
    assert step.status_code == 409
    assert funnel.status_code == 409


def test_delete_funnel_detaches_accounts_products_and_sessions():
    client, database, _ = build_client()
    seed_tenant_graph(database)
    with database.session() as db:
        db.add(
            UserSession(
                id=1,
                account_id=1,
                product_id=1,
                phone="5511900000001",
                name="Ana",
                conversation_funnel_step_id=1,
            )
        )
        db.commit()

    response = client.delete("/api/saas/conversation-funnels/1")

    assert response.status_code == 200
    with database.session() as db:
        assert db.get(Account, 1).conversation_funnel_id is None
        assert db.get(Product, 1).conversation_funnel_id is None
        assert db.get(UserSession, 1).conversation_funnel_step_id is None
        assert db.query(ConversationFunnelStep).count() == 0


def test_account_read_and_update():
    client, database, _ = build_client()
    seed_tenant_graph(database)

    fetched = client.get("/api/saas/accounts/1")
    updated = client.patch("/api/saas/accounts/1", json={"email": "novo@clientco.io", "phone": "5511000000009"})
    invalid_email = client.patch("/api/saas/accounts/1", json={"email": "invalido"})
    unknown_funnel = client.patch("/api/saas/accounts/1", json={"conversation_funnel_id": 999})
    empty = client.patch("/api/saas/accounts/1", json={})
    missing = client.get("/api/saas/accounts/999")

    assert fetched.status_code == 200
    assert fetched.json()["data"]["name"] == "Conta Um"
    assert updated.status_code == 200
    assert updated.json()["data"]["email"] == "novo@clientco.io"
    assert invalid_email.status_code == 400
    assert unknown_funnel.status_code == 404
    assert empty.status_code == 400
    assert missing.status_code == 404
