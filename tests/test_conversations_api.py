from marketchat.config.settings import Config


MISSING_ID = "5f0000000000000000000000"


def create_conversation(client, initiator, counterpart, product_id=None):
    body = {"initiator_id": initiator, "counterpart_id": counterpart}
    if product_id:
        body["product_id"] = product_id
    return client.post("/conversations", json=body)


def test_health(client):
    response = client.get("/health")
    assert response.status_code == 200
    assert response.json()["status"] == "healthy"


def test_create_then_find_conversation(client, users, product):
    created = create_conversation(client, users["buyer"], users["seller"], product)
    assert created.status_code == 201
    assert created.json()["message"] == "Conversation created"
    conversation = created.json()["data"]["conversation"]
    assert conversation["subject"] == "Chat with Kofi Crafts"

    found = create_conversation(client, users["seller"], users["buyer"], product)
    assert found.status_code == 200
    assert found.json()["message"] == "Conversation found"
    assert found.json()["data"]["conversation"]["_id"] == conversation["_id"]


def test_create_validation_errors(client, users):
    response = create_conversation(client, users["buyer"], users["buyer"])
    assert response.status_code == 400
    assert response.json() == {"status": "error", "message": "You cannot start a conversation with yourself"}

    response = client.post("/conversations", json={"initiator_id": users["buyer"]})
    assert response.status_code == 400
    assert response.json()["status"] == "error"
    assert "counterpart_id" in response.json()["message"]


def test_create_with_unknown_participant_or_product(client, users):
    response = create_conversation(client, users["buyer"], MISSING_ID)
    assert response.status_code == 404
    assert response.json()["message"] == "Counterpart not found"

    response = create_conversation(client, users["buyer"], users["seller"], MISSING_ID)
    assert response.status_code == 404
    assert response.json()["message"] == "Product not found"


def test_example_scenario(client, users, product):
    u1, u2 = users["buyer"], users["seller"]
    conversation_id = create_conversation(client, u1, u2, product).json()["data"]["conversation"]["_id"]

    first = client.post(f"/conversations/{conversation_id}/messages", json={"sender_id": u1, "content": "Is this available?"})
    assert first.status_code == 201
    assert first.json()["data"]["message"]["is_read"] is False

    second = client.post(f"/conversations/{conversation_id}/messages", json={"sender_id": u2, "content": "Yes!"})
    assert second.status_code == 201

    conversation = client.get(f"/conversations/{conversation_id}").json()["data"]["conversation"]
    assert conversation["unread_counters"] == {u1: 1, u2: 1}
    assert conversation["last_message_at"] >= conversation["created_at"]

    read = client.put(f"/conversations/{conversation_id}", json={"reader_id": u1})
    assert read.status_code == 200
    assert read.json()["data"] == {"updated": 1}

    conversation = client.get(f"/conversations/{conversation_id}").json()["data"]["conversation"]
    assert conversation["unread_counters"] == {u1: 0, u2: 1}
    messages = conversation["messages"]
    assert [(m["content"], m["is_read"]) for m in messages] == [("Is this available?", False), ("Yes!", True)]


def test_send_message_errors(client, users):
    conversation_id = create_conversation(client, users["buyer"], users["seller"]).json()["data"]["conversation"]["_id"]

    response = client.post(f"/conversations/{conversation_id}/messages", json={"sender_id": users["buyer"]})
    assert response.status_code == 400

    response = client.post(f"/conversations/{conversation_id}/messages", json={"sender_id": users["buyer"], "content": "   "})
    assert response.status_code == 400
    assert response.json()["message"] == "Message content cannot be empty"

    response = client.post(f"/conversations/{conversation_id}/messages", json={"sender_id": users["other"], "content": "hi"})
    assert response.status_code == 403

    response = client.post(f"/conversations/{MISSING_ID}/messages", json={"sender_id": users["buyer"], "content": "hi"})
    assert response.status_code == 404


def test_mark_read_errors(client, users):
    conversation_id = create_conversation(client, users["buyer"], users["seller"]).json()["data"]["conversation"]["_id"]

    assert client.put(f"/conversations/{conversation_id}", json={}).status_code == 400
    assert client.put(f"/conversations/{conversation_id}", json={"reader_id": users["other"]}).status_code == 403
    assert client.put(f"/conversations/{MISSING_ID}", json={"reader_id": users["buyer"]}).status_code == 404


def test_list_conversations(client, users):
    create_conversation(client, users["buyer"], users["seller"])
    create_conversation(client, users["other"], users["buyer"])

    response = client.get("/conversations", params={"participant_id": users["buyer"]})
    assert response.status_code == 200
    data = response.json()["data"]
    assert data["count"] == 2
    stamps = [c["last_message_at"] for c in data["conversations"]]
    assert stamps == sorted(stamps, reverse=True)

    assert client.get("/conversations").status_code == 400


def test_list_conversations_by_role(client, users):
    create_conversation(client, users["buyer"], users["seller"])
    create_conversation(client, users["other"], users["buyer"])

    as_seller = client.get("/conversations", params={"participant_id": users["seller"], "role": "seller"})
    assert as_seller.status_code == 200
    assert as_seller.json()["data"]["count"] == 1
    as_buyer = client.get("/conversations", params={"participant_id": users["buyer"], "role": "buyer"}).json()["data"]
    assert [c["counterpart"]["display_name"] for c in as_buyer["conversations"]] == ["Kofi Crafts"]

    assert client.get("/conversations", params={"participant_id": users["buyer"], "role": "admin"}).status_code == 400


def test_list_messages_and_unread_summary(client, users):
    conversation_id = create_conversation(client, users["buyer"], users["seller"]).json()["data"]["conversation"]["_id"]
    for text in ("one", "two"):
        client.post(f"/conversations/{conversation_id}/messages", json={"sender_id": users["seller"], "content": text})

    messages = client.get(f"/conversations/{conversation_id}/messages").json()["data"]
    assert messages["count"] == 2
    assert [m["content"] for m in messages["messages"]] == ["one", "two"]

    summary = client.get("/conversations/unread", params={"participant_id": users["buyer"]}).json()["data"]
    assert summary == {"total_unread": 2, "conversations_with_unread": 1}


def test_delete_conversation(client, users):
    conversation_id = create_conversation(client, users["buyer"], users["seller"]).json()["data"]["conversation"]["_id"]
    client.post(f"/conversations/{conversation_id}/messages", json={"sender_id": users["buyer"], "content": "hi"})

    response = client.delete(f"/conversations/{conversation_id}", params={"participant_id": users["other"]})
    assert response.status_code == 403

    response = client.delete(f"/conversations/{conversation_id}", params={"participant_id": users["buyer"]})
    assert response.status_code == 200
    assert response.json() == {"status": "success", "message": "Conversation deleted"}

    assert client.get(f"/conversations/{conversation_id}").status_code == 404
    assert client.get(f"/conversations/{conversation_id}/messages").status_code == 404
    response = client.delete(f"/conversations/{conversation_id}", params={"participant_id": users["buyer"]})
    assert response.status_code == 404


def test_storage_error_details_hidden_in_production(client, users, monkeypatch):
    from pymongo.errors import PyMongoError

    from marketchat.repositories.conversation_repository import ConversationRepository

    async def broken(*args, **kwargs):
        raise PyMongoError("socket closed on 10.0.0.5")

    monkeypatch.setattr(ConversationRepository, "list_for_participant", broken)
    monkeypatch.setattr(Config, "IS_PRODUCTION", False)

    response = client.get("/conversations", params={"participant_id": users["buyer"]})
    assert response.status_code == 500
    assert response.json()["details"] == "socket closed on 10.0.0.5"

    monkeypatch.setattr(Config, "IS_PRODUCTION", True)
    response = client.get("/conversations", params={"participant_id": users["buyer"]})
    assert response.status_code == 500
    assert response.json() == {"status": "error", "message": "Internal storage error"}
