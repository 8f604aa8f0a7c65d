"""
Chat HTTP endpoint tests
"""

import pytest
from httpx import AsyncClient


async def initiate(client, auth_headers, seed) -> dict:
    response = await client.post(
        "/api/v1/chat/initiate",
        json={"productId": seed.lamp, "userBId": seed.bob},
        headers=auth_headers(seed.bob),
    )
    assert response.status_code == 200
    return response.json()["data"]


@pytest.mark.asyncio
async def test_requires_bearer_token(client: AsyncClient, seed):
    response = await client.get("/api/v1/chat/heads")

    assert response.status_code == 401
    assert response.headers["WWW-Authenticate"] == "Bearer"
    body = response.json()
    assert body["status"] == 401
    assert body["error"] == "Unauthorized"

    response = await client.get("/api/v1/chat/heads", headers={"Authorization": "Bearer forged"})
    assert response.status_code == 401


@pytest.mark.asyncio
async def test_initiate_chat_envelope_and_wire_names(client, auth_headers, seed):
    response = await client.post(
        "/api/v1/chat/initiate",
        json={"productId": seed.lamp, "userBId": seed.bob},
        headers=auth_headers(seed.bob),
    )

    assert response.status_code == 200
    body = response.json()
    assert body["status"] is True
    assert body["message"] == "Chat initiated successfully"

    chat = body["data"]
    assert chat["userAId"] == seed.alice
    assert chat["userBId"] == seed.bob
    assert chat["unreadCountUserA"] == 0
    assert chat["unreadCountUserB"] == 0
    assert chat["status"] == "active"
    assert chat["lastMessage"] is None
    assert chat["product"]["name"] == "Vintage Lamp"
    assert chat["product"]["image"] == "https://cdn.example.com/lamp.jpg"
    assert chat["userA"]["firstName"] == "Alice"


@pytest.mark.asyncio
async def test_initiate_chat_errors(client, auth_headers, seed):
    response = await client.post(
        "/api/v1/chat/initiate",
        json={"productId": seed.lamp, "userBId": seed.alice},
        headers=auth_headers(seed.alice),
    )
    assert response.status_code == 400
    assert response.json()["message"] == "Cannot initiate chat with yourself"

    response = await client.post(
        "/api/v1/chat/initiate",
        json={"productId": seed.lamp, "userBId": seed.bob},
        headers=auth_headers(seed.carol),
    )
    assert response.status_code == 403

    response = await client.post(
        "/api/v1/chat/initiate",
        json={"productId": 999, "userBId": seed.bob},
        headers=auth_headers(seed.bob),
    )
    assert response.status_code == 404
    assert response.json()["message"] == "Product not found"


@pytest.mark.asyncio
async def test_message_flow(client, app_context, auth_headers, seed):
    chat = await initiate(client, auth_headers, seed)

    response = await client.post(
        "/api/v1/chat/message",
        json={"chatId": chat["id"], "content": "Would you take 40?"},
        headers=auth_headers(seed.bob),
    )
    assert response.status_code == 200
    message = response.json()["data"]
    assert message["chatId"] == chat["id"]
    assert message["senderId"] == seed.bob
    assert message["isRead"] is False

    response = await client.get("/api/v1/chat/unread-count", headers=auth_headers(seed.alice))
    assert response.json()["data"] == {"count": 1}

    response = await client.get(f"/api/v1/chat/{chat['id']}/messages", headers=auth_headers(seed.alice))
    page = response.json()["data"]
    assert [m["content"] for m in page["messages"]] == ["Would you take 40?"]
    assert page["total"] == 1
    assert page["totalPages"] == 1

    response = await client.patch(
        "/api/v1/chat/mark-read", json={"chatId": chat["id"]}, headers=auth_headers(seed.alice)
    )
    assert response.status_code == 200
    assert response.json()["data"] is None

    response = await client.get("/api/v1/chat/unread-count", headers=auth_headers(seed.alice))
    assert response.json()["data"] == {"count": 0}

    response = await client.get("/api/v1/chat/heads", headers=auth_headers(seed.bob))
    heads = response.json()["data"]
    assert heads["total"] == 1
    assert heads["chats"][0]["lastMessage"] == "Would you take 40?"

    await app_context.runner.drain()


@pytest.mark.asyncio
async def test_get_chat_access(client, auth_headers, seed):
    chat = await initiate(client, auth_headers, seed)

    response = await client.get(f"/api/v1/chat/{chat['id']}", headers=auth_headers(seed.alice))
    assert response.status_code == 200
    assert response.json()["data"]["id"] == chat["id"]

    response = await client.get(f"/api/v1/chat/{chat['id']}", headers=auth_headers(seed.carol))
    assert response.status_code == 403
    assert response.json()["message"] == "You are not part of this chat"

    response = await client.get("/api/v1/chat/999", headers=auth_headers(seed.alice))
    assert response.status_code == 404


@pytest.mark.asyncio
async def test_malformed_input_is_bad_request(client, auth_headers, seed):
    response = await client.get("/api/v1/chat/not-a-number", headers=auth_headers(seed.alice))
    assert response.status_code == 400

    response = await client.post(
        "/api/v1/chat/message", json={"chatId": 1}, headers=auth_headers(seed.alice)
    )
    assert response.status_code == 400
    assert response.json()["error"] == "Bad Request"

    response = await client.get("/api/v1/chat/heads?page=0", headers=auth_headers(seed.alice))
    assert response.status_code == 400
