"""Tests for the chat assistant webhook proxy."""
import asyncio
import json

import httpx
import pytest
from fastapi import HTTPException

from booking_app.routes.chat import get_chat_client
from booking_app.services.chat_webhook import ChatWebhookClient

WEBHOOK_URL = "https://n8n.example.com/webhook/chat"


def client_for(handler, method: str = "GET") -> ChatWebhookClient:
    return ChatWebhookClient(url=WEBHOOK_URL, method=method, timeout=5, transport=httpx.MockTransport(handler))


def forward(chat_client: ChatWebhookClient, user, message: str = "Any slot tomorrow?", session_id: str = "abc"):
    return asyncio.run(chat_client.forward(message, session_id, user))


def test_get_request_carries_query_params(agent):
    seen = {}

    def handler(request: httpx.Request):
        seen["method"] = request.method
        seen["params"] = dict(request.url.params)
        return httpx.Response(200, json={"output": "Tomorrow at 10"})

    result = forward(client_for(handler), agent)

    assert result == {"output": "Tomorrow at 10"}
    assert seen["method"] == "GET"
    assert seen["params"] == {
        "message": "Any slot tomorrow?",
        "sessionId": "abc",
        "userId": agent.email,
        "userName": agent.name,
    }


def test_post_request_carries_json_body(agent):
    seen = {}

    def handler(request: httpx.Request):
        seen["body"] = json.loads(request.content)
        return httpx.Response(200, json={"output": "ok"})

    forward(client_for(handler, method="POST"), agent, session_id=None)

    assert seen["body"] == {
        "message": "Any slot tomorrow?",
        "sessionId": "default",
        "user": {"id": agent.id, "email": agent.email, "name": agent.name},
    }


def test_list_response_is_unwrapped(agent):
    result = forward(client_for(lambda r: httpx.Response(200, json=[{"output": "first"}, {"output": "second"}])), agent)
    assert result == {"output": "first"}


def test_plain_text_response(agent):
    result = forward(client_for(lambda r: httpx.Response(200, text="Hello there")), agent)
    assert result == {"output": "Hello there"}


def test_misconfigured_workflow(agent):
    def handler(request):
        return httpx.Response(500, text='{"message":"No Respond to Webhook node found in the workflow"}')

    with pytest.raises(HTTPException) as exc:
        forward(client_for(handler), agent)
    assert exc.value.status_code == 503


def test_upstream_status_is_relayed(agent):
    with pytest.raises(HTTPException) as exc:
        forward(client_for(lambda r: httpx.Response(404, text="Not found")), agent)
    assert exc.value.status_code == 404


def test_timeout(agent):
    def handler(request):
        raise httpx.ReadTimeout("timed out", request=request)

    with pytest.raises(HTTPException) as exc:
        forward(client_for(handler), agent)
    assert exc.value.status_code == 504


def test_connection_error(agent):
    def handler(request):
        raise httpx.ConnectError("refused", request=request)

    with pytest.raises(HTTPException) as exc:
        forward(client_for(handler), agent)
    assert exc.value.status_code == 502


def test_not_configured(agent):
    with pytest.raises(HTTPException) as exc:
        forward(ChatWebhookClient(url=None), agent)
    assert exc.value.status_code == 500


# HTTP level


def test_chat_endpoint_forwards_as_effective_user(client, app, admin, agent, login, csrf_headers):
    seen = {}

    def handler(request: httpx.Request):
        seen["userId"] = request.url.params["userId"]
        return httpx.Response(200, json={"output": "Hi"})

    app.dependency_overrides[get_chat_client] = lambda: client_for(handler)
    login(client, admin)
    headers = csrf_headers(admin)
    client.post("/api/impersonate", json={"userId": agent.id}, headers=headers)

    response = client.post("/api/chat/webhook", json={"message": "Hello"}, headers=headers)

    assert response.status_code == 200
    assert response.json() == {"output": "Hi"}
    assert seen["userId"] == agent.email


def test_chat_endpoint_validates_message(client, agent, login, csrf_headers):
    login(client, agent)
    response = client.post("/api/chat/webhook", json={"message": "   "}, headers=csrf_headers(agent))
    assert response.status_code == 400
    assert response.json() == {"error": "message: Message is required"}


def test_chat_endpoint_requires_session(client, agent, make_token, bearer):
    response = client.post("/api/chat/webhook", json={"message": "Hello"}, headers=bearer(make_token(agent)))
    assert response.status_code == 401
