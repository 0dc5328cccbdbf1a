"""
Chat assistant webhook client (n8n workflow)
Forwards a user's chat message to the workflow and relays its answer
"""

import logging
from typing import Optional

import httpx
from fastapi import HTTPException

from ..config import CHAT_WEBHOOK_METHOD, CHAT_WEBHOOK_TIMEOUT, CHAT_WEBHOOK_URL
from ..models import User

logger = logging.getLogger(__name__)

MISSING_RESPOND_NODE = "No Respond to Webhook node found"


class ChatWebhookClient:
    def __init__(
        self,
        url: Optional[str] = CHAT_WEBHOOK_URL,
        method: str = CHAT_WEBHOOK_METHOD,
        timeout: float = CHAT_WEBHOOK_TIMEOUT,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.url = url
        self.method = method.upper()
        self.timeout = timeout
        self.transport = transport

    async def forward(self, message: str, session_id: Optional[str], user: User) -> dict:
        if not self.url:
            logger.error("❌ Chat webhook URL not configured")
            raise HTTPException(status_code=500, detail="Chat service not configured")

        try:
            async with httpx.AsyncClient(timeout=self.timeout, transport=self.transport) as client:
                if self.method == "POST":
                    response = await client.post(
                        self.url,
                        json={
                            "message": message,
                            "sessionId": session_id or "default",
                            "user": {"id": user.id, "email": user.email, "name": user.name},
                        },
                    )
                else:
                    response = await client.get(
                        self.url,
                        params={
                            "message": message,
                            "sessionId": session_id or "default",
                            "userId": user.email,
                            "userName": user.name or "User",
                        },
                        headers={"Accept": "application/json"},
                    )
        except httpx.TimeoutException as e:
            logger.error(f"⏰ Chat webhook timed out after {self.timeout}s")
            raise HTTPException(status_code=504, detail="Chat service timed out") from e
        except httpx.HTTPError as e:
            logger.error(f"❌ Chat webhook request failed: {e}")
            raise HTTPException(status_code=502, detail="Chat service unavailable") from e

        if response.status_code >= 400:
            logger.error(f"❌ Chat webhook error: HTTP {response.status_code} {response.text[:200]}")
            if MISSING_RESPOND_NODE in response.text:
                raise HTTPException(
                    status_code=503,
                    detail="The chat service is not configured correctly. Please contact an administrator.",
                )
            raise HTTPException(
                status_code=response.status_code, detail="Error communicating with the chat service"
            )

        try:
            data = response.json()
        except ValueError:
            return {"output": response.text}
        if isinstance(data, list):
            return {"output": data[0].get("output") if data and isinstance(data[0], dict) else data}
        return data
