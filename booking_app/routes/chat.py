from typing import Optional

from fastapi import APIRouter, Depends
from pydantic import BaseModel, field_validator

from ..auth import SessionAuth, require_session
from ..services.chat_webhook import ChatWebhookClient

router = APIRouter(prefix="/api/chat", tags=["Chat"])


class ChatMessage(BaseModel):
    message: str
    sessionId: Optional[str] = None

    @field_validator("message")
    @classmethod
    def validate_message(cls, v):
        v = v.strip()
        if not v:
            raise ValueError("Message is required")
        if len(v) > 4000:
            raise ValueError("Message is too long")
        return v


def get_chat_client() -> ChatWebhookClient:
    return ChatWebhookClient()


@router.post("/webhook")
async def chat_webhook(
    data: ChatMessage,
    auth: SessionAuth = Depends(require_session),
    client: ChatWebhookClient = Depends(get_chat_client),
):
    """Send a chat message to the assistant workflow as the current user"""
    return await client.forward(data.message, data.sessionId, auth.user)
