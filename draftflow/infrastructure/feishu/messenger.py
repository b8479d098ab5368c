from typing import Any, Dict
import json
import structlog

from draftflow.domain.errors import MessagingError
from draftflow.domain.models.view import View
from draftflow.domain.streaming.transport import BaseMessagingTransport
from .cards import render_card
from .client import FeishuAPIError, FeishuClient

logger = structlog.get_logger(__name__)


class FeishuMessenger(BaseMessagingTransport):
    """Sends views to Feishu group chats as interactive cards"""

    def __init__(self, client: FeishuClient):
        self.client = client

    async def send_view(self, conversation_id: str, view: View) -> str:
        """Send a card to a chat and return its message_id"""
        return await self._create(conversation_id, "interactive", render_card(view))

    async def update_view(self, message_ref: str, view: View) -> None:
        """Patch a previously sent card"""

        try:
            await self.client.request(
                "PATCH",
                f"/open-apis/im/v1/messages/{message_ref}",
                json={"content": json.dumps(render_card(view), ensure_ascii=False)},
            )
        except FeishuAPIError as e:
            raise MessagingError(f"Failed to update message {message_ref}: {e}") from e

    async def send_text(self, conversation_id: str, text: str) -> str:
        return await self._create(conversation_id, "text", {"text": text})

    async def _create(self, conversation_id: str, msg_type: str, content: Dict[str, Any]) -> str:
        try:
            data = await self.client.request(
                "POST",
                "/open-apis/im/v1/messages",
                params={"receive_id_type": "chat_id"},
                json={
                    "receive_id": conversation_id,
                    "msg_type": msg_type,
                    "content": json.dumps(content, ensure_ascii=False),
                },
            )
        except FeishuAPIError as e:
            raise MessagingError(f"Failed to send {msg_type} message to {conversation_id}: {e}") from e

        message_id = data.get("message_id", "")
        logger.debug("Message sent", conversation_id=conversation_id, msg_type=msg_type, message_id=message_id)
        return message_id

    async def aclose(self):
        await self.client.aclose()
