from abc import ABC, abstractmethod

from draftflow.domain.models.view import View, ViewKind


class BaseMessagingTransport(ABC):
    """Sends and updates views in a conversation"""

    @abstractmethod
    async def send_view(self, conversation_id: str, view: View) -> str:
        """Send a view to a conversation and return a message reference"""
        pass

    @abstractmethod
    async def update_view(self, message_ref: str, view: View) -> None:
        """Replace a previously sent view"""
        pass

    async def send_text(self, conversation_id: str, text: str) -> str:
        """Send plain text; transports without a text message type send a card"""
        return await self.send_view(conversation_id, View(kind=ViewKind.PROGRESS, blocks=[text]))

    async def aclose(self):
        """Release network resources held by the transport"""
        pass
