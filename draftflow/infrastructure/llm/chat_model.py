from langchain_core.language_models import BaseChatModel
from langchain_core.messages import HumanMessage

from draftflow.domain.errors import GenerationServiceError
from draftflow.domain.generation.completion import BaseCompletionService


class ChatModelCompletionService(BaseCompletionService):
    """Completion backend over any langchain-core chat model"""

    def __init__(self, model: BaseChatModel, name: str = "chat_model"):
        super().__init__(name)
        self.model = model

    async def complete(self, prompt: str, max_tokens: int = 1000) -> str:
        try:
            message = await self.model.ainvoke([HumanMessage(content=prompt)], max_tokens=max_tokens)
        except Exception as e:
            raise GenerationServiceError(f"{self.name} call failed: {e}") from e

        content = message.content
        if isinstance(content, list):
            # Multi-part content: keep the text parts
            content = "".join(
                part if isinstance(part, str) else part.get("text", "")
                for part in content
            )
        return content or ""
