from abc import ABC, abstractmethod


class BaseCompletionService(ABC):
    """Base class for text-completion backends"""

    def __init__(self, name: str):
        self.name = name

    @abstractmethod
    async def complete(self, prompt: str, max_tokens: int = 1000) -> str:
        """Return the completion text for a single user prompt.

        Implementations raise GenerationServiceError on any upstream failure.
        """
        pass

    async def aclose(self):
        """Release network resources held by the backend"""
        pass
