from abc import ABC, abstractmethod


class BaseDocumentSink(ABC):
    """Stores generated text and returns a durable link"""

    @abstractmethod
    async def persist_document(self, text: str, title: str) -> str:
        """Store text as a document titled title and return its link.

        Raises PersistenceError on any downstream failure.
        """
        pass

    async def aclose(self):
        """Release network resources held by the sink"""
        pass
