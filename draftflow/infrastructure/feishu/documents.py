from typing import Any, Dict, List
import structlog

from draftflow.domain.errors import PersistenceError
from draftflow.domain.persistence.document_sink import BaseDocumentSink
from .client import FeishuAPIError, FeishuClient

logger = structlog.get_logger(__name__)

TEXT_BLOCK_TYPE = 2


def paragraph_blocks(text: str) -> List[Dict[str, Any]]:
    """One docx text block per blank-line separated paragraph"""
    return [
        {
            "block_type": TEXT_BLOCK_TYPE,
            "text": {"elements": [{"text_run": {"content": paragraph.strip()}}], "style": {}},
        }
        for paragraph in text.split("\n\n")
        if paragraph.strip()
    ]


class FeishuDocumentSink(BaseDocumentSink):
    """Persists articles as Feishu docx documents"""

    def __init__(self, client: FeishuClient, doc_base_url: str = "https://feishu.cn"):
        self.client = client
        self.doc_base_url = doc_base_url.rstrip("/")

    async def persist_document(self, text: str, title: str) -> str:
        """Create a document, fill it with the text's paragraphs and return its link"""

        try:
            created = await self.client.request(
                "POST",
                "/open-apis/docx/v1/documents",
                json={"title": title},
            )
            document_id = (created.get("document") or {}).get("document_id")
            if not document_id:
                raise PersistenceError("Feishu returned no document_id")

            await self.client.request(
                "POST",
                f"/open-apis/docx/v1/documents/{document_id}/blocks/{document_id}/children",
                params={"document_revision_id": -1},
                json={"children": paragraph_blocks(text), "index": 0},
            )
        except FeishuAPIError as e:
            raise PersistenceError(f"Failed to save document '{title}': {e}") from e

        link = f"{self.doc_base_url}/docx/{document_id}"
        logger.info("Document saved", title=title, link=link)
        return link
