from typing import Optional
import httpx
import structlog

from draftflow.domain.errors import GenerationServiceError
from draftflow.domain.generation.completion import BaseCompletionService

logger = structlog.get_logger(__name__)


class DeepSeekCompletionService(BaseCompletionService):
    """OpenAI-compatible chat completions endpoint (DeepSeek by default)"""

    def __init__(
        self,
        api_key: str,
        base_url: str = "https://api.deepseek.com",
        model: str = "deepseek-chat",
        timeout: float = 90.0,
        client: Optional[httpx.AsyncClient] = None
    ):
        super().__init__("deepseek")
        self.api_key = api_key
        self.model = model
        self.client = client or httpx.AsyncClient(base_url=base_url, timeout=timeout)

    async def complete(self, prompt: str, max_tokens: int = 1000) -> str:
        """Send one user message and return the first choice's content"""

        if not self.api_key:
            raise GenerationServiceError("DEEPSEEK_API_KEY not configured")

        try:
            response = await self.client.post(
                "/v1/chat/completions",
                headers={
                    "Authorization": f"Bearer {self.api_key}",
                    "Content-Type": "application/json",
                },
                json={
                    "model": self.model,
                    "max_tokens": max_tokens,
                    "messages": [{"role": "user", "content": prompt}],
                },
            )
            data = response.json()
        except httpx.HTTPError as e:
            raise GenerationServiceError(f"DeepSeek request failed: {e}") from e
        except ValueError as e:
            raise GenerationServiceError(f"DeepSeek returned invalid JSON: {e}") from e

        if isinstance(data, dict) and data.get("error"):
            error = data["error"]
            message = error.get("message") if isinstance(error, dict) else str(error)
            raise GenerationServiceError(f"DeepSeek error: {message}")

        if response.status_code != 200:
            raise GenerationServiceError(f"DeepSeek API error: {response.status_code} {response.text[:200]}")

        try:
            return data["choices"][0]["message"]["content"] or ""
        except (KeyError, IndexError, TypeError):
            logger.warning("Unexpected DeepSeek response shape", keys=list(data) if isinstance(data, dict) else None)
            return ""

    async def aclose(self):
        await self.client.aclose()
