from typing import List
import re
import time
import structlog

from draftflow.domain.errors import GenerationParseError, GenerationServiceError
from draftflow.domain.models.session import MAX_TOPIC_CANDIDATES
from draftflow.infrastructure.observability.logging import metrics, workflow_logger
from .completion import BaseCompletionService
from .prompts import (
    ARTICLE_MAX_TOKENS, OUTLINE_MAX_TOKENS, TOPICS_MAX_TOKENS,
    build_article_prompt, build_outline_prompt, build_topics_prompt
)

logger = structlog.get_logger(__name__)

# "1. ", "2、", "3)", "- " style list markers
_LIST_MARKER = re.compile(r"^\s*(?:\d+\s*[.、)）:]|[-*•])\s*")


def parse_topics(text: str) -> List[str]:
    """Split a numbered list into at most three topic strings.

    When any line carries a list marker, unmarked lines (intros, closing
    remarks) are dropped; otherwise every non-blank line is a topic.
    """

    marked, unmarked = [], []
    for line in text.splitlines():
        match = _LIST_MARKER.match(line)
        topic = line[match.end():].strip() if match else line.strip()
        if match:
            marked.append(topic)
        elif topic:
            unmarked.append(topic)

    topics = [topic for topic in marked if topic] if marked else unmarked
    if not topics:
        raise GenerationParseError(f"No topic lines in completion: {text[:80]!r}")

    return topics[:MAX_TOPIC_CANDIDATES]


class GenerationAdapter:
    """Prompt construction and response parsing around a completion service"""

    def __init__(self, completion_service: BaseCompletionService):
        self.completion_service = completion_service

    async def generate_topics(self, direction: str) -> List[str]:
        """Generate up to three topic candidates for a direction"""
        text = await self._complete("topics", build_topics_prompt(direction), TOPICS_MAX_TOKENS)
        topics = parse_topics(text)
        if len(topics) < MAX_TOPIC_CANDIDATES:
            logger.warning("Fewer topics than requested", direction=direction, count=len(topics))
        return topics

    async def generate_outline(self, topic: str) -> str:
        """Generate an outline for a topic"""
        return await self._complete("outline", build_outline_prompt(topic), OUTLINE_MAX_TOKENS)

    async def generate_article(self, topic: str, outline: str) -> str:
        """Generate the full article from topic and outline"""
        return await self._complete("article", build_article_prompt(topic, outline), ARTICLE_MAX_TOKENS)

    async def _complete(self, step: str, prompt: str, max_tokens: int) -> str:
        started = time.perf_counter()
        try:
            text = await self.completion_service.complete(prompt, max_tokens)
        except GenerationServiceError as e:
            self._record(step, started, error=str(e))
            raise
        except Exception as e:
            self._record(step, started, error=str(e))
            raise GenerationServiceError(f"{self.completion_service.name} failed: {e}") from e

        text = (text or "").strip()
        if not text:
            self._record(step, started, error="empty completion")
            raise GenerationServiceError(f"{self.completion_service.name} returned no text for {step}")

        self._record(step, started)
        return text

    @staticmethod
    def _record(step: str, started: float, error: str = None):
        duration_ms = (time.perf_counter() - started) * 1000
        metrics.record_latency(f"generation.{step}", duration_ms)
        workflow_logger.log_generation_call(step, duration_ms, success=error is None, error=error)
