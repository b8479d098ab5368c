from typing import Dict, Any, List, Optional
from pydantic import BaseModel, Field
from datetime import datetime
from enum import Enum

from draftflow.domain.errors import InvariantViolation


class WorkflowState(str, Enum):
    """Workflow step of a conversation"""
    DIRECTION = "direction"
    TOPIC = "topic"
    OUTLINE = "outline"
    WRITING = "writing"
    DONE = "done"


# States in which a topic has been chosen and an outline generated
TOPIC_CHOSEN_STATES = frozenset({WorkflowState.OUTLINE, WorkflowState.WRITING, WorkflowState.DONE})

MAX_TOPIC_CANDIDATES = 3


class Session(BaseModel):
    """Per-conversation workflow state"""
    conversation_id: str = Field(description="Opaque conversation key")
    state: WorkflowState = Field(default=WorkflowState.DIRECTION)
    direction: Optional[str] = Field(None, description="Chosen content category")
    topic_candidates: List[str] = Field(default_factory=list, description="Last generated topic candidates")
    selected_topic: Optional[str] = None
    outline: Optional[str] = Field(None, description="Last generated outline text")
    document_link: Optional[str] = Field(None, description="Durable link of the persisted article")
    article_preview: Optional[str] = None
    version: int = Field(default=0, description="Incremented on every committed transition")
    last_activity: datetime = Field(default_factory=datetime.utcnow)

    def reset(self):
        """Drop every workflow field and go back to direction selection"""
        self.state = WorkflowState.DIRECTION
        self.direction = None
        self.topic_candidates = []
        self.selected_topic = None
        self.outline = None
        self.document_link = None
        self.article_preview = None

    def touch(self):
        """Update last activity timestamp"""
        self.last_activity = datetime.utcnow()

    def is_pristine(self) -> bool:
        """True for a direction-step session with nothing chosen yet"""
        return self.state == WorkflowState.DIRECTION and self.direction is None

    def check_invariants(self):
        """Raise InvariantViolation if the session is in an impossible shape"""

        if self.version < 0:
            raise InvariantViolation(f"negative version {self.version}")

        if len(self.topic_candidates) > MAX_TOPIC_CANDIDATES:
            raise InvariantViolation(f"{len(self.topic_candidates)} topic candidates")

        if self.state == WorkflowState.DIRECTION:
            if self.topic_candidates:
                raise InvariantViolation("topic candidates kept in direction state")
        elif not self.direction:
            raise InvariantViolation(f"state {self.state.value} without a direction")

        if self.state in TOPIC_CHOSEN_STATES:
            if not self.selected_topic or not self.outline:
                raise InvariantViolation(f"state {self.state.value} without topic and outline")
        elif self.selected_topic is not None or self.outline is not None:
            raise InvariantViolation(f"topic or outline set in state {self.state.value}")

        if (self.state == WorkflowState.DONE) != (self.document_link is not None):
            raise InvariantViolation("document link must be set exactly in done state")

    def get_state_summary(self) -> Dict[str, Any]:
        """Get a summary of the current state"""
        return {
            "conversation_id": self.conversation_id,
            "state": self.state.value,
            "version": self.version,
            "direction": self.direction,
            "topic_candidates": len(self.topic_candidates),
            "selected_topic": self.selected_topic,
            "has_outline": self.outline is not None,
            "last_activity": self.last_activity.isoformat()
        }
