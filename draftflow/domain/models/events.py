from typing import Annotated, Dict, Any, Optional, Literal, Union
from pydantic import BaseModel, Field, TypeAdapter
from datetime import datetime
from enum import Enum


class ActionType(str, Enum):
    """Action names carried by card buttons"""
    SELECT_DIRECTION = "select_direction"
    REGENERATE_TOPICS = "regenerate_topics"
    SELECT_TOPIC = "select_topic"
    REGENERATE_OUTLINE = "regenerate_outline"
    CONFIRM_OUTLINE = "confirm_outline"
    BACK_TO_DIRECTION = "back_to_direction"
    START_OVER = "start_over"


class BasePayload(BaseModel):
    """Base payload echoed back verbatim by a button click"""
    version: Optional[int] = Field(None, description="Session version the card was rendered for")

    def to_value(self) -> Dict[str, Any]:
        """Button value dict for the messaging transport"""
        return self.model_dump(exclude_none=True)


class SelectDirection(BasePayload):
    """Direction chosen from the direction card"""
    action: Literal["select_direction"] = "select_direction"
    direction: str = Field(min_length=1)


class RegenerateTopics(BasePayload):
    action: Literal["regenerate_topics"] = "regenerate_topics"


class SelectTopic(BasePayload):
    """Topic chosen from the candidate list"""
    action: Literal["select_topic"] = "select_topic"
    topic: str = Field(min_length=1)


class RegenerateOutline(BasePayload):
    action: Literal["regenerate_outline"] = "regenerate_outline"


class ConfirmOutline(BasePayload):
    action: Literal["confirm_outline"] = "confirm_outline"


class BackToDirection(BasePayload):
    action: Literal["back_to_direction"] = "back_to_direction"


class StartOver(BasePayload):
    action: Literal["start_over"] = "start_over"


ActionPayload = Annotated[
    Union[
        SelectDirection,
        RegenerateTopics,
        SelectTopic,
        RegenerateOutline,
        ConfirmOutline,
        BackToDirection,
        StartOver,
    ],
    Field(discriminator="action"),
]

_payload_adapter = TypeAdapter(ActionPayload)


def parse_action_payload(action: str, payload: Optional[Dict[str, Any]] = None) -> ActionPayload:
    """Build the typed payload for an action name.

    Raises pydantic.ValidationError for unknown actions or missing fields.
    """
    data = dict(payload or {})
    data["action"] = action
    return _payload_adapter.validate_python(data)


class ActionEvent(BaseModel):
    """Inbound user interaction from a chat surface"""
    conversation_id: str
    payload: ActionPayload
    received_at: datetime = Field(default_factory=datetime.utcnow)

    @property
    def action(self) -> str:
        return self.payload.action
