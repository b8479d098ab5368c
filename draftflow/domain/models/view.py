from typing import List, Optional
from pydantic import BaseModel, Field
from enum import Enum

from draftflow.domain.models.events import ActionPayload


class ViewKind(str, Enum):
    """Which card a view renders"""
    DIRECTION = "direction"
    TOPIC = "topic"
    OUTLINE = "outline"
    DONE = "done"
    PROGRESS = "progress"
    IGNORED = "ignored"
    ERROR = "error"


class ButtonStyle(str, Enum):
    PRIMARY = "primary"
    DEFAULT = "default"
    DANGER = "danger"


class Button(BaseModel):
    """Labeled button; carries an action payload or opens a URL"""
    label: str
    style: ButtonStyle = Field(default=ButtonStyle.DEFAULT)
    payload: Optional[ActionPayload] = None
    url: Optional[str] = None


class View(BaseModel):
    """Transport-neutral card payload"""
    kind: ViewKind
    title: Optional[str] = None
    template: str = Field(default="blue", description="Header colour")
    blocks: List[str] = Field(default_factory=list, description="Markdown text blocks")
    notice: Optional[str] = Field(None, description="Error annotation shown above the blocks")
    button_rows: List[List[Button]] = Field(default_factory=list)

    @property
    def buttons(self) -> List[Button]:
        return [button for row in self.button_rows for button in row]

    def with_notice(self, notice: str) -> "View":
        """Copy of this view carrying an error annotation"""
        return self.model_copy(update={"notice": notice})
