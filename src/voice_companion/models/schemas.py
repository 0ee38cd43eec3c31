"""
Pydantic models shared across the voice companion engine.

This module defines conversation messages, page context snapshots, the
action directive tagged union and the events published to UI listeners.
"""

from datetime import datetime
from enum import Enum
from typing import Annotated, Literal, Optional, Union

from pydantic import AliasChoices
from pydantic import BaseModel
from pydantic import ConfigDict
from pydantic import Field
from pydantic import TypeAdapter


class Role(str, Enum):
    USER = "user"
    ASSISTANT = "assistant"


class Phase(str, Enum):
    """Discrete phase of the conversation state machine."""

    IDLE = "idle"
    LISTENING = "listening"
    SENDING = "sending"
    GENERATING = "generating"
    SPEAKING = "speaking"


class Message(BaseModel):
    """A single conversation message. Immutable once created."""

    model_config = ConfigDict(frozen=True)

    role: Role = Field(..., description="Who produced the message")
    display_text: str = Field(..., description="Text shown to the user, directives stripped")
    raw_text: str = Field(..., description="Original text, directives retained")
    timestamp: datetime = Field(default_factory=datetime.now, description="Creation time")

    @classmethod
    def user(cls, text: str) -> "Message":
        return cls(role=Role.USER, display_text=text, raw_text=text)

    @classmethod
    def assistant(cls, display_text: str, raw_text: str) -> "Message":
        return cls(role=Role.ASSISTANT, display_text=display_text, raw_text=raw_text)


class PageLink(BaseModel):
    label: str
    href: str


class PageContext(BaseModel):
    """Snapshot of the live page, supplied by the page-introspection collaborator."""

    route: str = Field(default="/", description="Current route path")
    title: str = Field(default="", description="Document title")
    headings: list[str] = Field(default_factory=list)
    visible_links: list[PageLink] = Field(default_factory=list)
    visible_buttons: list[str] = Field(default_factory=list)

    # Page-provided data
    page_type: Optional[str] = None
    question: Optional[str] = None
    answer: Optional[str] = None
    content: Optional[str] = None
    tags: list[str] = Field(default_factory=list)


# ---------------------------------------------------------------------------
# Action directives
# ---------------------------------------------------------------------------


class NavigateDirective(BaseModel):
    kind: Literal["navigate"] = "navigate"
    path: str = Field(..., min_length=1)
    label: Optional[str] = None


class ClickDirective(BaseModel):
    kind: Literal["click"] = "click"
    text: str = Field(..., min_length=1)
    description: Optional[str] = None


class ScrollDirective(BaseModel):
    kind: Literal["scroll"] = "scroll"
    selector_hint: str = Field(
        ..., min_length=1, validation_alias=AliasChoices("selector_hint", "selectorHint", "selector")
    )
    description: Optional[str] = None


class HighlightDirective(BaseModel):
    kind: Literal["highlight"] = "highlight"
    selector_hint: str = Field(
        ..., min_length=1, validation_alias=AliasChoices("selector_hint", "selectorHint", "selector")
    )
    description: Optional[str] = None


class SuggestDirective(BaseModel):
    kind: Literal["suggest"] = "suggest"
    message: str = Field(..., min_length=1)


ActionDirective = Annotated[
    Union[NavigateDirective, ClickDirective, ScrollDirective, HighlightDirective, SuggestDirective],
    Field(discriminator="kind"),
]

directive_adapter: TypeAdapter = TypeAdapter(ActionDirective)


class ParsedReply(BaseModel):
    """Generated text split into what is shown and what is executed."""

    raw_text: str
    display_text: str
    directives: list[ActionDirective] = Field(default_factory=list)


# ---------------------------------------------------------------------------
# Outbound events
# ---------------------------------------------------------------------------


class ToastKind(str, Enum):
    SUCCESS = "success"
    WARNING = "warning"
    ERROR = "error"


class Toast(BaseModel):
    kind: ToastKind
    title: str
    detail: str = ""

    def __str__(self) -> str:
        return f"{self.title}: {self.detail}" if self.detail else self.title


class TranscriptEvent(BaseModel):
    text: str
    is_final: bool = False


class StatusEvent(BaseModel):
    phase: Phase
    message: str
