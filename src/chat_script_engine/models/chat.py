"""Data models for chat transcripts.

This module defines the message shape handed to the rendering layer and the
per-session context handlers receive with every inbound event.
"""

import uuid
from datetime import datetime, timezone
from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, Field

from chat_script_engine.models.base import ModelBase
from chat_script_engine.models.enums import MessageRole
from chat_script_engine.models.script import ScriptExecutionContext


def new_message_id() -> str:
    return f"msg-{uuid.uuid4().hex}"


class ComponentRef(BaseModel):
    """Reference to a UI fragment that should be rendered with a message.

    Attributes:
        type: Registered component type key (e.g. 'input-method-selector').
        props: Parameters for the fragment, defaults already merged in.
    """

    model_config = ConfigDict(frozen=True)

    type: str = Field(
        ..., description="Registered component type key."
    )
    props: Optional[dict[str, Any]] = Field(
        default=None,
        description="Parameters for the fragment, defaults already merged in.",
    )


class ChatMessage(BaseModel):
    """A single entry in a chat transcript.

    Messages are never edited once appended; late results arrive as new
    messages.

    Attributes:
        id: Unique message identifier.
        role: Author of the message.
        content: Text shown to the user.
        timestamp: Creation time.
        metadata: Arbitrary data for the session layer (e.g. parsed entities).
        component: Optional UI fragment rendered with the message.
    """

    model_config = ConfigDict(frozen=True, use_enum_values=True)

    id: str = Field(
        default_factory=new_message_id,
        description="Unique message identifier.",
    )
    role: MessageRole = Field(..., description="Author of the message.")
    content: str = Field(..., description="Text shown to the user.")
    timestamp: datetime = Field(
        default_factory=lambda: datetime.now(timezone.utc),
        description="Creation time.",
    )
    metadata: Optional[dict[str, Any]] = Field(
        default=None,
        description="Arbitrary data for the session layer.",
    )
    component: Optional[ComponentRef] = Field(
        default=None,
        description="Optional UI fragment rendered with the message.",
    )

    @classmethod
    def assistant(
        cls,
        content: str,
        *,
        component: Optional[ComponentRef] = None,
        metadata: Optional[dict[str, Any]] = None,
    ) -> "ChatMessage":
        return cls(
            role=MessageRole.ASSISTANT,
            content=content,
            component=component,
            metadata=metadata,
        )

    @classmethod
    def user(cls, content: str) -> "ChatMessage":
        return cls(role=MessageRole.USER, content=content)

    def to_payload(self) -> dict[str, Any]:
        """Serializes the message for the rendering layer.

        Optional keys (`metadata`, `component`, `component.props`) are left
        out entirely when unset rather than sent as null.
        """
        payload: dict[str, Any] = {
            "id": self.id,
            "role": self.role,
            "content": self.content,
            "timestamp": self.timestamp.isoformat(),
        }
        if self.metadata is not None:
            payload["metadata"] = self.metadata
        if self.component is not None:
            payload["component"] = self.component.model_dump(
                mode="json", exclude_none=True
            )
        return payload


class ChatContext(ModelBase):
    """Per-session state handed to chat handlers.

    Attributes:
        feature: Feature the session was opened with.
        data: Free-form session data (merged component results, flags).
        script: Active script run, if the feature is script-driven.
    """

    feature: str = Field(
        ..., description="Feature tag the session was opened with."
    )
    data: dict[str, Any] = Field(
        default_factory=dict,
        description="Free-form session data (merged component results, flags).",
    )
    script: Optional[ScriptExecutionContext] = Field(
        default=None,
        description="Active script run, if the feature is script-driven.",
    )
