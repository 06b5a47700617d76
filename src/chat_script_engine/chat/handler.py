"""Abstract base class for feature chat handlers.

This module defines the capability set every feature exposes to the
dispatcher: answering free text, reacting to component events, and
describing its step structure to the session layer.
"""

from abc import ABC, abstractmethod
from typing import Any, Optional

from chat_script_engine.execution.errors import NavigationRejected
from chat_script_engine.models.chat import ChatContext, ChatMessage


class ChatHandler(ABC):
    """Conversational logic owning one chat feature.

    Exactly one handler is registered per feature tag. Handlers either
    answer directly or delegate to the script runner.
    """

    feature: str
    name: str = ""

    @abstractmethod
    async def handle_message(
        self, text: str, context: ChatContext
    ) -> Optional[ChatMessage]:
        """Processes free text typed by the user.

        Args:
            text: Raw message text.
            context: The session's chat context.

        Returns:
            The reply to append to the transcript, or None for no reply.
        """
        pass  # pragma: no cover

    async def handle_component_update(
        self, message_id: str, data: dict[str, Any], context: ChatContext
    ) -> Optional[ChatMessage]:
        """Processes data submitted by a rendered component.

        Args:
            message_id: Id of the message the component was attached to.
            data: Data emitted by the component.
            context: The session's chat context.

        Returns:
            The reply to append, or None. The default ignores the event.
        """
        return None

    async def start(self, context: ChatContext) -> ChatMessage:
        """Produces the first message of a session for this feature."""
        return ChatMessage.assistant(self.get_initial_message())

    def go_back(self, context: ChatContext) -> ChatMessage:
        """Moves the session one step back.

        The default tracks the position in `context.data["stepIndex"]`.

        Raises:
            NavigationRejected: If `can_go_back` refuses.
        """
        index = int(context.data.get("stepIndex", 0))
        if not self.can_go_back(index):
            raise NavigationRejected(index)
        context.data["stepIndex"] = index - 1
        return ChatMessage.assistant(self.get_step_message(index - 1))

    @abstractmethod
    def get_initial_message(self) -> str:
        pass  # pragma: no cover

    @abstractmethod
    def get_step_message(self, step_index: int) -> str:
        pass  # pragma: no cover

    @abstractmethod
    def can_go_back(self, step_index: int) -> bool:
        pass  # pragma: no cover

    @abstractmethod
    def get_total_steps(self) -> int:
        pass  # pragma: no cover
