"""Chat session: transcript plus the feature, handler and context it drives.

The transcript is append-only. Replies that arrive late (e.g. after a
component event) are appended as new messages; nothing is edited in place.
"""

from typing import Any, Awaitable, Optional

from chat_script_engine.chat.dispatcher import ChatHandlerDispatcher, feature_key
from chat_script_engine.config import EngineConfig
from chat_script_engine.execution.errors import (
    NavigationRejected,
    ScriptEngineError,
    ScriptNotRunning,
)
from chat_script_engine.models.chat import ChatContext, ChatMessage
from chat_script_engine.models.enums import RunStatus
from chat_script_engine.observability.logging import get_logger

logger = get_logger(__name__)


class SessionNotInitialized(RuntimeError):
    pass


class ChatSession:
    def __init__(
        self,
        dispatcher: ChatHandlerDispatcher,
        *,
        config: Optional[EngineConfig] = None,
    ) -> None:
        self._dispatcher = dispatcher
        self._config = config or EngineConfig()
        self._messages: list[ChatMessage] = []
        self.feature: Optional[str] = None
        self.context: Optional[ChatContext] = None

    @property
    def messages(self) -> tuple[ChatMessage, ...]:
        return tuple(self._messages)

    @property
    def is_initialized(self) -> bool:
        return self.context is not None

    def transcript(self) -> list[dict[str, Any]]:
        return [m.to_payload() for m in self._messages]

    def progress(self) -> tuple[int, int]:
        """Returns (1-based current step, total steps) for the active feature."""
        context = self._require_context()
        total = self._dispatcher.get_handler(self.feature).get_total_steps()
        if total == 0:
            return 0, 0
        return min(int(context.data.get("stepIndex", 0)) + 1, total), total

    async def initialize(self, feature: Any) -> ChatMessage:
        """Opens the session on `feature`, clearing the transcript.

        Raises:
            UnknownFeature: If no handler is registered for the feature.
        """
        key = feature_key(feature)
        handler = self._dispatcher.get_handler(key)
        self._messages = []
        self.feature = key
        self.context = ChatContext(feature=key)
        logger.info(
            f"Chat session initialized for feature {key}",
            extra={"extra_fields": {"feature": key, "handler": handler.name}},
        )
        message = await self._guarded(handler.start(self.context))
        self._messages.append(message)
        return message

    async def reset(self) -> ChatMessage:
        """Starts the current feature over with an empty transcript."""
        self._require_context()
        return await self.initialize(self.feature)

    async def send_message(self, text: str) -> Optional[ChatMessage]:
        """Appends the user's text and the handler's reply, if any."""
        context = self._require_context()
        if not text.strip():
            return None
        self._messages.append(ChatMessage.user(text))
        reply = await self._guarded(
            self._dispatcher.dispatch(self.feature, text, context)
        )
        if reply is not None:
            self._messages.append(reply)
        return reply

    async def handle_component_update(
        self, message_id: str, data: dict[str, Any]
    ) -> Optional[ChatMessage]:
        """Forwards data emitted by a component attached to `message_id`.

        Events for messages not in the transcript are ignored.
        """
        context = self._require_context()
        if not any(m.id == message_id for m in self._messages):
            logger.warning(
                f"Ignoring component update for unknown message {message_id}",
                extra={
                    "extra_fields": {
                        "feature": self.feature,
                        "message_id": message_id,
                    }
                },
            )
            return None

        context.data.update(data)
        reply = await self._guarded(
            self._dispatcher.dispatch_component_update(
                self.feature, message_id, data, context
            )
        )
        if reply is not None:
            self._messages.append(reply)
        return reply

    def go_back(self) -> ChatMessage:
        context = self._require_context()
        handler = self._dispatcher.get_handler(self.feature)
        try:
            message = handler.go_back(context)
        except NavigationRejected as e:
            logger.info(
                e.detail,
                extra={"extra_fields": {"feature": self.feature, "code": e.code.value}},
            )
            message = ChatMessage.assistant(self._config.back_rejected_message)
        self._messages.append(message)
        return message

    # -------------------- internals --------------------

    def _require_context(self) -> ChatContext:
        if self.context is None:
            raise SessionNotInitialized("Call initialize(feature) first")
        return self.context

    async def _guarded(
        self, pending: Awaitable[Optional[ChatMessage]]
    ) -> Optional[ChatMessage]:
        try:
            return await pending
        except ScriptNotRunning as e:
            run = self.context.script if self.context is not None else None
            if run is None or run.status != RunStatus.ABORTED:
                return self._failure(e)
            # the run was cancelled while this transition was in flight
            logger.info(
                e.detail,
                extra={"extra_fields": {"feature": self.feature, "code": e.code.value}},
            )
            return ChatMessage.assistant(self._config.cancelled_message)
        except Exception as e:
            return self._failure(e)

    def _failure(self, e: Exception) -> ChatMessage:
        code = e.code.value if isinstance(e, ScriptEngineError) else None
        logger.error(
            f"Chat handler failed for feature {self.feature}",
            exc_info=e,
            extra={"extra_fields": {"feature": self.feature, "code": code}},
        )
        return ChatMessage.assistant(
            self._config.error_message,
            metadata={"error": code or type(e).__name__},
        )
