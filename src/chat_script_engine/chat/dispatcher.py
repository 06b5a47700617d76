from typing import Any, Optional

from chat_script_engine.chat.handler import ChatHandler
from chat_script_engine.execution.errors import UnknownFeature
from chat_script_engine.models.chat import ChatContext, ChatMessage
from chat_script_engine.observability.logging import get_logger

logger = get_logger(__name__)


def feature_key(feature: Any) -> str:
    return str(getattr(feature, "value", feature))


class ChatHandlerDispatcher:
    """
    Routes inbound chat events to the handler owning the feature.

    Holds nothing but the feature -> handler table and performs no
    validation of its own.
    """

    def __init__(self, handlers: Optional[list[ChatHandler]] = None) -> None:
        self._handlers: dict[str, ChatHandler] = {}
        for handler in handlers or []:
            self.register(handler)

    def register(self, handler: ChatHandler) -> None:
        key = feature_key(handler.feature)
        if key in self._handlers:
            logger.warning(
                f"Replacing chat handler for feature {key}",
                extra={"extra_fields": {"feature": key}},
            )
        self._handlers[key] = handler

    def get_handler(self, feature: Any) -> ChatHandler:
        handler = self._handlers.get(feature_key(feature))
        if handler is None:
            raise UnknownFeature(feature_key(feature))
        return handler

    def has_handler(self, feature: Any) -> bool:
        return feature_key(feature) in self._handlers

    def list_features(self) -> list[str]:
        return list(self._handlers.keys())

    async def dispatch(
        self, feature: Any, text: str, context: ChatContext
    ) -> Optional[ChatMessage]:
        handler = self.get_handler(feature)
        logger.debug(
            f"Dispatching message to {type(handler).__name__}",
            extra={"extra_fields": {"feature": feature_key(feature)}},
        )
        return await handler.handle_message(text, context)

    async def dispatch_component_update(
        self,
        feature: Any,
        message_id: str,
        data: dict[str, Any],
        context: ChatContext,
    ) -> Optional[ChatMessage]:
        handler = self.get_handler(feature)
        logger.debug(
            f"Dispatching component update to {type(handler).__name__}",
            extra={
                "extra_fields": {
                    "feature": feature_key(feature),
                    "message_id": message_id,
                }
            },
        )
        return await handler.handle_component_update(message_id, data, context)
