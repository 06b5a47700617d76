from unittest.mock import AsyncMock

import pytest

from chat_script_engine.chat.dispatcher import ChatHandlerDispatcher
from chat_script_engine.chat.handler import ChatHandler
from chat_script_engine.execution.errors import NavigationRejected, UnknownFeature
from chat_script_engine.models.chat import ChatContext, ChatMessage
from chat_script_engine.models.enums import ChatFeature, ErrorCode


class EchoHandler(ChatHandler):
    feature = "echo"
    name = "echo"

    def __init__(self, feature="echo"):
        self.feature = feature

    async def handle_message(self, text, context):
        return ChatMessage.assistant(f"{self.feature}:{text}")

    def get_initial_message(self):
        return "hi"

    def get_step_message(self, step_index):
        return f"step {step_index}"

    def can_go_back(self, step_index):
        return step_index > 0

    def get_total_steps(self):
        return 3


class TestChatHandlerDispatcher:
    @pytest.fixture
    def context(self):
        return ChatContext(feature="echo")

    @pytest.mark.asyncio
    async def test_routes_by_feature(self, context):
        dispatcher = ChatHandlerDispatcher([EchoHandler("a"), EchoHandler("b")])
        reply = await dispatcher.dispatch("b", "hello", context)
        assert reply.content == "b:hello"
        assert dispatcher.list_features() == ["a", "b"]

    @pytest.mark.asyncio
    async def test_unknown_feature(self, context):
        dispatcher = ChatHandlerDispatcher()
        with pytest.raises(UnknownFeature) as exc:
            await dispatcher.dispatch("matching", "hi", context)
        assert exc.value.code == ErrorCode.UNKNOWN_FEATURE
        assert not dispatcher.has_handler("matching")

    def test_accepts_enum_features(self):
        handler = EchoHandler(ChatFeature.MATCHING.value)
        dispatcher = ChatHandlerDispatcher([handler])
        assert dispatcher.get_handler(ChatFeature.MATCHING) is handler
        assert dispatcher.has_handler("matching")

    def test_register_replaces(self):
        first, second = EchoHandler(), EchoHandler()
        dispatcher = ChatHandlerDispatcher([first])
        dispatcher.register(second)
        assert dispatcher.get_handler("echo") is second

    @pytest.mark.asyncio
    async def test_component_update_default_is_noop(self, context):
        dispatcher = ChatHandlerDispatcher([EchoHandler()])
        reply = await dispatcher.dispatch_component_update(
            "echo", "msg-1", {"method": "upload"}, context
        )
        assert reply is None

    @pytest.mark.asyncio
    async def test_component_update_forwarded(self, context):
        handler = EchoHandler()
        handler.handle_component_update = AsyncMock(
            return_value=ChatMessage.assistant("got it")
        )
        dispatcher = ChatHandlerDispatcher([handler])
        reply = await dispatcher.dispatch_component_update(
            "echo", "msg-1", {"jobId": "j1"}, context
        )
        assert reply.content == "got it"
        handler.handle_component_update.assert_awaited_once_with(
            "msg-1", {"jobId": "j1"}, context
        )


class TestChatHandlerDefaults:
    @pytest.mark.asyncio
    async def test_start_uses_initial_message(self):
        message = await EchoHandler().start(ChatContext(feature="echo"))
        assert message.content == "hi"

    def test_go_back_tracks_step_index(self):
        handler = EchoHandler()
        context = ChatContext(feature="echo", data={"stepIndex": 2})
        message = handler.go_back(context)
        assert message.content == "step 1"
        assert context.data["stepIndex"] == 1

        handler.go_back(context)
        with pytest.raises(NavigationRejected):
            handler.go_back(context)
        assert context.data["stepIndex"] == 0
