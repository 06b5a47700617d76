from datetime import datetime

import pytest
from pydantic import ValidationError

from chat_script_engine.models.chat import ChatContext, ChatMessage, ComponentRef
from chat_script_engine.models.enums import (
    ErrorCode,
    MessageRole,
    RunStatus,
    TransitionStatus,
)
from chat_script_engine.models.outcome import StepError, StepResult
from chat_script_engine.models.script import (
    ComponentConfig,
    ScriptDefinition,
    ScriptExecutionContext,
    ScriptStep,
)


class TestChatMessage:
    def test_assistant_message(self):
        message = ChatMessage.assistant(
            "Pick a method",
            component=ComponentRef(type="input-method-selector", props={"a": 1}),
            metadata={"step_id": "s1"},
        )
        assert message.role == MessageRole.ASSISTANT.value
        assert message.id.startswith("msg-")
        assert isinstance(message.timestamp, datetime)

        payload = message.to_payload()
        assert payload["component"] == {
            "type": "input-method-selector",
            "props": {"a": 1},
        }
        assert payload["metadata"] == {"step_id": "s1"}
        assert payload["role"] == "assistant"

    def test_payload_omits_absent_keys(self):
        payload = ChatMessage.user("hello").to_payload()
        assert set(payload) == {"id", "role", "content", "timestamp"}

    def test_ids_are_unique(self):
        assert ChatMessage.user("a").id != ChatMessage.user("a").id

    def test_messages_are_immutable(self):
        message = ChatMessage.user("a")
        with pytest.raises(ValidationError):
            message.content = "b"


class TestScriptModels:
    def test_definition_helpers(self):
        steps = tuple(
            ScriptStep(id=s, display_name=s, prompt_message=s) for s in "abc"
        )
        definition = ScriptDefinition(id="x", feature="f", steps=steps)
        assert definition.total_steps == 3
        assert definition.step_at(1).id == "b"
        assert definition.step_at(3) is None
        assert definition.step_at(-1) is None

    def test_component_config_requires_key(self):
        with pytest.raises(ValidationError):
            ComponentConfig(type_key="")

    def test_execution_context(self):
        context = ScriptExecutionContext(script_id="x")
        assert context.status == RunStatus.NOT_STARTED
        assert context.definition is None
        assert not context.is_active

        context.accumulated_data = {"b": 2, "a": 1, "pending": 3}
        context.completed_step_ids = ["a", "b"]
        assert list(context.collected()) == ["a", "b"]

        with pytest.raises(ValidationError):
            context.current_step_index = -1
        with pytest.raises(ValidationError):
            ScriptExecutionContext(script_id="x", unknown=1)

    def test_chat_context(self):
        context = ChatContext(feature="matching")
        assert context.data == {}
        assert context.script is None


class TestStepResult:
    def test_ok(self):
        message = ChatMessage.assistant("next")
        assert StepResult(
            status=TransitionStatus.ADVANCED, step_id="a", message=message
        ).ok
        failed = StepResult(
            status=TransitionStatus.VALIDATION_FAILED,
            step_id="a",
            message=message,
            error=StepError(code=ErrorCode.VALIDATION_FAILED, detail="bad"),
        )
        assert not failed.ok
        assert failed.error.code == "step.validation_failed"
