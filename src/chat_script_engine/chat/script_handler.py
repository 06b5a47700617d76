"""Chat handler that drives a script definition through the runner.

Feature handlers for guided flows subclass `ScriptChatHandler` and only
customize how free text maps to step data and how completion is announced.
"""

from typing import Any, Iterable, Optional

from chat_script_engine.chat.handler import ChatHandler
from chat_script_engine.config import EngineConfig
from chat_script_engine.execution.errors import NavigationRejected
from chat_script_engine.execution.runner import ScriptRunner
from chat_script_engine.execution.steps import ConfirmationValidator
from chat_script_engine.models.base import Translator, identity_translator
from chat_script_engine.models.chat import ChatContext, ChatMessage
from chat_script_engine.models.enums import TransitionStatus
from chat_script_engine.models.outcome import StepResult
from chat_script_engine.models.script import ScriptDefinition, ScriptStep
from chat_script_engine.observability.logging import get_logger

logger = get_logger(__name__)


class ScriptChatHandler(ChatHandler):
    """
    ChatHandler backed by a ScriptDefinition.

    Free text becomes `{step.text_key: text}` for the current step. Steps
    listed in `text_passthrough_steps` are "select a method" steps: typed text
    completes them with `{"method": "text"}` and is then submitted to the
    following step, so users can skip the selector and type directly.
    """

    def __init__(
        self,
        definition: ScriptDefinition,
        runner: ScriptRunner,
        *,
        config: Optional[EngineConfig] = None,
        name: str = "",
        initial_message: Optional[str] = None,
        text_passthrough_steps: Iterable[str] = (),
        translate: Translator = identity_translator,
    ) -> None:
        definition.check_structure()
        self.definition = definition
        self.runner = runner
        self.config = config or EngineConfig()
        self.feature = definition.feature
        self.name = name or definition.name or definition.id
        self.initial_message = initial_message
        self.text_passthrough_steps = frozenset(text_passthrough_steps)
        self.t = translate

    # -------------------- lifecycle --------------------

    async def start(self, context: ChatContext) -> ChatMessage:
        run, message = await self.runner.start(self.definition)
        context.script = run
        context.data["stepIndex"] = run.current_step_index
        return message

    def cancel(self, context: ChatContext) -> ChatMessage:
        self.runner.abort(context.script)
        context.data["stepIndex"] = 0
        return ChatMessage.assistant(
            self.t("chat.cancelled", self.config.cancelled_message)
        )

    def go_back(self, context: ChatContext) -> ChatMessage:
        run = context.script
        if run is None or not run.is_active:
            raise NavigationRejected(int(context.data.get("stepIndex", 0)))
        self.runner.go_back(run, self)
        context.data["stepIndex"] = run.current_step_index
        return self.runner.step_message(run)

    # -------------------- events --------------------

    async def handle_message(
        self, text: str, context: ChatContext
    ) -> Optional[ChatMessage]:
        run = context.script
        if run is None or not run.is_active:
            logger.info(
                f"No active run for {self.definition.id}, starting a new one",
                extra={"extra_fields": {"feature": self.feature}},
            )
            return await self.start(context)

        normalized = text.strip().lower()
        if normalized in self.config.cancel_keywords:
            return self.cancel(context)

        if normalized in self.config.retry_keywords and (
            run.pending_hook is not None or run.finalize_pending
        ):
            return self._reply(await self.runner.retry_completion(run), context)

        step = self.runner.current_step(run)
        if self._is_refusal(step, text):
            return self.cancel(context)
        if step is not None and step.id in self.text_passthrough_steps:
            result = await self.runner.submit_step_data(run, {"method": "text"})
            if result.status != TransitionStatus.ADVANCED:
                return self._reply(result, context)
            step = self.runner.current_step(run)

        result = await self.runner.submit_step_data(
            run, self.text_to_step_data(step, text)
        )
        return self._reply(result, context)

    async def handle_component_update(
        self, message_id: str, data: dict[str, Any], context: ChatContext
    ) -> Optional[ChatMessage]:
        run = context.script
        if run is None or not run.is_active:
            return None
        if data.get("action") == "cancel":
            return self.cancel(context)

        step = self.runner.current_step(run)
        nested = data.get("data")
        if (
            step is not None
            and step.id in self.text_passthrough_steps
            and isinstance(nested, dict)
            and nested
        ):
            # the selector already carries the next step's input (e.g. files)
            outer = {k: v for k, v in data.items() if k != "data"}
            result = await self.runner.submit_step_data(run, outer)
            if result.status == TransitionStatus.ADVANCED:
                result = await self.runner.submit_step_data(run, dict(nested))
        else:
            result = await self.runner.submit_step_data(run, data)
        return self._reply(result, context)

    def text_to_step_data(
        self, step: Optional[ScriptStep], text: str
    ) -> dict[str, Any]:
        key = step.text_key if step is not None else "text"
        return {key: text.strip()}

    def _is_refusal(self, step: Optional[ScriptStep], text: str) -> bool:
        # on confirm steps a refusal anywhere in the text wins over a confirm word
        if step is None or not isinstance(step.validator, ConfirmationValidator):
            return False
        return step.validator.is_refusal(self.text_to_step_data(step, text))

    def completion_reply(
        self, result: StepResult, context: ChatContext
    ) -> ChatMessage:
        """Message shown when the run completes. Subclasses summarize results."""
        return result.message

    def _reply(self, result: StepResult, context: ChatContext) -> ChatMessage:
        context.data["stepIndex"] = context.script.current_step_index
        if result.status == TransitionStatus.COMPLETED:
            return self.completion_reply(result, context)
        return result.message

    # -------------------- step structure --------------------

    def get_initial_message(self) -> str:
        return self.initial_message or self.definition.steps[0].prompt_message

    def get_step_message(self, step_index: int) -> str:
        step = self.definition.step_at(step_index)
        return step.prompt_message if step is not None else ""

    def can_go_back(self, step_index: int) -> bool:
        return step_index > 0

    def get_total_steps(self) -> int:
        return self.definition.total_steps
