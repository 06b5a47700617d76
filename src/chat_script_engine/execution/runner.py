"""Script Runner: the state machine driving one script run.

A run moves NOT_STARTED -> RUNNING -> COMPLETED, or to ABORTED from RUNNING.
Each call to `submit_step_data` is one transition: validate the data, record
it, run the step's completion hook, then advance. Validation and hook
failures come back as `StepResult` values; they are never raised.
"""

from typing import Any, Optional, Protocol

from chat_script_engine.config import EngineConfig
from chat_script_engine.execution.errors import (
    HookFailure,
    NavigationRejected,
    NothingToRetry,
    ScriptNotRunning,
    TransitionInProgress,
    ValidationFailure,
)
from chat_script_engine.execution.steps import maybe_await
from chat_script_engine.models.chat import ChatMessage, ComponentRef
from chat_script_engine.models.enums import (
    ErrorCode,
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
from chat_script_engine.models.validation import ValidationOutcome
from chat_script_engine.observability.logging import get_logger
from chat_script_engine.registry.components import (
    ComponentRegistry,
    RegisteredComponent,
    UnregisteredComponent,
)

logger = get_logger(__name__)


class BackNavigationPolicy(Protocol):
    def can_go_back(self, step_index: int) -> bool: ...


class ScriptRunner:
    """
    Advances and rewinds ScriptExecutionContexts against their definitions.

    The runner keeps no per-run state; everything lives on the context. It
    does not lock: callers serialize calls per context, and a call made while
    another transition on the same context is still awaiting a hook is
    rejected with TransitionInProgress.
    """

    def __init__(
        self,
        components: ComponentRegistry,
        *,
        config: Optional[EngineConfig] = None,
    ) -> None:
        self._components = components
        self._config = config or EngineConfig()

    @property
    def components(self) -> ComponentRegistry:
        return self._components

    # -------------------- lifecycle --------------------

    async def start(
        self, definition: ScriptDefinition
    ) -> tuple[ScriptExecutionContext, ChatMessage]:
        """Starts a new run of `definition`.

        Returns:
            The new context (RUNNING at step 0) and the first step's message.

        Raises:
            InvalidScriptDefinition: If the definition is malformed.
            HookFailure: If the definition's on_start hook raises.
        """
        definition.check_structure()
        context = ScriptExecutionContext(script_id=definition.id)
        context.bind(definition)

        if definition.on_start is not None:
            try:
                await maybe_await(definition.on_start.run(context))
            except HookFailure:
                raise
            except Exception as e:
                logger.exception(
                    f"on_start hook failed for script {definition.id}",
                    extra={"extra_fields": {"script_id": definition.id}},
                )
                raise HookFailure(str(e) or type(e).__name__) from e

        context.current_step_index = 0
        context.status = RunStatus.RUNNING
        logger.info(
            f"Script {definition.id} started",
            extra={
                "extra_fields": {
                    "script_id": definition.id,
                    "feature": definition.feature,
                    "total_steps": definition.total_steps,
                }
            },
        )
        return context, self.step_message(context)

    def abort(self, context: ScriptExecutionContext) -> None:
        """Aborts a run. No hooks are invoked and collected data is dropped.

        A hook already in flight is not interrupted, but its transition will
        not be applied.
        """
        if context.status in (RunStatus.COMPLETED, RunStatus.ABORTED):
            raise ScriptNotRunning(context.script_id, context.status.value)
        context.status = RunStatus.ABORTED
        context.accumulated_data = {}
        context.completed_step_ids = []
        context.artifacts = {}
        context.pending_hook = None
        context.finalize_pending = False
        logger.info(
            f"Script {context.script_id} aborted",
            extra={"extra_fields": {"script_id": context.script_id}},
        )

    # -------------------- transitions --------------------

    async def submit_step_data(
        self, context: ScriptExecutionContext, data: dict[str, Any]
    ) -> StepResult:
        """Submits data for the current step.

        A submission while the script-level completion hook awaits retry
        retries that hook; the data is ignored.
        """
        definition = self._guard(context)
        if context.finalize_pending:
            return await self._with_flight(context, self._finalize(context))

        step = definition.steps[context.current_step_index]
        return await self._with_flight(
            context, self._submit(context, step, dict(data))
        )

    async def retry_completion(
        self, context: ScriptExecutionContext
    ) -> StepResult:
        """Re-runs a failed completion hook without asking for new input.

        Raises:
            NothingToRetry: If no hook failure is pending.
        """
        definition = self._guard(context)
        if context.finalize_pending:
            return await self._with_flight(context, self._finalize(context))
        if context.pending_hook is None:
            raise NothingToRetry(context.script_id)

        step = definition.steps[context.current_step_index]
        data = context.accumulated_data[step.id]
        logger.info(
            f"Retrying completion hook of step {step.id}",
            extra={
                "extra_fields": {
                    "script_id": context.script_id,
                    "step_id": step.id,
                }
            },
        )
        return await self._with_flight(
            context, self._complete_step(context, step, data)
        )

    def go_back(
        self,
        context: ScriptExecutionContext,
        policy: BackNavigationPolicy,
    ) -> ScriptExecutionContext:
        """Returns to the previous step, discarding its data.

        Args:
            context: The run to rewind.
            policy: Feature-specific rule, usually the chat handler.

        Raises:
            NavigationRejected: If the policy forbids it or the run is at the
                first step. The context is left unchanged.
        """
        self._guard(context)
        index = context.current_step_index
        if index == 0 or not policy.can_go_back(index):
            raise NavigationRejected(index)

        definition = context.definition
        leaving = definition.steps[index] if index < definition.total_steps else None
        target = definition.steps[index - 1]

        if leaving is not None:
            context.accumulated_data.pop(leaving.id, None)
        context.accumulated_data.pop(target.id, None)
        if target.id in context.completed_step_ids:
            context.completed_step_ids.remove(target.id)
        context.pending_hook = None
        context.finalize_pending = False
        context.current_step_index = index - 1

        logger.info(
            f"Script {context.script_id} went back to step {target.id}",
            extra={
                "extra_fields": {
                    "script_id": context.script_id,
                    "step_id": target.id,
                }
            },
        )
        return context

    # -------------------- messages --------------------

    def current_step(
        self, context: ScriptExecutionContext
    ) -> Optional[ScriptStep]:
        definition = context.definition
        if definition is None or context.status != RunStatus.RUNNING:
            return None
        return definition.step_at(context.current_step_index)

    def progress(self, context: ScriptExecutionContext) -> tuple[int, int]:
        """Returns (1-based number of the current step, total steps)."""
        total = context.definition.total_steps if context.definition else 0
        return min(context.current_step_index + 1, total), total

    def step_message(
        self,
        context: ScriptExecutionContext,
        *,
        reason: Optional[str] = None,
    ) -> ChatMessage:
        """Builds the prompt message for the current step.

        Args:
            context: The run whose current step is prompted.
            reason: Failure reason to show above the prompt on a re-prompt.
        """
        definition = context.definition
        step = definition.steps[context.current_step_index]
        content = step.prompt_message
        if reason:
            content = f"{reason}\n\n{step.prompt_message}"

        component = None
        if step.component is not None:
            component = self.resolve_component(step.component, context)

        metadata: dict[str, Any] = {
            "script_id": definition.id,
            "step_id": step.id,
            "step_index": context.current_step_index,
            "total_steps": definition.total_steps,
        }
        if reason:
            metadata["error"] = reason
        return ChatMessage.assistant(
            content, component=component, metadata=metadata
        )

    def resolve_component(
        self, config: ComponentConfig, context: ScriptExecutionContext
    ) -> Optional[ComponentRef]:
        """Resolves a step's component against the registry.

        Unregistered keys yield None so the message degrades to plain text.
        """
        lookup = self._components.get(config.type_key)
        match lookup:
            case UnregisteredComponent(type_key=type_key):
                logger.warning(
                    f"Component not registered, sending plain text: {type_key}",
                    extra={
                        "extra_fields": {
                            "code": ErrorCode.COMPONENT_NOT_REGISTERED.value,
                            "type_key": type_key,
                            "script_id": context.script_id,
                        }
                    },
                )
                return None
            case RegisteredComponent(default_params=defaults):
                props = {**defaults, **config.params}
                for name, artifact_key in config.artifact_params.items():
                    if artifact_key in context.artifacts:
                        props[name] = context.artifacts[artifact_key]
                return ComponentRef(type=config.type_key, props=props or None)

    # -------------------- internals --------------------

    def _guard(self, context: ScriptExecutionContext) -> ScriptDefinition:
        if context.status != RunStatus.RUNNING or context.definition is None:
            raise ScriptNotRunning(context.script_id, context.status.value)
        if context.in_flight:
            raise TransitionInProgress(context.script_id)
        return context.definition

    def _check_not_aborted(
        self,
        context: ScriptExecutionContext,
        cause: Optional[BaseException] = None,
    ) -> None:
        """Drops whatever a hook wrote after the run was aborted under it."""
        if context.status == RunStatus.RUNNING:
            return
        context.accumulated_data = {}
        context.completed_step_ids = []
        context.artifacts = {}
        context.pending_hook = None
        context.finalize_pending = False
        raise ScriptNotRunning(context.script_id, context.status.value) from cause

    async def _with_flight(self, context, transition) -> StepResult:
        context.in_flight = True
        try:
            return await transition
        finally:
            context.in_flight = False

    async def _validate(
        self, step: ScriptStep, data: dict[str, Any]
    ) -> ValidationOutcome:
        if step.validator is None:
            return ValidationOutcome.success()
        try:
            result = await maybe_await(step.validator.validate(data))
        except ValidationFailure as e:
            return ValidationOutcome.failure(e.reason)
        return ValidationOutcome.coerce(result)

    async def _submit(
        self,
        context: ScriptExecutionContext,
        step: ScriptStep,
        data: dict[str, Any],
    ) -> StepResult:
        outcome = await self._validate(step, data)
        if not outcome.ok:
            reason = outcome.reason or self._config.invalid_data_message
            logger.info(
                f"Validation failed for step {step.id}",
                extra={
                    "extra_fields": {
                        "script_id": context.script_id,
                        "step_id": step.id,
                        "reason": reason,
                    }
                },
            )
            return StepResult(
                status=TransitionStatus.VALIDATION_FAILED,
                step_id=step.id,
                message=self.step_message(context, reason=reason),
                error=StepError(
                    code=ErrorCode.VALIDATION_FAILED, detail=reason
                ),
            )

        if context.status != RunStatus.RUNNING:
            raise ScriptNotRunning(context.script_id, context.status.value)
        context.accumulated_data[step.id] = data
        return await self._complete_step(context, step, data)

    async def _complete_step(
        self,
        context: ScriptExecutionContext,
        step: ScriptStep,
        data: dict[str, Any],
    ) -> StepResult:
        context.pending_hook = step.id
        if step.on_complete is not None:
            try:
                await maybe_await(step.on_complete.on_complete(data, context))
            except Exception as e:
                self._check_not_aborted(context, e)
                return self._hook_failed(context, step, e)

        self._check_not_aborted(context)

        context.pending_hook = None
        if step.id not in context.completed_step_ids:
            context.completed_step_ids.append(step.id)
        context.current_step_index += 1
        logger.info(
            f"Step {step.id} completed",
            extra={
                "extra_fields": {
                    "script_id": context.script_id,
                    "step_id": step.id,
                }
            },
        )

        if context.current_step_index >= context.definition.total_steps:
            return await self._finalize(context)
        return StepResult(
            status=TransitionStatus.ADVANCED,
            step_id=step.id,
            message=self.step_message(context),
        )

    def _hook_failed(
        self,
        context: ScriptExecutionContext,
        step: ScriptStep,
        exc: Exception,
    ) -> StepResult:
        if isinstance(exc, HookFailure):
            detail = exc.detail
            reason = exc.detail
        else:
            detail = str(exc) or type(exc).__name__
            reason = self._config.hook_failure_message
        logger.warning(
            f"on_complete hook failed for step {step.id}: {detail}",
            exc_info=exc,
            extra={
                "extra_fields": {
                    "script_id": context.script_id,
                    "step_id": step.id,
                }
            },
        )
        return StepResult(
            status=TransitionStatus.HOOK_FAILED,
            step_id=step.id,
            message=self.step_message(context, reason=reason),
            error=StepError(code=ErrorCode.HOOK_FAILED, detail=detail),
        )

    async def _finalize(self, context: ScriptExecutionContext) -> StepResult:
        definition = context.definition
        last_step_id = definition.steps[-1].id
        context.finalize_pending = True

        if definition.on_complete is not None:
            try:
                await maybe_await(definition.on_complete.run(context))
            except Exception as e:
                self._check_not_aborted(context, e)
                if isinstance(e, HookFailure):
                    detail = reason = e.detail
                else:
                    detail = str(e) or type(e).__name__
                    reason = self._config.hook_failure_message
                logger.warning(
                    f"on_complete hook failed for script {definition.id}: {detail}",
                    exc_info=e,
                    extra={"extra_fields": {"script_id": definition.id}},
                )
                return StepResult(
                    status=TransitionStatus.HOOK_FAILED,
                    step_id=last_step_id,
                    message=ChatMessage.assistant(
                        reason,
                        metadata={"script_id": definition.id, "error": reason},
                    ),
                    error=StepError(code=ErrorCode.HOOK_FAILED, detail=detail),
                )

        self._check_not_aborted(context)
        context.finalize_pending = False
        context.status = RunStatus.COMPLETED
        logger.info(
            f"Script {definition.id} completed",
            extra={"extra_fields": {"script_id": definition.id}},
        )
        return StepResult(
            status=TransitionStatus.COMPLETED,
            step_id=last_step_id,
            message=ChatMessage.assistant(
                definition.completion_message
                or self._config.completion_message,
                metadata={
                    "script_id": definition.id,
                    "data": context.collected(),
                },
            ),
        )
