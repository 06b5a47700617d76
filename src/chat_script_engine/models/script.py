"""Data models for scripts, their steps, and script runs.

A `ScriptDefinition` is an immutable, ordered list of `ScriptStep`s for one
feature. A `ScriptExecutionContext` is the mutable state of a single run of a
definition, owned by exactly one chat session.
"""

from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, Field, PrivateAttr, field_validator

from chat_script_engine.execution.errors import InvalidScriptDefinition
from chat_script_engine.execution.steps import (
    CallableScriptHook,
    CallableStepHook,
    CallableValidator,
    ScriptHook,
    StepHook,
    StepValidator,
    validator_from_spec,
)
from chat_script_engine.models.base import ModelBase
from chat_script_engine.models.enums import RunStatus


class ComponentConfig(BaseModel):
    """UI fragment a step asks the rendering layer to attach.

    Attributes:
        type_key: Component Registry key of the fragment.
        params: Static parameters, merged over the registry defaults.
        artifact_params: Parameters filled at render time from
            `ScriptExecutionContext.artifacts`, as {param name: artifact key}.
    """

    model_config = ConfigDict(frozen=True, extra="forbid")

    type_key: str = Field(
        ..., min_length=1, description="Component Registry key of the fragment."
    )
    params: dict[str, Any] = Field(
        default_factory=dict,
        description="Static parameters, merged over the registry defaults.",
    )
    artifact_params: dict[str, str] = Field(
        default_factory=dict,
        description="Parameters filled at render time from run artifacts.",
    )


class ScriptStep(BaseModel):
    """One step of a script.

    Attributes:
        id: Identifier, unique within its script.
        display_name: Short human-readable name.
        prompt_message: Text shown when the step becomes current.
        component: Optional UI fragment shown with the prompt.
        validator: Optional check run on submitted data.
        on_complete: Optional side effect run once the data is accepted.
        text_key: Key free-text input is stored under for this step.
    """

    model_config = ConfigDict(
        frozen=True, extra="forbid", arbitrary_types_allowed=True
    )

    id: str = Field(..., min_length=1, description="Identifier, unique within its script.")
    display_name: str = Field(..., description="Short human-readable name.")
    prompt_message: str = Field(
        ..., description="Text shown when the step becomes current."
    )
    component: Optional[ComponentConfig] = Field(
        default=None, description="Optional UI fragment shown with the prompt."
    )
    validator: Optional[StepValidator] = Field(
        default=None, description="Optional check run on submitted data."
    )
    on_complete: Optional[StepHook] = Field(
        default=None,
        description="Optional side effect run once the data is accepted.",
    )
    text_key: str = Field(
        default="text",
        description="Key free-text input is stored under for this step.",
    )

    @field_validator("validator", mode="before")
    @classmethod
    def _wrap_validator(cls, value: Any) -> Any:
        if value is None or isinstance(value, StepValidator):
            return value
        if isinstance(value, dict):
            return validator_from_spec(value)
        if callable(value):
            return CallableValidator(value)
        raise ValueError("validator must be a StepValidator, spec dict or callable")

    @field_validator("on_complete", mode="before")
    @classmethod
    def _wrap_hook(cls, value: Any) -> Any:
        if value is None or isinstance(value, StepHook):
            return value
        if callable(value):
            return CallableStepHook(value)
        raise ValueError("on_complete must be a StepHook or callable")


class ScriptDefinition(BaseModel):
    """Immutable description of a guided chat script.

    Structural invariants (non-empty steps, unique step ids) are checked by
    `check_structure`, which the definition store and the runner call before
    accepting a definition.

    Attributes:
        id: Script identifier.
        name: Human-readable script name.
        feature: Feature tag the script serves.
        steps: Ordered steps.
        on_start: Hook run when a run starts.
        on_complete: Hook run once after the last step completes.
        completion_message: Text emitted when the run completes.
    """

    model_config = ConfigDict(
        frozen=True, extra="forbid", arbitrary_types_allowed=True
    )

    id: str = Field(..., description="Script identifier.")
    name: str = Field(default="", description="Human-readable script name.")
    feature: str = Field(..., description="Feature tag the script serves.")
    steps: tuple[ScriptStep, ...] = Field(..., description="Ordered steps.")
    on_start: Optional[ScriptHook] = Field(
        default=None, description="Hook run when a run starts."
    )
    on_complete: Optional[ScriptHook] = Field(
        default=None,
        description="Hook run once after the last step completes.",
    )
    completion_message: Optional[str] = Field(
        default=None, description="Text emitted when the run completes."
    )

    @field_validator("on_start", "on_complete", mode="before")
    @classmethod
    def _wrap_script_hook(cls, value: Any) -> Any:
        if value is None or isinstance(value, ScriptHook):
            return value
        if callable(value):
            return CallableScriptHook(value)
        raise ValueError("script hooks must be a ScriptHook or callable")

    @property
    def total_steps(self) -> int:
        return len(self.steps)

    def check_structure(self) -> None:
        if not self.steps:
            raise InvalidScriptDefinition(
                f"Script `{self.id}` must define at least one step"
            )
        seen: set[str] = set()
        for step in self.steps:
            if step.id in seen:
                raise InvalidScriptDefinition(
                    f"Script `{self.id}` has duplicate step id `{step.id}`"
                )
            seen.add(step.id)

    def step_at(self, index: int) -> Optional[ScriptStep]:
        if 0 <= index < len(self.steps):
            return self.steps[index]
        return None


class ScriptExecutionContext(ModelBase):
    """
    Mutable state of one script run, owned by a single chat session.

    Invariants maintained by the runner:
    - completed_step_ids are ids of steps before current_step_index;
    - accumulated_data keys are completed ids plus, after a hook failure,
      the current step id.
    """

    script_id: str = Field(..., description="Definition being run.")
    status: RunStatus = Field(
        default=RunStatus.NOT_STARTED, description="Lifecycle state of the run."
    )
    current_step_index: int = Field(
        default=0, ge=0, description="Index of the step awaiting input."
    )
    accumulated_data: dict[str, Any] = Field(
        default_factory=dict,
        description="Accepted data keyed by step id.",
    )
    completed_step_ids: list[str] = Field(
        default_factory=list,
        description="Steps whose data was accepted and hooks succeeded, in order.",
    )
    artifacts: dict[str, Any] = Field(
        default_factory=dict,
        description="Values produced by hooks (e.g. a parsed candidate).",
    )
    pending_hook: Optional[str] = Field(
        default=None,
        description="Step id whose on_complete hook failed and awaits retry.",
    )
    finalize_pending: bool = Field(
        default=False,
        description="Whether the script-level on_complete hook failed and awaits retry.",
    )
    in_flight: bool = Field(
        default=False,
        description="Whether a transition is currently being processed.",
    )

    _definition: Optional[ScriptDefinition] = PrivateAttr(default=None)

    @property
    def is_active(self) -> bool:
        return self.status == RunStatus.RUNNING

    def collected(self) -> dict[str, Any]:
        """Returns the accepted data of completed steps, in step order."""
        return {
            step_id: self.accumulated_data[step_id]
            for step_id in self.completed_step_ids
            if step_id in self.accumulated_data
        }

    @property
    def definition(self) -> Optional[ScriptDefinition]:
        return self._definition

    def bind(self, definition: ScriptDefinition) -> None:
        self._definition = definition
