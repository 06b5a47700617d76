"""Data models for reporting step transition outcomes.

This module defines the structures returned by the Script Runner after an
attempt to submit data for a step.
"""

from typing import Optional

from pydantic import BaseModel, ConfigDict, Field

from chat_script_engine.models.chat import ChatMessage
from chat_script_engine.models.enums import ErrorCode, TransitionStatus


class StepError(BaseModel):
    """Details regarding a rejected or failed transition.

    Attributes:
        code: Machine-readable error code.
        detail: Human-readable explanation of the error.
    """

    model_config = ConfigDict(use_enum_values=True)

    code: ErrorCode = Field(..., description="Machine-readable error code.")
    detail: str = Field(
        ..., description="Human-readable explanation of the error."
    )


class StepResult(BaseModel):
    """The result of a step transition attempt.

    Attributes:
        status: Outcome of the transition.
        step_id: Step the data was submitted for.
        message: Message to append to the transcript (next prompt,
            re-prompt with reason, or completion notice).
        error: Error details when validation or a hook failed.
    """

    model_config = ConfigDict(use_enum_values=True)

    status: TransitionStatus = Field(
        ..., description="Outcome of the transition."
    )
    step_id: Optional[str] = Field(
        default=None,
        description="Step the data was submitted for.",
    )
    message: ChatMessage = Field(
        ..., description="Message to append to the transcript."
    )
    error: Optional[StepError] = Field(
        default=None,
        description="Error details when validation or a hook failed.",
    )

    @property
    def ok(self) -> bool:
        return self.error is None
