from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, Field


class ValidationOutcome(BaseModel):
    """Result of validating the data submitted for one step.

    Attributes:
        ok: Whether the data was accepted.
        reason: Human-readable failure reason; None when accepted.
    """

    model_config = ConfigDict(frozen=True)

    ok: bool = Field(..., description="Whether the data was accepted.")
    reason: Optional[str] = Field(
        default=None,
        description="Human-readable failure reason; None when accepted.",
    )

    @classmethod
    def success(cls) -> "ValidationOutcome":
        return cls(ok=True)

    @classmethod
    def failure(cls, reason: Optional[str] = None) -> "ValidationOutcome":
        return cls(ok=False, reason=reason)

    @classmethod
    def coerce(cls, value: Any) -> "ValidationOutcome":
        """Normalizes a validator return value.

        `True`/`None` mean success, `False` is a failure without a reason,
        and a string is a failure whose text is the reason.
        """
        if isinstance(value, ValidationOutcome):
            return value
        if value is None or value is True:
            return cls.success()
        if value is False:
            return cls.failure()
        if isinstance(value, str):
            return cls.failure(value)
        raise TypeError(
            f"Unsupported validation result type: {type(value).__name__}"
        )
