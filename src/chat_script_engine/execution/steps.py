"""Polymorphic step behaviors: validators and completion hooks.

Every step may carry one `StepValidator` and one `StepHook`; every script may
carry `ScriptHook`s for start and completion. Each interface has a callable
adapter so ad-hoc functions can be used where a class would be overkill.
Implementations may be synchronous or return an awaitable.
"""

import inspect
import re
from abc import ABC, abstractmethod
from typing import (
    TYPE_CHECKING,
    Any,
    Awaitable,
    Callable,
    Iterable,
    Optional,
    Union,
)

import jsonschema

from chat_script_engine.execution.errors import ValidationFailure
from chat_script_engine.models.validation import ValidationOutcome

if TYPE_CHECKING:
    from chat_script_engine.models.script import ScriptExecutionContext


async def maybe_await(value: Any) -> Any:
    if inspect.isawaitable(value):
        return await value
    return value


def contains_keyword(text: str, keywords: Iterable[str]) -> bool:
    """Whether any keyword occurs in `text` as a whole word or phrase."""
    return any(
        re.search(rf"(?<!\w){re.escape(k)}(?!\w)", text) for k in keywords if k
    )


class StepValidator(ABC):
    """Decides whether the data submitted for a step is acceptable."""

    @abstractmethod
    def validate(
        self, data: dict[str, Any]
    ) -> Union[ValidationOutcome, Awaitable[ValidationOutcome]]:
        """Validates the raw data submitted for a step.

        Args:
            data: The mapping submitted by the user or a component.

        Returns:
            A ValidationOutcome, or an awaitable resolving to one.
        """
        pass  # pragma: no cover


class AlwaysValid(StepValidator):
    def validate(self, data: dict[str, Any]) -> ValidationOutcome:
        return ValidationOutcome.success()


class RequiredAnyOf(StepValidator):
    """Accepts data that carries a truthy value for at least one key."""

    def __init__(self, keys: list[str], message: Optional[str] = None):
        if not keys:
            raise ValueError("RequiredAnyOf needs at least one key")
        self.keys = list(keys)
        self.message = message

    def validate(self, data: dict[str, Any]) -> ValidationOutcome:
        if any(data.get(k) for k in self.keys):
            return ValidationOutcome.success()
        return ValidationOutcome.failure(
            self.message or f"Please provide one of: {', '.join(self.keys)}"
        )


class JsonSchemaValidator(StepValidator):
    """Validates step data against a JSON Schema document."""

    def __init__(self, schema: dict[str, Any], message: Optional[str] = None):
        jsonschema.Draft202012Validator.check_schema(schema)
        self.schema = schema
        self.message = message

    def validate(self, data: dict[str, Any]) -> ValidationOutcome:
        try:
            jsonschema.validate(instance=data, schema=self.schema)
        except jsonschema.ValidationError as e:
            return ValidationOutcome.failure(self.message or e.message)
        return ValidationOutcome.success()


class ConfirmationValidator(StepValidator):
    """Accepts `{"confirmed": True}` or text containing a confirm keyword.

    Text containing any of `refusals` is rejected even when it also contains
    a confirm keyword, so "không lưu" or "no, don't save" never confirm.
    """

    def __init__(
        self,
        keywords: Iterable[str],
        message: Optional[str] = None,
        text_key: str = "text",
        refusals: Iterable[str] = (),
    ):
        self.keywords = tuple(k.lower() for k in keywords)
        self.refusals = tuple(k.lower() for k in refusals)
        self.message = message
        self.text_key = text_key

    def _text(self, data: dict[str, Any]) -> str:
        return str(data.get(self.text_key) or "").strip().lower()

    def is_refusal(self, data: dict[str, Any]) -> bool:
        return data.get("confirmed") is False or contains_keyword(
            self._text(data), self.refusals
        )

    def validate(self, data: dict[str, Any]) -> ValidationOutcome:
        if data.get("confirmed") is True:
            return ValidationOutcome.success()
        if self.is_refusal(data):
            return ValidationOutcome.failure(self.message)
        if contains_keyword(self._text(data), self.keywords):
            return ValidationOutcome.success()
        return ValidationOutcome.failure(self.message)


class CallableValidator(StepValidator):
    """Adapts a plain function to the StepValidator interface.

    The function may return a ValidationOutcome, `True`/`None` (success),
    `False` (generic failure) or a string (failure reason), or raise
    `ValidationFailure`.
    """

    def __init__(self, fn: Callable[[dict[str, Any]], Any]):
        self.fn = fn

    async def validate(self, data: dict[str, Any]) -> ValidationOutcome:
        try:
            result = await maybe_await(self.fn(data))
        except ValidationFailure as e:
            return ValidationOutcome.failure(e.reason)
        return ValidationOutcome.coerce(result)


def validator_from_spec(spec: dict[str, Any]) -> StepValidator:
    """Builds a validator from its declarative form.

    Supported shapes:
        {"required_any": ["candidateText", "files"], "message": "..."}
        {"schema": {...JSON Schema...}, "message": "..."}
        {"confirm": ["yes", "ok"], "refuse": ["no"], "message": "..."}
        {"always": true}
    """
    message = spec.get("message")
    if "required_any" in spec:
        return RequiredAnyOf(spec["required_any"], message)
    if "schema" in spec:
        return JsonSchemaValidator(spec["schema"], message)
    if "confirm" in spec:
        return ConfirmationValidator(
            spec["confirm"],
            message,
            text_key=spec.get("text_key", "text"),
            refusals=spec.get("refuse", ()),
        )
    if spec.get("always"):
        return AlwaysValid()
    raise ValueError(f"Unrecognized validator spec keys: {sorted(spec)}")


class StepHook(ABC):
    """Side effect run after a step's data has been accepted."""

    @abstractmethod
    def on_complete(
        self, data: dict[str, Any], context: "ScriptExecutionContext"
    ) -> Optional[Awaitable[None]]:
        """Runs the step's side effect.

        Args:
            data: The accepted data for the step.
            context: The live execution context. Hooks may write derived
                values into `context.artifacts`.

        Raises:
            Any exception; the runner reports it as a hook failure.
        """
        pass  # pragma: no cover


class CallableStepHook(StepHook):
    def __init__(
        self, fn: Callable[[dict[str, Any], "ScriptExecutionContext"], Any]
    ):
        self.fn = fn

    async def on_complete(
        self, data: dict[str, Any], context: "ScriptExecutionContext"
    ) -> None:
        await maybe_await(self.fn(data, context))


class ScriptHook(ABC):
    """Lifecycle hook run when a script starts or completes."""

    @abstractmethod
    def run(
        self, context: "ScriptExecutionContext"
    ) -> Optional[Awaitable[None]]:
        pass  # pragma: no cover


class CallableScriptHook(ScriptHook):
    def __init__(self, fn: Callable[["ScriptExecutionContext"], Any]):
        self.fn = fn

    async def run(self, context: "ScriptExecutionContext") -> None:
        await maybe_await(self.fn(context))
