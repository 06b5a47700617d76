from chat_script_engine.models.enums import ErrorCode


class ScriptEngineError(Exception):
    def __init__(self, code: ErrorCode, detail: str):
        self.code = code
        self.detail = detail
        super().__init__(detail)


class InvalidScriptDefinition(ScriptEngineError):
    def __init__(self, detail: str):
        super().__init__(ErrorCode.INVALID_SCRIPT, detail)


class UnknownFeature(ScriptEngineError):
    def __init__(self, feature: str):
        self.feature = feature
        super().__init__(
            ErrorCode.UNKNOWN_FEATURE,
            f"No chat handler registered for feature: {feature}",
        )


class ComponentNotRegistered(ScriptEngineError):
    """Raised only by callers that require a component to exist.

    The runner itself never raises this; it degrades to plain text.
    """

    def __init__(self, type_key: str):
        self.type_key = type_key
        super().__init__(
            ErrorCode.COMPONENT_NOT_REGISTERED,
            f"Component type not registered: {type_key}",
        )


class NavigationRejected(ScriptEngineError):
    def __init__(self, step_index: int):
        self.step_index = step_index
        super().__init__(
            ErrorCode.NAVIGATION_REJECTED,
            f"Going back is not allowed from step {step_index}",
        )


class ScriptNotRunning(ScriptEngineError):
    def __init__(self, script_id: str, status: str):
        super().__init__(
            ErrorCode.NOT_RUNNING,
            f"Script `{script_id}` is not running (status={status})",
        )


class TransitionInProgress(ScriptEngineError):
    def __init__(self, script_id: str):
        super().__init__(
            ErrorCode.TRANSITION_IN_PROGRESS,
            f"Script `{script_id}` already has a transition in flight",
        )


class NothingToRetry(ScriptEngineError):
    def __init__(self, script_id: str):
        super().__init__(
            ErrorCode.NOTHING_TO_RETRY,
            f"Script `{script_id}` has no failed completion hook to retry",
        )


class HookFailure(ScriptEngineError):
    """Wraps an exception raised by a step or script completion hook.

    Collaborators may raise it directly to supply a user-facing detail;
    any other exception is wrapped by the runner.
    """

    def __init__(self, detail: str, *, step_id: str | None = None):
        self.step_id = step_id
        super().__init__(ErrorCode.HOOK_FAILED, detail)


class ValidationFailure(ScriptEngineError):
    """Raised by a validator to reject step data with a reason.

    Equivalent to returning `ValidationOutcome.failure(reason)`.
    """

    def __init__(self, reason: str):
        self.reason = reason
        super().__init__(ErrorCode.VALIDATION_FAILED, reason)
