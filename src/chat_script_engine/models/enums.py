"""Enumeration definitions for the chat script engine.

This module contains standard Enum classes used across the package to keep
message roles, feature tags, run states and error codes consistent.
"""

from enum import Enum


class MessageRole(str, Enum):
    """Author of a chat message.

    Attributes:
        USER: Text typed or submitted by the human.
        ASSISTANT: Text emitted by a handler or the script runner.
        SYSTEM: Out-of-band notices.
    """

    USER = "user"
    ASSISTANT = "assistant"
    SYSTEM = "system"


class ChatFeature(str, Enum):
    """Feature tags a chat session can be opened with.

    Each feature is served by exactly one chat handler.
    """

    MATCHING = "matching"
    CREATE_CANDIDATE = "create-candidate"
    CREATE_JOB = "create-job"
    GENERAL = "general"


class RunStatus(str, Enum):
    """Lifecycle state of a script run.

    Attributes:
        NOT_STARTED: Context exists but `start` has not run yet.
        RUNNING: A step is awaiting input.
        COMPLETED: Every step completed and the script hook ran.
        ABORTED: The run was cancelled; no further transitions are accepted.
    """

    NOT_STARTED = "not_started"
    RUNNING = "running"
    COMPLETED = "completed"
    ABORTED = "aborted"


class TransitionStatus(str, Enum):
    """Outcome of a single step transition.

    Attributes:
        ADVANCED: The step was accepted and the next step is now pending.
        COMPLETED: The last step was accepted and the script finished.
        VALIDATION_FAILED: The data was rejected; nothing changed.
        HOOK_FAILED: The data was recorded but a completion hook raised.
    """

    ADVANCED = "advanced"
    COMPLETED = "completed"
    VALIDATION_FAILED = "validation_failed"
    HOOK_FAILED = "hook_failed"


class ErrorCode(str, Enum):
    """Machine-readable codes attached to engine errors."""

    VALIDATION_FAILED = "step.validation_failed"
    HOOK_FAILED = "step.hook_failed"
    UNKNOWN_FEATURE = "feature.unknown"
    INVALID_SCRIPT = "script.invalid"
    COMPONENT_NOT_REGISTERED = "component.not_registered"
    NAVIGATION_REJECTED = "navigation.rejected"
    NOT_RUNNING = "script.not_running"
    TRANSITION_IN_PROGRESS = "script.transition_in_progress"
    NOTHING_TO_RETRY = "script.nothing_to_retry"
