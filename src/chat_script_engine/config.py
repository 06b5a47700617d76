import os
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field


ENV_PREFIX = "CHAT_SCRIPTS_"


def _env_list(name: str) -> Optional[list[str]]:
    raw = os.environ.get(name)
    if raw is None:
        return None
    return [part.strip().lower() for part in raw.split(",") if part.strip()]


class EngineConfig(BaseModel):
    """
    Static configuration for the script runner and chat sessions.
    """

    model_config = ConfigDict(extra="forbid", frozen=True)

    invalid_data_message: str = Field(
        default="The data provided is not valid.",
        description="Reason shown when a validator rejects data without one.",
    )
    hook_failure_message: str = Field(
        default="Something went wrong while processing this step. Reply 'retry' to try again.",
        description="Text appended to the re-prompt when a completion hook fails.",
    )
    completion_message: str = Field(
        default="All done!",
        description="Text emitted when a script without its own completion message finishes.",
    )
    error_message: str = Field(
        default="Sorry, something went wrong. Please try again.",
        description="Reply used when a chat handler raises unexpectedly.",
    )
    cancelled_message: str = Field(
        default="Cancelled.",
        description="Reply used when a script run is aborted from chat.",
    )
    back_rejected_message: str = Field(
        default="You cannot go back from this step.",
        description="Reply used when backward navigation is not permitted.",
    )
    cancel_keywords: tuple[str, ...] = Field(
        default=("cancel", "hủy", "no", "không"),
        description="Lower-case words that abort a script run when typed.",
    )
    confirm_keywords: tuple[str, ...] = Field(
        default=("save", "lưu", "yes", "có", "confirm", "xác nhận", "ok", "okay"),
        description="Lower-case words accepted as confirmation on confirm steps.",
    )
    refusal_keywords: tuple[str, ...] = Field(
        default=("not", "don't", "do not", "đừng"),
        description="Lower-case words that, with the cancel keywords, abort a confirm step wherever they appear.",
    )
    retry_keywords: tuple[str, ...] = Field(
        default=("retry", "thử lại"),
        description="Lower-case words that retry a failed completion hook.",
    )

    @property
    def refusal_words(self) -> tuple[str, ...]:
        return self.cancel_keywords + self.refusal_keywords

    @classmethod
    def from_env(cls) -> "EngineConfig":
        """Builds a config from CHAT_SCRIPTS_* environment variables.

        Unset variables keep their defaults. Keyword lists are
        comma-separated.
        """
        overrides: dict[str, object] = {}
        for name in (
            "invalid_data_message",
            "hook_failure_message",
            "completion_message",
            "error_message",
            "cancelled_message",
            "back_rejected_message",
        ):
            value = os.environ.get(f"{ENV_PREFIX}{name.upper()}")
            if value is not None:
                overrides[name] = value
        for name in (
            "cancel_keywords",
            "confirm_keywords",
            "refusal_keywords",
            "retry_keywords",
        ):
            value = _env_list(f"{ENV_PREFIX}{name.upper()}")
            if value is not None:
                overrides[name] = tuple(value)
        return cls(**overrides)
