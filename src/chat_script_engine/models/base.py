from typing import Callable

from pydantic import BaseModel, ConfigDict


class ModelBase(BaseModel):
    """
    Base class for all chat-script-engine models.

    Enforces strict validation, forbids unknown fields,
    and enables assignment-time validation.
    """

    model_config = ConfigDict(
        extra="forbid",
        validate_assignment=True,
        frozen=False,
    )


Translator = Callable[[str, str], str]


def identity_translator(key: str, default: str) -> str:
    return default
