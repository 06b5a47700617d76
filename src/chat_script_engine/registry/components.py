"""Component Registry.

Maps opaque component type keys to renderable units plus default
parameters. The registry is an explicitly constructed instance injected into
the runner and into any registrar; there is no module-level singleton.
"""

from typing import Any, Literal, Optional, Union

from pydantic import BaseModel, ConfigDict, Field

from chat_script_engine.execution.errors import ComponentNotRegistered
from chat_script_engine.observability.logging import get_logger

logger = get_logger(__name__)


class RegisteredComponent(BaseModel):
    """A lookup hit.

    Attributes:
        type_key: Registry key of the fragment.
        renderable: Opaque reference handed back to the rendering layer.
        default_params: Parameters every instance of the fragment starts with.
    """

    model_config = ConfigDict(frozen=True, arbitrary_types_allowed=True)

    kind: Literal["registered"] = "registered"
    type_key: str = Field(..., description="Registry key of the fragment.")
    renderable: Any = Field(
        ..., description="Opaque reference handed back to the rendering layer."
    )
    default_params: dict[str, Any] = Field(
        default_factory=dict,
        description="Parameters every instance of the fragment starts with.",
    )


class UnregisteredComponent(BaseModel):
    """A lookup miss. Callers degrade to plain text."""

    model_config = ConfigDict(frozen=True)

    kind: Literal["unregistered"] = "unregistered"
    type_key: str = Field(..., description="The key that was looked up.")


ComponentLookup = Union[RegisteredComponent, UnregisteredComponent]


class ComponentRegistry:
    """Runtime-extensible table of chat UI fragments.

    Re-registering a key overwrites the previous entry (last writer wins).
    Lookups of unknown keys return `UnregisteredComponent` instead of raising.
    """

    def __init__(self) -> None:
        self._entries: dict[str, RegisteredComponent] = {}
        self._initialized = False

    @property
    def initialized(self) -> bool:
        return self._initialized

    def mark_initialized(self) -> None:
        self._initialized = True

    def register(
        self,
        type_key: str,
        renderable: Any,
        default_params: Optional[dict[str, Any]] = None,
    ) -> None:
        """Registers or replaces a fragment.

        Args:
            type_key: Key steps refer to.
            renderable: Opaque reference (template name, callable, class).
            default_params: Parameters merged under each step's own params.
        """
        if not type_key:
            raise ValueError("type_key must be a non-empty string")
        if type_key in self._entries:
            logger.debug(
                f"Replacing component registration: {type_key}",
                extra={"extra_fields": {"type_key": type_key}},
            )
        self._entries[type_key] = RegisteredComponent(
            type_key=type_key,
            renderable=renderable,
            default_params=dict(default_params or {}),
        )

    def get(self, type_key: str) -> ComponentLookup:
        entry = self._entries.get(type_key)
        if entry is None:
            return UnregisteredComponent(type_key=type_key)
        return entry

    def require(self, type_key: str) -> RegisteredComponent:
        """Strict lookup for callers that cannot degrade to plain text.

        Raises:
            ComponentNotRegistered: If nothing is registered under the key.
        """
        lookup = self.get(type_key)
        if isinstance(lookup, UnregisteredComponent):
            raise ComponentNotRegistered(type_key)
        return lookup

    def has(self, type_key: str) -> bool:
        return type_key in self._entries

    def list_type_keys(self) -> list[str]:
        return list(self._entries.keys())

    def reset(self) -> None:
        """Clears every entry and the initialized flag. Test isolation only."""
        self._entries.clear()
        self._initialized = False
