"""Script Definition Store.

Holds one immutable ScriptDefinition per feature tag.
"""

from typing import Optional

from chat_script_engine.models.script import ScriptDefinition
from chat_script_engine.observability.logging import get_logger

logger = get_logger(__name__)


class ScriptDefinitionStore:
    """Feature-keyed table of script definitions.

    Registering a definition for a feature that already has one replaces it
    (last writer wins). Definitions themselves are never modified.
    """

    def __init__(self) -> None:
        self._by_feature: dict[str, ScriptDefinition] = {}

    def register(self, definition: ScriptDefinition) -> None:
        """Validates and stores a definition.

        Raises:
            InvalidScriptDefinition: If the definition has no steps or
                repeats a step id.
        """
        definition.check_structure()
        feature = str(getattr(definition.feature, "value", definition.feature))
        if feature in self._by_feature:
            logger.info(
                f"Replacing script for feature {feature}",
                extra={
                    "extra_fields": {
                        "feature": feature,
                        "script_id": definition.id,
                    }
                },
            )
        self._by_feature[feature] = definition

    def get_by_feature(self, feature: str) -> Optional[ScriptDefinition]:
        key = str(getattr(feature, "value", feature))
        return self._by_feature.get(key)

    def list_features(self) -> list[str]:
        return list(self._by_feature.keys())

    def list_definitions(self) -> list[ScriptDefinition]:
        return list(self._by_feature.values())

    def reset(self) -> None:
        self._by_feature.clear()
