"""Loads script definitions from YAML documents.

Document layout:

    id: create-job-lite
    name: Create Job (lite)
    feature: create-job
    completion_message: Job saved.
    steps:
      - id: input-job
        name: Input job data
        message: Paste the job description
        text_key: jobText
        component: {type: job-input, props: {readonly: false}}
        validation: {required_any: [jobText, files], message: Please paste it}
        on_complete: parse-job

`on_complete` names a hook from the mapping passed by the caller; hooks are
code and cannot be expressed in the document itself.
"""

from pathlib import Path
from typing import Any, Callable, Optional, Union

import jsonschema
import yaml
from pydantic import ValidationError

from chat_script_engine.execution.errors import InvalidScriptDefinition
from chat_script_engine.models.script import (
    ComponentConfig,
    ScriptDefinition,
    ScriptStep,
)
from chat_script_engine.observability.logging import get_logger

logger = get_logger(__name__)

SCRIPT_DOCUMENT_SCHEMA: dict[str, Any] = {
    "$schema": "https://json-schema.org/draft/2020-12/schema",
    "type": "object",
    "required": ["id", "feature", "steps"],
    "additionalProperties": False,
    "properties": {
        "id": {"type": "string", "minLength": 1},
        "name": {"type": "string"},
        "feature": {"type": "string", "minLength": 1},
        "completion_message": {"type": "string"},
        "steps": {
            "type": "array",
            "minItems": 1,
            "items": {
                "type": "object",
                "required": ["id", "message"],
                "additionalProperties": False,
                "properties": {
                    "id": {"type": "string", "minLength": 1},
                    "name": {"type": "string"},
                    "message": {"type": "string"},
                    "text_key": {"type": "string", "minLength": 1},
                    "on_complete": {"type": "string"},
                    "component": {
                        "type": "object",
                        "required": ["type"],
                        "additionalProperties": False,
                        "properties": {
                            "type": {"type": "string", "minLength": 1},
                            "props": {"type": "object"},
                            "artifact_props": {
                                "type": "object",
                                "additionalProperties": {"type": "string"},
                            },
                        },
                    },
                    "validation": {
                        "type": "object",
                        "properties": {
                            "required_any": {
                                "type": "array",
                                "items": {"type": "string"},
                                "minItems": 1,
                            },
                            "schema": {"type": "object"},
                            "confirm": {
                                "type": "array",
                                "items": {"type": "string"},
                                "minItems": 1,
                            },
                            "refuse": {
                                "type": "array",
                                "items": {"type": "string"},
                            },
                            "always": {"type": "boolean"},
                            "message": {"type": "string"},
                        },
                        "additionalProperties": False,
                    },
                },
            },
        },
    },
}

HookTable = dict[str, Callable[..., Any]]


def validate_document(document: Any) -> None:
    """Checks a parsed document against SCRIPT_DOCUMENT_SCHEMA.

    Raises:
        InvalidScriptDefinition: With the failing path in the detail.
    """
    try:
        jsonschema.validate(instance=document, schema=SCRIPT_DOCUMENT_SCHEMA)
    except jsonschema.ValidationError as e:
        location = ".".join(str(p) for p in e.path)
        detail = f"{e.message} (at {location})" if location else e.message
        raise InvalidScriptDefinition(detail) from e


def definition_from_document(
    document: dict[str, Any],
    hooks: Optional[HookTable] = None,
    *,
    strict_hooks: bool = True,
) -> ScriptDefinition:
    """Builds a definition from a parsed document.

    With `strict_hooks=False`, hook names missing from `hooks` are logged and
    the step is built without a hook; used when only checking a document.
    """
    validate_document(document)
    hooks = hooks or {}

    steps = []
    for raw in document["steps"]:
        hook = None
        if "on_complete" in raw:
            hook = hooks.get(raw["on_complete"])
            if hook is None and strict_hooks:
                raise InvalidScriptDefinition(
                    f"Step `{raw['id']}` refers to unknown hook `{raw['on_complete']}`"
                )
            if hook is None:
                logger.warning(
                    f"Hook {raw['on_complete']} not provided for step {raw['id']}",
                    extra={"extra_fields": {"step_id": raw["id"]}},
                )
        component = None
        if "component" in raw:
            component = ComponentConfig(
                type_key=raw["component"]["type"],
                params=raw["component"].get("props", {}),
                artifact_params=raw["component"].get("artifact_props", {}),
            )
        text_key = raw.get("text_key", "text")
        validation = raw.get("validation")
        if validation is not None and "confirm" in validation:
            validation = {**validation, "text_key": text_key}
        try:
            step = ScriptStep(
                id=raw["id"],
                display_name=raw.get("name", raw["id"]),
                prompt_message=raw["message"],
                component=component,
                validator=validation,
                on_complete=hook,
                text_key=text_key,
            )
        except (ValidationError, jsonschema.SchemaError) as e:
            raise InvalidScriptDefinition(
                f"Step `{raw['id']}` is invalid: {e}"
            ) from e
        steps.append(step)

    definition = ScriptDefinition(
        id=document["id"],
        name=document.get("name", ""),
        feature=document["feature"],
        steps=tuple(steps),
        completion_message=document.get("completion_message"),
    )
    definition.check_structure()
    return definition


def load_script_file(
    path: Union[str, Path],
    hooks: Optional[HookTable] = None,
    *,
    strict_hooks: bool = True,
) -> ScriptDefinition:
    """Reads and validates a YAML script definition.

    Raises:
        InvalidScriptDefinition: If the file is not valid YAML, does not match
            the document schema, or breaks a structural rule.
    """
    path = Path(path)
    with open(path, "r", encoding="utf-8") as f:
        try:
            document = yaml.safe_load(f)
        except yaml.YAMLError as e:
            raise InvalidScriptDefinition(f"Invalid YAML in {path}: {e}") from e

    definition = definition_from_document(
        document, hooks, strict_hooks=strict_hooks
    )
    logger.info(
        f"Loaded script {definition.id} from {path}",
        extra={
            "extra_fields": {
                "script_id": definition.id,
                "feature": definition.feature,
            }
        },
    )
    return definition
