"""Guided script for creating a candidate from pasted text or a CV."""

from typing import Any, Optional

from chat_script_engine.collaborators.contracts import (
    CandidateParser,
    CandidateRepository,
)
from chat_script_engine.collaborators.entities import CandidateInput
from chat_script_engine.config import EngineConfig
from chat_script_engine.execution.errors import HookFailure
from chat_script_engine.execution.steps import (
    ConfirmationValidator,
    RequiredAnyOf,
    maybe_await,
)
from chat_script_engine.models.base import Translator, identity_translator
from chat_script_engine.models.enums import ChatFeature
from chat_script_engine.models.script import (
    ComponentConfig,
    ScriptDefinition,
    ScriptExecutionContext,
    ScriptStep,
)
from chat_script_engine.scripts.common import file_texts, method_selector

SCRIPT_ID = "create-candidate"
SELECT_METHOD = "select-method"
INPUT_CANDIDATE = "input-candidate"
REVIEW = "review"
CONFIRM_SAVE = "confirm-save"


def _filled(fields: dict[str, Any]) -> dict[str, Any]:
    return {k: v for k, v in fields.items() if v not in ("", None, [], 0)}


def build_create_candidate_script(
    parser: CandidateParser,
    repository: CandidateRepository,
    *,
    config: Optional[EngineConfig] = None,
    translate: Translator = identity_translator,
) -> ScriptDefinition:
    """Builds the create-candidate script.

    Steps: pick an input method, provide the candidate text or CV, review the
    parsed fields, confirm and save.

    Artifacts written:
        candidate: parsed (and possibly corrected) candidate fields.
        saved_candidate: the stored candidate returned by the repository.
    """
    config = config or EngineConfig()
    t = translate

    async def parse_input(data: dict[str, Any], context: ScriptExecutionContext):
        text = data.get("candidateText") or "\n\n".join(file_texts(data.get("files")))
        if not text:
            raise HookFailure(
                t(
                    "chat.create-candidate.input.no-text",
                    "I could not read any text from the upload. Please paste the candidate details instead.",
                )
            )
        candidate = await maybe_await(parser.parse_candidate(text))
        if candidate is None:
            raise HookFailure(
                t(
                    "chat.create-candidate.input.parse-failed",
                    "I could not recognize candidate details in that text. Please try again with clearer information.",
                )
            )
        context.artifacts["candidate"] = candidate.model_dump(by_alias=True)

    async def review(data: dict[str, Any], context: ScriptExecutionContext):
        fields = dict(context.artifacts.get("candidate") or {})
        if isinstance(data.get("candidate"), dict):
            fields.update(data["candidate"])
        elif data.get("text"):
            correction = await maybe_await(parser.parse_candidate(data["text"]))
            if correction is not None:
                fields.update(_filled(correction.model_dump(by_alias=True)))

        candidate = CandidateInput.model_validate(fields)
        context.artifacts["candidate"] = candidate.model_dump(by_alias=True)
        missing = candidate.missing_required()
        if missing:
            raise HookFailure(
                t(
                    "chat.create-candidate.review.missing",
                    "Some required fields are missing: {fields}. Please fill them in.",
                ).format(fields=", ".join(missing))
            )

    async def save(data: dict[str, Any], context: ScriptExecutionContext):
        candidate = CandidateInput.model_validate(context.artifacts["candidate"])
        saved = await maybe_await(repository.create_candidate(candidate))
        context.artifacts["saved_candidate"] = saved.model_dump(by_alias=True)

    steps = [
        ScriptStep(
            id=SELECT_METHOD,
            display_name=t("chat.create-candidate.select-method.name", "Select input method"),
            prompt_message=t(
                "chat.create-candidate.select-method.message",
                "How would you like to provide the candidate? Upload a CV or type the details below.",
            ),
            component=method_selector(
                t,
                "candidate",
                [
                    (
                        "upload",
                        "chat.components.input-method.methods.upload-cv",
                        "Upload CV",
                        "i-lucide-file-up",
                    )
                ],
                multiple=False,
            ),
        ),
        ScriptStep(
            id=INPUT_CANDIDATE,
            display_name=t("chat.create-candidate.input.name", "Input candidate data"),
            prompt_message=t(
                "chat.create-candidate.input.message",
                "Please type the candidate's information below or upload a CV:",
            ),
            validator=RequiredAnyOf(
                ["candidateText", "files"],
                t(
                    "chat.create-candidate.input.required",
                    "Please provide the candidate's information or upload a CV.",
                ),
            ),
            on_complete=parse_input,
            text_key="candidateText",
        ),
        ScriptStep(
            id=REVIEW,
            display_name=t("chat.create-candidate.review.name", "Parse & review"),
            prompt_message=t(
                "chat.create-candidate.review.message",
                "Here is what I found. Correct any field (e.g. 'email: jane@example.com') or reply 'ok' to continue.",
            ),
            component=ComponentConfig(
                type_key="candidate-form-preview",
                artifact_params={"candidate": "candidate"},
            ),
            on_complete=review,
        ),
        ScriptStep(
            id=CONFIRM_SAVE,
            display_name=t("chat.create-candidate.confirm.name", "Confirm & save"),
            prompt_message=t(
                "chat.create-candidate.confirm.message",
                "Save this candidate? Reply 'save' to confirm or 'cancel' to discard.",
            ),
            validator=ConfirmationValidator(
                config.confirm_keywords,
                t(
                    "chat.create-candidate.confirm.required",
                    "Reply 'save' to save the candidate or 'cancel' to discard it.",
                ),
                refusals=config.refusal_words,
            ),
            on_complete=save,
        ),
    ]
    return ScriptDefinition(
        id=SCRIPT_ID,
        name=t("chat.create-candidate.name", "Create Candidate"),
        feature=ChatFeature.CREATE_CANDIDATE.value,
        steps=tuple(steps),
        completion_message=t("chat.create-candidate.done", "Candidate saved."),
    )
