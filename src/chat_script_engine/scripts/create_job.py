"""Guided script for creating a job posting from a description or link."""

from typing import Any, Optional

from chat_script_engine.collaborators.contracts import JobParser, JobRepository
from chat_script_engine.collaborators.entities import JobInput
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
from chat_script_engine.scripts.common import file_texts

SCRIPT_ID = "create-job"
INPUT_JOB = "input-job"
REVIEW = "review"
CONFIRM_SAVE = "confirm-save"


def is_link(text: str) -> bool:
    return text.startswith(("http://", "https://"))


async def parse_job_text(parser: JobParser, data: dict[str, Any]) -> Optional[JobInput]:
    text = (data.get("jobText") or "").strip()
    if not text:
        text = "\n\n".join(file_texts(data.get("files")))
    if not text:
        return None
    link = text if is_link(text) else None
    return await maybe_await(parser.parse_job(text, link))


def build_create_job_script(
    parser: JobParser,
    repository: JobRepository,
    *,
    config: Optional[EngineConfig] = None,
    translate: Translator = identity_translator,
) -> ScriptDefinition:
    config = config or EngineConfig()
    t = translate

    async def parse_input(data: dict[str, Any], context: ScriptExecutionContext):
        job = await parse_job_text(parser, data)
        if job is None:
            raise HookFailure(
                t(
                    "chat.create-job.input.parse-failed",
                    "I could not recognize a job in that message. Please paste a clearer description or a link to the posting.",
                )
            )
        context.artifacts["job"] = job.model_dump(by_alias=True)

    def review(data: dict[str, Any], context: ScriptExecutionContext):
        fields = dict(context.artifacts.get("job") or {})
        if isinstance(data.get("job"), dict):
            fields.update(data["job"])
        job = JobInput.model_validate(fields)
        if not job.title:
            raise HookFailure(
                t("chat.create-job.review.missing-title", "The job needs a title.")
            )
        context.artifacts["job"] = job.model_dump(by_alias=True)

    async def save(data: dict[str, Any], context: ScriptExecutionContext):
        job = JobInput.model_validate(context.artifacts["job"])
        saved = await maybe_await(repository.create_job(job))
        context.artifacts["saved_job"] = saved.model_dump(by_alias=True)

    steps = (
        ScriptStep(
            id=INPUT_JOB,
            display_name=t("chat.create-job.input.name", "Input job data"),
            prompt_message=t(
                "chat.create-job.input.message",
                "Please paste the job description, a link to the posting, or upload a file:",
            ),
            component=ComponentConfig(type_key="job-input"),
            validator=RequiredAnyOf(
                ["jobText", "files"],
                t(
                    "chat.create-job.input.required",
                    "Please provide the job information.",
                ),
            ),
            on_complete=parse_input,
            text_key="jobText",
        ),
        ScriptStep(
            id=REVIEW,
            display_name=t("chat.create-job.review.name", "Review"),
            prompt_message=t(
                "chat.create-job.review.message",
                "Please review the job details, then reply 'ok' to continue.",
            ),
            component=ComponentConfig(
                type_key="job-input",
                params={"readonly": True},
                artifact_params={"job": "job"},
            ),
            on_complete=review,
        ),
        ScriptStep(
            id=CONFIRM_SAVE,
            display_name=t("chat.create-job.confirm.name", "Confirm & save"),
            prompt_message=t(
                "chat.create-job.confirm.message",
                "Save this job? Reply 'save' to confirm or 'cancel' to discard.",
            ),
            validator=ConfirmationValidator(
                config.confirm_keywords,
                t(
                    "chat.create-job.confirm.required",
                    "Reply 'save' to save the job or 'cancel' to discard it.",
                ),
                refusals=config.refusal_words,
            ),
            on_complete=save,
        ),
    )
    return ScriptDefinition(
        id=SCRIPT_ID,
        name=t("chat.create-job.name", "Create Job"),
        feature=ChatFeature.CREATE_JOB.value,
        steps=steps,
        completion_message=t("chat.create-job.done", "Job saved."),
    )
