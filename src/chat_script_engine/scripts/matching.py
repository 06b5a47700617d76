"""Guided script matching candidates against one job."""

import re
from typing import Any, Optional

from chat_script_engine.collaborators.contracts import (
    CandidateParser,
    CandidateRepository,
    JobParser,
    JobRepository,
    MatchingAnalyzer,
)
from chat_script_engine.collaborators.entities import (
    Candidate,
    CandidateInput,
    Job,
    JobInput,
)
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
from chat_script_engine.scripts.create_job import parse_job_text

SCRIPT_ID = "matching"
JOB_METHOD = "job-method"
INPUT_JOB = "input-job"
CANDIDATE_METHOD = "candidate-method"
INPUT_CANDIDATES = "input-candidates"
ANALYSIS = "analysis"
RESULTS = "results"

DATABASE_WORDS = ("database", "từ database")
BLOCK_SEPARATOR = re.compile(r"\n\s*\n")


def _wants_database(text: str) -> bool:
    lowered = text.lower()
    return any(word in lowered for word in DATABASE_WORDS)


def build_matching_script(
    job_parser: JobParser,
    candidate_parser: CandidateParser,
    jobs: JobRepository,
    candidates: CandidateRepository,
    analyzer: MatchingAnalyzer,
    *,
    config: Optional[EngineConfig] = None,
    translate: Translator = identity_translator,
) -> ScriptDefinition:
    """Builds the matching script.

    The job comes from text, a link, an upload or a stored job id; the
    candidates from text (one per blank-line separated block), uploads,
    stored ids, or the whole database when the text asks for it.

    Artifacts written:
        job: the resolved job.
        candidates: the resolved candidates.
        matchings: analyzer results, best score first.
    """
    config = config or EngineConfig()
    t = translate

    async def resolve_job(data: dict[str, Any], context: ScriptExecutionContext):
        job: Optional[JobInput] = None
        if data.get("jobId"):
            job = await maybe_await(jobs.get_job(data["jobId"]))
        elif data.get("jobText") and _wants_database(data["jobText"]):
            stored = await maybe_await(jobs.list_jobs())
            if not stored:
                raise HookFailure(
                    t(
                        "chat.matching.input-job.no-jobs",
                        "No jobs found in the database. Please provide the job details.",
                    )
                )
            job = stored[0]
        else:
            job = await parse_job_text(job_parser, data)
        if job is None:
            raise HookFailure(
                t(
                    "chat.matching.input-job.invalid",
                    "I could not read a job from your message. Please try again with a clearer description or a link to the posting.",
                )
            )
        context.artifacts["job"] = job.model_dump(by_alias=True)

    async def resolve_candidates(
        data: dict[str, Any], context: ScriptExecutionContext
    ):
        found: list[CandidateInput] = []
        text = (data.get("candidateText") or "").strip()
        if data.get("candidateIds"):
            for candidate_id in data["candidateIds"]:
                candidate = await maybe_await(candidates.get_candidate(candidate_id))
                if candidate is not None:
                    found.append(candidate)
        elif text and _wants_database(text):
            found = list(await maybe_await(candidates.list_candidates()))
            if not found:
                raise HookFailure(
                    t(
                        "chat.matching.input-candidates.none-stored",
                        "No candidates found in the database. Please provide candidate details.",
                    )
                )
        else:
            blocks = [b for b in BLOCK_SEPARATOR.split(text) if b.strip()] if text else []
            blocks += file_texts(data.get("files"))
            for block in blocks:
                candidate = await maybe_await(candidate_parser.parse_candidate(block))
                if candidate is not None:
                    found.append(candidate)
        if not found:
            raise HookFailure(
                t(
                    "chat.matching.input-candidates.invalid",
                    "I could not read any candidates from your message. Please try again with clearer information.",
                )
            )
        context.artifacts["candidates"] = [c.model_dump(by_alias=True) for c in found]

    async def analyze(data: dict[str, Any], context: ScriptExecutionContext):
        # stored entities keep their ids so results can link back to them
        raw_job = context.artifacts["job"]
        job = (Job if "id" in raw_job else JobInput).model_validate(raw_job)
        pool = [
            (Candidate if "id" in c else CandidateInput).model_validate(c)
            for c in context.artifacts["candidates"]
        ]
        results = await maybe_await(analyzer.analyze(job, pool))
        ranked = sorted(results, key=lambda r: r.score, reverse=True)
        context.artifacts["matchings"] = [r.model_dump(by_alias=True) for r in ranked]

    source_methods = [
        (
            "source",
            "chat.components.input-method.methods.database",
            "Select from database",
            "i-lucide-database",
        ),
    ]
    steps = (
        ScriptStep(
            id=JOB_METHOD,
            display_name=t("chat.matching.job-method.name", "Select job input method"),
            prompt_message=t(
                "chat.matching.job-method.message",
                "Let's start with the job. Pick a source or type the job description below.",
            ),
            component=method_selector(
                t,
                "job",
                source_methods
                + [
                    (
                        "upload",
                        "chat.components.input-method.methods.upload-file",
                        "Upload file",
                        "i-lucide-file-up",
                    )
                ],
                multiple=False,
            ),
        ),
        ScriptStep(
            id=INPUT_JOB,
            display_name=t("chat.matching.input-job.name", "Input job data"),
            prompt_message=t(
                "chat.matching.input-job.message",
                "Please provide the job: paste the description, a link to the posting, or choose a stored job.",
            ),
            component=ComponentConfig(type_key="job-selector"),
            validator=RequiredAnyOf(
                ["jobText", "jobId", "files"],
                t(
                    "chat.matching.input-job.required",
                    "Please provide the job information.",
                ),
            ),
            on_complete=resolve_job,
            text_key="jobText",
        ),
        ScriptStep(
            id=CANDIDATE_METHOD,
            display_name=t(
                "chat.matching.candidate-method.name", "Select candidate input method"
            ),
            prompt_message=t(
                "chat.matching.candidate-method.message",
                "Now the candidates. Pick a source or type their details below.",
            ),
            component=method_selector(
                t,
                "candidate",
                source_methods
                + [
                    (
                        "upload",
                        "chat.components.input-method.methods.upload-cv",
                        "Upload CV",
                        "i-lucide-file-up",
                    )
                ],
                multiple=True,
            ),
        ),
        ScriptStep(
            id=INPUT_CANDIDATES,
            display_name=t("chat.matching.input-candidates.name", "Input candidate data"),
            prompt_message=t(
                "chat.matching.input-candidates.message",
                "Please provide the candidates: paste their details (one per paragraph), upload CVs, or choose stored candidates.",
            ),
            component=ComponentConfig(type_key="candidate-selector"),
            validator=RequiredAnyOf(
                ["candidateText", "candidateIds", "files"],
                t(
                    "chat.matching.input-candidates.required",
                    "Please provide the candidate information.",
                ),
            ),
            on_complete=resolve_candidates,
            text_key="candidateText",
        ),
        ScriptStep(
            id=ANALYSIS,
            display_name=t("chat.matching.analysis.name", "Analysis"),
            prompt_message=t(
                "chat.matching.analysis.message",
                "Ready to analyze the matches. Reply 'ok' to start.",
            ),
            validator=ConfirmationValidator(
                config.confirm_keywords, refusals=config.refusal_words
            ),
            on_complete=analyze,
        ),
        ScriptStep(
            id=RESULTS,
            display_name=t("chat.matching.results.name", "Results"),
            prompt_message=t(
                "chat.matching.results.message",
                "Analysis complete! Here are the match results. Reply anything to finish.",
            ),
            component=ComponentConfig(
                type_key="source-table",
                params={"kind": "matching"},
                artifact_params={"rows": "matchings"},
            ),
        ),
    )
    return ScriptDefinition(
        id=SCRIPT_ID,
        name=t("chat.matching.name", "Job Matching"),
        feature=ChatFeature.MATCHING.value,
        steps=steps,
        completion_message=t("chat.matching.done", "Matching finished."),
    )
