"""Chat handlers for the guided recruiting features."""

from chat_script_engine.chat.script_handler import ScriptChatHandler
from chat_script_engine.models.base import identity_translator
from chat_script_engine.models.chat import ChatContext, ChatMessage
from chat_script_engine.models.outcome import StepResult
from chat_script_engine.scripts import create_candidate, matching


class CreateCandidateChatHandler(ScriptChatHandler):
    def __init__(self, definition, runner, **kwargs) -> None:
        kwargs.setdefault("name", "create-candidate")
        kwargs.setdefault("text_passthrough_steps", [create_candidate.SELECT_METHOD])
        super().__init__(definition, runner, **kwargs)

    def completion_reply(
        self, result: StepResult, context: ChatContext
    ) -> ChatMessage:
        saved = context.script.artifacts.get("saved_candidate")
        if not saved:
            return result.message
        name = f"{saved.get('firstName', '')} {saved.get('lastName', '')}".strip()
        content = self.t(
            "chat.create-candidate.saved",
            "Candidate {name} was saved (id: {id}).",
        ).format(name=name, id=saved.get("id"))
        return ChatMessage.assistant(
            content, metadata={**(result.message.metadata or {}), "candidate": saved}
        )


class CreateJobChatHandler(ScriptChatHandler):
    def __init__(self, definition, runner, **kwargs) -> None:
        kwargs.setdefault("name", "create-job")
        super().__init__(definition, runner, **kwargs)

    def completion_reply(
        self, result: StepResult, context: ChatContext
    ) -> ChatMessage:
        saved = context.script.artifacts.get("saved_job")
        if not saved:
            return result.message
        content = self.t(
            "chat.create-job.saved", "Job '{title}' was saved (id: {id})."
        ).format(title=saved.get("title"), id=saved.get("id"))
        return ChatMessage.assistant(
            content, metadata={**(result.message.metadata or {}), "job": saved}
        )


class MatchingChatHandler(ScriptChatHandler):
    """Matching flow; the completion reply summarizes the ranked results."""

    def __init__(self, definition, runner, **kwargs) -> None:
        kwargs.setdefault("name", "matching")
        kwargs.setdefault(
            "text_passthrough_steps",
            [matching.JOB_METHOD, matching.CANDIDATE_METHOD],
        )
        kwargs.setdefault(
            "initial_message",
            kwargs.get("translate", identity_translator)(
                "chat.matching.welcome",
                "Hello! I will help you find suitable candidates for a job. "
                "Let's start with the job details.",
            ),
        )
        super().__init__(definition, runner, **kwargs)

    def completion_reply(
        self, result: StepResult, context: ChatContext
    ) -> ChatMessage:
        matchings = context.script.artifacts.get("matchings") or []
        lines = [
            self.t(
                "chat.matching.summary", "Found {count} match results."
            ).format(count=len(matchings))
        ]
        for rank, row in enumerate(matchings, start=1):
            lines.append(
                f"{rank}. {row.get('candidateName') or '?'}: {round(row['score'] * 100)}%"
            )
        return ChatMessage.assistant(
            "\n".join(lines),
            metadata={**(result.message.metadata or {}), "matchings": matchings},
        )
