"""Interfaces of the collaborators reached from script hooks.

Persistence and AI-backed parsing live outside the engine. Hooks only see
these protocols; any method may be a coroutine.
"""

from typing import Any, Awaitable, Optional, Protocol, Union

from chat_script_engine.collaborators.entities import (
    Candidate,
    CandidateInput,
    Job,
    JobInput,
    MatchResult,
)


class CandidateParser(Protocol):
    def parse_candidate(
        self, text: str
    ) -> Union[Optional[CandidateInput], Awaitable[Optional[CandidateInput]]]: ...


class JobParser(Protocol):
    def parse_job(
        self, text: str, link: Optional[str] = None
    ) -> Union[Optional[JobInput], Awaitable[Optional[JobInput]]]: ...


class CandidateRepository(Protocol):
    def create_candidate(
        self, data: CandidateInput
    ) -> Union[Candidate, Awaitable[Candidate]]: ...

    def get_candidate(
        self, candidate_id: str
    ) -> Union[Optional[Candidate], Awaitable[Optional[Candidate]]]: ...

    def list_candidates(self) -> Union[list[Candidate], Awaitable[list[Candidate]]]: ...


class JobRepository(Protocol):
    def create_job(self, data: JobInput) -> Union[Job, Awaitable[Job]]: ...

    def get_job(self, job_id: str) -> Union[Optional[Job], Awaitable[Optional[Job]]]: ...

    def list_jobs(self) -> Union[list[Job], Awaitable[list[Job]]]: ...


class MatchingAnalyzer(Protocol):
    def analyze(
        self, job: JobInput, candidates: list[CandidateInput]
    ) -> Union[list[MatchResult], Awaitable[list[MatchResult]]]: ...


class Responder(Protocol):
    """Answers free-form questions for the general chat feature."""

    def reply(
        self, text: str, history: list[dict[str, Any]]
    ) -> Union[str, Awaitable[str]]: ...
