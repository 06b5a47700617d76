"""In-memory collaborators.

Ephemeral repositories, a line-oriented text parser and a skill-overlap
analyzer, suitable for the CLI, local development and tests. Production
deployments inject API-backed implementations of the same protocols.
"""

import re
import uuid
from typing import Optional

from chat_script_engine.collaborators.entities import (
    Candidate,
    CandidateInput,
    Job,
    JobInput,
    MatchResult,
)

EMAIL_RE = re.compile(r"[\w.+-]+@[\w-]+(\.[\w-]+)+")
LINE_RE = re.compile(r"^\s*([A-Za-z][A-Za-z _-]*?)\s*:\s*(.+?)\s*$")


def _split_list(value: str) -> list[str]:
    return [part.strip() for part in re.split(r"[,;]", value) if part.strip()]


def _key_values(text: str) -> tuple[dict[str, str], list[str]]:
    fields: dict[str, str] = {}
    rest: list[str] = []
    for line in text.splitlines():
        m = LINE_RE.match(line)
        if m and not m.group(2).startswith("//"):
            key = m.group(1).lower().replace("-", " ").replace("_", " ")
            fields[" ".join(key.split())] = m.group(2)
        elif line.strip():
            rest.append(line.strip())
    return fields, rest


class KeyValueTextParser:
    """Parses `key: value` lines into candidates and jobs.

    Recognized candidate keys: name, first name, last name, email, phone,
    skills, experience. Recognized job keys: title, company, location,
    requirements (or skills), description, link. Lines without a key become
    the job description.
    """

    def parse_candidate(self, text: str) -> Optional[CandidateInput]:
        fields, _ = _key_values(text)
        first = fields.get("first name", "")
        last = fields.get("last name", "")
        if not (first or last) and "name" in fields:
            parts = fields["name"].split()
            first, last = parts[0], " ".join(parts[1:])

        email = fields.get("email", "")
        if not email:
            m = EMAIL_RE.search(text)
            email = m.group(0) if m else ""

        if not (first or last or email):
            return None

        experience = 0
        raw_years = fields.get("experience") or fields.get("years", "")
        m = re.search(r"\d+", raw_years)
        if m:
            experience = int(m.group(0))

        return CandidateInput(
            first_name=first,
            last_name=last,
            email=email,
            phone=fields.get("phone"),
            skills=_split_list(fields.get("skills", "")),
            experience=experience,
        )

    def parse_job(self, text: str, link: Optional[str] = None) -> Optional[JobInput]:
        fields, rest = _key_values(text)
        title = fields.get("title", "")
        description = fields.get("description") or "\n".join(rest)
        if not title and rest:
            title = rest[0]
        if not title:
            return None
        return JobInput(
            title=title,
            description=description,
            company=fields.get("company"),
            location=fields.get("location"),
            requirements=_split_list(
                fields.get("requirements") or fields.get("skills", "")
            ),
            link=link or fields.get("link"),
        )


class InMemoryCandidateRepository:
    def __init__(self) -> None:
        self._candidates: dict[str, Candidate] = {}

    def create_candidate(self, data: CandidateInput) -> Candidate:
        candidate = Candidate(
            id=f"cand-{uuid.uuid4().hex[:8]}", **data.model_dump()
        )
        self._candidates[candidate.id] = candidate
        return candidate

    def get_candidate(self, candidate_id: str) -> Optional[Candidate]:
        return self._candidates.get(candidate_id)

    def list_candidates(self) -> list[Candidate]:
        return list(self._candidates.values())


class InMemoryJobRepository:
    def __init__(self) -> None:
        self._jobs: dict[str, Job] = {}

    def create_job(self, data: JobInput) -> Job:
        job = Job(id=f"job-{uuid.uuid4().hex[:8]}", **data.model_dump())
        self._jobs[job.id] = job
        return job

    def get_job(self, job_id: str) -> Optional[Job]:
        return self._jobs.get(job_id)

    def list_jobs(self) -> list[Job]:
        return list(self._jobs.values())


class SkillOverlapAnalyzer:
    """Scores candidates by the share of job requirements their skills cover.

    A job without requirements is treated as broad and scores everyone at
    `broad_role_score`.
    """

    def __init__(self, broad_role_score: float = 0.6) -> None:
        self.broad_role_score = broad_role_score

    def analyze(
        self, job: JobInput, candidates: list[CandidateInput]
    ) -> list[MatchResult]:
        required = {r.lower(): r for r in job.requirements}
        results: list[MatchResult] = []
        for candidate in candidates:
            skills = {s.lower() for s in candidate.skills}
            if required:
                matched = sorted(required[k] for k in required if k in skills)
                missing = sorted(required[k] for k in required if k not in skills)
                score = len(matched) / len(required)
            else:
                matched, missing = [], []
                score = self.broad_role_score
            results.append(
                MatchResult(
                    candidate_id=getattr(candidate, "id", None),
                    candidate_name=candidate.full_name,
                    job_id=getattr(job, "id", None),
                    score=round(score, 3),
                    matched_skills=matched,
                    missing_skills=missing,
                )
            )
        results.sort(key=lambda r: r.score, reverse=True)
        return results
