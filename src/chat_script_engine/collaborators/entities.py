"""Data models exchanged with persistence and parsing collaborators."""

from typing import Any, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field


class CandidateInput(BaseModel):
    """Candidate fields collected by the create-candidate script.

    Attributes:
        first_name: Given name.
        last_name: Family name.
        email: Contact email.
        phone: Optional phone number.
        skills: Skill names.
        experience: Years of experience.
    """

    model_config = ConfigDict(populate_by_name=True)

    first_name: str = Field(default="", alias="firstName", description="Given name.")
    last_name: str = Field(default="", alias="lastName", description="Family name.")
    email: str = Field(default="", description="Contact email.")
    phone: Optional[str] = Field(default=None, description="Optional phone number.")
    skills: list[str] = Field(default_factory=list, description="Skill names.")
    experience: int = Field(default=0, ge=0, description="Years of experience.")

    def missing_required(self) -> list[str]:
        return [
            name
            for name, value in (
                ("firstName", self.first_name),
                ("lastName", self.last_name),
                ("email", self.email),
            )
            if not value
        ]

    @property
    def full_name(self) -> str:
        return f"{self.first_name} {self.last_name}".strip()


class Candidate(CandidateInput):
    id: str = Field(..., description="Identifier assigned on save.")
    status: Literal["active", "inactive", "archived"] = Field(
        default="active", description="Candidate lifecycle state."
    )


class JobInput(BaseModel):
    """Job fields collected by the create-job and matching scripts."""

    model_config = ConfigDict(populate_by_name=True)

    title: str = Field(default="", description="Job title.")
    description: str = Field(default="", description="Job description text.")
    company: Optional[str] = Field(default=None, description="Hiring company.")
    location: Optional[str] = Field(default=None, description="Work location.")
    requirements: list[str] = Field(
        default_factory=list, description="Required skills or qualifications."
    )
    link: Optional[str] = Field(default=None, description="Source URL of the posting.")


class Job(JobInput):
    id: str = Field(..., description="Identifier assigned on save.")
    status: Literal["draft", "published", "closed"] = Field(
        default="draft", description="Job lifecycle state."
    )


class MatchResult(BaseModel):
    """Outcome of matching one candidate against one job.

    Attributes:
        candidate_id: Candidate identifier, if the candidate is stored.
        candidate_name: Display name of the candidate.
        job_id: Job identifier, if the job is stored.
        score: Match score in [0, 1].
        matched_skills: Requirements the candidate covers.
        missing_skills: Requirements the candidate lacks.
    """

    model_config = ConfigDict(populate_by_name=True)

    candidate_id: Optional[str] = Field(default=None, alias="candidateId")
    candidate_name: str = Field(default="", alias="candidateName")
    job_id: Optional[str] = Field(default=None, alias="jobId")
    score: float = Field(..., ge=0.0, le=1.0)
    matched_skills: list[str] = Field(default_factory=list, alias="matchedSkills")
    missing_skills: list[str] = Field(default_factory=list, alias="missingSkills")
    notes: dict[str, Any] = Field(default_factory=dict)
