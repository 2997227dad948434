"""
Pure domain models for the MeetIQ job core.

These models contain NO AWS dependencies. They represent the job lifecycle,
the intermediate stage outputs and the produced meeting artifact that flow
through ports and services.
"""

from __future__ import annotations

import uuid
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, FrozenSet, List, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field

from shared_utils.constants import Defaults, SCHEMA_VERSION


def utc_now() -> datetime:
    """Current time as an aware UTC datetime."""
    return datetime.now(timezone.utc)


def to_iso(moment: datetime) -> str:
    """ISO 8601 string used for every persisted timestamp."""
    return moment.astimezone(timezone.utc).isoformat(timespec="microseconds")


def new_id() -> str:
    return str(uuid.uuid4())


# ---------------------------------------------------------------------------
# Job lifecycle
# ---------------------------------------------------------------------------


class JobStatus(str, Enum):
    """Job lifecycle status. Terminal states are absorbing."""

    QUEUED = "queued"
    PROCESSING = "processing"
    DONE = "done"
    ERROR = "error"


ALLOWED_TRANSITIONS: Dict[JobStatus, FrozenSet[JobStatus]] = {
    JobStatus.QUEUED: frozenset({JobStatus.PROCESSING}),
    JobStatus.PROCESSING: frozenset({JobStatus.DONE, JobStatus.ERROR}),
    JobStatus.DONE: frozenset(),
    JobStatus.ERROR: frozenset(),
}


def can_transition(current: JobStatus, target: JobStatus) -> bool:
    """Return True if ``current -> target`` is a legal forward transition."""
    return target in ALLOWED_TRANSITIONS[current]


def transition_source(target: JobStatus) -> JobStatus:
    """The status a job must hold to move to *target*.

    Every reachable status has exactly one predecessor, so conditional
    store writes can be keyed on it.
    """
    sources = [current for current, targets in ALLOWED_TRANSITIONS.items() if target in targets]
    if len(sources) != 1:
        raise ValueError(f"No single source status for {target.value}")
    return sources[0]


class Job(BaseModel):
    """A durable unit of pipeline work (maps to one job store row).

    ``input_ref`` is the storage path of an uploaded audio object; jobs
    submitted as text carry ``transcript_text`` from the start instead.
    """

    id: str = Field(default_factory=new_id)
    status: JobStatus = JobStatus.QUEUED
    input_ref: Optional[str] = None
    transcript_text: Optional[str] = None
    meeting_mode: str = Defaults.MEETING_MODE
    output_ref: Optional[str] = None
    error: Optional[str] = None
    created_at: str = Field(default_factory=lambda: to_iso(utc_now()))
    updated_at: str = Field(default_factory=lambda: to_iso(utc_now()))

    def has_input(self) -> bool:
        return bool((self.transcript_text or "").strip() or (self.input_ref or "").strip())


# ---------------------------------------------------------------------------
# Completion provider messages
# ---------------------------------------------------------------------------


class ChatMessage(BaseModel):
    """Single role-tagged prompt message."""

    role: Literal["system", "user", "assistant"]
    content: str


# ---------------------------------------------------------------------------
# Stage outputs
# ---------------------------------------------------------------------------


class EvidenceSpan(BaseModel):
    """Timestamp range (seconds) supporting a fact; null when not stated."""

    start_s: Optional[float] = None
    end_s: Optional[float] = None


class ExtractFacts(BaseModel):
    """Facts produced by the Extract stage, kept exactly as decoded.

    Fact lists are not coerced or checked here. Shape problems in
    ``action_items`` (null evidence, wrong types) surface when the merged
    candidate is validated, so repair can fix them.
    """

    model_config = ConfigDict(extra="ignore")

    schema_version: Any = None
    action_items: Any = Field(default_factory=list)
    decisions: Any = Field(default_factory=list)
    open_questions: Any = Field(default_factory=list)

    def count(self, field_name: str) -> int:
        """Number of facts in a list field; 0 when it is not a list."""
        value = getattr(self, field_name)
        return len(value) if isinstance(value, list) else 0


# ---------------------------------------------------------------------------
# Produced artifact (wire format v1.0)
# ---------------------------------------------------------------------------


class Summary(BaseModel):
    title: str
    tldr: str
    bullets: List[str]


class ActionItem(BaseModel):
    task: str
    owner: Optional[str]
    due_date: Optional[str]
    evidence: EvidenceSpan


class PipelineResult(BaseModel):
    """Final schema-versioned artifact. Every field is always present."""

    schema_version: Literal["1.0"] = SCHEMA_VERSION
    summary: Summary
    action_items: List[ActionItem]


class SchemaViolation(BaseModel):
    """One schema violation, addressed by a dotted path (``$`` is the root)."""

    path: str
    message: str


class ValidationOutcome(BaseModel):
    """Result of validating a candidate: Ok or Invalid(violations)."""

    ok: bool
    violations: List[SchemaViolation] = []

    @classmethod
    def accept(cls) -> "ValidationOutcome":
        return cls(ok=True)

    @classmethod
    def reject(cls, violations: List[SchemaViolation]) -> "ValidationOutcome":
        return cls(ok=False, violations=violations)


class MeetingArtifact(BaseModel):
    """Stored meeting produced by a ``done`` job."""

    meeting_id: str = Field(default_factory=new_id)
    job_id: str
    title: str
    result: PipelineResult
    transcript_text: str
    meeting_mode: str = Defaults.MEETING_MODE
    created_at: str = Field(default_factory=lambda: to_iso(utc_now()))

    @classmethod
    def from_result(
        cls, job: Job, result: PipelineResult, transcript_text: str
    ) -> "MeetingArtifact":
        title = result.summary.title.strip() or Defaults.MEETING_TITLE
        return cls(
            job_id=job.id,
            title=title,
            result=result,
            transcript_text=transcript_text,
            meeting_mode=job.meeting_mode,
        )


class ProcessingReport(BaseModel):
    """Report generated after a job reaches a terminal state."""

    job_id: str
    status: JobStatus
    output_ref: Optional[str] = None
    repaired: bool = False
    error: Optional[str] = None
    duration_ms: float = 0.0
