"""
Warm transfer data models.
This module defines the call context handed over by the first handler,
the briefing prepared for the receiving handler and the workflow steps.
"""

from datetime import datetime, timezone
from enum import Enum

from pydantic import BaseModel, ConfigDict, Field


class UrgencyLevel(str, Enum):
    """How urgent the caller's issue is."""

    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"


class CustomerSentiment(str, Enum):
    """Caller sentiment as judged by the first handler."""

    POSITIVE = "positive"
    NEUTRAL = "neutral"
    NEGATIVE = "negative"


class StepStatus(str, Enum):
    """Status of a single transfer step."""

    PENDING = "pending"
    IN_PROGRESS = "in-progress"
    COMPLETED = "completed"
    FAILED = "failed"

    @property
    def is_terminal(self) -> bool:
        return self in (StepStatus.COMPLETED, StepStatus.FAILED)

    def can_transition_to(self, target: "StepStatus") -> bool:
        """
        Check whether a status change keeps the step monotonic.

        pending -> in-progress -> completed | failed, plus pending -> failed
        which is only used when a transfer is cancelled before the step ran.
        """
        return target in _ALLOWED_TRANSITIONS[self]


_ALLOWED_TRANSITIONS: dict[StepStatus, frozenset[StepStatus]] = {
    StepStatus.PENDING: frozenset({StepStatus.IN_PROGRESS, StepStatus.FAILED}),
    StepStatus.IN_PROGRESS: frozenset({StepStatus.COMPLETED, StepStatus.FAILED}),
    StepStatus.COMPLETED: frozenset(),
    StepStatus.FAILED: frozenset(),
}


class TransferState(str, Enum):
    """Overall state of a transfer derived from its steps."""

    PENDING = "pending"
    RUNNING = "running"
    COMPLETED = "completed"
    FAILED = "failed"
    CANCELLED = "cancelled"


class CallContext(BaseModel):
    """
    Snapshot of the call at the moment the transfer was requested.
    Captured once and never mutated; it is the input to the briefing.
    """

    model_config = ConfigDict(frozen=True)

    call_id: str
    caller_name: str
    call_duration: int = Field(default=0, ge=0, description="Call duration in minutes")
    key_topics: tuple[str, ...] = Field(default_factory=tuple)
    customer_issue: str = ""
    resolution_attempts: tuple[str, ...] = Field(default_factory=tuple)
    urgency_level: UrgencyLevel = UrgencyLevel.MEDIUM
    customer_sentiment: CustomerSentiment = CustomerSentiment.NEUTRAL


class TransferSummary(BaseModel):
    """Structured call summary generated for the receiving handler."""

    model_config = ConfigDict(frozen=True)

    summary: str
    key_points: tuple[str, ...] = Field(default_factory=tuple)
    recommended_actions: tuple[str, ...] = Field(default_factory=tuple)
    customer_context: str = ""


class Briefing(BaseModel):
    """Result of the summarization step."""

    model_config = ConfigDict(frozen=True)

    summary: TransferSummary
    handoff_script: str
    opening_response: str
    created_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))


class TransferStep(BaseModel):
    """
    One stage of the handoff.

    Steps are immutable values: the owning process publishes a new
    instance for every change so readers never see a partial update.
    """

    model_config = ConfigDict(frozen=True)

    id: int = Field(ge=1)
    name: str
    description: str
    status: StepStatus = StepStatus.PENDING
    timestamp: datetime | None = None
