"""Data models for the warm transfer service."""

from warm_transfer.models.transfer import (
    Briefing,
    CallContext,
    CustomerSentiment,
    StepStatus,
    TransferState,
    TransferStep,
    TransferSummary,
    UrgencyLevel,
)

__all__ = [
    "Briefing",
    "CallContext",
    "CustomerSentiment",
    "StepStatus",
    "TransferState",
    "TransferStep",
    "TransferSummary",
    "UrgencyLevel",
]
