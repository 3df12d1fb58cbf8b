"""Handoff module for warm transfers between handlers."""

from warm_transfer.core.handoff.collaborators import (
    RoomHandle,
    RoomManager,
    SpeechPlayer,
    Summarizer,
)
from warm_transfer.core.handoff.summary_generator import LLMSummarizer
from warm_transfer.core.handoff.transfer_orchestrator import TransferOrchestrator
from warm_transfer.core.handoff.transfer_process import TransferProcess

__all__ = [
    "LLMSummarizer",
    "RoomHandle",
    "RoomManager",
    "SpeechPlayer",
    "Summarizer",
    "TransferOrchestrator",
    "TransferProcess",
]
