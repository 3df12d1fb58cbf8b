"""
Capability interfaces consumed by the transfer workflow.

The process only depends on these abstractions so it can run against the
real LLM, LiveKit and TTS backends or against in-memory fakes.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass, field

from warm_transfer.models import Briefing, CallContext, TransferSummary


@dataclass(frozen=True)
class RoomHandle:
    """Reference to a media room."""

    name: str
    sid: str | None = None
    metadata: dict = field(default_factory=dict, compare=False)


class Summarizer(ABC):
    """Turns call context into the briefing text."""

    @abstractmethod
    async def generate_summary(self, context: CallContext) -> TransferSummary:
        """Summarize the call. Raises GenerationError."""

    @abstractmethod
    async def generate_script(self, summary: TransferSummary) -> str:
        """Spoken handoff script for the receiving handler. Raises GenerationError."""

    @abstractmethod
    async def generate_opening(self, summary: TransferSummary) -> str:
        """Receiving handler's opening line to the caller. Raises GenerationError."""

    async def build_briefing(self, context: CallContext) -> Briefing:
        """Summary, then script and opening derived from it."""
        summary = await self.generate_summary(context)
        script = await self.generate_script(summary)
        opening = await self.generate_opening(summary)
        return Briefing(
            summary=summary,
            handoff_script=script,
            opening_response=opening
        )


class RoomManager(ABC):
    """Real-time media room operations."""

    @abstractmethod
    async def create_room(self, name: str) -> RoomHandle:
        """Allocate a room. Raises RoomError."""

    @abstractmethod
    async def connect_participant(self, room: RoomHandle, identity: str) -> None:
        """Bring a participant into the room. Raises RoomError."""

    @abstractmethod
    async def move_participant(
        self,
        identity: str,
        from_room: RoomHandle,
        to_room: RoomHandle
    ) -> None:
        """Relocate a participant between rooms. Raises RoomError."""

    @abstractmethod
    async def remove_participant(self, room: RoomHandle, identity: str) -> None:
        """Disconnect a participant from a room. Raises RoomError."""

    @abstractmethod
    async def disconnect(self, room: RoomHandle) -> None:
        """Tear the room down. Best-effort, must not raise."""


class SpeechPlayer(ABC):
    """Speaks text into the transfer room."""

    @abstractmethod
    async def speak(self, text: str, speaker_label: str) -> None:
        """Return once playback has finished. Raises PlaybackError."""

    @abstractmethod
    async def stop(self) -> None:
        """Stop any active playback. Idempotent, must not raise."""
