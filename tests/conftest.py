"""Shared fixtures and in-memory collaborators for the warm transfer tests."""

import asyncio

import pytest

from warm_transfer.config import TransferSettings, TTSSettings
from warm_transfer.core.exceptions import GenerationError, PlaybackError, RoomError
from warm_transfer.core.handoff import (
    RoomHandle,
    RoomManager,
    SpeechPlayer,
    Summarizer,
    TransferOrchestrator,
    TransferProcess,
)
from warm_transfer.core.handoff.transfer_process import CANCELLED_NOTE
from warm_transfer.core.tts import BaseSynthesizer, SynthesisResult
from warm_transfer.models import (
    CallContext,
    CustomerSentiment,
    StepStatus,
    TransferSummary,
    UrgencyLevel,
)


class FakeSummarizer(Summarizer):
    """Returns canned briefing text; optionally fails or stalls."""

    def __init__(self, fail: bool = False, delay: float = 0) -> None:
        self.fail = fail
        self.delay = delay
        self.contexts: list[CallContext] = []

    async def generate_summary(self, context: CallContext) -> TransferSummary:
        self.contexts.append(context)
        if self.delay:
            await asyncio.sleep(self.delay)
        if self.fail:
            raise GenerationError("Failed to generate call summary")
        return TransferSummary(
            summary=f"{context.caller_name} was double charged and wants a refund.",
            key_points=("Double charge on last invoice",),
            recommended_actions=("Issue a refund",),
            customer_context=f"{context.caller_name} is frustrated.",
        )

    async def generate_script(self, summary: TransferSummary) -> str:
        return f"Hi, I'm handing over a caller. {summary.summary}"

    async def generate_opening(self, summary: TransferSummary) -> str:
        return "Hello, I've been briefed on your billing issue and I'm here to help."


class FakeRoomManager(RoomManager):
    """Records every call; methods can be made to fail, stall or run a hook."""

    def __init__(
        self,
        fail_on: set[str] | None = None,
        delays: dict[str, float] | None = None,
    ) -> None:
        self.fail_on = fail_on or set()
        self.delays = delays or {}
        self.hooks: dict = {}
        self.calls: list[tuple] = []

    async def _record(self, method: str, *args) -> None:
        self.calls.append((method, *args))
        if method in self.delays:
            await asyncio.sleep(self.delays[method])
        hook = self.hooks.get(method)
        if hook is not None:
            await hook()
        if method in self.fail_on:
            raise RoomError(f"{method} unavailable")

    def called(self, method: str) -> list[tuple]:
        return [call[1:] for call in self.calls if call[0] == method]

    async def create_room(self, name: str) -> RoomHandle:
        await self._record("create_room", name)
        return RoomHandle(name=name, sid=f"RM_{name}")

    async def connect_participant(self, room: RoomHandle, identity: str) -> None:
        await self._record("connect_participant", room, identity)

    async def move_participant(
        self,
        identity: str,
        from_room: RoomHandle,
        to_room: RoomHandle
    ) -> None:
        await self._record("move_participant", identity, from_room, to_room)

    async def remove_participant(self, room: RoomHandle, identity: str) -> None:
        await self._record("remove_participant", room, identity)

    async def disconnect(self, room: RoomHandle) -> None:
        self.calls.append(("disconnect", room))


class FakeSpeechPlayer(SpeechPlayer):
    """Speaks instantly, or blocks until stop() when block=True."""

    def __init__(self, block: bool = False, fail: bool = False) -> None:
        self.block = block
        self.fail = fail
        self.spoken: list[tuple[str, str]] = []
        self.stop_calls = 0
        self.started = asyncio.Event()
        self._stopped = asyncio.Event()

    async def speak(self, text: str, speaker_label: str) -> None:
        self.spoken.append((speaker_label, text))
        self.started.set()
        if self.fail:
            raise PlaybackError("Speaker offline")
        if self.block:
            await self._stopped.wait()

    async def stop(self) -> None:
        self.stop_calls += 1
        self._stopped.set()


class FakeSynthesizer(BaseSynthesizer):
    """Returns silent audio of a fixed length; optionally fails."""

    def __init__(self, duration_ms: int = 0, fail: bool = False) -> None:
        super().__init__(TTSSettings(cache_size=10))
        self.duration_ms = duration_ms
        self.fail = fail
        self.texts: list[str] = []

    @property
    def voice_name(self) -> str:
        return "fake"

    async def _synthesize(self, text: str) -> SynthesisResult:
        self.texts.append(text)
        if self.fail:
            raise RuntimeError("voice service down")
        return SynthesisResult(
            audio_data=b"\x00" * 16,
            audio_format="mp3",
            sample_rate=24000,
            duration_ms=self.duration_ms,
            voice_id="fake",
        )


def check_status_pattern(steps, cancelled: bool = False) -> None:
    """completed*, then at most one in-progress/failed, then pending (failed once cancelled)."""
    statuses = [step.status for step in steps]
    index = 0
    while index < len(statuses) and statuses[index] is StepStatus.COMPLETED:
        index += 1
    if index < len(statuses) and statuses[index] in (StepStatus.IN_PROGRESS, StepStatus.FAILED):
        index += 1

    remainder = StepStatus.FAILED if cancelled else StepStatus.PENDING
    assert all(status is remainder for status in statuses[index:]), statuses

    if cancelled:
        assert all(
            step.description.endswith(CANCELLED_NOTE)
            for step in steps[index:]
        ), [step.description for step in steps]

    timestamps = [step.timestamp for step in steps if step.timestamp is not None]
    assert timestamps == sorted(timestamps), timestamps


@pytest.fixture
def transfer_settings():
    return TransferSettings(
        room_prefix="transfer_",
        default_second_handler_name="Agent B",
        briefing_timeout_seconds=1.0,
        room_timeout_seconds=0.5,
        connect_timeout_seconds=0.5,
        playback_timeout_seconds=2.0,
    )


@pytest.fixture
def call_context():
    return CallContext(
        call_id="call-123",
        caller_name="Sarah",
        call_duration=12,
        key_topics=("billing", "refund"),
        customer_issue="double charge on last invoice",
        resolution_attempts=("verified account", "checked invoice"),
        urgency_level=UrgencyLevel.HIGH,
        customer_sentiment=CustomerSentiment.NEGATIVE,
    )


@pytest.fixture
def make_summarizer():
    """Factory for summarizers: make_summarizer(fail=True, delay=0.1)."""
    return FakeSummarizer


@pytest.fixture
def make_room_manager():
    """Factory for room managers: make_room_manager(fail_on={...}, delays={...})."""
    return FakeRoomManager


@pytest.fixture
def make_speech_player():
    """Factory for speech players: make_speech_player(block=True, fail=True)."""
    return FakeSpeechPlayer


@pytest.fixture
def make_synthesizer():
    """Factory for synthesizers: make_synthesizer(duration_ms=1500, fail=True)."""
    return FakeSynthesizer


@pytest.fixture
def assert_status_pattern():
    return check_status_pattern


@pytest.fixture
def summarizer(make_summarizer):
    return make_summarizer()


@pytest.fixture
def room_manager(make_room_manager):
    return make_room_manager()


@pytest.fixture
def speech_player(make_speech_player):
    return make_speech_player()


@pytest.fixture
def make_process(call_context, summarizer, room_manager, speech_player, transfer_settings):
    """Build a TransferProcess for room-9 / Sarah / Alice with overridable parts."""

    def _make(**overrides) -> TransferProcess:
        kwargs = dict(
            transfer_id="t-1",
            location="room-9",
            caller_name="Sarah",
            first_handler_name="Alice",
            second_handler_name="Agent B",
            context=call_context,
            summarizer=summarizer,
            room_manager=room_manager,
            speech_player=speech_player,
            settings=transfer_settings,
        )
        kwargs.update(overrides)
        return TransferProcess(**kwargs)

    return _make


@pytest.fixture
def make_orchestrator(summarizer, room_manager, make_speech_player, transfer_settings):
    """Build a TransferOrchestrator over fakes, overridable per test."""

    def _make(**overrides) -> TransferOrchestrator:
        kwargs = dict(
            summarizer=summarizer,
            room_manager=room_manager,
            speech_player_factory=make_speech_player,
            settings=transfer_settings,
        )
        kwargs.update(overrides)
        return TransferOrchestrator(**kwargs)

    return _make


@pytest.fixture
def orchestrator(make_orchestrator):
    return make_orchestrator()
