"""
Speech playback for the handoff briefing.
Synthesizes the script and plays it through an audio sink that can be
interrupted when a transfer is cancelled.
"""

import asyncio
from abc import ABC, abstractmethod
from collections.abc import Awaitable, Callable

import structlog

from warm_transfer.core.exceptions import PlaybackError
from warm_transfer.core.handoff.collaborators import SpeechPlayer
from warm_transfer.core.tts.synthesizer import BaseSynthesizer, SynthesisResult

logger = structlog.get_logger(__name__)

AudioPublisher = Callable[[SynthesisResult], Awaitable[None]]


class AudioSink(ABC):
    """Destination for synthesized audio."""

    @abstractmethod
    async def play(self, audio: SynthesisResult, stop_event: asyncio.Event) -> bool:
        """Play audio until it ends or stop_event is set. Returns True if interrupted."""


class PacedAudioSink(AudioSink):
    """
    Hands the audio to an optional publisher, then holds for the audio's
    duration so callers resume when the listener has heard it.
    """

    def __init__(self, publisher: AudioPublisher | None = None) -> None:
        self.publisher = publisher

    async def play(self, audio: SynthesisResult, stop_event: asyncio.Event) -> bool:
        if self.publisher is not None:
            await self.publisher(audio)

        duration = (audio.duration_ms or 0) / 1000
        if duration <= 0:
            return stop_event.is_set()

        try:
            await asyncio.wait_for(stop_event.wait(), timeout=duration)
        except asyncio.TimeoutError:
            return False
        return True


class SynthesizedSpeechPlayer(SpeechPlayer):
    """
    SpeechPlayer that voices text with a TTS synthesizer.

    A stop stays in effect until reset(): speak() after stop() returns
    without playing, so a stop that lands before playback starts is kept.
    """

    def __init__(self, synthesizer: BaseSynthesizer, sink: AudioSink | None = None) -> None:
        self.synthesizer = synthesizer
        self.sink = sink or PacedAudioSink()
        self._stop_event = asyncio.Event()
        self._speaking = False

    @property
    def is_speaking(self) -> bool:
        return self._speaking

    async def speak(self, text: str, speaker_label: str) -> None:
        if not text or not text.strip():
            raise PlaybackError("Nothing to speak")

        if self._stop_event.is_set():
            logger.info("speech_playback_skipped", speaker=speaker_label)
            return

        full_text = f"{speaker_label} speaking: {text}"

        try:
            audio = await self.synthesizer.synthesize(full_text)
        except Exception as e:
            raise PlaybackError(f"Speech synthesis failed: {e}") from e

        if self._stop_event.is_set():
            logger.info("speech_playback_skipped", speaker=speaker_label)
            return

        self._speaking = True
        try:
            interrupted = await self.sink.play(audio, self._stop_event)
        except Exception as e:
            raise PlaybackError(f"Speech playback failed: {e}") from e
        finally:
            self._speaking = False

        logger.info(
            "speech_playback_finished",
            speaker=speaker_label,
            duration_ms=audio.duration_ms,
            interrupted=interrupted
        )

    async def stop(self) -> None:
        if self._speaking:
            logger.info("speech_playback_stopping")
        self._stop_event.set()

    def reset(self) -> None:
        """Re-arm the player after a stop."""
        self._stop_event.clear()
