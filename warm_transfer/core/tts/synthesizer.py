"""
Text-to-Speech (TTS) synthesis for handoff scripts.
gTTS is the default backend; AWS Polly is available for neural voices.
"""

import asyncio
import hashlib
import io
import re
import time
from abc import ABC, abstractmethod
from collections import OrderedDict
from dataclasses import dataclass

import structlog

from warm_transfer.config import AWSSettings, TTSSettings, get_settings

logger = structlog.get_logger(__name__)


@dataclass
class SynthesisResult:
    """Result from text-to-speech synthesis."""

    audio_data: bytes
    audio_format: str  # mp3
    sample_rate: int
    duration_ms: int | None = None
    voice_id: str | None = None


def estimate_mp3_duration_ms(audio_data: bytes, bitrate_kbps: int) -> int:
    """Playback length of constant bitrate MP3 audio."""
    if bitrate_kbps <= 0:
        return 0
    return len(audio_data) * 8 // bitrate_kbps


def clean_script_text(text: str) -> str:
    """Strip markdown the LLM may have left in a script."""
    text = re.sub(r"[*_#`]+", "", text)
    text = re.sub(r"^\s*(?:[-•]|\d+[.)])\s+", "", text, flags=re.MULTILINE)
    return re.sub(r"\s+", " ", text).strip()


class TTSCache:
    """
    In-memory cache for synthesized audio.
    Oldest entries are evicted first once max_size is reached.
    """

    def __init__(self, max_size: int = 200) -> None:
        self.max_size = max_size
        self._cache: OrderedDict[str, tuple[SynthesisResult, float]] = OrderedDict()

    def get(self, key: str) -> SynthesisResult | None:
        entry = self._cache.get(key)
        return entry[0] if entry else None

    def set(self, key: str, result: SynthesisResult) -> None:
        if self.max_size <= 0:
            return
        self._cache[key] = (result, time.time())
        self._cache.move_to_end(key)
        while len(self._cache) > self.max_size:
            self._cache.popitem(last=False)

    def __len__(self) -> int:
        return len(self._cache)

    @staticmethod
    def make_key(text: str, voice: str, language: str) -> str:
        """Generate cache key."""
        content = f"{text}:{voice}:{language}"
        return hashlib.sha256(content.encode()).hexdigest()


class BaseSynthesizer(ABC):
    """Abstract base class for TTS synthesis."""

    def __init__(self, settings: TTSSettings | None = None) -> None:
        self.settings = settings or get_settings().tts
        self.cache = TTSCache(max_size=self.settings.cache_size)

    async def synthesize(self, text: str) -> SynthesisResult:
        """Synthesize speech, serving repeated text from the cache."""
        voice = self.voice_name
        cache_key = TTSCache.make_key(text, voice, self.settings.language)
        cached = self.cache.get(cache_key)
        if cached is not None:
            logger.debug("tts_cache_hit", cache_key=cache_key[:8])
            return cached

        processed = clean_script_text(text)
        logger.info(
            "synthesizing_speech",
            text_length=len(processed),
            voice=voice,
            language=self.settings.language
        )

        try:
            result = await self._synthesize(processed)
        except Exception as e:
            logger.error("tts_synthesis_failed", voice=voice, error=str(e))
            raise

        self.cache.set(cache_key, result)
        return result

    @property
    @abstractmethod
    def voice_name(self) -> str:
        """Identifier of the voice used for cache keys and logs."""

    @abstractmethod
    async def _synthesize(self, text: str) -> SynthesisResult:
        """Backend-specific synthesis."""


class GTTSSynthesizer(BaseSynthesizer):
    """
    TTS synthesizer using gTTS (Google Text-to-Speech).
    gTTS is blocking, so synthesis runs in the default executor.
    """

    # gTTS serves 24 kHz mono MP3 at 32 kbps
    SAMPLE_RATE = 24000
    BITRATE_KBPS = 32

    @property
    def voice_name(self) -> str:
        return "gtts"

    async def _synthesize(self, text: str) -> SynthesisResult:
        loop = asyncio.get_running_loop()
        audio_data = await loop.run_in_executor(
            None,
            self._synthesize_sync,
            text,
            self.settings.language
        )
        return SynthesisResult(
            audio_data=audio_data,
            audio_format="mp3",
            sample_rate=self.SAMPLE_RATE,
            duration_ms=estimate_mp3_duration_ms(audio_data, self.BITRATE_KBPS),
            voice_id=self.voice_name
        )

    @staticmethod
    def _synthesize_sync(text: str, lang_code: str) -> bytes:
        """Synchronous gTTS synthesis."""
        from gtts import gTTS

        tts = gTTS(text=text, lang=lang_code, slow=False)

        audio_buffer = io.BytesIO()
        tts.write_to_fp(audio_buffer)
        return audio_buffer.getvalue()


class AWSPollySynthesizer(BaseSynthesizer):
    """AWS Polly-based TTS synthesizer."""

    SAMPLE_RATE = 24000
    BITRATE_KBPS = 48
    NEURAL_VOICES = {"Joanna", "Matthew", "Amy", "Brian", "Kajal", "Ruth", "Stephen"}

    def __init__(
        self,
        settings: TTSSettings | None = None,
        aws_settings: AWSSettings | None = None
    ) -> None:
        super().__init__(settings)
        self.aws_settings = aws_settings or get_settings().aws
        self._session = None

    @property
    def voice_name(self) -> str:
        return self.settings.voice_id

    async def _synthesize(self, text: str) -> SynthesisResult:
        import aioboto3

        if self._session is None:
            self._session = aioboto3.Session()

        voice = self.settings.voice_id
        engine = "neural" if voice in self.NEURAL_VOICES else "standard"

        async with self._session.client(
            "polly",
            region_name=self.aws_settings.region
        ) as client:
            response = await client.synthesize_speech(
                Text=text,
                TextType="text",
                OutputFormat="mp3",
                VoiceId=voice,
                Engine=engine,
                SampleRate=str(self.SAMPLE_RATE)
            )
            audio_data = await response["AudioStream"].read()

        return SynthesisResult(
            audio_data=audio_data,
            audio_format="mp3",
            sample_rate=self.SAMPLE_RATE,
            duration_ms=estimate_mp3_duration_ms(audio_data, self.BITRATE_KBPS),
            voice_id=voice
        )


class SynthesizerFactory:
    """Factory for creating TTS synthesizer instances."""

    @staticmethod
    def create(
        settings: TTSSettings | None = None,
        aws_settings: AWSSettings | None = None
    ) -> BaseSynthesizer:
        """Create a synthesizer for the configured provider."""
        settings = settings or get_settings().tts
        if settings.provider == "gtts":
            return GTTSSynthesizer(settings)
        if settings.provider == "polly":
            return AWSPollySynthesizer(settings, aws_settings)
        raise ValueError(f"Unknown TTS provider: {settings.provider}")
