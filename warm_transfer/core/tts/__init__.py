"""Text-to-Speech (TTS) module."""

from warm_transfer.core.tts.speech_player import (
    AudioSink,
    PacedAudioSink,
    SynthesizedSpeechPlayer,
)
from warm_transfer.core.tts.synthesizer import (
    AWSPollySynthesizer,
    BaseSynthesizer,
    GTTSSynthesizer,
    SynthesisResult,
    SynthesizerFactory,
    TTSCache,
)

__all__ = [
    "AWSPollySynthesizer",
    "AudioSink",
    "BaseSynthesizer",
    "GTTSSynthesizer",
    "PacedAudioSink",
    "SynthesisResult",
    "SynthesizedSpeechPlayer",
    "SynthesizerFactory",
    "TTSCache",
]
