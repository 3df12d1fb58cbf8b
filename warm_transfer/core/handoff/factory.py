"""
Wiring of the production collaborators into a TransferOrchestrator.
"""

from dataclasses import dataclass

import structlog

from warm_transfer.config import Settings, get_settings
from warm_transfer.core.handoff.summary_generator import LLMSummarizer
from warm_transfer.core.handoff.transfer_orchestrator import TransferOrchestrator
from warm_transfer.core.tts import SynthesizedSpeechPlayer, SynthesizerFactory
from warm_transfer.services.groq import GroqLLMService
from warm_transfer.services.livekit import LiveKitRoomManager

logger = structlog.get_logger(__name__)


@dataclass
class TransferRuntime:
    """Orchestrator plus the clients it owns."""

    orchestrator: TransferOrchestrator
    llm: GroqLLMService
    room_manager: LiveKitRoomManager

    async def close(self) -> None:
        """Cancel running transfers, then release HTTP clients."""
        await self.orchestrator.shutdown()
        await self.llm.close()
        await self.room_manager.close()


def build_transfer_runtime(settings: Settings | None = None) -> TransferRuntime:
    """Create the orchestrator backed by Groq, LiveKit and the configured TTS."""
    settings = settings or get_settings()

    llm = GroqLLMService(settings.groq)
    room_manager = LiveKitRoomManager(settings.livekit)
    synthesizer = SynthesizerFactory.create(settings.tts, settings.aws)

    orchestrator = TransferOrchestrator(
        summarizer=LLMSummarizer(llm),
        room_manager=room_manager,
        speech_player_factory=lambda: SynthesizedSpeechPlayer(synthesizer),
        settings=settings.transfer,
    )

    logger.info(
        "transfer_runtime_built",
        llm_model=settings.groq.model_id,
        livekit_url=settings.livekit.http_url,
        tts_provider=settings.tts.provider
    )
    return TransferRuntime(orchestrator=orchestrator, llm=llm, room_manager=room_manager)
