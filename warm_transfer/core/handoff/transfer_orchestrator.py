"""
Transfer Orchestrator - Registry of running warm transfers.

Creates and starts one TransferProcess per transfer, serves status
snapshots while the processes run, and cancels/removes them on request.
"""

import asyncio
import threading
from collections.abc import Callable
from uuid import uuid4

import structlog

from warm_transfer.config import TransferSettings, get_settings
from warm_transfer.core.exceptions import InvalidArgumentError
from warm_transfer.core.handoff.collaborators import (
    RoomManager,
    SpeechPlayer,
    Summarizer,
)
from warm_transfer.core.handoff.transfer_process import TransferProcess
from warm_transfer.models import CallContext, TransferStep

logger = structlog.get_logger(__name__)


class TransferOrchestrator:
    """
    Main entry point for warm transfers.

    The summarizer and room manager are shared by all transfers. Speech
    playback is stateful (stop() interrupts whatever is playing), so every
    process gets its own player from speech_player_factory.
    """

    def __init__(
        self,
        summarizer: Summarizer,
        room_manager: RoomManager,
        speech_player_factory: Callable[[], SpeechPlayer],
        settings: TransferSettings | None = None,
    ) -> None:
        self.settings = settings or get_settings().transfer
        self.summarizer = summarizer
        self.room_manager = room_manager
        self.speech_player_factory = speech_player_factory

        self._lock = threading.Lock()
        self._transfers: dict[str, TransferProcess] = {}
        self._issued_ids: set[str] = set()

    async def initiate(
        self,
        location: str,
        caller_name: str,
        first_handler_name: str,
        context: CallContext | None,
        second_handler_name: str | None = None,
    ) -> str:
        """
        Register and start a new warm transfer.

        Returns the transfer id immediately; the workflow keeps running in
        the background and is observed through get_status().

        Raises:
            InvalidArgumentError: a required field is missing or blank
        """
        self._validate(
            location=location,
            caller_name=caller_name,
            first_handler_name=first_handler_name,
        )
        if context is None:
            raise InvalidArgumentError("context is required")

        second_handler = (second_handler_name or "").strip() or \
            self.settings.default_second_handler_name

        with self._lock:
            transfer_id = self._new_transfer_id()
            process = TransferProcess(
                transfer_id=transfer_id,
                location=location.strip(),
                caller_name=caller_name.strip(),
                first_handler_name=first_handler_name.strip(),
                second_handler_name=second_handler,
                context=context,
                summarizer=self.summarizer,
                room_manager=self.room_manager,
                speech_player=self.speech_player_factory(),
                settings=self.settings,
            )
            self._transfers[transfer_id] = process

        logger.info(
            "transfer_initiated",
            transfer_id=transfer_id,
            location=process.location,
            call_id=context.call_id,
        )

        process.start()
        return transfer_id

    def get_status(self, transfer_id: str) -> list[TransferStep]:
        """Step snapshot for a transfer; empty list for unknown ids."""
        process = self.get_process(transfer_id)
        return process.get_steps() if process else []

    def get_process(self, transfer_id: str) -> TransferProcess | None:
        """Look up a registered transfer."""
        with self._lock:
            return self._transfers.get(transfer_id)

    async def cancel(self, transfer_id: str) -> bool:
        """
        Cancel a transfer and remove it from the registry.

        Waits for the in-flight step and the cleanup to finish. Unknown or
        already removed ids are a no-op. Returns whether a transfer was found.
        """
        process = self.get_process(transfer_id)
        if process is None:
            logger.debug("transfer_cancel_unknown", transfer_id=transfer_id)
            return False

        cancelled = await process.cancel()

        with self._lock:
            if self._transfers.get(transfer_id) is process:
                del self._transfers[transfer_id]

        logger.info(
            "transfer_removed",
            transfer_id=transfer_id,
            cancelled=cancelled,
            state=process.state.value
        )
        return True

    async def shutdown(self) -> None:
        """Cancel every registered transfer and clear the registry."""
        with self._lock:
            transfer_ids = list(self._transfers)

        if transfer_ids:
            logger.info("orchestrator_shutting_down", transfers=len(transfer_ids))

        results = await asyncio.gather(
            *(self.cancel(transfer_id) for transfer_id in transfer_ids),
            return_exceptions=True
        )
        for transfer_id, result in zip(transfer_ids, results):
            if isinstance(result, BaseException):
                logger.warning(
                    "transfer_shutdown_failed",
                    transfer_id=transfer_id,
                    error=str(result)
                )

        with self._lock:
            self._transfers.clear()

    def active_transfer_ids(self) -> list[str]:
        """Ids of transfers whose workflow is still running."""
        with self._lock:
            return [tid for tid, p in self._transfers.items() if not p.is_finished]

    def __len__(self) -> int:
        with self._lock:
            return len(self._transfers)

    def __contains__(self, transfer_id: object) -> bool:
        with self._lock:
            return transfer_id in self._transfers

    def _new_transfer_id(self) -> str:
        # Caller holds self._lock
        transfer_id = str(uuid4())
        while transfer_id in self._issued_ids:
            transfer_id = str(uuid4())
        self._issued_ids.add(transfer_id)
        return transfer_id

    @staticmethod
    def _validate(**fields: str | None) -> None:
        for name, value in fields.items():
            if value is None or not str(value).strip():
                raise InvalidArgumentError(f"{name} is required")
