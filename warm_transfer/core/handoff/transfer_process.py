"""
Transfer Process - Executes the warm transfer workflow for one call.

Six steps run strictly in order, each one consuming the results of the
previous ones:
1. Generate the call summary, handoff script and opening response
2. Create the transfer room
3. Connect the receiving handler
4. Speak the handoff script to the receiving handler
5. Move the caller into the transfer room
6. First handler exits the call
"""

import asyncio
import threading
from collections.abc import Awaitable, Callable
from datetime import datetime, timezone

import structlog

from warm_transfer.config import TransferSettings, get_settings
from warm_transfer.core.exceptions import InvalidStepTransition
from warm_transfer.core.handoff.collaborators import (
    RoomHandle,
    RoomManager,
    SpeechPlayer,
    Summarizer,
)
from warm_transfer.models import (
    Briefing,
    CallContext,
    StepStatus,
    TransferState,
    TransferStep,
)

logger = structlog.get_logger(__name__)

CANCELLED_NOTE = " - Transfer cancelled"

STEP_DEFINITIONS: tuple[tuple[str, str], ...] = (
    ("Generate Call Summary", "AI generates a call summary for the receiving handler"),
    ("Create Transfer Room", "Create a new room for the handoff briefing"),
    ("Connect Second Handler", "The receiving handler joins the transfer room"),
    ("Brief Second Handler", "The handoff script is spoken to the receiving handler"),
    ("Transfer Caller", "Move the caller from the original room to the transfer room"),
    ("First Handler Exit", "The first handler leaves the call, completing the warm transfer"),
)

StepAction = Callable[[], Awaitable[None]]


def initial_steps() -> list[TransferStep]:
    """Build the fixed, all-pending step list."""
    return [
        TransferStep(id=index, name=name, description=description)
        for index, (name, description) in enumerate(STEP_DEFINITIONS, start=1)
    ]


class TransferProcess:
    """
    State machine for a single warm transfer.

    The process is the only writer of its steps. Every change replaces a
    frozen TransferStep under a lock, so get_steps() always returns a
    consistent snapshot while the workflow task keeps running.
    """

    def __init__(
        self,
        transfer_id: str,
        location: str,
        caller_name: str,
        first_handler_name: str,
        second_handler_name: str,
        context: CallContext,
        summarizer: Summarizer,
        room_manager: RoomManager,
        speech_player: SpeechPlayer,
        settings: TransferSettings | None = None,
    ) -> None:
        self.settings = settings or get_settings().transfer
        self.transfer_id = transfer_id
        self.location = location
        self.caller_name = caller_name
        self.first_handler_name = first_handler_name
        self.second_handler_name = second_handler_name
        self.context = context
        self.created_at = datetime.now(timezone.utc)

        self.summarizer = summarizer
        self.room_manager = room_manager
        self.speech_player = speech_player

        self._lock = threading.Lock()
        self._steps = initial_steps()
        self._briefing: Briefing | None = None
        self._source_room = RoomHandle(name=location)
        self._transfer_room: RoomHandle | None = None

        self._cancel_requested = False
        self._cancelled = False
        self._finished = False
        self._task: asyncio.Task | None = None

        self._log = logger.bind(transfer_id=transfer_id)

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    def start(self) -> asyncio.Task | None:
        """Schedule the workflow on the running loop without waiting for it."""
        if self._task is None and not self._finished:
            self._task = asyncio.create_task(
                self.run(),
                name=f"warm-transfer-{self.transfer_id}"
            )
            self._task.add_done_callback(self._on_task_done)
        return self._task

    async def run(self) -> None:
        """Execute the steps in order. Collaborator errors never escape."""
        self._log.info(
            "transfer_started",
            location=self.location,
            caller=self.caller_name,
            first_handler=self.first_handler_name,
            second_handler=self.second_handler_name,
        )

        try:
            for step_id, action, timeout in self._plan():
                if self._cancel_requested:
                    break
                if not await self._execute_step(step_id, action, timeout):
                    break

            if self._cancel_requested and not self._all_completed():
                await self._cleanup_cancelled()
        finally:
            self._finished = True

        self._log.info("transfer_finished", state=self.state.value)

    async def request_cancel(self) -> bool:
        """
        Flag the transfer for cancellation and stop active playback.

        The step currently running is allowed to resolve; the workflow
        checks the flag before starting the next one. Returns False when
        the transfer has already finished.
        """
        if self._finished:
            return False
        if self._cancel_requested:
            return True

        self._cancel_requested = True
        self._log.info("transfer_cancel_requested")
        await self._stop_playback()
        return True

    async def cancel(self) -> bool:
        """Request cancellation and wait until cleanup is done."""
        if not await self.request_cancel():
            return False

        if self._task is None:
            # Never started: nothing in flight, clean up inline
            try:
                await self._cleanup_cancelled()
            finally:
                self._finished = True
        else:
            await self.wait()
        return True

    async def wait(self) -> None:
        """Wait for the workflow task to finish."""
        if self._task is not None:
            await asyncio.shield(self._task)

    def get_steps(self) -> list[TransferStep]:
        """Snapshot copy of the steps."""
        with self._lock:
            return list(self._steps)

    def get_briefing(self) -> Briefing | None:
        """Briefing once the summary step has completed."""
        with self._lock:
            if self._steps[0].status is StepStatus.COMPLETED:
                return self._briefing
        return None

    @property
    def transfer_room(self) -> RoomHandle | None:
        return self._transfer_room

    @property
    def cancel_requested(self) -> bool:
        return self._cancel_requested

    @property
    def is_finished(self) -> bool:
        return self._finished

    @property
    def state(self) -> TransferState:
        """Overall state derived from the steps."""
        steps = self.get_steps()
        if self._cancelled:
            return TransferState.CANCELLED
        if any(step.status is StepStatus.FAILED for step in steps):
            return TransferState.FAILED
        if all(step.status is StepStatus.COMPLETED for step in steps):
            return TransferState.COMPLETED
        if self._task is None:
            return TransferState.PENDING
        return TransferState.RUNNING

    # ------------------------------------------------------------------
    # Step execution
    # ------------------------------------------------------------------

    def _plan(self) -> list[tuple[int, StepAction, float]]:
        settings = self.settings
        return [
            (1, self._generate_briefing, settings.briefing_timeout_seconds),
            (2, self._create_transfer_room, settings.room_timeout_seconds),
            (3, self._connect_second_handler, settings.connect_timeout_seconds),
            (4, self._brief_second_handler, settings.playback_timeout_seconds),
            (5, self._transfer_caller, settings.room_timeout_seconds),
            (6, self._first_handler_exit, settings.room_timeout_seconds),
        ]

    async def _execute_step(self, step_id: int, action: StepAction, timeout: float) -> bool:
        """Run one step action and record its outcome. Returns success."""
        step = self._transition(
            step_id,
            StepStatus.IN_PROGRESS,
            timestamp=datetime.now(timezone.utc)
        )
        self._log.info("transfer_step_started", step_id=step_id, step=step.name)

        try:
            await asyncio.wait_for(action(), timeout=timeout)
        except asyncio.TimeoutError:
            message = f"Timed out after {timeout:g}s"
            self._transition(step_id, StepStatus.FAILED, note=f" - Error: {message}")
            self._log.warning("transfer_step_timed_out", step_id=step_id, timeout=timeout)
            return False
        except Exception as e:
            message = str(e) or type(e).__name__
            self._transition(step_id, StepStatus.FAILED, note=f" - Error: {message}")
            self._log.error(
                "transfer_step_failed",
                step_id=step_id,
                step=step.name,
                error=message,
                error_type=type(e).__name__
            )
            return False

        self._transition(step_id, StepStatus.COMPLETED)
        self._log.info("transfer_step_completed", step_id=step_id, step=step.name)
        return True

    async def _generate_briefing(self) -> None:
        self._briefing = await self.summarizer.build_briefing(self.context)

    async def _create_transfer_room(self) -> None:
        room_name = f"{self.settings.room_prefix}{self.transfer_id}"
        self._transfer_room = await self.room_manager.create_room(room_name)
        self._log.info("transfer_room_created", room=room_name)

    async def _connect_second_handler(self) -> None:
        await self.room_manager.connect_participant(
            self._require_transfer_room(),
            self.second_handler_name
        )

    async def _brief_second_handler(self) -> None:
        if self._briefing is None:
            raise RuntimeError("No briefing available to speak")
        if self._cancel_requested:
            self._log.info("transfer_briefing_skipped")
            return
        await self.speech_player.speak(
            self._briefing.handoff_script,
            self.first_handler_name
        )

    async def _transfer_caller(self) -> None:
        await self.room_manager.move_participant(
            self.caller_name,
            self._source_room,
            self._require_transfer_room()
        )

    async def _first_handler_exit(self) -> None:
        await self.room_manager.remove_participant(
            self._source_room,
            self.first_handler_name
        )

    def _require_transfer_room(self) -> RoomHandle:
        if self._transfer_room is None:
            raise RuntimeError("Transfer room has not been created")
        return self._transfer_room

    # ------------------------------------------------------------------
    # Cancellation
    # ------------------------------------------------------------------

    async def _cleanup_cancelled(self) -> None:
        """Release resources and fail every step that has not finished."""
        await self._stop_playback()

        if self._transfer_room is not None:
            try:
                await asyncio.wait_for(
                    self.room_manager.disconnect(self._transfer_room),
                    timeout=self.settings.room_timeout_seconds
                )
            except Exception as e:
                self._log.warning(
                    "transfer_room_disconnect_failed",
                    room=self._transfer_room.name,
                    error=str(e)
                )

        with self._lock:
            for index, step in enumerate(self._steps):
                if not step.status.is_terminal:
                    self._apply(index, StepStatus.FAILED, note=CANCELLED_NOTE)
            self._cancelled = True

        self._log.info("transfer_cancelled")

    async def _stop_playback(self) -> None:
        try:
            await self.speech_player.stop()
        except Exception as e:
            self._log.warning("speech_stop_failed", error=str(e))

    # ------------------------------------------------------------------
    # Step bookkeeping
    # ------------------------------------------------------------------

    def _all_completed(self) -> bool:
        with self._lock:
            return all(step.status is StepStatus.COMPLETED for step in self._steps)

    def _transition(
        self,
        step_id: int,
        status: StepStatus,
        note: str | None = None,
        timestamp: datetime | None = None,
    ) -> TransferStep:
        with self._lock:
            return self._apply(step_id - 1, status, note=note, timestamp=timestamp)

    def _apply(
        self,
        index: int,
        status: StepStatus,
        note: str | None = None,
        timestamp: datetime | None = None,
    ) -> TransferStep:
        # Caller holds self._lock
        current = self._steps[index]
        if not current.status.can_transition_to(status):
            raise InvalidStepTransition(
                f"Step {current.id} cannot move from {current.status.value} to {status.value}"
            )

        changes: dict = {"status": status}
        if note:
            changes["description"] = current.description + note
        if timestamp is not None:
            changes["timestamp"] = timestamp

        updated = current.model_copy(update=changes)
        self._steps[index] = updated
        return updated

    def _on_task_done(self, task: asyncio.Task) -> None:
        if task.cancelled():
            self._log.warning("transfer_task_cancelled")
            return
        error = task.exception()
        if error is not None:
            self._log.error("transfer_task_crashed", error=str(error), exc_info=error)
