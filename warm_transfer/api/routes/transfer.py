"""
Warm transfer API routes.
Start a transfer, poll its step progress, cancel it, preview the
briefing, and issue LiveKit join tokens for caller and handler clients.
"""

import structlog
from fastapi import APIRouter, Depends, HTTPException, Request
from prometheus_client import Counter
from pydantic import BaseModel, Field

from warm_transfer.core.exceptions import GenerationError, InvalidArgumentError
from warm_transfer.core.handoff import TransferOrchestrator
from warm_transfer.models import Briefing, CallContext, TransferStep
from warm_transfer.services.livekit import LiveKitRoomManager, ParticipantRole

logger = structlog.get_logger(__name__)
router = APIRouter(prefix="/transfer", tags=["Transfer"])

TRANSFER_COUNT = Counter(
    "warm_transfer_transfers_total",
    "Transfer requests handled",
    ["action"]
)


def get_orchestrator(request: Request) -> TransferOrchestrator:
    """Orchestrator owned by the application lifespan."""
    orchestrator = getattr(request.app.state, "orchestrator", None)
    if orchestrator is None:
        raise HTTPException(status_code=503, detail="Transfer service not ready")
    return orchestrator


def get_token_issuer(
    orchestrator: TransferOrchestrator = Depends(get_orchestrator),
) -> LiveKitRoomManager:
    """LiveKit room manager used by the running orchestrator."""
    room_manager = orchestrator.room_manager
    if not isinstance(room_manager, LiveKitRoomManager):
        raise HTTPException(status_code=503, detail="Participant tokens are not available")
    return room_manager


# Request/Response Models
class InitiateTransferRequest(BaseModel):
    """Request to start a warm transfer."""

    room_name: str
    caller_name: str
    first_handler_name: str
    call_context: CallContext
    second_handler_name: str | None = None


class InitiateTransferResponse(BaseModel):
    success: bool
    transfer_id: str
    message: str


class CancelTransferRequest(BaseModel):
    transfer_id: str


class CancelTransferResponse(BaseModel):
    success: bool
    message: str


class ParticipantTokenRequest(BaseModel):
    """Request for a LiveKit join token."""

    room_name: str | None = None
    participant_name: str | None = None
    participant_role: ParticipantRole = "caller"


class ParticipantTokenResponse(BaseModel):
    token: str
    ws_url: str


class BriefingRequest(BaseModel):
    call_context: CallContext


class BriefingResponse(BaseModel):
    """Briefing as shown to the receiving handler."""

    summary: str
    key_points: list[str] = Field(default_factory=list)
    recommended_actions: list[str] = Field(default_factory=list)
    customer_context: str = ""
    handoff_script: str
    opening_response: str

    @classmethod
    def from_briefing(cls, briefing: Briefing) -> "BriefingResponse":
        return cls(
            summary=briefing.summary.summary,
            key_points=list(briefing.summary.key_points),
            recommended_actions=list(briefing.summary.recommended_actions),
            customer_context=briefing.summary.customer_context,
            handoff_script=briefing.handoff_script,
            opening_response=briefing.opening_response,
        )


class TransferStatusResponse(BaseModel):
    success: bool
    transfer_id: str
    state: str
    steps: list[TransferStep]
    briefing: BriefingResponse | None = None


@router.post("/initiate", response_model=InitiateTransferResponse)
async def initiate_transfer(
    request: InitiateTransferRequest,
    orchestrator: TransferOrchestrator = Depends(get_orchestrator),
):
    """
    Start a warm transfer.

    Returns as soon as the transfer is registered; poll /status for progress.
    """
    try:
        transfer_id = await orchestrator.initiate(
            location=request.room_name,
            caller_name=request.caller_name,
            first_handler_name=request.first_handler_name,
            context=request.call_context,
            second_handler_name=request.second_handler_name,
        )
    except InvalidArgumentError as e:
        raise HTTPException(status_code=400, detail=str(e))

    TRANSFER_COUNT.labels(action="initiate").inc()

    return InitiateTransferResponse(
        success=True,
        transfer_id=transfer_id,
        message="Warm transfer initiated"
    )


@router.get("/status/{transfer_id}", response_model=TransferStatusResponse)
async def get_transfer_status(
    transfer_id: str,
    orchestrator: TransferOrchestrator = Depends(get_orchestrator),
):
    """Current step snapshot of a transfer."""
    process = orchestrator.get_process(transfer_id)
    if process is None:
        raise HTTPException(status_code=404, detail="Transfer not found")

    briefing = process.get_briefing()
    return TransferStatusResponse(
        success=True,
        transfer_id=transfer_id,
        state=process.state.value,
        steps=process.get_steps(),
        briefing=BriefingResponse.from_briefing(briefing) if briefing else None,
    )


@router.post("/cancel", response_model=CancelTransferResponse)
async def cancel_transfer(
    request: CancelTransferRequest,
    orchestrator: TransferOrchestrator = Depends(get_orchestrator),
):
    """
    Cancel a transfer and drop it from the registry.

    Unknown or already cancelled ids succeed as well.
    """
    found = await orchestrator.cancel(request.transfer_id)
    if found:
        TRANSFER_COUNT.labels(action="cancel").inc()

    logger.info("transfer_cancel_requested", transfer_id=request.transfer_id, found=found)

    return CancelTransferResponse(
        success=True,
        message="Transfer cancelled" if found else "Transfer not active"
    )


@router.post("/briefing", response_model=BriefingResponse)
async def preview_briefing(
    request: BriefingRequest,
    orchestrator: TransferOrchestrator = Depends(get_orchestrator),
):
    """Generate the summary, handoff script and opening without starting a transfer."""
    try:
        briefing = await orchestrator.summarizer.build_briefing(request.call_context)
    except GenerationError as e:
        logger.warning("briefing_preview_failed", call_id=request.call_context.call_id, error=str(e))
        raise HTTPException(status_code=502, detail=str(e))

    TRANSFER_COUNT.labels(action="briefing").inc()
    return BriefingResponse.from_briefing(briefing)


@router.post("/token", response_model=ParticipantTokenResponse)
async def create_participant_token(
    request: ParticipantTokenRequest,
    room_manager: LiveKitRoomManager = Depends(get_token_issuer),
):
    """
    Issue a LiveKit join token for a caller or handler client.

    The receiving handler uses this to join the transfer room.
    """
    if not (request.room_name or "").strip() or not (request.participant_name or "").strip():
        raise HTTPException(
            status_code=400,
            detail="room_name and participant_name are required"
        )

    token = room_manager.create_participant_token(
        room=request.room_name.strip(),
        identity=request.participant_name.strip(),
        role=request.participant_role,
    )

    TRANSFER_COUNT.labels(action="token").inc()
    return ParticipantTokenResponse(token=token, ws_url=room_manager.settings.ws_url)
