"""LiveKit room management."""
from warm_transfer.services.livekit.room_service import LiveKitRoomManager, ParticipantRole

__all__ = ["LiveKitRoomManager", "ParticipantRole"]
