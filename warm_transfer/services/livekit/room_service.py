"""
LiveKit room management for warm transfers.
Uses the LiveKit RoomService Twirp API (JSON over HTTP) with server tokens
signed by PyJWT.
"""

import asyncio
import time
from typing import Literal

import httpx
import jwt
import structlog

from warm_transfer.config import LiveKitSettings, get_settings
from warm_transfer.core.exceptions import InvalidArgumentError, RoomError
from warm_transfer.core.handoff.collaborators import RoomHandle, RoomManager

logger = structlog.get_logger(__name__)

ParticipantRole = Literal["caller", "first_handler", "second_handler"]
HANDLER_ROLES = frozenset({"first_handler", "second_handler"})


class LiveKitRoomManager(RoomManager):
    """
    RoomManager backed by a LiveKit server.

    Every request carries a short-lived admin token scoped to the room it
    touches; MoveParticipant additionally names the destination room.
    """

    SERVICE_PATH = "/twirp/livekit.RoomService"

    def __init__(
        self,
        settings: LiveKitSettings | None = None,
        client: httpx.AsyncClient | None = None
    ) -> None:
        self.settings = settings or get_settings().livekit
        self._client = client

    async def _get_client(self) -> httpx.AsyncClient:
        """Get or create HTTP client."""
        if self._client is None or self._client.is_closed:
            self._client = httpx.AsyncClient(
                base_url=self.settings.http_url,
                headers={"Content-Type": "application/json"},
                timeout=self.settings.timeout_seconds
            )
        return self._client

    def create_token(self, room: str | None = None, destination_room: str | None = None) -> str:
        """Sign a server API token with room admin grants."""
        video: dict = {"roomCreate": True, "roomList": True, "roomAdmin": True}
        if room:
            video["room"] = room
        if destination_room:
            video["destinationRoom"] = destination_room

        return self._sign(video, ttl=self.settings.token_ttl_seconds)

    def create_participant_token(
        self,
        room: str,
        identity: str,
        role: ParticipantRole = "caller"
    ) -> str:
        """
        Sign a join token for a participant's own client.

        Handlers get roomAdmin in the room they join; callers only
        publish and subscribe.
        """
        if not room or not room.strip():
            raise InvalidArgumentError("room is required")
        if not identity or not identity.strip():
            raise InvalidArgumentError("identity is required")

        video = {
            "room": room,
            "roomJoin": True,
            "canPublish": True,
            "canSubscribe": True,
            "canPublishData": True,
            "roomAdmin": role in HANDLER_ROLES,
        }
        logger.info("livekit_participant_token_issued", room=room, identity=identity, role=role)
        return self._sign(
            video,
            ttl=self.settings.participant_token_ttl_seconds,
            sub=identity,
            name=identity,
        )

    def _sign(self, video: dict, ttl: int, **claims) -> str:
        now = int(time.time())
        payload = {
            "iss": self.settings.api_key,
            "nbf": now,
            "exp": now + ttl,
            "video": video,
            **claims,
        }
        return jwt.encode(payload, self.settings.api_secret, algorithm="HS256")

    async def _call(
        self,
        method: str,
        payload: dict,
        room: str | None = None,
        destination_room: str | None = None
    ) -> dict:
        """Invoke a RoomService method."""
        client = await self._get_client()
        token = self.create_token(room=room, destination_room=destination_room)

        try:
            response = await client.post(
                f"{self.SERVICE_PATH}/{method}",
                json=payload,
                headers={"Authorization": f"Bearer {token}"}
            )
            response.raise_for_status()
        except httpx.HTTPStatusError as e:
            logger.error(
                "livekit_api_error",
                method=method,
                status=e.response.status_code,
                detail=e.response.text[:200]
            )
            raise RoomError(
                f"LiveKit {method} failed with status {e.response.status_code}"
            ) from e
        except httpx.HTTPError as e:
            logger.error("livekit_request_failed", method=method, error=str(e))
            raise RoomError(f"LiveKit {method} request failed: {e}") from e

        return response.json() if response.content else {}

    async def create_room(self, name: str) -> RoomHandle:
        data = await self._call(
            "CreateRoom",
            {"name": name, "empty_timeout": self.settings.empty_timeout_seconds},
            room=name
        )
        logger.info("livekit_room_created", room=name, sid=data.get("sid"))
        return RoomHandle(
            name=data.get("name", name),
            sid=data.get("sid"),
            metadata={"creation_time": data.get("creation_time")}
        )

    async def list_participants(self, room: RoomHandle) -> list[str]:
        """Identities currently connected to a room."""
        data = await self._call("ListParticipants", {"room": room.name}, room=room.name)
        return [p.get("identity", "") for p in data.get("participants", [])]

    async def connect_participant(self, room: RoomHandle, identity: str) -> None:
        """
        Wait until the participant is present in the room.

        Joining is done by the participant's own client; this only confirms
        the connection, polling until presence_timeout_seconds elapses.
        """
        if not self.settings.wait_for_presence:
            logger.info("livekit_presence_skipped", room=room.name, identity=identity)
            return

        loop = asyncio.get_running_loop()
        deadline = loop.time() + self.settings.presence_timeout_seconds

        while True:
            if identity in await self.list_participants(room):
                logger.info("livekit_participant_present", room=room.name, identity=identity)
                return
            if loop.time() >= deadline:
                raise RoomError(
                    f"{identity} did not join {room.name} within "
                    f"{self.settings.presence_timeout_seconds:g}s"
                )
            await asyncio.sleep(self.settings.presence_poll_interval_seconds)

    async def move_participant(
        self,
        identity: str,
        from_room: RoomHandle,
        to_room: RoomHandle
    ) -> None:
        await self._call(
            "MoveParticipant",
            {
                "room": from_room.name,
                "identity": identity,
                "destination_room": to_room.name,
            },
            room=from_room.name,
            destination_room=to_room.name
        )
        logger.info(
            "livekit_participant_moved",
            identity=identity,
            from_room=from_room.name,
            to_room=to_room.name
        )

    async def remove_participant(self, room: RoomHandle, identity: str) -> None:
        await self._call(
            "RemoveParticipant",
            {"room": room.name, "identity": identity},
            room=room.name
        )
        logger.info("livekit_participant_removed", room=room.name, identity=identity)

    async def disconnect(self, room: RoomHandle) -> None:
        """Delete the room, disconnecting everyone in it. Never raises."""
        try:
            await self._call("DeleteRoom", {"room": room.name}, room=room.name)
            logger.info("livekit_room_deleted", room=room.name)
        except RoomError as e:
            logger.warning("livekit_room_delete_failed", room=room.name, error=str(e))

    async def close(self) -> None:
        """Close the HTTP client."""
        if self._client:
            await self._client.aclose()
