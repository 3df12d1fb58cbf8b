"""Tests for the LiveKit RoomService client."""

import json

import httpx
import jwt
import pytest

from warm_transfer.config import LiveKitSettings
from warm_transfer.core.exceptions import InvalidArgumentError, RoomError
from warm_transfer.core.handoff import RoomHandle
from warm_transfer.services.livekit import LiveKitRoomManager

API_SECRET = "test-secret-with-enough-bytes-for-hs256"


class FakeLiveKit:
    """Minimal RoomService stand-in served through httpx.MockTransport."""

    def __init__(self) -> None:
        self.requests: list[tuple[str, dict, dict]] = []
        self.participants: list[list[str]] = []
        self.fail_status: int | None = None

    def __call__(self, request: httpx.Request) -> httpx.Response:
        method = request.url.path.rsplit("/", 1)[-1]
        token = request.headers["Authorization"].removeprefix("Bearer ")
        claims = jwt.decode(token, API_SECRET, algorithms=["HS256"])
        payload = json.loads(request.content) if request.content else {}
        self.requests.append((method, payload, claims))

        if self.fail_status:
            return httpx.Response(self.fail_status, json={"code": "internal", "msg": "boom"})
        if method == "CreateRoom":
            return httpx.Response(200, json={
                "sid": "RM_abc",
                "name": payload["name"],
                "creation_time": "1700000000",
            })
        if method == "ListParticipants":
            identities = self.participants.pop(0) if self.participants else []
            return httpx.Response(200, json={
                "participants": [{"identity": identity} for identity in identities]
            })
        return httpx.Response(200, json={})


def make_manager(server: FakeLiveKit, **overrides) -> LiveKitRoomManager:
    settings = LiveKitSettings(
        url="ws://livekit.test:7880",
        api_key="devkey",
        api_secret=API_SECRET,
        presence_timeout_seconds=0.3,
        presence_poll_interval_seconds=0.01,
        **overrides,
    )
    client = httpx.AsyncClient(base_url=settings.http_url, transport=httpx.MockTransport(server))
    return LiveKitRoomManager(settings, client=client)


def test_http_url_maps_websocket_schemes():
    assert LiveKitSettings(url="wss://lk.example.com/").http_url == "https://lk.example.com"
    assert LiveKitSettings(url="ws://localhost:7880").http_url == "http://localhost:7880"
    assert LiveKitSettings(url="https://lk.example.com").http_url == "https://lk.example.com"


def test_token_claims():
    manager = LiveKitRoomManager(LiveKitSettings(api_key="devkey", api_secret=API_SECRET))

    token = manager.create_token(room="room-9", destination_room="transfer_1")
    claims = jwt.decode(token, API_SECRET, algorithms=["HS256"])

    assert claims["iss"] == "devkey"
    assert claims["exp"] - claims["nbf"] == 600
    assert claims["video"] == {
        "roomCreate": True,
        "roomList": True,
        "roomAdmin": True,
        "room": "room-9",
        "destinationRoom": "transfer_1",
    }


@pytest.mark.parametrize(
    "role,room_admin",
    [("caller", False), ("first_handler", True), ("second_handler", True)],
)
def test_participant_token_claims(role, room_admin):
    manager = LiveKitRoomManager(LiveKitSettings(api_key="devkey", api_secret=API_SECRET))

    token = manager.create_participant_token(room="transfer_t-1", identity="Agent B", role=role)
    claims = jwt.decode(token, API_SECRET, algorithms=["HS256"])

    assert claims["iss"] == "devkey"
    assert claims["sub"] == "Agent B"
    assert claims["name"] == "Agent B"
    assert claims["exp"] - claims["nbf"] == 21600
    assert claims["video"] == {
        "room": "transfer_t-1",
        "roomJoin": True,
        "canPublish": True,
        "canSubscribe": True,
        "canPublishData": True,
        "roomAdmin": room_admin,
    }


@pytest.mark.parametrize(
    "room,identity,field",
    [("", "Sarah", "room"), ("room-9", "  ", "identity")],
)
def test_participant_token_requires_room_and_identity(room, identity, field):
    manager = LiveKitRoomManager(LiveKitSettings(api_secret=API_SECRET))

    with pytest.raises(InvalidArgumentError, match=f"{field} is required"):
        manager.create_participant_token(room=room, identity=identity)


def test_ws_url_maps_http_schemes():
    assert LiveKitSettings(url="https://lk.example.com/").ws_url == "wss://lk.example.com"
    assert LiveKitSettings(url="http://localhost:7880").ws_url == "ws://localhost:7880"
    assert LiveKitSettings(url="wss://lk.example.com").ws_url == "wss://lk.example.com"


@pytest.mark.asyncio
async def test_create_room():
    server = FakeLiveKit()
    manager = make_manager(server)

    room = await manager.create_room("transfer_1")

    assert room == RoomHandle(name="transfer_1", sid="RM_abc")
    assert room.metadata == {"creation_time": "1700000000"}
    method, payload, claims = server.requests[0]
    assert method == "CreateRoom"
    assert payload == {"name": "transfer_1", "empty_timeout": 300}
    assert claims["video"]["room"] == "transfer_1"


@pytest.mark.asyncio
async def test_move_participant_grants_destination_room():
    server = FakeLiveKit()
    manager = make_manager(server)

    await manager.move_participant("Sarah", RoomHandle("room-9"), RoomHandle("transfer_1"))

    method, payload, claims = server.requests[0]
    assert method == "MoveParticipant"
    assert payload == {"room": "room-9", "identity": "Sarah", "destination_room": "transfer_1"}
    assert claims["video"]["room"] == "room-9"
    assert claims["video"]["destinationRoom"] == "transfer_1"


@pytest.mark.asyncio
async def test_remove_participant():
    server = FakeLiveKit()
    manager = make_manager(server)

    await manager.remove_participant(RoomHandle("room-9"), "Alice")

    assert server.requests[0][:2] == ("RemoveParticipant", {"room": "room-9", "identity": "Alice"})


@pytest.mark.asyncio
async def test_error_status_raises_room_error():
    server = FakeLiveKit()
    server.fail_status = 500
    manager = make_manager(server)

    with pytest.raises(RoomError, match="LiveKit CreateRoom failed with status 500"):
        await manager.create_room("transfer_1")


@pytest.mark.asyncio
async def test_connection_error_raises_room_error():
    def handler(request: httpx.Request) -> httpx.Response:
        raise httpx.ConnectError("connection refused")

    settings = LiveKitSettings(api_secret=API_SECRET)
    client = httpx.AsyncClient(base_url=settings.http_url, transport=httpx.MockTransport(handler))
    manager = LiveKitRoomManager(settings, client=client)

    with pytest.raises(RoomError, match="LiveKit RemoveParticipant request failed"):
        await manager.remove_participant(RoomHandle("room-9"), "Alice")


@pytest.mark.asyncio
async def test_disconnect_never_raises():
    server = FakeLiveKit()
    server.fail_status = 404
    manager = make_manager(server)

    await manager.disconnect(RoomHandle("transfer_1"))

    assert server.requests[0][:2] == ("DeleteRoom", {"room": "transfer_1"})


@pytest.mark.asyncio
async def test_connect_participant_polls_until_present():
    server = FakeLiveKit()
    server.participants = [[], ["Caller"], ["Caller", "Agent B"]]
    manager = make_manager(server)

    await manager.connect_participant(RoomHandle("transfer_1"), "Agent B")

    assert [r[0] for r in server.requests] == ["ListParticipants"] * 3


@pytest.mark.asyncio
async def test_connect_participant_times_out():
    server = FakeLiveKit()
    manager = make_manager(server)

    with pytest.raises(RoomError, match="Agent B did not join transfer_1 within 0.3s"):
        await manager.connect_participant(RoomHandle("transfer_1"), "Agent B")


@pytest.mark.asyncio
async def test_connect_participant_can_skip_presence_check():
    server = FakeLiveKit()
    manager = make_manager(server, wait_for_presence=False)

    await manager.connect_participant(RoomHandle("transfer_1"), "Agent B")

    assert server.requests == []
