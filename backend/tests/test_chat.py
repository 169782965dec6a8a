"""
Tests for team chat: the connection hub and the frame handler behind the
WebSocket endpoint.
"""

import json

import pytest
from fastapi import HTTPException
from fastapi.testclient import TestClient
from starlette.websockets import WebSocketDisconnect

from felicity.api.routes.chat import handle_frame
from felicity.core.websocket_manager import ChatHub, frame
from felicity.main import app
from felicity.schemas.team import TeamCreate
from felicity.services import chat_service, team_service


class FakeWebSocket:
    """Collects the frames sent to one client."""

    def __init__(self, fail: bool = False):
        self.sent = []
        self.fail = fail

    async def send_text(self, text: str) -> None:
        if self.fail:
            raise RuntimeError("connection closed")
        self.sent.append(json.loads(text))


def _raw(event: str, **data) -> str:
    return json.dumps({"event": event, "data": data})


async def _team(db_session, leader, size: int = 3, event=None):
    team, _ = await team_service.create_team(
        db_session,
        TeamCreate(name="Null Pointers", event_id=event.id, size=size),
        leader,
    )
    return team


def test_frame_format():
    assert json.loads(frame("user_typing", {"team_id": 1})) == {"event": "user_typing", "data": {"team_id": 1}}


def test_hub_rooms():
    hub = ChatHub()
    first, second = FakeWebSocket(), FakeWebSocket()

    hub.join(first, 1)
    hub.join(second, 1)
    hub.join(first, 2)
    assert hub.room_size(1) == 2
    assert hub.is_subscribed(first, 2)

    hub.leave(second, 1)
    assert hub.room_size(1) == 1

    hub.disconnect(first)
    assert hub.rooms == {}


@pytest.mark.asyncio
async def test_hub_broadcast_skips_excluded_and_drops_dead_connections():
    hub = ChatHub()
    sender, listener, dead = FakeWebSocket(), FakeWebSocket(), FakeWebSocket(fail=True)
    for connection in (sender, listener, dead):
        hub.join(connection, 7)

    delivered = await hub.broadcast(7, "user_typing", {"team_id": 7}, exclude=sender)

    assert delivered == 1
    assert sender.sent == []
    assert listener.sent == [{"event": "user_typing", "data": {"team_id": 7}}]
    assert not hub.is_subscribed(dead, 7)
    assert hub.room_size(7) == 2


@pytest.mark.asyncio
async def test_join_and_send_message(db_session, participant, other_participant, hackathon_event):
    """Messages are persisted and delivered to every connection in the room, sender included."""
    team = await _team(db_session, participant, event=hackathon_event)
    await team_service.join_team(db_session, team.invite_code, other_participant)

    hub = ChatHub()
    alice_ws, bob_ws = FakeWebSocket(), FakeWebSocket()
    await handle_frame(alice_ws, db_session, participant, _raw("join_team", team_id=team.id), chat_hub=hub)
    await handle_frame(bob_ws, db_session, other_participant, _raw("join_team", team_id=team.id), chat_hub=hub)
    assert alice_ws.sent == [{"event": "joined_team", "data": {"team_id": team.id}}]

    await handle_frame(
        alice_ws, db_session, participant,
        _raw("send_message", team_id=team.id, text="  hello team  "),
        chat_hub=hub,
    )

    for ws in (alice_ws, bob_ws):
        received = ws.sent[-1]
        assert received["event"] == "receive_message"
        assert received["data"]["text"] == "hello team"
        assert received["data"]["sender_id"] == participant.id

    history = await chat_service.list_messages(db_session, team.id)
    assert [m.text for m in history] == ["hello team"]


@pytest.mark.asyncio
async def test_typing_goes_to_everyone_but_the_typist(db_session, participant, other_participant, hackathon_event):
    team = await _team(db_session, participant, event=hackathon_event)
    await team_service.join_team(db_session, team.invite_code, other_participant)

    hub = ChatHub()
    alice_ws, bob_ws = FakeWebSocket(), FakeWebSocket()
    await handle_frame(alice_ws, db_session, participant, _raw("join_team", team_id=team.id), chat_hub=hub)
    await handle_frame(bob_ws, db_session, other_participant, _raw("join_team", team_id=team.id), chat_hub=hub)

    await handle_frame(alice_ws, db_session, participant, _raw("typing", team_id=team.id), chat_hub=hub)

    assert alice_ws.sent[-1]["event"] == "joined_team"
    assert bob_ws.sent[-1] == {
        "event": "user_typing",
        "data": {"team_id": team.id, "sender_name": participant.display_name},
    }


@pytest.mark.asyncio
async def test_typing_requires_joining_the_room(db_session, participant, hackathon_event):
    team = await _team(db_session, participant, event=hackathon_event)

    with pytest.raises(HTTPException) as exc_info:
        await handle_frame(FakeWebSocket(), db_session, participant, _raw("typing", team_id=team.id), chat_hub=ChatHub())
    assert exc_info.value.status_code == 403


@pytest.mark.asyncio
async def test_outsiders_cannot_join_or_post(db_session, participant, other_participant, hackathon_event):
    team = await _team(db_session, participant, event=hackathon_event)
    hub = ChatHub()

    for raw in (_raw("join_team", team_id=team.id), _raw("send_message", team_id=team.id, text="hi")):
        with pytest.raises(HTTPException) as exc_info:
            await handle_frame(FakeWebSocket(), db_session, other_participant, raw, chat_hub=hub)
        assert exc_info.value.status_code == 403

    assert hub.room_size(team.id) == 0
    assert await chat_service.list_messages(db_session, team.id) == []


@pytest.mark.asyncio
async def test_leave_team(db_session, participant, hackathon_event):
    team = await _team(db_session, participant, event=hackathon_event)
    hub = ChatHub()
    ws = FakeWebSocket()

    await handle_frame(ws, db_session, participant, _raw("join_team", team_id=team.id), chat_hub=hub)
    await handle_frame(ws, db_session, participant, _raw("leave_team", team_id=team.id), chat_hub=hub)
    assert not hub.is_subscribed(ws, team.id)


@pytest.mark.asyncio
async def test_empty_message_is_rejected(db_session, participant, hackathon_event):
    team = await _team(db_session, participant, event=hackathon_event)

    with pytest.raises(HTTPException) as exc_info:
        await handle_frame(
            FakeWebSocket(), db_session, participant,
            _raw("send_message", team_id=team.id, text="   "),
            chat_hub=ChatHub(),
        )
    assert exc_info.value.status_code == 400


@pytest.mark.asyncio
@pytest.mark.parametrize("raw", ["not json", json.dumps({"data": {}}), _raw("dance", team_id=1), _raw("join_team")])
async def test_bad_frames(db_session, participant, raw):
    with pytest.raises(HTTPException) as exc_info:
        await handle_frame(FakeWebSocket(), db_session, participant, raw, chat_hub=ChatHub())
    assert exc_info.value.status_code == 400


def test_socket_rejects_missing_token():
    """Connections without a valid participant token are closed with a policy violation."""
    test_client = TestClient(app)
    with pytest.raises(WebSocketDisconnect) as exc_info:
        with test_client.websocket_connect("/api/ws/chat?token=bogus") as ws:
            ws.receive_text()
    assert exc_info.value.code == 1008
