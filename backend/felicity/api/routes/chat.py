"""
Realtime team chat over a WebSocket.

Frames in both directions are JSON objects {"event": ..., "data": {...}}.
Client events: join_team, leave_team, send_message, typing.
Server events: joined_team, receive_message, user_typing, error.
"""

import json

from fastapi import APIRouter, Depends, HTTPException, Query, WebSocket, WebSocketDisconnect, status
from sqlalchemy.ext.asyncio import AsyncSession

from felicity.api.deps import principal_from_token
from felicity.core.logging import get_logger
from felicity.core.websocket_manager import ChatHub, frame, hub
from felicity.db.session import get_db
from felicity.models.user import User
from felicity.schemas.team import ChatMessageResponse
from felicity.services import chat_service, team_service

logger = get_logger(__name__)
router = APIRouter(tags=["Chat"])


def _team_id(data: dict) -> int:
    try:
        return int(data["team_id"])
    except (KeyError, TypeError, ValueError):
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="team_id is required")


async def handle_frame(
    websocket: WebSocket,
    db: AsyncSession,
    user: User,
    raw: str,
    chat_hub: ChatHub = hub,
) -> None:
    try:
        message = json.loads(raw)
        event = message["event"]
        data = message.get("data") or {}
    except (ValueError, TypeError, KeyError):
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Malformed frame")
    if not isinstance(data, dict):
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Malformed frame")

    if event == "join_team":
        team = await team_service.get_team_for_member(db, _team_id(data), user.id)
        chat_hub.join(websocket, team.id)
        await websocket.send_text(frame("joined_team", {"team_id": team.id}))
        logger.info("chat_room_joined", team_id=team.id, user_id=user.id)

    elif event == "leave_team":
        chat_hub.leave(websocket, _team_id(data))

    elif event == "send_message":
        team = await team_service.get_team_for_member(db, _team_id(data), user.id)
        saved = await chat_service.save_message(db, team, user, data.get("text", ""))
        # Persist before fan-out so history never lags what members have seen
        await db.commit()
        payload = ChatMessageResponse.model_validate(saved).model_dump(mode="json")
        await chat_hub.broadcast(team.id, "receive_message", payload)

    elif event == "typing":
        team_id = _team_id(data)
        if not chat_hub.is_subscribed(websocket, team_id):
            raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Join the team room first")
        await chat_hub.broadcast(
            team_id,
            "user_typing",
            {"team_id": team_id, "sender_name": user.display_name},
            exclude=websocket,
        )

    else:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=f"Unknown event '{event}'")


@router.websocket("/ws/chat")
async def chat_socket(
    websocket: WebSocket,
    token: str = Query(""),
    db: AsyncSession = Depends(get_db),
):
    principal = principal_from_token(token)
    if principal is None or not principal.is_participant:
        await websocket.close(code=status.WS_1008_POLICY_VIOLATION)
        return

    user = await db.get(User, principal.id)
    if not user:
        await websocket.close(code=status.WS_1008_POLICY_VIOLATION)
        return

    await websocket.accept()
    logger.info("chat_connected", user_id=user.id)
    try:
        while True:
            raw = await websocket.receive_text()
            try:
                await handle_frame(websocket, db, user, raw)
            except HTTPException as e:
                await websocket.send_text(frame("error", {"message": e.detail}))
    except WebSocketDisconnect:
        logger.info("chat_disconnected", user_id=user.id)
    finally:
        hub.disconnect(websocket)
