"""
Hackathon team endpoints.
"""

from fastapi import APIRouter, Depends, status
from sqlalchemy.ext.asyncio import AsyncSession

from felicity.api.deps import get_current_participant
from felicity.db.session import get_db
from felicity.models.user import User
from felicity.schemas.team import ChatMessageResponse, TeamActionResponse, TeamCreate, TeamJoin, TeamResponse
from felicity.services import chat_service, team_service

router = APIRouter(prefix="/teams", tags=["Teams"])


@router.post("/create", response_model=TeamActionResponse, status_code=status.HTTP_201_CREATED)
async def create_team(
    data: TeamCreate,
    user: User = Depends(get_current_participant),
    db: AsyncSession = Depends(get_db),
):
    """Create a team for a hackathon and become its leader."""
    team, _ = await team_service.create_team(db, data, user)
    return TeamActionResponse(message="Team created successfully", team=team_service.team_response(team))


@router.post("/join", response_model=TeamActionResponse)
async def join_team(
    data: TeamJoin,
    user: User = Depends(get_current_participant),
    db: AsyncSession = Depends(get_db),
):
    """
    Join a team by invite code.

    The slot is claimed with optimistic locking; the join that fills the
    team issues every member's ticket.
    """
    team, _ = await team_service.join_team(db, data.invite_code, user)
    return TeamActionResponse(message="Successfully joined team", team=team_service.team_response(team))


@router.get("/my-teams", response_model=list[TeamResponse])
async def my_teams(
    user: User = Depends(get_current_participant),
    db: AsyncSession = Depends(get_db),
):
    return await team_service.list_my_teams(db, user.id)


@router.get("/{team_id}/messages", response_model=list[ChatMessageResponse])
async def team_messages(
    team_id: int,
    user: User = Depends(get_current_participant),
    db: AsyncSession = Depends(get_db),
):
    """Chat history, oldest first. Members only."""
    team = await team_service.get_team_for_member(db, team_id, user.id)
    return await chat_service.list_messages(db, team.id)
