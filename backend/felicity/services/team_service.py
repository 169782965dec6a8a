"""
Hackathon team formation with concurrency-safe slot claiming.

CONCURRENCY STRATEGY: Optimistic Locking with Retry
====================================================

Problem:
  Two participants join a team with one open slot at the same moment.
  Both read member_count = size - 1, both append themselves.
  Result: an overfilled team, and the completion tickets issued twice.

Solution:
  The team row carries `member_count` and a `version` column.

  1. Read the team and its current version
  2. UPDATE teams SET member_count = member_count + 1, version = version + 1,
                      is_complete = :completes
     WHERE id = :team_id AND version = :version AND member_count < size
  3. If rows_affected == 0, someone else changed the team -> re-read and retry

  Only the request whose UPDATE flips the team to complete issues the
  tickets, so completion happens exactly once. The CHECK constraint
  (member_count <= size) is the final safety net.
"""

import secrets
import string
from typing import Optional

from sqlalchemy import select, update
from sqlalchemy.ext.asyncio import AsyncSession
from fastapi import HTTPException, status

from felicity.core.logging import get_logger
from felicity.core.metrics import team_completions, team_join_retries, tickets_issued
from felicity.models.event import Event
from felicity.models.organizer import Organizer
from felicity.models.team import Team, TeamMember
from felicity.models.ticket import Ticket
from felicity.models.user import User
from felicity.schemas.team import TeamCreate, TeamMemberResponse, TeamResponse
from felicity.services.event_service import event_summary, get_open_event
from felicity.services.ticket_service import (
    build_ticket,
    capacity_error,
    ensure_ticket_ids_free,
    find_ticket,
    organizer_name_for,
    reserve_capacity,
)

logger = get_logger(__name__)

MAX_RETRY_ATTEMPTS = 3
INVITE_CODE_LENGTH = 6
INVITE_CODE_ALPHABET = string.ascii_uppercase + string.digits
MAX_INVITE_CODE_ATTEMPTS = 10


def generate_invite_code() -> str:
    return "".join(secrets.choice(INVITE_CODE_ALPHABET) for _ in range(INVITE_CODE_LENGTH))


def normalize_invite_code(code: str) -> str:
    return code.strip().upper()


async def _unused_invite_code(db: AsyncSession) -> str:
    for _ in range(MAX_INVITE_CODE_ATTEMPTS):
        code = generate_invite_code()
        result = await db.execute(select(Team.id).where(Team.invite_code == code))
        if result.scalar_one_or_none() is None:
            return code
    raise HTTPException(
        status_code=status.HTTP_409_CONFLICT,
        detail="Could not allocate an invite code. Please try again.",
    )


async def _load_team(db: AsyncSession, *criteria) -> Optional[Team]:
    """Read a team bypassing the identity map so retries see the latest row."""
    result = await db.execute(
        select(Team).where(*criteria).execution_options(populate_existing=True)
    )
    return result.scalar_one_or_none()


async def _ensure_free_for_event(db: AsyncSession, event_id: int, participant_id: int) -> None:
    """A participant holds at most one ticket and one team per event."""
    if await find_ticket(db, event_id, participant_id):
        raise HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail="You are already registered for this event.",
        )

    result = await db.execute(
        select(Team.id)
        .join(TeamMember, TeamMember.team_id == Team.id)
        .where(Team.event_id == event_id, TeamMember.participant_id == participant_id)
        .limit(1)
    )
    if result.scalar_one_or_none() is not None:
        raise HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail="You are already in a team for this event.",
        )


async def issue_team_tickets(db: AsyncSession, team: Team, event: Event) -> list[Ticket]:
    """Issue one ticket per member, reserving capacity for all of them at once."""
    for member in team.members:
        if await find_ticket(db, event.id, member.participant_id):
            raise HTTPException(
                status_code=status.HTTP_409_CONFLICT,
                detail=f"Team member {member.participant.username} is already registered for this event.",
            )

    organizer_name = await organizer_name_for(db, event)
    tickets = [build_ticket(event, organizer_name, member.participant, team=team) for member in team.members]
    await ensure_ticket_ids_free(db, [t.ticket_id for t in tickets])

    if not await reserve_capacity(db, event, len(tickets)):
        logger.warning("team_tickets_rejected_capacity", team_id=team.id, event_id=event.id)
        raise capacity_error(event)

    db.add_all(tickets)
    await db.flush()

    team_completions.inc()
    tickets_issued.labels(source="team").inc(len(tickets))
    logger.info("team_completed", team_id=team.id, event_id=event.id, tickets=len(tickets))
    return tickets


async def create_team(db: AsyncSession, data: TeamCreate, leader: User) -> tuple[Team, list[Ticket]]:
    """
    Create a team with the leader as its first accepted member.
    A team of one is complete immediately and its ticket is issued.
    """
    event = await get_open_event(db, data.event_id)
    await _ensure_free_for_event(db, event.id, leader.id)

    team = Team(
        name=data.name,
        event_id=event.id,
        leader_id=leader.id,
        size=data.size,
        invite_code=await _unused_invite_code(db),
        member_count=1,
        is_complete=data.size == 1,
        version=1,
    )
    team.members.append(TeamMember(participant_id=leader.id, participant=leader, status="accepted"))
    db.add(team)
    await db.flush()

    tickets = []
    if team.is_complete:
        tickets = await issue_team_tickets(db, team, event)

    logger.info("team_created", team_id=team.id, event_id=event.id, size=team.size, leader_id=leader.id)
    return await _load_team(db, Team.id == team.id), tickets


async def join_team(db: AsyncSession, invite_code: str, participant: User) -> tuple[Team, list[Ticket]]:
    """
    Join a team by invite code with optimistic locking.
    Retries up to MAX_RETRY_ATTEMPTS on version conflicts.
    """
    code = normalize_invite_code(invite_code)

    for attempt in range(1, MAX_RETRY_ATTEMPTS + 1):
        team = await _load_team(db, Team.invite_code == code)
        if not team:
            raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Invalid invite code")

        if team.is_complete or team.member_count >= team.size:
            raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="This team is already full")

        if team.has_member(participant.id):
            raise HTTPException(
                status_code=status.HTTP_400_BAD_REQUEST,
                detail="You are already a member of this team",
            )

        event = await get_open_event(db, team.event_id)
        await _ensure_free_for_event(db, event.id, participant.id)

        completes = team.member_count + 1 == team.size
        result = await db.execute(
            update(Team)
            .where(
                Team.id == team.id,
                Team.version == team.version,
                Team.member_count < Team.size,
            )
            .values(
                member_count=Team.member_count + 1,
                version=Team.version + 1,
                is_complete=completes,
            )
            .execution_options(synchronize_session=False)
        )

        if result.rowcount == 0:
            team_join_retries.inc()
            logger.info("team_join_retry", team_id=team.id, attempt=attempt, reason="version_conflict")
            if attempt == MAX_RETRY_ATTEMPTS:
                raise HTTPException(
                    status_code=status.HTTP_409_CONFLICT,
                    detail="Joining failed due to high demand. Please try again.",
                )
            continue

        team.members.append(
            TeamMember(participant_id=participant.id, participant=participant, status="accepted")
        )
        await db.flush()

        tickets = []
        if completes:
            tickets = await issue_team_tickets(db, team, event)

        logger.info(
            "team_joined",
            team_id=team.id,
            participant_id=participant.id,
            complete=completes,
            attempt=attempt,
        )
        return await _load_team(db, Team.id == team.id), tickets

    raise HTTPException(
        status_code=status.HTTP_409_CONFLICT,
        detail="Joining failed due to high demand. Please try again.",
    )


async def list_my_teams(db: AsyncSession, participant_id: int) -> list[TeamResponse]:
    result = await db.execute(
        select(Team)
        .join(TeamMember, TeamMember.team_id == Team.id)
        .where(TeamMember.participant_id == participant_id)
        .order_by(Team.created_at.desc(), Team.id.desc())
    )
    teams = list(result.scalars().unique().all())
    if not teams:
        return []

    rows = await db.execute(
        select(Event, Organizer.name)
        .join(Organizer, Event.organizer_id == Organizer.id, isouter=True)
        .where(Event.id.in_({t.event_id for t in teams}))
    )
    summaries = {event.id: event_summary(event, organizer_name) for event, organizer_name in rows.all()}
    return [team_response(team, summaries.get(team.event_id)) for team in teams]


async def get_team_for_member(db: AsyncSession, team_id: int, participant_id: int) -> Team:
    """The team, if the participant belongs to it (or leads it)."""
    team = await db.get(Team, team_id)
    if not team:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Team not found")

    if not team.has_member(participant_id) and team.leader_id != participant_id:
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Not a member of this team")
    return team


def team_response(team: Team, event=None) -> TeamResponse:
    return TeamResponse(
        id=team.id,
        name=team.name,
        event_id=team.event_id,
        leader_id=team.leader_id,
        size=team.size,
        invite_code=team.invite_code,
        is_complete=team.is_complete,
        members=[
            TeamMemberResponse(
                participant_id=member.participant_id,
                username=member.participant.username if member.participant else "",
                display_name=member.participant.display_name if member.participant else "",
                status=member.status,
            )
            for member in team.members
        ],
        event=event,
        created_at=team.created_at,
    )
