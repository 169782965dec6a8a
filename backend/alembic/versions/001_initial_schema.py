"""Initial schema: accounts, events, tickets, teams, chat and password resets.

Revision ID: 001
Revises: None
Create Date: 2026-10-19
"""
from typing import Sequence, Union
from alembic import op
import sqlalchemy as sa

revision: str = "001"
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def _timestamps() -> list[sa.Column]:
    return [
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
    ]


def upgrade() -> None:
    # Participant and admin accounts
    op.create_table(
        "users",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("username", sa.String(255), nullable=False),
        sa.Column("hashed_password", sa.String(255), nullable=False),
        sa.Column("user_type", sa.String(20), nullable=False),
        sa.Column("first_name", sa.String(100), nullable=False, server_default=""),
        sa.Column("last_name", sa.String(100), nullable=False, server_default=""),
        sa.Column("contact_number", sa.String(30), nullable=False, server_default=""),
        sa.Column("college", sa.String(255), nullable=False, server_default=""),
        sa.Column("interested_topics", sa.JSON(), nullable=False),
        sa.Column("interested_clubs", sa.JSON(), nullable=False),
        sa.Column("filled", sa.Boolean(), nullable=False, server_default=sa.text("false")),
        *_timestamps(),
        sa.CheckConstraint(
            "user_type IN ('iiit', 'non-iiit', 'organizer', 'admin')", name="check_user_type"
        ),
    )
    op.create_index("ix_users_id", "users", ["id"])
    op.create_index("ix_users_username", "users", ["username"], unique=True)

    op.create_table(
        "organizers",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("email", sa.String(255), nullable=False),
        sa.Column("hashed_password", sa.String(255), nullable=False),
        sa.Column("name", sa.String(255), nullable=False, server_default=""),
        sa.Column("category", sa.String(255), nullable=False, server_default=""),
        sa.Column("description", sa.String(2000), nullable=False, server_default=""),
        sa.Column("contact", sa.String(255), nullable=False, server_default=""),
        sa.Column("discord_webhook", sa.String(500), nullable=False, server_default=""),
        sa.Column("status", sa.String(20), nullable=False, server_default=sa.text("'active'")),
        *_timestamps(),
        sa.CheckConstraint("status IN ('active', 'archived')", name="check_organizer_status"),
    )
    op.create_index("ix_organizers_id", "organizers", ["id"])
    op.create_index("ix_organizers_email", "organizers", ["email"], unique=True)

    op.create_table(
        "events",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("organizer_id", sa.Integer(), sa.ForeignKey("organizers.id"), nullable=False),
        sa.Column("name", sa.String(255), nullable=False),
        sa.Column("description", sa.String(5000), nullable=False, server_default=""),
        sa.Column("event_type", sa.String(20), nullable=False),
        sa.Column("eligibility", sa.String(255), nullable=True),
        sa.Column("tags", sa.String(500), nullable=True),
        sa.Column("registration_deadline", sa.DateTime(timezone=True), nullable=False),
        sa.Column("start_date", sa.DateTime(timezone=True), nullable=False),
        sa.Column("end_date", sa.DateTime(timezone=True), nullable=False),
        sa.Column("registration_limit", sa.Integer(), nullable=True),
        sa.Column("registration_fee", sa.Float(), nullable=False, server_default=sa.text("0")),
        sa.Column("status", sa.String(20), nullable=False, server_default=sa.text("'Draft'")),
        sa.Column("views", sa.Integer(), nullable=False, server_default=sa.text("0")),
        sa.Column("sold_count", sa.Integer(), nullable=False, server_default=sa.text("0")),
        sa.Column("custom_fields", sa.JSON(), nullable=False),
        sa.Column("merchandise_details", sa.JSON(), nullable=True),
        *_timestamps(),
        sa.CheckConstraint(
            "event_type IN ('normal', 'merchandise', 'hackathon')", name="check_event_type"
        ),
        sa.CheckConstraint("sold_count >= 0", name="check_sold_count_non_negative"),
        sa.CheckConstraint(
            "registration_limit IS NULL OR registration_limit >= 0",
            name="check_registration_limit_non_negative",
        ),
    )
    op.create_index("ix_events_id", "events", ["id"])
    op.create_index("ix_events_organizer_id", "events", ["organizer_id"])
    # Participant browse: every non-draft event, newest first
    op.create_index("ix_events_status_created", "events", ["status", "created_at"])

    op.create_table(
        "teams",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("name", sa.String(255), nullable=False),
        sa.Column("event_id", sa.Integer(), sa.ForeignKey("events.id"), nullable=False),
        sa.Column("leader_id", sa.Integer(), sa.ForeignKey("users.id"), nullable=False),
        sa.Column("size", sa.Integer(), nullable=False),
        sa.Column("invite_code", sa.String(16), nullable=False),
        sa.Column("is_complete", sa.Boolean(), nullable=False, server_default=sa.text("false")),
        sa.Column("member_count", sa.Integer(), nullable=False, server_default=sa.text("0")),
        sa.Column("version", sa.Integer(), nullable=False, server_default=sa.text("1")),
        *_timestamps(),
        sa.CheckConstraint("size >= 1", name="check_team_size_positive"),
        sa.CheckConstraint("member_count <= size", name="check_team_not_overfilled"),
    )
    op.create_index("ix_teams_id", "teams", ["id"])
    op.create_index("ix_teams_event_id", "teams", ["event_id"])
    op.create_index("ix_teams_leader_id", "teams", ["leader_id"])
    op.create_index("ix_teams_invite_code", "teams", ["invite_code"], unique=True)

    op.create_table(
        "team_members",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("team_id", sa.Integer(), sa.ForeignKey("teams.id", ondelete="CASCADE"), nullable=False),
        sa.Column("participant_id", sa.Integer(), sa.ForeignKey("users.id"), nullable=False),
        sa.Column("status", sa.String(20), nullable=False, server_default=sa.text("'accepted'")),
        *_timestamps(),
        sa.UniqueConstraint("team_id", "participant_id", name="uq_team_member"),
        sa.CheckConstraint("status IN ('pending', 'accepted')", name="check_team_member_status"),
    )
    op.create_index("ix_team_members_id", "team_members", ["id"])
    op.create_index("ix_team_members_team_id", "team_members", ["team_id"])
    op.create_index("ix_team_members_participant_id", "team_members", ["participant_id"])

    op.create_table(
        "tickets",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("ticket_id", sa.String(512), nullable=False),
        sa.Column("event_id", sa.Integer(), sa.ForeignKey("events.id"), nullable=False),
        sa.Column("participant_id", sa.Integer(), sa.ForeignKey("users.id"), nullable=False),
        sa.Column("qr_payload", sa.Text(), nullable=False),
        sa.Column("qr_code", sa.Text(), nullable=False),
        sa.Column("type", sa.String(20), nullable=False),
        sa.Column("status", sa.String(20), nullable=False, server_default=sa.text("'Registered'")),
        sa.Column("team_id", sa.Integer(), sa.ForeignKey("teams.id"), nullable=True),
        sa.Column("team_name", sa.String(255), nullable=True),
        sa.Column("attendance_marked", sa.Boolean(), nullable=False, server_default=sa.text("false")),
        sa.Column("attendance_timestamp", sa.DateTime(timezone=True), nullable=True),
        sa.Column("manual_override", sa.Boolean(), nullable=False, server_default=sa.text("false")),
        sa.Column("override_reason", sa.String(1000), nullable=True),
        sa.Column("answers", sa.JSON(), nullable=True),
        sa.Column("merchandise_selection", sa.JSON(), nullable=True),
        *_timestamps(),
        # One ticket per participant per event, whatever its status
        sa.UniqueConstraint("event_id", "participant_id", name="uq_event_participant_ticket"),
        sa.CheckConstraint(
            "status IN ('Registered', 'Completed', 'Cancelled', 'Rejected')",
            name="check_ticket_status",
        ),
    )
    op.create_index("ix_tickets_id", "tickets", ["id"])
    op.create_index("ix_tickets_ticket_id", "tickets", ["ticket_id"], unique=True)
    op.create_index("ix_tickets_event_id", "tickets", ["event_id"])
    op.create_index("ix_tickets_participant_id", "tickets", ["participant_id"])
    op.create_index("ix_tickets_team_id", "tickets", ["team_id"])

    op.create_table(
        "chat_messages",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("team_id", sa.Integer(), sa.ForeignKey("teams.id", ondelete="CASCADE"), nullable=False),
        sa.Column("sender_id", sa.Integer(), sa.ForeignKey("users.id"), nullable=False),
        sa.Column("sender_name", sa.String(255), nullable=False),
        sa.Column("text", sa.String(4000), nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
    )
    op.create_index("ix_chat_messages_id", "chat_messages", ["id"])
    # History is always read per team in send order
    op.create_index("ix_chat_messages_team_created", "chat_messages", ["team_id", "created_at"])

    op.create_table(
        "password_resets",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("club_email", sa.String(255), nullable=False),
        sa.Column("reason", sa.String(1000), nullable=False),
        sa.Column("status", sa.String(20), nullable=False, server_default=sa.text("'Pending'")),
        *_timestamps(),
        sa.CheckConstraint(
            "status IN ('Pending', 'Approved', 'Rejected')", name="check_password_reset_status"
        ),
    )
    op.create_index("ix_password_resets_id", "password_resets", ["id"])
    op.create_index("ix_password_resets_club_email", "password_resets", ["club_email"])


def downgrade() -> None:
    op.drop_table("password_resets")
    op.drop_table("chat_messages")
    op.drop_table("tickets")
    op.drop_table("team_members")
    op.drop_table("teams")
    op.drop_table("events")
    op.drop_table("organizers")
    op.drop_table("users")
