"""
Tests for admin endpoints: organizer accounts and password-reset handling.
"""

import pytest
from httpx import AsyncClient

from felicity.core.security import verify_password
from felicity.models.password_reset import PasswordReset, ResetStatus
from felicity.services.admin_service import resolve_identity

from conftest import DEFAULT_PASSWORD


async def _pending_reset(db_session, email: str) -> PasswordReset:
    reset = PasswordReset(club_email=email, reason="Forgot it", status=ResetStatus.PENDING)
    db_session.add(reset)
    await db_session.commit()
    await db_session.refresh(reset)
    return reset


@pytest.mark.asyncio
async def test_create_organizer(client: AsyncClient, admin_headers):
    """Admin creates an active organizer that can log in right away."""
    response = await client.post("/api/admin/organizers", headers=admin_headers, json={
        "email": "music@example.com",
        "password": "clubpassword123",
        "name": "Music Club",
        "category": "Cultural, Music",
    })
    assert response.status_code == 201
    data = response.json()
    assert data["status"] == "active"
    assert "hashed_password" not in data

    login = await client.post("/api/auth/login", json={
        "email": "music@example.com",
        "password": "clubpassword123",
        "user_type": "organizer",
    })
    assert login.status_code == 200


@pytest.mark.asyncio
async def test_create_duplicate_organizer(client: AsyncClient, admin_headers, organizer):
    """An organizer email can only be used once."""
    response = await client.post("/api/admin/organizers", headers=admin_headers, json={
        "email": "robotics@example.com",
        "password": "clubpassword123",
        "name": "Robotics Again",
    })
    assert response.status_code == 409


@pytest.mark.asyncio
async def test_list_organizers(client: AsyncClient, admin_headers, organizer, make_organizer):
    """Every organizer is listed, archived ones included."""
    await make_organizer("old@example.com", "Old Club", status="archived")

    response = await client.get("/api/admin/organizers", headers=admin_headers)
    assert response.status_code == 200
    assert [o["email"] for o in response.json()] == ["robotics@example.com", "old@example.com"]


@pytest.mark.asyncio
async def test_organizer_routes_need_admin(client: AsyncClient, organizer_headers):
    """Organizers cannot manage organizer accounts."""
    response = await client.get("/api/admin/organizers", headers=organizer_headers)
    assert response.status_code == 403


@pytest.mark.asyncio
async def test_archive_and_reactivate_organizer(client: AsyncClient, admin_headers, organizer):
    """Archiving blocks login; reactivating restores it."""
    response = await client.put(
        f"/api/admin/organizers/{organizer.id}/archive",
        headers=admin_headers,
        json={"status": "archived"},
    )
    assert response.status_code == 200
    assert response.json()["status"] == "archived"

    credentials = {"email": "robotics@example.com", "password": DEFAULT_PASSWORD, "user_type": "organizer"}
    assert (await client.post("/api/auth/login", json=credentials)).status_code == 403

    response = await client.put(
        f"/api/admin/organizers/{organizer.id}/archive",
        headers=admin_headers,
        json={"status": "active"},
    )
    assert response.status_code == 200
    assert (await client.post("/api/auth/login", json=credentials)).status_code == 200


@pytest.mark.asyncio
async def test_archived_organizer_token_is_rejected(client: AsyncClient, admin_headers, organizer, organizer_headers):
    """A token issued before archiving stops working on organizer routes."""
    await client.put(
        f"/api/admin/organizers/{organizer.id}/archive",
        headers=admin_headers,
        json={"status": "archived"},
    )
    response = await client.get("/api/organizer/events", headers=organizer_headers)
    assert response.status_code == 403


@pytest.mark.asyncio
async def test_delete_organizer(client: AsyncClient, admin_headers, make_organizer):
    """An organizer without events can be deleted."""
    doomed = await make_organizer("doomed@example.com", "Doomed Club")

    response = await client.delete(f"/api/admin/organizers/{doomed.id}", headers=admin_headers)
    assert response.status_code == 200

    response = await client.get("/api/admin/organizers", headers=admin_headers)
    assert response.json() == []


@pytest.mark.asyncio
async def test_delete_organizer_with_events_refused(client: AsyncClient, admin_headers, organizer, published_event):
    """Organizers who own events must be archived instead."""
    response = await client.delete(f"/api/admin/organizers/{organizer.id}", headers=admin_headers)
    assert response.status_code == 400


@pytest.mark.asyncio
async def test_delete_unknown_organizer(client: AsyncClient, admin_headers):
    response = await client.delete("/api/admin/organizers/999", headers=admin_headers)
    assert response.status_code == 404


@pytest.mark.asyncio
async def test_approve_password_reset(client: AsyncClient, db_session, admin_headers, organizer):
    """Approval rewrites the organizer's password and closes the request."""
    reset = await _pending_reset(db_session, "robotics@example.com")

    response = await client.get("/api/admin/password-resets", headers=admin_headers)
    assert [r["id"] for r in response.json()] == [reset.id]

    response = await client.put(
        f"/api/admin/password-resets/{reset.id}",
        headers=admin_headers,
        json={"action": "Approve", "new_password": "brandnewpass123"},
    )
    assert response.status_code == 200
    assert response.json()["status"] == "Approved"

    login = await client.post("/api/auth/login", json={
        "email": "robotics@example.com",
        "password": "brandnewpass123",
        "user_type": "organizer",
    })
    assert login.status_code == 200

    response = await client.put(
        f"/api/admin/password-resets/{reset.id}",
        headers=admin_headers,
        json={"action": "Reject"},
    )
    assert response.status_code == 400
    assert response.json()["message"] == "Request already processed"


@pytest.mark.asyncio
async def test_approve_requires_new_password(client: AsyncClient, db_session, admin_headers, organizer):
    reset = await _pending_reset(db_session, "robotics@example.com")

    response = await client.put(
        f"/api/admin/password-resets/{reset.id}",
        headers=admin_headers,
        json={"action": "Approve"},
    )
    assert response.status_code == 400


@pytest.mark.asyncio
async def test_reject_password_reset(client: AsyncClient, db_session, admin_headers, organizer):
    """Rejection leaves the password untouched."""
    reset = await _pending_reset(db_session, "robotics@example.com")

    response = await client.put(
        f"/api/admin/password-resets/{reset.id}",
        headers=admin_headers,
        json={"action": "Reject"},
    )
    assert response.status_code == 200
    assert response.json()["status"] == "Rejected"
    assert verify_password(DEFAULT_PASSWORD, organizer.hashed_password)


@pytest.mark.asyncio
async def test_resolve_unknown_request(client: AsyncClient, admin_headers):
    response = await client.put(
        "/api/admin/password-resets/42",
        headers=admin_headers,
        json={"action": "Reject"},
    )
    assert response.status_code == 404


@pytest.mark.asyncio
async def test_approval_updates_every_account_with_the_login(
    client: AsyncClient, db_session, admin_headers, organizer, make_participant
):
    """A login present in both account stores gets the new password in both."""
    shared = await make_participant("robotics@example.com")
    reset = await _pending_reset(db_session, "robotics@example.com")

    identity = await resolve_identity(db_session, "robotics@example.com")
    assert identity.organizer.id == organizer.id
    assert identity.participant.id == shared.id

    response = await client.put(
        f"/api/admin/password-resets/{reset.id}",
        headers=admin_headers,
        json={"action": "Approve", "new_password": "brandnewpass123"},
    )
    assert response.status_code == 200

    await db_session.refresh(organizer)
    await db_session.refresh(shared)
    assert verify_password("brandnewpass123", organizer.hashed_password)
    assert verify_password("brandnewpass123", shared.hashed_password)


@pytest.mark.asyncio
async def test_resolve_identity_unknown_login(db_session):
    identity = await resolve_identity(db_session, "nobody@example.com")
    assert not identity.found
    assert identity.accounts == []
