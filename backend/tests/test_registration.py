"""
Tests for registration, tickets and cancellation, including the capacity
edge cases for limited and merchandise events.
"""

import json

import pytest
from httpx import AsyncClient
from sqlalchemy import select

from felicity.api.routes import participant as participant_routes
from felicity.models.event import Event, EventStatus
from felicity.models.ticket import Ticket, TicketStatus
from felicity.services.qr_service import data_url_to_png


async def _sold_count(db_session, event_id: int) -> int:
    result = await db_session.execute(select(Event.sold_count).where(Event.id == event_id))
    return result.scalar_one()


@pytest.mark.asyncio
async def test_register_issues_ticket(client: AsyncClient, participant, participant_headers, published_event):
    """Registration derives the ticket id from club, event and login and embeds it in the QR payload."""
    response = await client.post(
        f"/api/participant/events/{published_event.id}/register",
        headers=participant_headers,
        json={},
    )
    assert response.status_code == 201
    ticket = response.json()["ticket"]
    assert ticket["ticket_id"] == "RoboticsClubHackNight20_alice@example.com"
    assert ticket["status"] == "Registered"
    assert ticket["type"] == "normal"
    assert ticket["attendance_marked"] is False
    assert ticket["qr_code"].startswith("data:image/png;base64,")
    assert data_url_to_png(ticket["qr_code"]).startswith(b"\x89PNG")

    payload = json.loads(ticket["qr_payload"])
    assert payload["ticket_id"] == ticket["ticket_id"]
    assert payload["event_id"] == published_event.id
    assert payload["participant_id"] == participant.id


@pytest.mark.asyncio
async def test_register_schedules_confirmation_mail(
    client: AsyncClient, participant_headers, published_event, monkeypatch
):
    sent = []

    def record(to_email, event_name, event_type, organizer_name, ticket_id, qr_png):
        sent.append((to_email, event_name, organizer_name, ticket_id))

    monkeypatch.setattr(participant_routes, "send_ticket_email", record)

    await client.post(f"/api/participant/events/{published_event.id}/register", headers=participant_headers, json={})
    assert sent == [(
        "alice@example.com",
        "Hack-Night 2.0",
        "Robotics Club",
        "RoboticsClubHackNight20_alice@example.com",
    )]


@pytest.mark.asyncio
async def test_register_twice_conflicts(client: AsyncClient, participant_headers, published_event):
    url = f"/api/participant/events/{published_event.id}/register"
    assert (await client.post(url, headers=participant_headers, json={})).status_code == 201

    response = await client.post(url, headers=participant_headers, json={})
    assert response.status_code == 409
    assert response.json()["message"] == "You are already registered for this event."


@pytest.mark.asyncio
async def test_last_slot_goes_to_one_participant(
    client: AsyncClient, db_session, participant_headers, other_headers, make_event, organizer
):
    """With one slot left, the second registration is refused and nothing is oversold."""
    event = await make_event(organizer, registration_limit=1)
    url = f"/api/participant/events/{event.id}/register"

    assert (await client.post(url, headers=participant_headers, json={})).status_code == 201

    response = await client.post(url, headers=other_headers, json={})
    assert response.status_code == 400
    assert response.json()["message"] == "Registration limit reached"
    assert await _sold_count(db_session, event.id) == 1


@pytest.mark.asyncio
async def test_register_closed_event(client: AsyncClient, participant_headers, make_event, organizer):
    for event_status in (EventStatus.DRAFT, EventStatus.CLOSED, EventStatus.COMPLETED):
        event = await make_event(organizer, name=f"Event {event_status}", status=event_status)
        response = await client.post(
            f"/api/participant/events/{event.id}/register",
            headers=participant_headers,
            json={},
        )
        assert response.status_code == 400
        assert response.json()["message"] == "Event is not open for registration."


@pytest.mark.asyncio
async def test_register_ongoing_event(client: AsyncClient, participant_headers, make_event, organizer):
    """Walk-ins can still register once the event has started."""
    event = await make_event(organizer, status=EventStatus.ONGOING)
    response = await client.post(f"/api/participant/events/{event.id}/register", headers=participant_headers, json={})
    assert response.status_code == 201


@pytest.mark.asyncio
async def test_register_unknown_event(client: AsyncClient, participant_headers):
    response = await client.post("/api/participant/events/999/register", headers=participant_headers, json={})
    assert response.status_code == 404


@pytest.mark.asyncio
async def test_organizer_cannot_register(client: AsyncClient, organizer_headers, published_event):
    response = await client.post(
        f"/api/participant/events/{published_event.id}/register",
        headers=organizer_headers,
        json={},
    )
    assert response.status_code == 403


@pytest.mark.asyncio
async def test_required_custom_field(client: AsyncClient, participant_headers, make_event, organizer):
    event = await make_event(
        organizer,
        custom_fields=[
            {"label": "Roll number", "type": "text", "required": True, "options": []},
            {"label": "Track", "type": "dropdown", "required": False, "options": ["AI", "Web"]},
        ],
    )
    url = f"/api/participant/events/{event.id}/register"

    response = await client.post(url, headers=participant_headers, json={"answers": {"Roll number": ""}})
    assert response.status_code == 400
    assert response.json()["message"] == "'Roll number' is required"

    response = await client.post(
        url,
        headers=participant_headers,
        json={"answers": {"Roll number": "2021101", "Track": "Blockchain"}},
    )
    assert response.status_code == 400

    response = await client.post(
        url,
        headers=participant_headers,
        json={"answers": {"Roll number": "2021101", "Track": "AI"}},
    )
    assert response.status_code == 201
    assert response.json()["ticket"]["answers"] == {"Roll number": "2021101", "Track": "AI"}


@pytest.mark.asyncio
async def test_merchandise_purchase(client: AsyncClient, db_session, participant_headers, merchandise_event):
    """A purchase consumes its quantity from the stock."""
    response = await client.post(
        f"/api/participant/events/{merchandise_event.id}/register",
        headers=participant_headers,
        json={"merchandise_selection": {"size": "M", "color": "Black", "quantity": 2}},
    )
    assert response.status_code == 201
    ticket = response.json()["ticket"]
    assert ticket["type"] == "merchandise"
    assert ticket["merchandise_selection"]["quantity"] == 2
    assert await _sold_count(db_session, merchandise_event.id) == 2


@pytest.mark.asyncio
async def test_merchandise_purchase_limit(client: AsyncClient, participant_headers, merchandise_event):
    response = await client.post(
        f"/api/participant/events/{merchandise_event.id}/register",
        headers=participant_headers,
        json={"merchandise_selection": {"size": "M", "color": "Black", "quantity": 3}},
    )
    assert response.status_code == 400
    assert response.json()["message"] == "You can only purchase up to 2 items."


@pytest.mark.asyncio
async def test_merchandise_needs_size_and_color(client: AsyncClient, participant_headers, merchandise_event):
    url = f"/api/participant/events/{merchandise_event.id}/register"

    response = await client.post(url, headers=participant_headers, json={"merchandise_selection": {"size": "M"}})
    assert response.status_code == 400
    assert response.json()["message"] == "Please select size and color."

    response = await client.post(url, headers=participant_headers, json={})
    assert response.status_code == 400


@pytest.mark.asyncio
async def test_merchandise_unoffered_size(client: AsyncClient, participant_headers, merchandise_event):
    response = await client.post(
        f"/api/participant/events/{merchandise_event.id}/register",
        headers=participant_headers,
        json={"merchandise_selection": {"size": "XXL", "color": "Black"}},
    )
    assert response.status_code == 400


@pytest.mark.asyncio
async def test_merchandise_out_of_stock(
    client: AsyncClient, db_session, participant_headers, other_headers, make_participant, merchandise_event
):
    """Stock 3: after 2 are sold a purchase of 2 is refused but a purchase of 1 fits."""
    from conftest import auth_headers_for

    url = f"/api/participant/events/{merchandise_event.id}/register"
    selection = {"size": "L", "color": "White"}

    response = await client.post(
        url, headers=participant_headers, json={"merchandise_selection": {**selection, "quantity": 2}}
    )
    assert response.status_code == 201

    response = await client.post(url, headers=other_headers, json={"merchandise_selection": {**selection, "quantity": 2}})
    assert response.status_code == 400
    assert response.json()["message"] == "Out of stock! Not enough items available."

    third = await make_participant("carol@example.com")
    response = await client.post(
        url, headers=auth_headers_for(third), json={"merchandise_selection": {**selection, "quantity": 1}}
    )
    assert response.status_code == 201
    assert await _sold_count(db_session, merchandise_event.id) == 3


@pytest.mark.asyncio
async def test_my_events(client: AsyncClient, participant_headers, published_event):
    await client.post(f"/api/participant/events/{published_event.id}/register", headers=participant_headers, json={})

    response = await client.get("/api/participant/my-events", headers=participant_headers)
    assert response.status_code == 200
    tickets = response.json()
    assert len(tickets) == 1
    assert tickets[0]["event"]["name"] == "Hack-Night 2.0"
    assert tickets[0]["event"]["organizer_name"] == "Robotics Club"


@pytest.mark.asyncio
async def test_cancel_ticket(client: AsyncClient, participant_headers, published_event):
    """A registered ticket can be cancelled once."""
    register = await client.post(
        f"/api/participant/events/{published_event.id}/register",
        headers=participant_headers,
        json={},
    )
    ticket_pk = register.json()["ticket"]["id"]

    response = await client.put(f"/api/participant/tickets/{ticket_pk}/cancel", headers=participant_headers)
    assert response.status_code == 200
    assert response.json()["status"] == "Cancelled"

    response = await client.put(f"/api/participant/tickets/{ticket_pk}/cancel", headers=participant_headers)
    assert response.status_code == 400
    assert response.json()["message"] == "Only registered tickets can be cancelled"


@pytest.mark.asyncio
async def test_cancel_someone_elses_ticket(client: AsyncClient, participant_headers, other_headers, published_event):
    register = await client.post(
        f"/api/participant/events/{published_event.id}/register",
        headers=participant_headers,
        json={},
    )
    ticket_pk = register.json()["ticket"]["id"]

    response = await client.put(f"/api/participant/tickets/{ticket_pk}/cancel", headers=other_headers)
    assert response.status_code == 404


@pytest.mark.asyncio
async def test_cancel_does_not_release_capacity(
    client: AsyncClient, db_session, participant_headers, other_headers, make_event, organizer
):
    """Consumed capacity stays consumed after a cancellation."""
    event = await make_event(organizer, registration_limit=1)
    url = f"/api/participant/events/{event.id}/register"

    register = await client.post(url, headers=participant_headers, json={})
    await client.put(f"/api/participant/tickets/{register.json()['ticket']['id']}/cancel", headers=participant_headers)

    response = await client.post(url, headers=other_headers, json={})
    assert response.status_code == 400
    assert await _sold_count(db_session, event.id) == 1


@pytest.mark.asyncio
async def test_cancelled_participant_cannot_register_again(client: AsyncClient, participant_headers, published_event):
    """One ticket per participant per event, whatever its status."""
    url = f"/api/participant/events/{published_event.id}/register"
    register = await client.post(url, headers=participant_headers, json={})
    await client.put(f"/api/participant/tickets/{register.json()['ticket']['id']}/cancel", headers=participant_headers)

    response = await client.post(url, headers=participant_headers, json={})
    assert response.status_code == 409


@pytest.mark.asyncio
async def test_completed_ticket_cannot_be_cancelled(
    client: AsyncClient, db_session, participant_headers, published_event
):
    register = await client.post(
        f"/api/participant/events/{published_event.id}/register",
        headers=participant_headers,
        json={},
    )
    ticket = await db_session.get(Ticket, register.json()["ticket"]["id"])
    ticket.status = TicketStatus.COMPLETED
    await db_session.commit()

    response = await client.put(f"/api/participant/tickets/{ticket.id}/cancel", headers=participant_headers)
    assert response.status_code == 400
