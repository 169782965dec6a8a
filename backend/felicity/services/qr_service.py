"""
Ticket identifiers and scannable codes.

The ticket id is {club}{event}_{login}: organizer and event names with every
non-alphanumeric character stripped, then the participant's login handle.
The QR code encodes a small JSON document that the gate scanner sends back
verbatim (or just its ticket_id).
"""

import base64
import io
import json
import re
from typing import Optional

import qrcode

_NON_ALNUM = re.compile(r"[^a-zA-Z0-9]")


def clean_name(value: Optional[str]) -> str:
    return _NON_ALNUM.sub("", value) if value else "Unknown"


def derive_ticket_id(organizer_name: Optional[str], event_name: Optional[str], login: str) -> str:
    return f"{clean_name(organizer_name)}{clean_name(event_name)}_{login}"


def build_qr_payload(
    ticket_id: str,
    event_id: int,
    event_name: str,
    participant_id: int,
    participant_name: str,
) -> str:
    return json.dumps({
        "ticket_id": ticket_id,
        "event_id": event_id,
        "event_name": event_name,
        "participant_id": participant_id,
        "participant_name": participant_name,
    })


def render_qr_png(payload: str) -> bytes:
    qr = qrcode.QRCode(version=None, box_size=10, border=4)
    qr.add_data(payload)
    qr.make(fit=True)

    img = qr.make_image(fill_color="black", back_color="white")
    buffer = io.BytesIO()
    img.save(buffer, format="PNG")
    return buffer.getvalue()


def to_data_url(png: bytes) -> str:
    return "data:image/png;base64," + base64.b64encode(png).decode("ascii")


def data_url_to_png(data_url: str) -> bytes:
    return base64.b64decode(data_url.split("base64,", 1)[1])


def extract_ticket_id(scanned: str) -> str:
    """Accept either a bare ticket id or the JSON payload read off the code."""
    text = scanned.strip()
    if text.startswith("{"):
        try:
            data = json.loads(text)
        except ValueError:
            return text
        if isinstance(data, dict) and data.get("ticket_id"):
            return str(data["ticket_id"])
    return text
