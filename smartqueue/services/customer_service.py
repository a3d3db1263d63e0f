"""
Customer Service - Queue Service
Registration and customer lookups built on the entry store.
"""

import logging
from dataclasses import dataclass

from flask import current_app

from smartqueue.clock import isoformat, utcnow
from smartqueue.extensions import store_guard
from smartqueue.models.entry import VERIFIED, Entry
from smartqueue.services import counter_service, credential_codec, entry_service, queue_service
from smartqueue.validators import validate_registration

logger = logging.getLogger(__name__)

DEFAULT_ID_START = 1001
SEARCH_LIMIT = 20
SEARCH_FIELDS = ("name", "phone", "customer_id")


@dataclass
class Registration:
    entry: Entry
    credential: str
    queue_position: int
    estimated_wait_minutes: int

    def to_dict(self):
        data = self.entry.to_dict()
        data.update({
            "qr_data": self.credential,
            "queue_position": self.queue_position,
            "estimated_wait_minutes": self.estimated_wait_minutes,
        })
        return data


def format_customer_id(position):
    """Position 1 maps to SM-1001, position 2 to SM-1002, and so on."""
    prefix = current_app.config.get("CUSTOMER_ID_PREFIX", credential_codec.DEFAULT_PREFIX)
    start = current_app.config.get("CUSTOMER_ID_START", DEFAULT_ID_START)
    return f"{prefix}-{start + position - 1:04d}"


def register(data):
    """
    Validates the request, draws a position from the counter, issues the
    credential and persists the WAITING entry with its ACTIVE slot.
    """
    name, phone, cart_value = validate_registration(data)

    position = counter_service.next_position()
    customer_id = format_customer_id(position)
    issued_at = utcnow()
    credential = credential_codec.encode(
        customer_id,
        position,
        issued_at,
        prefix=current_app.config.get("CUSTOMER_ID_PREFIX", credential_codec.DEFAULT_PREFIX),
    )

    entry = entry_service.create(
        customer_id=customer_id,
        position=position,
        cart_value=cart_value,
        name=name,
        phone=phone,
        credential=credential,
        entered_at=issued_at,
    )

    rank = entry_service.queue_position(customer_id)
    return Registration(entry, credential, rank, queue_service.estimated_wait(rank))


@store_guard
def describe(customer_id):
    """Entry plus its live place in line; position and ETA are None once verified."""
    entry = entry_service.get_entry(customer_id)
    rank = entry_service.queue_position(customer_id)
    data = entry.to_dict()
    data["queue_position"] = rank
    data["estimated_wait_minutes"] = queue_service.estimated_wait(rank) if rank is not None else None
    return data


@store_guard
def credential_for(customer_id):
    entry = entry_service.get_entry(customer_id)
    return {
        "customer_id": entry.customer_id,
        "qr_data": entry.credential,
        "status": entry.status,
    }


@store_guard
def list_customers(page=1, per_page=20, status=None):
    query = Entry.query
    if status:
        query = query.filter_by(status=status)
    return query.order_by(Entry.position.asc()).paginate(page=page, per_page=per_page, error_out=False)


@store_guard
def search(query, field="name"):
    if field not in SEARCH_FIELDS:
        field = "name"
    column = getattr(Entry, field)
    # % and _ in the query match literally
    if field == "phone":
        criteria = column.contains(query, autoescape=True)
    else:
        criteria = column.icontains(query, autoescape=True)
    return (
        Entry.query
        .filter(criteria)
        .order_by(Entry.entered_at.desc())
        .limit(SEARCH_LIMIT)
        .all()
    )


@store_guard
def timeline(customer_id):
    entry = entry_service.get_entry(customer_id)
    slot = entry_service.get_slot(customer_id)
    total_minutes = None
    if entry.status == VERIFIED and entry.verified_at is not None:
        total_minutes = round((entry.verified_at - entry.entered_at).total_seconds() / 60)
    return {
        "customer": entry.to_dict(),
        "queue": slot.to_dict() if slot else None,
        "timeline": {
            "registered": isoformat(entry.entered_at),
            "billed": isoformat(entry.billed_at),
            "verified": isoformat(entry.verified_at),
            "total_minutes": total_minutes,
        },
        "events": [event.to_dict() for event in entry_service.events_for(customer_id)],
    }
