"""
Entry Store - Queue Service
Owns the Entry state machine and keeps the QueueSlot projection in step.

Every transition is a guarded UPDATE (... WHERE status = <expected>), so the
precondition check and the status write happen as one statement. A caller that
loses a race sees rowcount 0, re-reads the entry and reports what it finds.
"""

import logging

from sqlalchemy import func, update
from sqlalchemy.exc import IntegrityError

from smartqueue.clock import utcnow
from smartqueue.errors import (
    AlreadyVerified,
    DuplicateIdentifier,
    DuplicatePosition,
    InvalidStateForUndo,
    InvalidTransition,
    NotFound,
    NotYetBilled,
)
from smartqueue.extensions import db, store_guard
from smartqueue.models import entry_event
from smartqueue.models.entry import ACTIVE_STATUSES, BILLED, VERIFIED, WAITING, Entry
from smartqueue.models.entry_event import EntryEvent
from smartqueue.models.queue_slot import ACTIVE, COMPLETED, QueueSlot

logger = logging.getLogger(__name__)

VALID_TRANSITIONS = {
    WAITING: {BILLED},
    BILLED: {VERIFIED, WAITING},
    VERIFIED: set(),
}


def find_entry(customer_id):
    """Fresh read of an entry, bypassing anything cached in the session."""
    return (
        Entry.query
        .filter_by(customer_id=customer_id)
        .populate_existing()
        .first()
    )


def get_entry(customer_id):
    entry = find_entry(customer_id)
    if entry is None:
        raise NotFound(customer_id)
    return entry


def get_slot(customer_id):
    return QueueSlot.query.filter_by(customer_id=customer_id).populate_existing().first()


def _record(customer_id, event_type, at, actor=None, reason=None):
    db.session.add(EntryEvent(
        customer_id=customer_id,
        event_type=event_type,
        actor=actor,
        reason=reason,
        created_at=at,
    ))


def _transition(entry, new_status, **values):
    """
    Compare-and-set from the entry's observed status to new_status.
    Returns False when another writer moved the entry first.
    """
    allowed = VALID_TRANSITIONS.get(entry.status, set())
    if new_status not in allowed:
        raise InvalidTransition(f"Cannot transition from {entry.status} to {new_status}")

    result = db.session.execute(
        update(Entry)
        .where(Entry.customer_id == entry.customer_id, Entry.status == entry.status)
        .values(status=new_status, **values)
        .execution_options(synchronize_session=False)
    )
    return result.rowcount == 1


@store_guard
def create(customer_id, position, cart_value, name, phone, credential, entered_at=None):
    if find_entry(customer_id) is not None:
        raise DuplicateIdentifier(customer_id=customer_id)
    if Entry.query.filter_by(position=position).first() is not None:
        raise DuplicatePosition(position=position)

    entered_at = entered_at or utcnow()
    entry = Entry(
        customer_id=customer_id,
        name=name,
        phone=phone,
        position=position,
        status=WAITING,
        cart_value=cart_value,
        credential=credential,
        entered_at=entered_at,
    )
    db.session.add(entry)
    db.session.add(QueueSlot(
        position=position,
        customer_id=customer_id,
        status=ACTIVE,
        entered_at=entered_at,
    ))
    _record(customer_id, entry_event.REGISTERED, entered_at)

    try:
        db.session.commit()
    except IntegrityError:
        db.session.rollback()
        # lost an insert race; report which key collided
        if find_entry(customer_id) is not None:
            raise DuplicateIdentifier(customer_id=customer_id)
        raise DuplicatePosition(position=position)

    logger.info("Registered %s at position %s", customer_id, position)
    return entry


@store_guard
def mark_billed(customer_id):
    """
    WAITING -> BILLED. Idempotent: an already BILLED entry is returned unchanged.
    """
    while True:
        entry = get_entry(customer_id)
        if entry.status == BILLED:
            return entry
        if entry.status == VERIFIED:
            raise AlreadyVerified(customer_id, entry.verified_at)

        now = utcnow()
        if _transition(entry, BILLED, billed_at=now):
            _record(customer_id, entry_event.BILLED, now)
            db.session.commit()
            logger.info("Billed %s", customer_id)
            return get_entry(customer_id)
        db.session.rollback()


@store_guard
def undo_billing(customer_id, actor=None, reason=None):
    """
    BILLED -> WAITING, clearing billed_at. Leaves a BILLING_UNDONE audit event.
    """
    entry = get_entry(customer_id)
    if entry.status != BILLED:
        raise InvalidStateForUndo(entry.status)

    now = utcnow()
    if not _transition(entry, WAITING, billed_at=None):
        db.session.rollback()
        raise InvalidStateForUndo(get_entry(customer_id).status)

    _record(customer_id, entry_event.BILLING_UNDONE, now, actor=actor, reason=reason)
    db.session.commit()
    logger.warning("Billing undone for %s by %s: %s", customer_id, actor or "unknown", reason or "no reason given")
    return get_entry(customer_id)


@store_guard
def mark_verified(customer_id):
    """
    BILLED -> VERIFIED. Terminal, and never idempotent: a second call raises
    AlreadyVerified. The entry and its queue slot complete in one transaction.
    """
    while True:
        entry = get_entry(customer_id)
        if entry.status == WAITING:
            raise NotYetBilled(customer_id=customer_id)
        if entry.status == VERIFIED:
            raise AlreadyVerified(customer_id, entry.verified_at)

        now = utcnow()
        if _transition(entry, VERIFIED, verified_at=now):
            break
        # lost the race; the next pass decides on the fresh status
        db.session.rollback()

    db.session.execute(
        update(QueueSlot)
        .where(QueueSlot.customer_id == customer_id, QueueSlot.status == ACTIVE)
        .values(status=COMPLETED, completed_at=now)
        .execution_options(synchronize_session=False)
    )
    _record(customer_id, entry_event.VERIFIED, now)
    db.session.commit()
    logger.info("Verified %s", customer_id)
    return get_entry(customer_id)


@store_guard
def queue_position(customer_id):
    """
    1 + number of active entries ahead. None when the entry is already VERIFIED.
    """
    entry = get_entry(customer_id)
    if entry.status == VERIFIED:
        return None
    ahead = (
        db.session.query(func.count(Entry.customer_id))
        .filter(Entry.status.in_(ACTIVE_STATUSES), Entry.position < entry.position)
        .scalar()
    )
    return ahead + 1


@store_guard
def purge(customer_id, actor=None, reason=None):
    """
    Administrative hard delete of an entry and its slot. Returns the entry as a
    dict, since the row is gone once this commits. The counter is untouched, so
    the position is never handed out again.
    """
    entry = get_entry(customer_id)
    snapshot = entry.to_dict()
    now = utcnow()
    QueueSlot.query.filter_by(customer_id=customer_id).delete(synchronize_session=False)
    db.session.delete(entry)
    _record(customer_id, entry_event.PURGED, now, actor=actor, reason=reason)
    db.session.commit()
    logger.warning("Purged %s by %s", customer_id, actor or "unknown")
    return snapshot


def events_for(customer_id):
    return (
        EntryEvent.query
        .filter_by(customer_id=customer_id)
        .order_by(EntryEvent.created_at.asc(), EntryEvent.id.asc())
        .all()
    )
