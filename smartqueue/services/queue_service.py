"""
Queue View - Queue Service
Read-only projections over entries and queue slots: FIFO order,
wait estimates, statistics and integrity checks. Nothing here is cached.
"""

import collections

from flask import current_app
from sqlalchemy import func

from smartqueue.extensions import db, store_guard
from smartqueue.models.entry import ACTIVE_STATUSES, BILLED, VERIFIED, WAITING, Entry
from smartqueue.models.queue_slot import ACTIVE, COMPLETED, QueueSlot
from smartqueue.services import counter_service

DEFAULT_AVERAGE_SERVICE_MINUTES = 3


@store_guard
def active_ordered():
    return (
        Entry.query
        .filter(Entry.status.in_(ACTIVE_STATUSES))
        .order_by(Entry.position.asc())
        .all()
    )


def estimated_wait(position, average_service_minutes=None):
    if average_service_minutes is None:
        average_service_minutes = current_app.config.get(
            "AVERAGE_SERVICE_MINUTES", DEFAULT_AVERAGE_SERVICE_MINUTES
        )
    return max(0, position - 1) * average_service_minutes


@store_guard
def average_completion_latency():
    """Mean minutes from entering the queue to exit verification; 0 when nobody has exited."""
    rows = (
        db.session.query(Entry.entered_at, Entry.verified_at)
        .filter(Entry.status == VERIFIED, Entry.verified_at.isnot(None))
        .all()
    )
    if not rows:
        return 0
    total_seconds = sum((verified_at - entered_at).total_seconds() for entered_at, verified_at in rows)
    return total_seconds / len(rows) / 60


@store_guard
def next_to_serve():
    """Lowest-numbered customer still waiting for the billing counter."""
    return (
        Entry.query
        .filter_by(status=WAITING)
        .order_by(Entry.position.asc())
        .first()
    )


@store_guard
def billed_awaiting_exit():
    return (
        Entry.query
        .filter_by(status=BILLED)
        .order_by(Entry.billed_at.asc(), Entry.position.asc())
        .all()
    )


@store_guard
def status_counts():
    counts = dict(
        db.session.query(Entry.status, func.count(Entry.customer_id))
        .group_by(Entry.status)
        .all()
    )
    waiting = counts.get(WAITING, 0)
    billed = counts.get(BILLED, 0)
    verified = counts.get(VERIFIED, 0)
    return {
        "waiting": waiting,
        "billed": billed,
        "verified": verified,
        "total": waiting + billed + verified,
        "active_queue": waiting + billed,
    }


@store_guard
def queue_statistics():
    active_count = QueueSlot.query.filter_by(status=ACTIVE).count()
    completed_count = QueueSlot.query.filter_by(status=COMPLETED).count()
    head = QueueSlot.query.filter_by(status=ACTIVE).order_by(QueueSlot.position.asc()).first()

    next_customer = None
    if head is not None:
        entry = db.session.get(Entry, head.customer_id)
        if entry is not None:
            next_customer = {
                "position": head.position,
                "customer_id": entry.customer_id,
                "name": entry.name,
            }

    return {
        "active_queue_size": active_count,
        "total_served": completed_count,
        "average_completion_minutes": round(average_completion_latency()),
        "next_customer": next_customer,
    }


@store_guard
def completed_history(page=1, per_page=50):
    return (
        QueueSlot.query
        .filter_by(status=COMPLETED)
        .order_by(QueueSlot.completed_at.desc())
        .paginate(page=page, per_page=per_page, error_out=False)
    )


@store_guard
def integrity_report():
    """
    Consistency check between entries, slots and the position counter.
    Gaps are reported for information only: purges and failed registrations
    legitimately leave them.
    """
    positions = [p for (p,) in db.session.query(Entry.position).order_by(Entry.position.asc())]

    duplicates = sorted(p for p, seen in collections.Counter(positions).items() if seen > 1)
    gaps = [
        {"expected": previous + 1, "actual": current}
        for previous, current in zip(positions, positions[1:])
        if current != previous + 1
    ]

    mismatched = []
    rows = (
        db.session.query(Entry.customer_id, Entry.status, QueueSlot.status)
        .outerjoin(QueueSlot, QueueSlot.customer_id == Entry.customer_id)
        .all()
    )
    for customer_id, entry_status, slot_status in rows:
        expected = COMPLETED if entry_status == VERIFIED else ACTIVE
        if slot_status != expected:
            mismatched.append({
                "customer_id": customer_id,
                "entry_status": entry_status,
                "slot_status": slot_status,
            })

    counter_value = counter_service.current_position()
    counter_behind = bool(positions) and positions[-1] > counter_value

    return {
        "is_valid": not duplicates and not mismatched and not counter_behind,
        "duplicates": duplicates,
        "gaps": gaps,
        "mismatched_slots": mismatched,
        "counter_value": counter_value,
        "total_customers": len(positions),
    }
