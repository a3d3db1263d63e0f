"""
EntryEvent Model - append-only audit trail of Entry transitions
Written in the same transaction as the transition it records.
"""

from smartqueue.clock import isoformat
from smartqueue.extensions import db

REGISTERED = "REGISTERED"
BILLED = "BILLED"
BILLING_UNDONE = "BILLING_UNDONE"
VERIFIED = "VERIFIED"
PURGED = "PURGED"

EVENT_TYPES = (REGISTERED, BILLED, BILLING_UNDONE, VERIFIED, PURGED)


class EntryEvent(db.Model):
    __tablename__ = "entry_events"

    id = db.Column(db.Integer, primary_key=True, autoincrement=True)
    # no foreign key: events outlive a purged entry
    customer_id = db.Column(db.String(32), nullable=False, index=True)
    event_type = db.Column(db.Enum(*EVENT_TYPES, name="entry_event_type"), nullable=False)
    actor = db.Column(db.String(100), nullable=True)
    reason = db.Column(db.Text, nullable=True)
    created_at = db.Column(db.DateTime(timezone=True), nullable=False)

    def to_dict(self):
        return {
            "id":           self.id,
            "customer_id":  self.customer_id,
            "event_type":   self.event_type,
            "actor":        self.actor,
            "reason":       self.reason,
            "created_at":   isoformat(self.created_at),
        }
