"""
QueueSlot Model - lightweight projection of an Entry used for queue history
Status: ACTIVE (entry WAITING or BILLED) | COMPLETED (entry VERIFIED)
"""

from smartqueue.clock import isoformat
from smartqueue.extensions import db

ACTIVE = "ACTIVE"
COMPLETED = "COMPLETED"


class QueueSlot(db.Model):
    __tablename__ = "queue_slots"

    position = db.Column(db.Integer, primary_key=True, autoincrement=False)
    customer_id = db.Column(
        db.String(32),
        db.ForeignKey("entries.customer_id"),
        nullable=False,
        unique=True
    )
    status = db.Column(
        db.Enum(ACTIVE, COMPLETED, name="queue_slot_status"),
        nullable=False,
        default=ACTIVE,
        index=True
    )
    entered_at = db.Column(db.DateTime(timezone=True), nullable=False)
    completed_at = db.Column(db.DateTime(timezone=True), nullable=True)

    def to_dict(self):
        return {
            "position":      self.position,
            "customer_id":   self.customer_id,
            "status":        self.status,
            "entered_at":    isoformat(self.entered_at),
            "completed_at":  isoformat(self.completed_at),
        }
