"""
Entry Model - one record per customer
Status: WAITING | BILLED | VERIFIED
"""

from smartqueue.clock import isoformat
from smartqueue.extensions import db

WAITING = "WAITING"
BILLED = "BILLED"
VERIFIED = "VERIFIED"

ENTRY_STATUSES = (WAITING, BILLED, VERIFIED)
ACTIVE_STATUSES = (WAITING, BILLED)


class Entry(db.Model):
    __tablename__ = "entries"

    customer_id = db.Column(db.String(32), primary_key=True)
    name = db.Column(db.String(100), nullable=False)
    phone = db.Column(db.String(10), nullable=False)
    position = db.Column(db.Integer, nullable=False, unique=True)
    status = db.Column(
        db.Enum(*ENTRY_STATUSES, name="entry_status"),
        nullable=False,
        default=WAITING,
        index=True
    )
    cart_value = db.Column(db.Numeric(10, 2), nullable=False, default=0)
    credential = db.Column(db.Text, nullable=False)
    entered_at = db.Column(db.DateTime(timezone=True), nullable=False)
    billed_at = db.Column(db.DateTime(timezone=True), nullable=True)
    verified_at = db.Column(db.DateTime(timezone=True), nullable=True)

    __table_args__ = (
        db.CheckConstraint("position > 0", name="ck_entries_position_positive"),
        db.CheckConstraint("cart_value >= 0", name="ck_entries_cart_value"),
        db.Index("ix_entries_status_position", "status", "position"),
    )

    @property
    def is_active(self):
        return self.status in ACTIVE_STATUSES

    def to_dict(self, include_credential=False):
        data = {
            "customer_id":  self.customer_id,
            "name":         self.name,
            "phone":        self.phone,
            "position":     self.position,
            "status":       self.status,
            "cart_value":   float(self.cart_value) if self.cart_value is not None else 0.0,
            "entered_at":   isoformat(self.entered_at),
            "billed_at":    isoformat(self.billed_at),
            "verified_at":  isoformat(self.verified_at),
        }
        if include_credential:
            data["qr_data"] = self.credential
        return data
