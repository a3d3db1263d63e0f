import unittest
from decimal import Decimal
from unittest import mock

from sqlalchemy import update

from smartqueue.errors import (
    AlreadyVerified,
    DuplicateIdentifier,
    DuplicatePosition,
    InvalidStateForUndo,
    NotFound,
    NotYetBilled,
    StoreUnavailable,
)
from smartqueue.extensions import db
from smartqueue.models.counter import Counter
from smartqueue.models.entry import BILLED, VERIFIED, WAITING, Entry
from smartqueue.models.queue_slot import ACTIVE, COMPLETED
from smartqueue.services import counter_service, entry_service
from tests.base import QueueTestCase


class TestRegistration(QueueTestCase):

    def test_first_customer(self):
        registration = self.register()
        entry = registration.entry
        self.assertEqual(entry.customer_id, "SM-1001")
        self.assertEqual(entry.position, 1)
        self.assertEqual(entry.status, WAITING)
        self.assertEqual(entry.cart_value, Decimal("1350.00"))
        self.assertIsNotNone(entry.entered_at)
        self.assertIsNone(entry.billed_at)
        self.assertEqual(registration.queue_position, 1)
        self.assertEqual(registration.estimated_wait_minutes, 0)

        slot = entry_service.get_slot("SM-1001")
        self.assertEqual(slot.position, 1)
        self.assertEqual(slot.status, ACTIVE)

    def test_positions_increase(self):
        ids = [self.register(phone=f"98765432{i:02d}").entry.customer_id for i in range(3)]
        self.assertEqual(ids, ["SM-1001", "SM-1002", "SM-1003"])
        self.assertEqual(counter_service.current_position(), 3)

    def test_missing_counter_is_a_store_failure(self):
        Counter.query.delete()
        db.session.commit()
        with mock.patch.object(counter_service, "ensure_counter"):
            with self.assertRaises(StoreUnavailable):
                counter_service.next_position()

    def test_third_customer_wait_estimate(self):
        self.register()
        self.register()
        registration = self.register()
        self.assertEqual(registration.queue_position, 3)
        self.assertEqual(registration.estimated_wait_minutes, 6)

    def test_duplicate_identifier(self):
        entry = self.register().entry
        with self.assertRaises(DuplicateIdentifier):
            entry_service.create(entry.customer_id, 99, Decimal("1"), "Someone", "9876543210", "{}")

    def test_duplicate_position(self):
        self.register()
        with self.assertRaises(DuplicatePosition):
            entry_service.create("SM-5000", 1, Decimal("1"), "Someone", "9876543210", "{}")

    def test_registration_event_recorded(self):
        self.register()
        events = entry_service.events_for("SM-1001")
        self.assertEqual([e.event_type for e in events], ["REGISTERED"])


class TestBilling(QueueTestCase):

    def test_mark_billed(self):
        self.register()
        entry = entry_service.mark_billed("SM-1001")
        self.assertEqual(entry.status, BILLED)
        self.assertIsNotNone(entry.billed_at)

    def test_mark_billed_is_idempotent(self):
        self.register()
        first = entry_service.mark_billed("SM-1001")
        billed_at = first.billed_at
        second = entry_service.mark_billed("SM-1001")
        self.assertEqual(second.status, BILLED)
        self.assertEqual(second.billed_at, billed_at)
        billed_events = [e for e in entry_service.events_for("SM-1001") if e.event_type == "BILLED"]
        self.assertEqual(len(billed_events), 1)

    def test_mark_billed_unknown(self):
        with self.assertRaises(NotFound):
            entry_service.mark_billed("SM-9999")

    def test_mark_billed_after_verification(self):
        self.register_billed()
        entry_service.mark_verified("SM-1001")
        with self.assertRaises(AlreadyVerified):
            entry_service.mark_billed("SM-1001")

    def test_undo_billing(self):
        self.register_billed()
        entry = entry_service.undo_billing("SM-1001", actor="counter-3", reason="wrong customer scanned")
        self.assertEqual(entry.status, WAITING)
        self.assertIsNone(entry.billed_at)

        undo = entry_service.events_for("SM-1001")[-1]
        self.assertEqual(undo.event_type, "BILLING_UNDONE")
        self.assertEqual(undo.actor, "counter-3")
        self.assertEqual(undo.reason, "wrong customer scanned")

    def test_undo_requires_billed(self):
        self.register()
        with self.assertRaises(InvalidStateForUndo):
            entry_service.undo_billing("SM-1001")

        entry_service.mark_billed("SM-1001")
        entry_service.mark_verified("SM-1001")
        with self.assertRaises(InvalidStateForUndo):
            entry_service.undo_billing("SM-1001")

        with self.assertRaises(NotFound):
            entry_service.undo_billing("SM-9999")


class TestVerificationTransition(QueueTestCase):

    def test_mark_verified_completes_slot_with_same_timestamp(self):
        self.register_billed()
        entry = entry_service.mark_verified("SM-1001")
        self.assertEqual(entry.status, VERIFIED)
        self.assertIsNotNone(entry.verified_at)

        slot = entry_service.get_slot("SM-1001")
        self.assertEqual(slot.status, COMPLETED)
        self.assertEqual(slot.completed_at, entry.verified_at)

    def test_mark_verified_requires_billing(self):
        self.register()
        with self.assertRaises(NotYetBilled):
            entry_service.mark_verified("SM-1001")
        self.assertEqual(entry_service.get_entry("SM-1001").status, WAITING)

    def test_second_verification_is_rejected(self):
        self.register_billed()
        first = entry_service.mark_verified("SM-1001")
        with self.assertRaises(AlreadyVerified) as ctx:
            entry_service.mark_verified("SM-1001")
        self.assertEqual(ctx.exception.verified_at, first.verified_at)

    def test_mark_verified_unknown(self):
        with self.assertRaises(NotFound):
            entry_service.mark_verified("SM-9999")

    def test_lost_race_retries_while_still_billed(self):
        # undo and re-bill landed between our read and our update
        self.register_billed()
        real_transition = entry_service._transition
        calls = []

        def lose_first(entry, new_status, **values):
            calls.append(new_status)
            if len(calls) == 1:
                return False
            return real_transition(entry, new_status, **values)

        with mock.patch.object(entry_service, "_transition", side_effect=lose_first):
            entry = entry_service.mark_verified("SM-1001")

        self.assertEqual(entry.status, VERIFIED)
        self.assertEqual(calls, [VERIFIED, VERIFIED])
        self.assertEqual(entry_service.get_slot("SM-1001").status, COMPLETED)

    def test_lost_race_against_undo_is_not_billed(self):
        self.register_billed()

        def undo_first(entry, new_status, **values):
            db.session.execute(
                update(Entry)
                .where(Entry.customer_id == entry.customer_id)
                .values(status=WAITING, billed_at=None)
            )
            db.session.commit()
            return False

        with mock.patch.object(entry_service, "_transition", side_effect=undo_first):
            with self.assertRaises(NotYetBilled):
                entry_service.mark_verified("SM-1001")
        self.assertEqual(entry_service.get_entry("SM-1001").status, WAITING)


class TestQueuePosition(QueueTestCase):

    def test_head_of_queue_is_one(self):
        for _ in range(3):
            self.register()
        self.assertEqual(entry_service.queue_position("SM-1001"), 1)
        self.assertEqual(entry_service.queue_position("SM-1003"), 3)

    def test_verified_entries_leave_the_line(self):
        for _ in range(4):
            self.register()
        entry_service.mark_billed("SM-1001")
        entry_service.mark_verified("SM-1001")
        entry_service.mark_billed("SM-1003")

        self.assertIsNone(entry_service.queue_position("SM-1001"))
        self.assertEqual(entry_service.queue_position("SM-1002"), 1)
        # billed customers still count as ahead
        self.assertEqual(entry_service.queue_position("SM-1004"), 3)

    def test_unknown_customer(self):
        with self.assertRaises(NotFound):
            entry_service.queue_position("SM-4242")


class TestPurge(QueueTestCase):

    def test_purge_keeps_counter_moving_forward(self):
        self.register()
        snapshot = entry_service.purge("SM-1001", actor="admin", reason="test data")
        self.assertEqual(snapshot["customer_id"], "SM-1001")
        self.assertIsNone(entry_service.find_entry("SM-1001"))
        self.assertIsNone(entry_service.get_slot("SM-1001"))
        self.assertEqual([e.event_type for e in entry_service.events_for("SM-1001")], ["REGISTERED", "PURGED"])

        self.assertEqual(self.register().entry.position, 2)


if __name__ == '__main__':
    unittest.main()
