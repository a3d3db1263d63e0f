import unittest
from datetime import datetime, timedelta, timezone

from sqlalchemy import update

from smartqueue.extensions import db
from smartqueue.models.entry import Entry
from smartqueue.models.queue_slot import ACTIVE, QueueSlot
from smartqueue.services import entry_service, queue_service
from tests.base import QueueTestCase


class TestQueueView(QueueTestCase):

    def test_active_order_skips_verified(self):
        for i in range(3):
            self.register(phone=f"987654321{i}")
        entry_service.mark_billed("SM-1002")
        entry_service.mark_verified("SM-1002")
        entry_service.mark_billed("SM-1003")

        ids = [entry.customer_id for entry in queue_service.active_ordered()]
        self.assertEqual(ids, ["SM-1001", "SM-1003"])

    def test_estimated_wait(self):
        self.assertEqual(queue_service.estimated_wait(1), 0)
        self.assertEqual(queue_service.estimated_wait(4), 9)
        self.assertEqual(queue_service.estimated_wait(4, average_service_minutes=5), 15)
        self.assertEqual(queue_service.estimated_wait(0), 0)

    def test_estimated_wait_uses_config(self):
        self.app.config["AVERAGE_SERVICE_MINUTES"] = 2
        self.assertEqual(queue_service.estimated_wait(3), 4)

    def test_next_to_serve(self):
        self.assertIsNone(queue_service.next_to_serve())
        self.register()
        self.register(phone="9876543211")
        entry_service.mark_billed("SM-1001")
        self.assertEqual(queue_service.next_to_serve().customer_id, "SM-1002")

    def test_billed_awaiting_exit(self):
        self.register()
        self.register(phone="9876543211")
        entry_service.mark_billed("SM-1002")
        entry_service.mark_billed("SM-1001")
        ids = [entry.customer_id for entry in queue_service.billed_awaiting_exit()]
        self.assertEqual(ids, ["SM-1002", "SM-1001"])


class TestLatencyAndStatistics(QueueTestCase):

    def test_latency_is_zero_without_exits(self):
        self.register()
        self.assertEqual(queue_service.average_completion_latency(), 0)

    def test_latency_in_minutes(self):
        self.register_billed()
        entry_service.mark_verified("SM-1001")

        entered = datetime(2026, 3, 1, 10, 0, tzinfo=timezone.utc)
        db.session.execute(
            update(Entry)
            .where(Entry.customer_id == "SM-1001")
            .values(entered_at=entered, verified_at=entered + timedelta(minutes=10))
        )
        db.session.commit()

        self.assertAlmostEqual(queue_service.average_completion_latency(), 10)

    def test_statistics(self):
        for i in range(3):
            self.register(name=f"Customer {i}", phone=f"987654321{i}")
        entry_service.mark_billed("SM-1001")
        entry_service.mark_verified("SM-1001")

        stats = queue_service.queue_statistics()
        self.assertEqual(stats["active_queue_size"], 2)
        self.assertEqual(stats["total_served"], 1)
        self.assertEqual(stats["next_customer"], {
            "position": 2,
            "customer_id": "SM-1002",
            "name": "Customer 1",
        })

        counts = queue_service.status_counts()
        self.assertEqual(counts, {
            "waiting": 2,
            "billed": 0,
            "verified": 1,
            "total": 3,
            "active_queue": 2,
        })

    def test_statistics_on_empty_queue(self):
        stats = queue_service.queue_statistics()
        self.assertEqual(stats["active_queue_size"], 0)
        self.assertIsNone(stats["next_customer"])
        self.assertEqual(stats["average_completion_minutes"], 0)

    def test_completed_history(self):
        for i in range(3):
            self.register_billed(phone=f"987654321{i}")
            entry_service.mark_verified(f"SM-100{i + 1}")

        page = queue_service.completed_history(page=1, per_page=2)
        self.assertEqual(page.total, 3)
        self.assertEqual(len(page.items), 2)


class TestIntegrity(QueueTestCase):

    def test_clean_queue(self):
        for i in range(3):
            self.register(phone=f"987654321{i}")
        report = queue_service.integrity_report()
        self.assertTrue(report["is_valid"])
        self.assertEqual(report["gaps"], [])
        self.assertEqual(report["counter_value"], 3)
        self.assertEqual(report["total_customers"], 3)

    def test_purge_leaves_a_gap_but_stays_valid(self):
        for i in range(3):
            self.register(phone=f"987654321{i}")
        entry_service.purge("SM-1002")
        report = queue_service.integrity_report()
        self.assertTrue(report["is_valid"])
        self.assertEqual(report["gaps"], [{"expected": 2, "actual": 3}])

    def test_slot_out_of_step(self):
        self.register_billed()
        entry_service.mark_verified("SM-1001")
        QueueSlot.query.filter_by(customer_id="SM-1001").update({"status": ACTIVE})
        db.session.commit()

        report = queue_service.integrity_report()
        self.assertFalse(report["is_valid"])
        self.assertEqual(report["mismatched_slots"][0]["customer_id"], "SM-1001")


if __name__ == '__main__':
    unittest.main()
