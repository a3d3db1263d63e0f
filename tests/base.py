import os
import tempfile
import unittest

from smartqueue.app import create_app
from smartqueue.cli import init_db
from smartqueue.extensions import db
from smartqueue.services import customer_service, entry_service


class QueueTestCase(unittest.TestCase):
    """Fresh app on a throwaway SQLite file per test."""

    def setUp(self):
        self.tmpdir = tempfile.TemporaryDirectory()
        db_path = os.path.join(self.tmpdir.name, "queue.db")
        self.app = create_app({
            "TESTING": True,
            "SQLALCHEMY_DATABASE_URI": f"sqlite:///{db_path}",
            "AVERAGE_SERVICE_MINUTES": 3,
            "CUSTOMER_ID_PREFIX": "SM",
            "CUSTOMER_ID_START": 1001,
        })
        self.ctx = self.app.app_context()
        self.ctx.push()
        init_db()
        self.client = self.app.test_client()

    def tearDown(self):
        db.session.remove()
        db.engine.dispose()
        self.ctx.pop()
        self.tmpdir.cleanup()

    def register(self, name="Amit Verma", phone="9876543210", cart_value=1350):
        return customer_service.register({"name": name, "phone": phone, "cart_value": cart_value})

    def register_billed(self, **kwargs):
        registration = self.register(**kwargs)
        entry_service.mark_billed(registration.entry.customer_id)
        return registration
