"""
Flask CLI commands
    flask --app smartqueue.app init-db
    flask --app smartqueue.app seed
"""

import click

from smartqueue.extensions import db
from smartqueue.models.entry import Entry
from smartqueue.services import counter_service, customer_service, entry_service, verification_service

DEMO_CUSTOMERS = [
    {"name": "Amit Verma", "phone": "9876543210", "cart_value": 1350},
    {"name": "Neha Gupta", "phone": "9876543211", "cart_value": 2899},
    {"name": "Rahul Mehta", "phone": "9876543212", "cart_value": 560},
    {"name": "Pooja Singh", "phone": "9876543213", "cart_value": 4200},
    {"name": "Karan Malhotra", "phone": "9876543214", "cart_value": 1999},
]


def init_db():
    db.create_all()
    counter_service.ensure_counter()


@click.command('init-db')
def init_db_command():
    """Create tables and the position counter."""
    init_db()
    click.echo('Database initialised')


@click.command('seed')
def seed_command():
    """Load demo customers: two verified, one billed, the rest waiting."""
    init_db()
    if Entry.query.first() is not None:
        click.echo('Database already has customers, skipping seed')
        return

    registrations = [customer_service.register(customer) for customer in DEMO_CUSTOMERS]
    for registration in registrations[:3]:
        entry_service.mark_billed(registration.entry.customer_id)
    for registration in registrations[:2]:
        verification_service.verify(registration.credential)

    for registration in registrations:
        entry = entry_service.get_entry(registration.entry.customer_id)
        click.echo(f'{entry.customer_id}  #{entry.position}  {entry.status:<8}  {entry.name}')
