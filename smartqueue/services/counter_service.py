"""
Counter Allocator
Hands out globally unique, strictly increasing queue positions.

The position is an atomic increment on a single counter row, the same
way a database sequence works. Never derived from MAX(position).
"""

import logging

from sqlalchemy import select, update
from sqlalchemy.exc import IntegrityError

from smartqueue.errors import StoreUnavailable
from smartqueue.extensions import db, store_guard
from smartqueue.models.counter import Counter

logger = logging.getLogger(__name__)

POSITION_COUNTER = "position"


@store_guard
def ensure_counter(name=POSITION_COUNTER):
    if db.session.get(Counter, name) is not None:
        return
    db.session.add(Counter(name=name, value=0))
    try:
        db.session.commit()
        logger.info("Initialised counter %s", name)
    except IntegrityError:
        # another worker created it first
        db.session.rollback()


@store_guard
def next_position(name=POSITION_COUNTER):
    for _ in range(2):
        result = db.session.execute(
            update(Counter)
            .where(Counter.name == name)
            .values(value=Counter.value + 1)
            .execution_options(synchronize_session=False)
        )
        if result.rowcount == 1:
            # the row stays locked by our UPDATE until commit
            value = db.session.execute(
                select(Counter.value).where(Counter.name == name)
            ).scalar_one()
            db.session.commit()
            return value
        db.session.rollback()
        ensure_counter(name)
    logger.error("Counter %s could not be initialised", name)
    raise StoreUnavailable(f"Counter {name} could not be initialised", counter=name)


def current_position(name=POSITION_COUNTER):
    value = db.session.execute(
        select(Counter.value).where(Counter.name == name)
    ).scalar_one_or_none()
    return value or 0
