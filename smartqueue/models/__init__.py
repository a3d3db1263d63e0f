from smartqueue.models.counter import Counter
from smartqueue.models.entry import Entry
from smartqueue.models.entry_event import EntryEvent
from smartqueue.models.queue_slot import QueueSlot

__all__ = ["Counter", "Entry", "EntryEvent", "QueueSlot"]
