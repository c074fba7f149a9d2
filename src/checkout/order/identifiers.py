"""Human-facing order identifiers backed by a durable counter.

Each sequence (``order_id`` and ``ref_id``) is a single ``OrderCounter``
record. ``next_value`` performs the read-increment-write under one lock so two
checkouts never receive the same number, and the value lives in the store
rather than in process memory.
"""

import threading
from dataclasses import dataclass

from protean.exceptions import ObjectNotFoundError
from protean.fields import Identifier, Integer
from protean.utils.globals import current_domain

from checkout.domain import checkout

ORDER_SEQUENCE = "order_id"
REF_SEQUENCE = "ref_id"


@checkout.aggregate
class OrderCounter:
    name = Identifier(identifier=True, required=True)
    value = Integer(default=0, min_value=0)

    def increment(self) -> int:
        self.value = (self.value or 0) + 1
        return self.value


@checkout.repository(part_of=OrderCounter)
class OrderCounterRepository:
    _lock = threading.Lock()

    def next_value(self, name: str) -> int:
        """Atomically increment the named counter and return the new value."""
        with self._lock:
            try:
                counter = self.get(name)
            except ObjectNotFoundError:
                counter = OrderCounter(name=name, value=0)
            value = counter.increment()
            self.add(counter)
            return value


@dataclass(frozen=True)
class OrderIdentifiers:
    order_id: str
    ref_id: str


def format_order_id(seq: int) -> str:
    return f"DM{seq:06d}"


def format_ref_id(seq: int) -> str:
    return f"REF{seq:05d}"


def generate_order_identifiers() -> OrderIdentifiers:
    """Allocate the next ``DM000001`` / ``REF00001`` pair."""
    repo = current_domain.repository_for(OrderCounter)
    return OrderIdentifiers(
        order_id=format_order_id(repo.next_value(ORDER_SEQUENCE)),
        ref_id=format_ref_id(repo.next_value(REF_SEQUENCE)),
    )
