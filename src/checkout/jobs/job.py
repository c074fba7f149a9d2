"""ScheduledJob aggregate: a durable unit of deferred work.

The payload is serialized once, when the job is scheduled, and carries
everything its handler needs. Handlers never read the Order again, so later
order edits cannot change what a pending job will send.

Status: pending → done | failed
"""

import json
from datetime import UTC, datetime
from enum import Enum

from protean.exceptions import ValidationError
from protean.fields import DateTime, Identifier, Integer, String, Text

from checkout.domain import checkout


class JobType(Enum):
    CHECKOUT_COMPLETE = "checkout_complete"


class JobStatus(Enum):
    PENDING = "pending"
    DONE = "done"
    FAILED = "failed"


def _aware(value: datetime) -> datetime:
    return value if value.tzinfo is not None else value.replace(tzinfo=UTC)


@checkout.aggregate
class ScheduledJob:
    job_type = String(required=True, max_length=100)
    payload = Text(required=True)  # JSON snapshot
    run_at = DateTime(required=True)
    status = String(max_length=20, choices=JobStatus, default=JobStatus.PENDING.value)
    order_id = Identifier()
    attempts = Integer(default=0, min_value=0)
    last_error = Text()
    created_at = DateTime()
    completed_at = DateTime()

    @classmethod
    def schedule(
        cls,
        job_type: str,
        payload: dict,
        run_at: datetime | None = None,
        order_id: str | None = None,
    ):
        now = datetime.now(UTC)
        return cls(
            job_type=job_type,
            payload=json.dumps(payload, default=str),
            run_at=run_at or now,
            status=JobStatus.PENDING.value,
            order_id=order_id,
            attempts=0,
            created_at=now,
        )

    def payload_data(self) -> dict:
        return json.loads(self.payload)

    def is_due(self, as_of: datetime) -> bool:
        return self.status == JobStatus.PENDING.value and _aware(self.run_at) <= _aware(as_of)

    def _assert_pending(self) -> None:
        if self.status != JobStatus.PENDING.value:
            raise ValidationError({"status": [f"Job is already {self.status}"]})

    def mark_done(self) -> None:
        self._assert_pending()
        self.status = JobStatus.DONE.value
        self.attempts = (self.attempts or 0) + 1
        self.completed_at = datetime.now(UTC)

    def mark_failed(self, error: str) -> None:
        self._assert_pending()
        self.status = JobStatus.FAILED.value
        self.attempts = (self.attempts or 0) + 1
        self.last_error = error
        self.completed_at = datetime.now(UTC)
