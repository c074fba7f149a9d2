"""Job queue writes."""

from datetime import datetime

from protean.utils.globals import current_domain

from checkout.errors import JobEnqueueError
from checkout.jobs.job import ScheduledJob


def enqueue_job(
    job_type: str,
    payload: dict,
    run_at: datetime | None = None,
    order_id: str | None = None,
) -> ScheduledJob:
    """Persist a pending job. Raises ``JobEnqueueError`` if it cannot be stored."""
    try:
        job = ScheduledJob.schedule(job_type, payload, run_at=run_at, order_id=order_id)
        current_domain.repository_for(ScheduledJob).add(job)
    except Exception as exc:
        raise JobEnqueueError(str(exc)) from exc
    return job


def jobs_for_order(order_id: str) -> list[ScheduledJob]:
    repo = current_domain.repository_for(ScheduledJob)
    return repo._dao.query.filter(order_id=order_id).all().items
