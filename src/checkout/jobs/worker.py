"""ProcessDueJobs command + handler: run pending jobs whose time has come.

Invoked by an external scheduler (cron or ``POST /jobs/process``). Each
job is marked ``done`` or ``failed``; failed jobs keep their error for
inspection and are not picked up again.
"""

from datetime import UTC, datetime

import structlog
from protean import handle
from protean.fields import DateTime
from protean.utils.globals import current_domain

from checkout.domain import checkout
from checkout.jobs.handlers import get_job_handler
from checkout.jobs.job import JobStatus, ScheduledJob

logger = structlog.get_logger(__name__)


@checkout.command(part_of="ScheduledJob")
class ProcessDueJobs:
    as_of = DateTime()  # defaults to now


@checkout.command_handler(part_of=ScheduledJob)
class ProcessDueJobsHandler:
    @handle(ProcessDueJobs)
    def process_due_jobs(self, command: ProcessDueJobs) -> dict:
        as_of = command.as_of or datetime.now(UTC)
        repo = current_domain.repository_for(ScheduledJob)

        pending = repo._dao.query.filter(status=JobStatus.PENDING.value).all().items
        due = sorted((job for job in pending if job.is_due(as_of)), key=lambda job: job.run_at)

        done = failed = 0
        for job in due:
            try:
                get_job_handler(job.job_type)(job.payload_data())
                job.mark_done()
                done += 1
            except Exception as e:
                job.mark_failed(str(e))
                failed += 1
                logger.error(
                    "Scheduled job failed",
                    job_id=str(job.id),
                    job_type=job.job_type,
                    error=str(e),
                )
            repo.add(job)

        logger.info("Scheduled jobs processed", done=done, failed=failed, as_of=str(as_of))
        return {"processed": done + failed, "done": done, "failed": failed}
