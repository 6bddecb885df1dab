from fastapi import BackgroundTasks
from kombu.exceptions import OperationalError

from core.celery import celery_app
from core.logging import get_logger
from core.redis import get_redis
from services.dispatch import DispatchJob, DispatchTracker, run_dispatch_job
from services.orders import submit_order

logger = get_logger(__name__)


@celery_app.task(name="orders.submit", max_retries=0)
def submit_order_task(job_data: dict) -> str:
    """
    Record the order of a checkout dispatch.
    Never retried: a failed write is reported on the ticket, not recovered.
    """
    job = DispatchJob.from_dict(job_data)
    state = run_dispatch_job(job, submit_order, DispatchTracker(get_redis()))
    return state.value


def schedule_submission(job: DispatchJob, background_tasks: BackgroundTasks) -> None:
    """
    Queue the order on Celery. When the broker is unreachable the job runs
    in-process right after the response has been sent.
    """
    try:
        submit_order_task.delay(job.to_dict())
        logger.debug("Order submission %s queued to Celery", job.ticket_id)
    except OperationalError as e:
        logger.warning("Celery not available, recording order %s in-process: %s", job.ticket_id, e)
        background_tasks.add_task(run_dispatch_job, job, submit_order, DispatchTracker(get_redis()))
