from celery import Celery
from core.config import settings

# Use Redis for production/development
broker_url = settings.REDIS_URL
backend_url = settings.REDIS_URL

# Create Celery app
celery_app = Celery(
    "cardapio",
    broker=broker_url,
    backend=backend_url,
    include=["tasks.order_tasks"]
)

# Configure Celery
celery_app.conf.update(
    task_serializer="json",
    accept_content=["json"],
    result_serializer="json",
    timezone="UTC",
    enable_utc=True,
    task_track_started=True,
    task_time_limit=5 * 60,
    task_soft_time_limit=4 * 60,
    worker_prefetch_multiplier=1,
    worker_max_tasks_per_child=1000,
    # Order submissions are never retried; results are kept in the dispatch status store
    task_ignore_result=True,
    # Fail fast when the broker is down so checkout can fall back to in-process
    task_publish_retry_policy={"max_retries": 1, "interval_start": 0, "interval_step": 0.2, "interval_max": 0.2},
    # Tests run tasks inline, without a broker
    task_always_eager=settings.TESTING,
    task_eager_propagates=False,
)
