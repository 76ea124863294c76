"""
Celery worker running the periodic lifecycle sweeps (agreement expiry, quota reset).
"""
from celery import Celery
from celery.signals import after_setup_logger
from functools import lru_cache
import logging
from .config import settings
from .repositories import Repository, build_repository
from .use_cases.agreements import expire_agreements_use_case
from .use_cases.quota import reset_due_quotas_use_case

logger = logging.getLogger(__name__)

celery_app = Celery(
    "dukcapil_admin",
    broker=settings.CELERY_BROKER_URL,
    backend=settings.CELERY_RESULT_BACKEND
)

celery_app.conf.update(
    task_serializer='json',
    accept_content=['json'],
    result_serializer='json',
    timezone='UTC',
    enable_utc=True,
)


@after_setup_logger.connect
def apply_log_level(logger, **kwargs):
    """Worker root logger follows LOG_LEVEL."""
    logger.setLevel(settings.LOG_LEVEL)


@lru_cache()
def worker_repository() -> Repository:
    """One repository per worker process."""
    return build_repository()


@celery_app.task(name="expire_agreements")
def expire_agreements():
    """
    Mark active agreements whose end date has passed as expired.

    Reads never apply expiry on their own; this sweep is the only place the
    active -> expired transition happens automatically.
    """
    repo = worker_repository()
    try:
        expired = expire_agreements_use_case(repo=repo)
    except Exception as e:
        logger.error(f"Agreement expiry sweep failed: {e}", exc_info=True)
        raise
    return {"expired": expired}


@celery_app.task(name="reset_due_quotas")
def reset_due_quotas():
    """Zero quota counters whose reset date has passed and roll the date forward."""
    repo = worker_repository()
    try:
        reset = reset_due_quotas_use_case(repo=repo)
    except Exception as e:
        logger.error(f"Quota reset sweep failed: {e}", exc_info=True)
        raise
    return {"reset": reset}


# Schedule periodic sweeps
celery_app.conf.beat_schedule = {
    'expire-agreements': {
        'task': 'expire_agreements',
        'schedule': settings.AGREEMENT_SWEEP_INTERVAL_SECONDS,
    },
    'reset-due-quotas': {
        'task': 'reset_due_quotas',
        'schedule': settings.QUOTA_SWEEP_INTERVAL_SECONDS,
    },
}
