"""ARQ worker for webhook replay and payment reconciliation."""

from arq import cron
from libs.common.arq_config import get_redis_settings
from libs.common.logging import get_logger

logger = get_logger(__name__)


async def task_replay_pending_webhooks(ctx: dict):
    from services.payments_service.tasks import replay_pending_webhooks

    logger.info("Running: replay_pending_webhooks")
    await replay_pending_webhooks()


async def task_reconcile_stale_payments(ctx: dict):
    from services.payments_service.tasks import reconcile_stale_payments

    logger.info("Running: reconcile_stale_payments")
    await reconcile_stale_payments()


class WorkerSettings:
    redis_settings = get_redis_settings()

    functions = [
        task_replay_pending_webhooks,
        task_reconcile_stale_payments,
    ]

    cron_jobs = [
        cron(
            task_replay_pending_webhooks,
            minute={0, 5, 10, 15, 20, 25, 30, 35, 40, 45, 50, 55},
            run_at_startup=True,
        ),
        cron(
            task_reconcile_stale_payments,
            minute={2, 12, 22, 32, 42, 52},
            run_at_startup=True,
        ),
    ]
