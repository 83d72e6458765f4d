import logging

from celery import shared_task

from vending.exceptions import ServiceUnavailable
from vending.services import TransactionService
from vending.store import LedgerStore

logger = logging.getLogger(__name__)


@shared_task
def expire_pending_transactions():
    """
    Periodic task: mark every pending transaction past its deadline EXPIRED.

    Runs via Celery Beat every VENDING_SWEEP_INTERVAL_SECONDS. The update is a
    single set-based statement. A store outage is logged and left to the
    next tick instead of failing the worker.
    """
    try:
        count = TransactionService.expire_overdue()
    except ServiceUnavailable:
        logger.exception("Expiry sweep skipped: store unavailable.")
        return {"expired": 0, "error": ServiceUnavailable.code}

    if count:
        logger.info("Expiry sweep: %d transaction(s) expired.", count)
    else:
        logger.debug("Expiry sweep: nothing to expire.")
    return {"expired": count}


@shared_task
def ping_store():
    """Periodic task: run the ledger store probe and report the outcome."""
    if LedgerStore().check():
        logger.debug("Store ping: database up.")
        return {"database": "up"}
    logger.error("Store ping: database down.")
    return {"database": "down"}
