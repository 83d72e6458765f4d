"""
Access to the ledger store's health.

LedgerStore is an explicit handle with its own readiness state, owned by
whoever creates it (middleware, management commands, the health view). The
probe is injectable so callers and tests can swap the default ``SELECT 1``.
"""

import functools
import logging
import time

from django.db import InterfaceError, OperationalError, connections

from vending.exceptions import ServiceUnavailable

logger = logging.getLogger(__name__)

STORE_ERRORS = (OperationalError, InterfaceError)


def translate_store_errors(func):
    """Re-raise store connectivity errors as ServiceUnavailable."""

    @functools.wraps(func)
    def wrapper(*args, **kwargs):
        try:
            return func(*args, **kwargs)
        except STORE_ERRORS as exc:
            logger.error("Store error in %s: %s", func.__qualname__, exc)
            raise ServiceUnavailable() from exc

    return wrapper


def select_one(alias="default"):
    with connections[alias].cursor() as cursor:
        cursor.execute("SELECT 1")
        cursor.fetchone()


class LedgerStore:
    def __init__(self, alias="default", probe=None):
        self.alias = alias
        self._probe = probe or functools.partial(select_one, alias)
        self.ready = False

    def check(self) -> bool:
        """Run the readiness probe once and record the outcome."""
        try:
            self._probe()
        except STORE_ERRORS as exc:
            logger.warning("Store probe failed: alias=%s error=%s", self.alias, exc)
            self.ready = False
            return False
        self.ready = True
        return True

    def ensure_ready(self):
        if not self.ready and not self.check():
            raise ServiceUnavailable()

    def mark_unavailable(self):
        self.ready = False

    def wait_until_ready(self, attempts=10, delay=1.0, backoff=2.0, max_delay=30.0) -> bool:
        """
        Probe until the store answers or `attempts` probes have failed.

        Sleeps `delay` seconds after the first failure and multiplies the
        wait by `backoff` after each further one, capped at `max_delay`.
        """
        wait = delay
        for attempt in range(1, attempts + 1):
            if self.check():
                logger.info("Store available: alias=%s attempt=%d", self.alias, attempt)
                return True
            if attempt < attempts:
                logger.warning(
                    "Store unavailable: alias=%s attempt=%d/%d retry_in=%.1fs",
                    self.alias,
                    attempt,
                    attempts,
                    wait,
                )
                time.sleep(wait)
                wait = min(wait * backoff, max_delay)
        logger.error("Store still unavailable after %d attempts: alias=%s", attempts, self.alias)
        return False
