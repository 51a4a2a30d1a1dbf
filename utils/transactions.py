import logging
import time
from flask import current_app
from tenacity import Retrying, RetryError, retry_if_exception, stop_after_attempt, wait_incrementing
from sqlalchemy.exc import DBAPIError, OperationalError, TimeoutError as PoolTimeoutError
from classes.errors import AppError, TransientStoreError
from models import db

logger = logging.getLogger(__name__)

DEFAULT_TIMEOUT = 8.0
DEFAULT_MAX_RETRIES = 2
DEFAULT_RETRY_DELAY = 0.5


class TransactionTimeoutError(Exception):
    """The operation ran past the transaction's time budget."""


def is_retryable(error):
    if isinstance(error, (TransactionTimeoutError, OperationalError, PoolTimeoutError)):
        return True
    return isinstance(error, DBAPIError) and error.connection_invalidated


def run_transaction(session, operation, timeout=DEFAULT_TIMEOUT, max_retries=DEFAULT_MAX_RETRIES,
                    retry_delay=DEFAULT_RETRY_DELAY, context="transaction",
                    sleep=time.sleep, clock=time.monotonic):
    """Run ``operation(session)`` and commit, retrying transient failures.

    ``session`` only needs ``commit()`` and ``rollback()``. Every failure rolls
    back. ``AppError`` and non-transient errors propagate on the first
    failure; transient ones are retried ``max_retries`` times with linear
    backoff and then raised as ``TransientStoreError``. The timeout is
    checked once the operation returns, before the commit.
    """
    attempts = max_retries + 1

    def attempt_once():
        started = clock()
        try:
            result = operation(session)
            elapsed = clock() - started
            if elapsed > timeout:
                raise TransactionTimeoutError(f"Transaction timeout after {elapsed:.2f}s")
            session.commit()
        except AppError:
            session.rollback()
            raise
        except Exception as e:
            session.rollback()
            if not is_retryable(e):
                logger.error("[%s] failed with non-retryable error: %s", context, e)
            raise
        logger.debug("[%s] committed in %.3fs", context, elapsed)
        return result

    def log_retry(retry_state):
        logger.warning(
            "[%s] attempt %d/%d failed: %s",
            context, retry_state.attempt_number, attempts, retry_state.outcome.exception(),
        )

    retrying = Retrying(
        stop=stop_after_attempt(attempts),
        wait=wait_incrementing(start=retry_delay, increment=retry_delay),
        retry=retry_if_exception(is_retryable),
        before_sleep=log_retry,
        sleep=sleep,
        reraise=False,
    )
    try:
        return retrying(attempt_once)
    except RetryError as e:
        last_error = e.last_attempt.exception()
        logger.warning("[%s] gave up after %d attempts: %s", context, attempts, last_error)
        raise TransientStoreError() from last_error


def run_critical_transaction(operation, context, user_id=None, description=None):
    """``run_transaction`` on ``db.session`` with the configured limits and audit logging."""
    config = current_app.config
    logger.info("[%s] critical transaction started by user %s: %s", context, user_id, description or "")
    try:
        result = run_transaction(
            db.session,
            operation,
            timeout=config.get("TRANSACTION_TIMEOUT", DEFAULT_TIMEOUT),
            max_retries=config.get("TRANSACTION_MAX_RETRIES", DEFAULT_MAX_RETRIES),
            retry_delay=config.get("TRANSACTION_RETRY_DELAY", DEFAULT_RETRY_DELAY),
            context=f"critical_{context}",
        )
    except Exception as e:
        logger.warning("[%s] critical transaction failed for user %s: %s", context, user_id, e)
        raise
    logger.info("[%s] critical transaction succeeded for user %s", context, user_id)
    return result
