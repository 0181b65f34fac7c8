import time

from flask import current_app, has_app_context
from sqlalchemy.exc import OperationalError

from app.errors import UpstreamError

RETRYABLE_ERRORS = (OperationalError, TimeoutError)


def retry_read(session, settings, description, read):
    """
    Run an idempotent read against the store with exponential backoff.

    ``read`` is called with no arguments. Only reads go through here; writes
    are never retried so a lost response cannot turn into a duplicate row.
    """
    attempts = max(1, settings.upstream_retries)
    for attempt in range(attempts):
        try:
            return read()
        except RETRYABLE_ERRORS as e:
            session.rollback()
            if has_app_context():
                current_app.logger.warning(
                    f"{description} read failed (attempt {attempt + 1}/{attempts}): {e}"
                )
            if attempt == attempts - 1:
                raise UpstreamError(
                    f"{description} is temporarily unavailable, please retry"
                ) from e
            time.sleep(settings.upstream_retry_delay * (2**attempt))
