"""
Retry with exponential backoff for statement execution.

Errors classified permanent by ``is_permanent_error`` stop the loop on first
occurrence. Every other error is retried until the policy's attempts are
used up, at which point the last error propagates. Backoff waits are
interruptible: cancelling the context ends the loop with QueryCancelled.
"""
import logging
from collections.abc import Callable
from dataclasses import dataclass
from typing import TypeVar

from dbmap.context import Context
from dbmap.exceptions import ConfigurationError, DbConnectionError
from dbmap.exceptions import is_permanent_error

logger = logging.getLogger(__name__)

T = TypeVar('T')


@dataclass(frozen=True)
class RetryPolicy:
    """Backoff schedule.

    - max_retries: Maximum number of attempts, including the first
    - retry_delay: Initial delay between attempts in seconds
    - retry_backoff: Multiplier applied to the delay after each attempt
    - max_delay: Upper bound on a single delay (None for unbounded)
    - sleep_func: Replaces the context-aware wait between attempts
    """
    max_retries: int = 3
    retry_delay: float = 1
    retry_backoff: float = 1.5
    max_delay: float | None = None
    sleep_func: Callable[[float], None] | None = None

    def __post_init__(self):
        if self.max_retries < 1:
            raise ConfigurationError('max_retries must be at least 1')
        if self.retry_delay < 0 or self.retry_backoff < 1:
            raise ConfigurationError('retry_delay must be >= 0 and retry_backoff >= 1')

    def next_delay(self, delay: float) -> float:
        delay *= self.retry_backoff
        if self.max_delay is not None:
            delay = min(delay, self.max_delay)
        return delay


def run_with_retry(ctx: Context, policy: RetryPolicy | None,
                   func: Callable[[], T]) -> T:
    """Call ``func`` under ``policy``, bounded by ``ctx``.

    Without a policy a single attempt is made.
    """
    ctx.check()
    if policy is None:
        return func()

    tries = 0
    delay = policy.retry_delay
    while True:
        try:
            return func()
        except Exception as err:
            if is_permanent_error(err):
                logger.debug(f'Permanent error, not retrying: {err}')
                raise
            tries += 1
            if tries >= policy.max_retries:
                logger.error(f'Maximum retries ({policy.max_retries}) exceeded: {err}')
                raise
            kind = 'Database connection error' if isinstance(err, DbConnectionError) else 'Execution error'
            logger.warning(f'{kind} (attempt {tries}/{policy.max_retries}), retrying in {delay}s: {err}')
            if policy.sleep_func is not None:
                policy.sleep_func(delay)
                cancelled = ctx.cancelled()
            else:
                cancelled = ctx.wait(delay)
            if cancelled:
                raise ctx.err() from err
            delay = policy.next_delay(delay)
