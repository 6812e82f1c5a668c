"""
Post-processing of bound destination records.

Runs each record's ``post_unmarshal(ctx, row, count)`` hook once all rows are
materialized. Sequential mode stops at the first failing row. Concurrent mode
fans out one task per record on a thread pool; the first failure cancels the
shared context so pending and running hooks stop early, and is the one
reported. No ordering is guaranteed between hooks in concurrent mode.
"""
import logging
import os
import threading
from concurrent.futures import ThreadPoolExecutor, wait
from typing import Any

from dbmap.context import Context, with_cancel
from dbmap.exceptions import PostProcessError, QueryCancelled

logger = logging.getLogger(__name__)


def concurrency_available() -> bool:
    """Parallel hooks only help with more than one logical processor."""
    return (os.cpu_count() or 1) > 1


def post_unmarshal_sequential(ctx: Context, records: list[Any]) -> None:
    """Invoke hooks in row order, stopping at the first error."""
    count = len(records)
    for i, record in enumerate(records):
        ctx.check()
        try:
            record.post_unmarshal(ctx, i, count)
        except Exception as err:
            logger.error(f'post_unmarshal failed at row {i}/{count}: {err}')
            raise PostProcessError(i, count, err) from err


def post_unmarshal_concurrent(ctx: Context, records: list[Any],
                              max_workers: int | None = None) -> None:
    """Invoke hooks in parallel; the first error observed wins."""
    count = len(records)
    child = with_cancel(ctx)
    lock = threading.Lock()
    failures: list[PostProcessError] = []

    def task(i: int, record: Any) -> None:
        if child.cancelled():
            return
        try:
            record.post_unmarshal(child, i, count)
        except Exception as err:
            if isinstance(err, QueryCancelled) and child.cancelled():
                return
            with lock:
                if not failures:
                    failures.append(PostProcessError(i, count, err))
            child.cancel(f'post processing failed at row {i}')

    workers = min(count, max_workers or os.cpu_count() or 1)
    try:
        with ThreadPoolExecutor(max_workers=workers, thread_name_prefix='post_unmarshal') as pool:
            wait([pool.submit(task, i, record) for i, record in enumerate(records)])
    finally:
        child.cancel()

    if failures:
        err = failures[0]
        logger.error(f'post_unmarshal failed at row {err.index}/{count}: {err.__cause__}')
        raise err
    ctx.check()


def run_post_unmarshal(ctx: Context, records: list[Any], concurrent: bool = False,
                       max_workers: int | None = None) -> None:
    """Run post-processing hooks, choosing the execution mode."""
    if not records:
        return
    if concurrent and len(records) > 1 and concurrency_available():
        post_unmarshal_concurrent(ctx, records, max_workers)
    else:
        post_unmarshal_sequential(ctx, records)
