"""
Bounded-concurrency batch and matrix runners.

Items are processed in chunks of at most ``concurrency``; chunks run one after
another and the items inside a chunk run concurrently. A failing item never
stops its siblings or later chunks.
"""
import asyncio
from typing import Any, Awaitable, Callable, List, Optional, Sequence

from hrmatch.models.models import BatchError, BatchOutcome, MatrixCell, MatrixMode, MatrixPair
from hrmatch.utils.exceptions import ValidationError
from hrmatch.utils.logging_config import get_logger

logger = get_logger(__name__)

ProgressCallback = Callable[[int, int], None]
ErrorCallback = Callable[[Exception, Any, int], None]


async def run_batch(
    items: Sequence[Any],
    task: Callable[[Any, int], Awaitable[Any]],
    concurrency: int = 3,
    on_progress: Optional[ProgressCallback] = None,
    on_error: Optional[ErrorCallback] = None,
) -> BatchOutcome:
    """Run ``task(item, index)`` over items with at most ``concurrency`` in flight.

    ``on_progress(processed, total)`` fires once per finished item, success or
    failure. ``on_error(error, item, index)`` fires for each failure.
    """
    if concurrency < 1:
        raise ValidationError("Concurrency must be at least 1", field="concurrency", value=concurrency)

    total = len(items)
    outcome = BatchOutcome()
    processed = 0

    async def _run_one(item: Any, index: int):
        nonlocal processed
        try:
            result = await task(item, index)
        except Exception as exc:
            processed += 1
            if on_error:
                on_error(exc, item, index)
            if on_progress:
                on_progress(processed, total)
            return False, index, item, exc

        processed += 1
        if on_progress:
            on_progress(processed, total)
        return True, index, item, result

    for start in range(0, total, concurrency):
        chunk = items[start:start + concurrency]
        chunk_results = await asyncio.gather(
            *(_run_one(item, start + offset) for offset, item in enumerate(chunk))
        )
        for succeeded, index, item, value in chunk_results:
            if succeeded:
                outcome.success.append(value)
                outcome.success_indices.append(index)
            else:
                outcome.errors.append(BatchError(index=index, item=item, error=value))

    logger.debug(f"Batch finished: {len(outcome.success)} succeeded, {len(outcome.errors)} failed of {total}")
    return outcome


async def run_matrix(
    rows: Sequence[Any],
    cols: Sequence[Any],
    task: Callable[[Any, Any, int, int], Awaitable[Any]],
    concurrency: int = 3,
    mode: MatrixMode = MatrixMode.ROW_MAJOR,
    on_progress: Optional[ProgressCallback] = None,
    on_error: Optional[ErrorCallback] = None,
) -> BatchOutcome:
    """Run ``task(row, col, row_index, col_index)`` for every cell of rows x cols.

    Successes are ``MatrixCell`` values; errors carry the flattened index
    ``row_index * len(cols) + col_index`` and the ``MatrixPair`` as item.
    ROW_MAJOR finishes each row before starting the next; FLATTENED schedules
    the whole matrix as a single batch. Progress is reported against the full
    matrix size in both modes.
    """
    total = len(rows) * len(cols)
    width = len(cols)

    async def _cell(pair: MatrixPair, _index: int) -> MatrixCell:
        value = await task(pair.row, pair.col, pair.row_index, pair.col_index)
        return MatrixCell(row_index=pair.row_index, col_index=pair.col_index, value=value)

    def _pairs_for(row_index: int) -> List[MatrixPair]:
        return [
            MatrixPair(row=rows[row_index], col=col, row_index=row_index, col_index=col_index)
            for col_index, col in enumerate(cols)
        ]

    if mode == MatrixMode.FLATTENED:
        pairs = [pair for row_index in range(len(rows)) for pair in _pairs_for(row_index)]
        outcome = await run_batch(pairs, _cell, concurrency, on_progress=on_progress, on_error=on_error)
        logger.info(f"Matrix ({len(rows)}x{width}, flattened) finished with {outcome.total_errors} errors")
        return outcome

    outcome = BatchOutcome()
    for row_index in range(len(rows)):
        offset = row_index * width

        def _row_progress(processed: int, _row_total: int, offset: int = offset) -> None:
            if on_progress:
                on_progress(offset + processed, total)

        def _row_error(error: Exception, pair: MatrixPair, index: int, offset: int = offset) -> None:
            if on_error:
                on_error(error, pair, offset + index)

        row_outcome = await run_batch(
            _pairs_for(row_index), _cell, concurrency,
            on_progress=_row_progress, on_error=_row_error,
        )
        outcome.success.extend(row_outcome.success)
        outcome.success_indices.extend(offset + i for i in row_outcome.success_indices)
        outcome.errors.extend(
            BatchError(index=offset + err.index, item=err.item, error=err.error)
            for err in row_outcome.errors
        )

    logger.info(f"Matrix ({len(rows)}x{width}, row-major) finished with {outcome.total_errors} errors")
    return outcome
