"""
Adaptive block-range iteration against an unreliable RPC provider.

iterate_chunks walks [from_block, to_block] left to right in chunks:

- success: advance past the chunk, add its item count, double the chunk size
  back toward the initial size, then sleep yield_ms so other tasks run.
- failure with a provider hint ("retry with the range START-END") whose safe
  end is past start and gives a size smaller than the current one: adopt
  that size and retry the same start.
- any other failure: halve the chunk size (floor 50) and retry; at or below
  the floor the error propagates and the run aborts.

Every block is passed to process_chunk exactly once, in order, with no gaps.
Block numbers and chunk sizes are u64 values; arithmetic on them is checked.
"""

from __future__ import annotations

import asyncio
import re
from typing import Awaitable, Callable

from backend_agentscore.agentscore_logging import get_logger
from backend_agentscore.utils.time_utils import ms_to_iso

logger = get_logger(__name__)

MIN_CHUNK_SIZE = 50
U64_MAX = 2**64 - 1
BLOCK_TIME_MS = 2000

_RANGE_HINT_RE = re.compile(r"retry with the range \d+-(\d+)")

ProcessChunk = Callable[[int, int], Awaitable[int]]


def _check_u64(name: str, value: int) -> int:
    if not isinstance(value, int) or isinstance(value, bool):
        raise TypeError(f"{name} must be an int, got {type(value).__name__}")
    if value < 0 or value > U64_MAX:
        raise OverflowError(f"{name}={value} outside u64 range")
    return value


def checked_add(a: int, b: int) -> int:
    """a + b as u64; raises OverflowError instead of wrapping."""
    return _check_u64("sum", _check_u64("a", a) + _check_u64("b", b))


def checked_sub(a: int, b: int) -> int:
    """a - b as u64; raises OverflowError on underflow."""
    return _check_u64("difference", _check_u64("a", a) - _check_u64("b", b))


def checked_mul(a: int, b: int) -> int:
    return _check_u64("product", _check_u64("a", a) * _check_u64("b", b))


def parse_suggested_end(err: BaseException) -> int | None:
    """
    Return END from a provider "retry with the range START-END" hint, or None.

    Looks at err.details first (RpcError), then the exception message.
    """
    candidates: list[str] = []
    details = getattr(err, "details", None)
    if details:
        candidates.append(str(details))
    candidates.append(str(err))
    for text in candidates:
        match = _RANGE_HINT_RE.search(text)
        if match:
            return int(match.group(1))
    return None


def block_to_iso_timestamp(
    block: int,
    anchor_block: int,
    anchor_ts_ms: int,
    *,
    block_time_ms: int = BLOCK_TIME_MS,
) -> str:
    """Interpolate a block's timestamp from an anchor block at a fixed block time."""
    return ms_to_iso(anchor_ts_ms + (block - anchor_block) * block_time_ms)


async def iterate_chunks(
    from_block: int,
    to_block: int,
    chunk_size: int,
    yield_ms: int,
    process_chunk: ProcessChunk,
    *,
    min_chunk_size: int = MIN_CHUNK_SIZE,
) -> int:
    """
    Run process_chunk(start, end) over [from_block, to_block]; return total items indexed.

    Raises the last process_chunk error when the chunk size cannot shrink further.
    """
    _check_u64("from_block", from_block)
    _check_u64("to_block", to_block)
    _check_u64("chunk_size", chunk_size)
    if chunk_size < 1:
        raise ValueError("chunk_size must be >= 1")
    if from_block > to_block:
        return 0

    initial_size = chunk_size
    size = chunk_size
    start = from_block
    total = 0

    while True:
        # clamp before adding so start + size - 1 never leaves u64
        end = to_block if size - 1 >= to_block - start else start + size - 1
        try:
            indexed = await process_chunk(start, end)
        except Exception as err:
            suggested_end = parse_suggested_end(err)
            if suggested_end is not None and suggested_end > start:
                suggested_size = checked_add(checked_sub(suggested_end, start), 1)
                if suggested_size < size:
                    logger.info(
                        "chunk_size_from_hint",
                        start=start,
                        previous_size=size,
                        chunk_size=suggested_size,
                    )
                    size = suggested_size
                    continue
            if size > min_chunk_size:
                size = max(min_chunk_size, size // 2)
                logger.warning(
                    "chunk_size_halved",
                    start=start,
                    chunk_size=size,
                    error=str(err)[:200],
                )
                continue
            logger.error(
                "chunk_fetch_failed_at_floor",
                start=start,
                end=end,
                chunk_size=size,
                error=str(err)[:200],
            )
            raise

        total += int(indexed or 0)
        if end >= to_block:
            break
        start = checked_add(end, 1)
        if size < initial_size:
            size = min(checked_mul(size, 2), initial_size)
        if yield_ms > 0:
            await asyncio.sleep(yield_ms / 1000.0)

    return total
