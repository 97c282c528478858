"""Chunked bulk inserts.

Large phase-2 collections (thousands of trade-log or holding rows) are split
into fixed-size, order-preserving chunks and written with one bulk
statement per chunk. The caller owns the transaction: all chunks of one
call run inside whatever session is passed in.
"""

from __future__ import annotations

from collections.abc import Callable, Iterator, Sequence
from typing import Any, TypeVar

import structlog
from sqlalchemy import insert
from sqlalchemy.orm import Session

logger = structlog.get_logger(__name__)

T = TypeVar("T")

DEFAULT_CHUNK_SIZE = 1000


def iter_chunks(items: Sequence[T], chunk_size: int) -> Iterator[Sequence[T]]:
    """Yield ``ceil(len(items) / chunk_size)`` contiguous slices in order."""
    if chunk_size <= 0:
        raise ValueError(f"chunk_size must be positive, got {chunk_size}")
    for start in range(0, len(items), chunk_size):
        yield items[start : start + chunk_size]


def write_in_chunks(
    items: Sequence[T],
    insert_chunk: Callable[[Sequence[T]], int],
    chunk_size: int = DEFAULT_CHUNK_SIZE,
) -> int:
    """Run ``insert_chunk`` once per chunk and return the summed row count.

    An empty input returns 0 without calling ``insert_chunk`` at all.
    """
    if not items:
        return 0

    total = 0
    for chunk in iter_chunks(items, chunk_size):
        total += insert_chunk(chunk)
    return total


class BatchWriter:
    """Bulk-insert ORM rows into one table within a caller's session.

    Args:
        chunk_size: Rows per INSERT statement (default 1000).
    """

    def __init__(self, chunk_size: int = DEFAULT_CHUNK_SIZE) -> None:
        if chunk_size <= 0:
            raise ValueError(f"chunk_size must be positive, got {chunk_size}")
        self.chunk_size = chunk_size

    def write(
        self,
        session: Session,
        model_class: type,
        rows: Sequence[dict[str, Any]],
    ) -> int:
        """Insert ``rows`` (dicts keyed by column) into ``model_class``.

        Returns:
            Number of rows written across all chunks.
        """

        def _insert(chunk: Sequence[dict[str, Any]]) -> int:
            session.execute(insert(model_class), list(chunk))
            return len(chunk)

        written = write_in_chunks(rows, _insert, self.chunk_size)
        if written:
            logger.debug(
                "batch_written",
                table=model_class.__tablename__,
                rows=written,
                chunk_size=self.chunk_size,
            )
        return written
