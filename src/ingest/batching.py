"""Fixed-size chunking of lazy record streams."""

from __future__ import annotations

from itertools import islice
from typing import Iterable, Iterator, TypeVar

from core.errors import DwdConfigError

ItemT = TypeVar("ItemT")


def chunk_records(records: Iterable[ItemT], batch_size: int) -> Iterator[list[ItemT]]:
    """Split a stream into consecutive batches of at most ``batch_size`` items.

    Only one batch is materialized at a time; the final batch may be short.

    Args:
        records: Source stream, consumed lazily.
        batch_size: Maximum items per batch.

    Yields:
        Non-empty batches in stream order.

    Raises:
        DwdConfigError: If ``batch_size`` is not positive.
    """
    if batch_size < 1:
        raise DwdConfigError(f"Invalid batch size {batch_size}: expected a positive integer.")
    iterator = iter(records)
    while True:
        batch = list(islice(iterator, batch_size))
        if not batch:
            return
        yield batch
