# Path: core/pipeline/workers.py
# Purpose: Bounded worker pools used to chain pipeline stages.
# Layer: core/pipeline.
# Details: Each stage keeps a fixed number of items in flight and yields results as they complete.

from __future__ import annotations

import logging
from concurrent.futures import FIRST_COMPLETED, Future, ThreadPoolExecutor, wait
from itertools import islice
from typing import Callable, Dict, Generic, Iterable, Iterator, List, Optional, Tuple, TypeVar

logger = logging.getLogger(__name__)

T = TypeVar("T")
R = TypeVar("R")

ErrorHandler = Callable[[T, BaseException], None]


def batched(items: Iterable[T], size: int) -> Iterator[List[T]]:
    """Group a stream into ordered lists of at most ``size`` items."""

    if size < 1:
        raise ValueError("Batch size must be positive.")
    iterator = iter(items)
    while True:
        batch = list(islice(iterator, size))
        if not batch:
            return
        yield batch


class StagePool(Generic[T, R]):
    """A named thread pool that runs one pipeline stage.

    At most ``workers`` items are submitted at any time. A new input is pulled from
    the upstream iterator only when a slot frees, so a slow stage throttles the ones
    before it instead of letting work pile up in memory.
    """

    def __init__(self, name: str, workers: int) -> None:
        if workers < 1:
            raise ValueError("A stage needs at least one worker.")
        self.name = name
        self.workers = workers
        self._executor: Optional[ThreadPoolExecutor] = None

    def __enter__(self) -> "StagePool[T, R]":
        self._executor = ThreadPoolExecutor(max_workers=self.workers, thread_name_prefix=self.name)
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.shutdown()

    def shutdown(self) -> None:
        if self._executor is not None:
            self._executor.shutdown(wait=True, cancel_futures=True)
            self._executor = None

    def map_unordered(
        self,
        fn: Callable[[T], R],
        items: Iterable[T],
        on_error: ErrorHandler,
    ) -> Iterator[Tuple[T, R]]:
        """Apply ``fn`` to every item and yield ``(item, result)`` in completion order.

        Exceptions raised by ``fn`` are passed to ``on_error`` together with the item;
        the failed item is not yielded and its siblings keep running.
        """

        if self._executor is None:
            raise RuntimeError(f"Stage {self.name} is not running; use it as a context manager.")
        executor = self._executor
        upstream = iter(items)
        pending: Dict[Future, T] = {}
        exhausted = False

        def admit() -> None:
            nonlocal exhausted
            while not exhausted and len(pending) < self.workers:
                try:
                    item = next(upstream)
                except StopIteration:
                    exhausted = True
                    return
                pending[executor.submit(fn, item)] = item

        admit()
        while pending:
            done, _ = wait(pending, return_when=FIRST_COMPLETED)
            for future in done:
                item = pending.pop(future)
                try:
                    result = future.result()
                except Exception as exc:  # noqa: BLE001 - reported per item, siblings continue
                    on_error(item, exc)
                    continue
                yield item, result
            admit()

