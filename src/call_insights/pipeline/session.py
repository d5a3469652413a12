from __future__ import annotations

import asyncio
import contextlib
import logging
from collections.abc import Callable

from call_insights.config import AppConfig
from call_insights.datasets import profile_for
from call_insights.errors import IngestionError
from call_insights.features.aggregates import StatSummary, summarize
from call_insights.models import Record
from call_insights.pipeline.load import FetchResult, load_result
from call_insights.query.filters import FilterState, apply_filters
from call_insights.query.sorting import SortState, sort_records

LOGGER = logging.getLogger(__name__)

Loader = Callable[[str, AppConfig, int], FetchResult]


class DatasetSession:
    """Holds one dataset's record snapshot and drives its fetch cycles.

    Every refresh bumps a generation counter and cancels the in-flight task, so a
    response that arrives after a newer refresh (or after ``close``) is dropped
    instead of overwriting current state.
    """

    def __init__(self, dataset: str, config: AppConfig, loader: Loader = load_result) -> None:
        self.dataset = dataset
        self.entity = config.source(dataset).entity
        self._config = config
        self._loader = loader
        self._generation = 0
        self._task: asyncio.Task[FetchResult] | None = None
        self._closed = False
        self.records: tuple[Record, ...] = ()
        self.error: IngestionError | None = None
        self.loading = False

    @property
    def generation(self) -> int:
        return self._generation

    @property
    def closed(self) -> bool:
        return self._closed

    def refresh(self) -> asyncio.Task[FetchResult]:
        if self._closed:
            raise RuntimeError(f"session for {self.dataset} is closed")
        self._generation += 1
        if self._task is not None and not self._task.done():
            self._task.cancel()
        self.loading = True
        self._task = asyncio.create_task(self._run(self._generation))
        return self._task

    async def load(self) -> FetchResult:
        return await self.refresh()

    async def _run(self, generation: int) -> FetchResult:
        try:
            result = await asyncio.to_thread(self._loader, self.dataset, self._config, generation)
        except Exception:
            if generation == self._generation:
                self.loading = False
            raise
        self.apply(result)
        return result

    def apply(self, result: FetchResult) -> bool:
        if self._closed or result.generation != self._generation:
            LOGGER.info(
                "Discarding stale %s result (generation %d, current %d)",
                self.dataset,
                result.generation,
                self._generation,
            )
            return False
        self.records = result.records
        self.error = result.error
        self.loading = False
        return True

    async def close(self) -> None:
        self._closed = True
        task = self._task
        if task is not None and not task.done():
            task.cancel()
            with contextlib.suppress(asyncio.CancelledError):
                await task
        self.loading = False

    def view(
        self,
        filters: FilterState | None = None,
        sort: SortState | None = None,
    ) -> tuple[Record, ...]:
        profile = profile_for(self.entity)
        filtered = apply_filters(self.records, filters or FilterState(), profile.search_fields)
        return sort_records(filtered, sort or SortState())

    def summary(self, view: tuple[Record, ...] | None = None) -> StatSummary:
        return summarize(self.entity, self.records, view=view)
