from __future__ import annotations

import asyncio
import threading

import pytest

from call_insights.config import AppConfig
from call_insights.errors import FetchError
from call_insights.models import ClientRecord
from call_insights.pipeline.load import FetchResult
from call_insights.pipeline.session import DatasetSession
from call_insights.query.filters import FilterState
from call_insights.query.sorting import SortState


def _config() -> AppConfig:
    return AppConfig.model_validate(
        {"sources": {"clients": {"entity": "client", "kind": "jsonp_table", "sheet_id": "abc"}}}
    )


def _records(*names: str) -> tuple[ClientRecord, ...]:
    return tuple(ClientRecord(id=index, name=name, phone=None) for index, name in enumerate(names))


def test_load_replaces_snapshot() -> None:
    def _loader(dataset: str, config: AppConfig, generation: int) -> FetchResult:
        return FetchResult(dataset, "client", _records("Asha", "Ravi"), generation=generation)

    async def _scenario() -> DatasetSession:
        session = DatasetSession("clients", _config(), loader=_loader)
        result = await session.load()
        assert result.ok
        return session

    session = asyncio.run(_scenario())

    assert [record.name for record in session.records] == ["Asha", "Ravi"]
    assert session.error is None
    assert session.loading is False
    assert session.generation == 1


def test_stale_result_is_discarded_after_newer_refresh() -> None:
    release_first = threading.Event()

    def _loader(dataset: str, config: AppConfig, generation: int) -> FetchResult:
        if generation == 1:
            release_first.wait(timeout=5)
            return FetchResult(dataset, "client", _records("stale"), generation=generation)
        return FetchResult(dataset, "client", _records("fresh"), generation=generation)

    async def _scenario() -> DatasetSession:
        session = DatasetSession("clients", _config(), loader=_loader)
        session.refresh()
        await asyncio.sleep(0)
        second = session.refresh()
        await second
        release_first.set()
        stale = FetchResult("clients", "client", _records("stale"), generation=1)
        assert session.apply(stale) is False
        return session

    session = asyncio.run(_scenario())

    assert [record.name for record in session.records] == ["fresh"]
    assert session.generation == 2


def test_error_result_keeps_previous_records_out() -> None:
    def _loader(dataset: str, config: AppConfig, generation: int) -> FetchResult:
        return FetchResult(dataset, "client", error=FetchError("HTTP 500"), generation=generation)

    async def _scenario() -> DatasetSession:
        session = DatasetSession("clients", _config(), loader=_loader)
        await session.load()
        return session

    session = asyncio.run(_scenario())

    assert session.records == ()
    assert isinstance(session.error, FetchError)
    assert session.loading is False


def test_close_cancels_and_ignores_late_results() -> None:
    release = threading.Event()

    def _loader(dataset: str, config: AppConfig, generation: int) -> FetchResult:
        release.wait(timeout=5)
        return FetchResult(dataset, "client", _records("late"), generation=generation)

    async def _scenario() -> DatasetSession:
        session = DatasetSession("clients", _config(), loader=_loader)
        task = session.refresh()
        await asyncio.sleep(0)
        await session.close()
        release.set()
        assert task.cancelled()
        assert session.apply(FetchResult("clients", "client", _records("late"), generation=1)) is False
        with pytest.raises(RuntimeError, match="closed"):
            session.refresh()
        return session

    session = asyncio.run(_scenario())

    assert session.closed
    assert session.records == ()
    assert session.loading is False


def test_view_and_summary_use_entity_profile() -> None:
    session = DatasetSession("clients", _config())
    session.records = _records("Ravi", "Asha", "Meera")

    view = session.view(FilterState(search_term="a"), SortState(field="name"))

    assert [record.name for record in view] == ["Asha", "Meera", "Ravi"]
    assert session.summary(view).metrics["filtered"] == 3


def test_unknown_dataset_is_rejected() -> None:
    with pytest.raises(ValueError, match="Unknown dataset"):
        DatasetSession("invoices", _config())


def test_unusable_endpoint_surfaces_as_session_error() -> None:
    config = AppConfig.model_validate(
        {
            "sources": {
                "clients": {
                    "entity": "client",
                    "kind": "csv_export",
                    "url_template": "sheets/{sheet_id}/export",
                    "sheet_id": "x",
                }
            }
        }
    )

    async def _scenario() -> DatasetSession:
        session = DatasetSession("clients", config)
        await session.load()
        return session

    session = asyncio.run(_scenario())

    assert isinstance(session.error, FetchError)
    assert session.loading is False
    assert session.records == ()
