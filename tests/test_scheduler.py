"""Unit tests for PollingScheduler and InputWatcher."""

import json
from types import SimpleNamespace
from unittest.mock import MagicMock

import pytest

from batch_lifecycle_manager.core.batching.files import make_request_mapper
from batch_lifecycle_manager.core.batching.poller import StatusPoller, TickSummary
from batch_lifecycle_manager.core.batching.scheduler import InputWatcher, PollingScheduler
from batch_lifecycle_manager.core.batching.submitter import BatchSubmitter
from batch_lifecycle_manager.core.exceptions import ProviderError
from conftest import new_job


_CONFIG = SimpleNamespace(model="gpt-4o-mini", temperature=0.3, max_tokens=4000, endpoint="/chat/completions")
_MAPPER = make_request_mapper("Be factual.", _CONFIG)


def _mock_poller(store) -> MagicMock:
    poller = MagicMock(spec=StatusPoller)
    poller.store = store
    poller.tick.return_value = TickSummary()
    return poller


def test_run_ticks_and_sleeps_between(store, clock) -> None:
    poller = _mock_poller(store)
    scheduler = PollingScheduler(poller, interval=300, clock=clock)

    ticks = scheduler.run(max_ticks=3)

    assert ticks == 3
    assert poller.tick.call_count == 3
    assert clock.sleeps == [300, 300]


def test_run_scans_watcher_before_each_tick(store, clock) -> None:
    poller = _mock_poller(store)
    watcher = MagicMock(spec=InputWatcher)
    order = []
    watcher.scan.side_effect = lambda: order.append("scan")
    poller.tick.side_effect = lambda: order.append("tick")

    PollingScheduler(poller, interval=60, clock=clock, watcher=watcher).run(max_ticks=2)

    assert order == ["scan", "tick", "scan", "tick"]


def test_run_until_terminal_returns_finished_job(store, clock) -> None:
    store.create(new_job())
    poller = _mock_poller(store)

    def finish_on_third_tick():
        if poller.tick.call_count == 3:
            store.transition("batch_abc", "pending", "failed", {"error_message": "batch expired"})
        return TickSummary()

    poller.tick.side_effect = finish_on_third_tick
    job = PollingScheduler(poller, interval=300, clock=clock).run_until_terminal("batch_abc", timeout=3600)

    assert job.error_message == "batch expired"
    assert clock.sleeps == [300, 300]


def test_run_until_terminal_times_out(store, clock) -> None:
    store.create(new_job())
    poller = _mock_poller(store)
    scheduler = PollingScheduler(poller, interval=300, clock=clock)

    with pytest.raises(TimeoutError):
        scheduler.run_until_terminal("batch_abc", timeout=1000)

    assert sum(clock.sleeps) == 1000
    assert poller.tick.call_count == 5


def test_interval_must_be_positive(store) -> None:
    with pytest.raises(ValueError):
        PollingScheduler(_mock_poller(store), interval=0)


def _write_records(path, records) -> None:
    path.write_text(json.dumps(records), encoding="utf-8")


def test_watcher_submits_each_new_file_once(tmp_path, store, provider) -> None:
    incoming = tmp_path / "incoming"
    incoming.mkdir()
    _write_records(incoming / "calls_a.json", [{"Id": "1"}, {"Id": "2"}])
    _write_records(incoming / "calls_b.json", [{"Id": "3"}])
    (incoming / "notes.txt").write_text("ignored")
    provider.upload.side_effect = ["file-a", "file-b"]
    provider.create_job.side_effect = ["batch_a", "batch_b"]
    watcher = InputWatcher(incoming, BatchSubmitter(provider, store), store, _MAPPER)

    first = watcher.scan()
    second = watcher.scan()

    assert [j.job_id for j in first] == ["batch_a", "batch_b"]
    assert second == []
    assert provider.upload.call_count == 2
    assert store.get("batch_a").input_locator == str(incoming / "calls_a.json")


def test_watcher_remembers_empty_files(tmp_path, store, provider) -> None:
    incoming = tmp_path / "incoming"
    incoming.mkdir()
    _write_records(incoming / "empty.json", [])
    submitter = MagicMock(wraps=BatchSubmitter(provider, store))
    watcher = InputWatcher(incoming, submitter, store, _MAPPER)

    watcher.scan()
    watcher.scan()

    assert submitter.submit.call_count == 1
    provider.upload.assert_not_called()


def test_watcher_retries_file_after_submission_error(tmp_path, store, provider) -> None:
    incoming = tmp_path / "incoming"
    incoming.mkdir()
    _write_records(incoming / "calls.json", [{"Id": "1"}])
    provider.upload.side_effect = [ProviderError("Uploading batch input failed"), "file-1"]
    provider.create_job.return_value = "batch_1"
    watcher = InputWatcher(incoming, BatchSubmitter(provider, store), store, _MAPPER)

    assert watcher.scan() == []
    assert [j.job_id for j in watcher.scan()] == ["batch_1"]


def test_watcher_missing_folder(tmp_path, store, provider) -> None:
    watcher = InputWatcher(tmp_path / "nope", BatchSubmitter(provider, store), store, _MAPPER)
    assert watcher.scan() == []
