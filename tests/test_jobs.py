import logging
import threading
import time
from unittest import mock

from castdeck.services.jobs import JobManager


def make_manager(**kwargs):
    kwargs.setdefault("refresh_catalog", mock.Mock(return_value=3))
    kwargs.setdefault("refresh_epg", mock.Mock(return_value=True))
    return JobManager(logger=logging.getLogger("CastDeck"), poll_interval=0.01, **kwargs)


def wait_for(predicate, timeout=5):
    for _ in range(int(timeout / 0.01)):
        if predicate():
            return True
        time.sleep(0.01)
    return predicate()


def test_catalog_job_chains_epg_and_display_refresh():
    display = mock.Mock()
    manager = make_manager(refresh_display_index=display)

    assert manager.enqueue_refresh_catalog("startup") == "queued"
    assert wait_for(lambda: manager.get_status("refresh_epg").get("status") == "completed")
    assert wait_for(lambda: display.called)

    manager.refresh_catalog.assert_called_once_with()
    manager.refresh_epg.assert_called_once_with(force=False)
    status = manager.get_status()
    assert status["refresh_catalog"]["status"] == "completed"
    assert status["refresh_catalog"]["total"] == 3


def test_failed_epg_marks_stale_without_display_refresh():
    display = mock.Mock()
    manager = make_manager(refresh_epg=mock.Mock(return_value=False), refresh_display_index=display)
    manager.enqueue_epg_refresh("manual", force=True)

    assert wait_for(lambda: manager.get_status("refresh_epg").get("status") == "stale")
    manager.refresh_epg.assert_called_once_with(force=True)
    display.assert_not_called()


def test_duplicate_enqueue_is_collapsed():
    gate = threading.Event()
    started = threading.Event()

    def slow_catalog():
        started.set()
        gate.wait(5)
        return 0

    manager = make_manager(refresh_catalog=slow_catalog)
    manager.enqueue_refresh_catalog()
    assert started.wait(5)
    assert manager.enqueue_refresh_catalog() == "running"
    gate.set()


def test_job_errors_are_retried_then_recorded():
    manager = make_manager(
        refresh_epg=mock.Mock(side_effect=RuntimeError("boom")),
    )
    manager.max_retries = 0
    manager.enqueue_epg_refresh()

    assert wait_for(lambda: manager.get_status("refresh_epg").get("status") == "error")
    assert manager.get_status("refresh_epg")["error"] == "boom"
