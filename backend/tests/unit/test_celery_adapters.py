"""Unit tests for Celery infrastructure adapters.

Tests CeleryScanDispatcher, CeleryJobEventPublisher and the shutdown
cancellation token in isolation using mock objects; no broker needed.
"""

from __future__ import annotations

import threading
from unittest.mock import MagicMock, patch

import pytest

from prguard.infra.tasks.cancellation import (
    ShutdownCancellationToken,
    request_shutdown,
    reset_shutdown,
)
from prguard.infra.tasks.dispatcher import CeleryJobEventPublisher, CeleryScanDispatcher


# ---------------------------------------------------------------------------
# CeleryScanDispatcher
# ---------------------------------------------------------------------------


class TestCeleryScanDispatcher:
    def test_sends_job_to_scan_queue(self):
        async_result = MagicMock(id="task-123")
        with patch(
            "prguard.tasks.scan_tasks.run_pr_scan.apply_async",
            return_value=async_result,
        ) as apply_async:
            task_id = CeleryScanDispatcher(queue="scans").dispatch_scan(42)

        assert task_id == "task-123"
        apply_async.assert_called_once_with(args=[42], queue="scans")

    def test_broker_errors_propagate(self):
        with patch(
            "prguard.tasks.scan_tasks.run_pr_scan.apply_async",
            side_effect=ConnectionError("broker down"),
        ):
            with pytest.raises(ConnectionError):
                CeleryScanDispatcher().dispatch_scan(42)


class TestCeleryJobEventPublisher:
    def test_publishes_finished_job(self):
        with patch("prguard.tasks.notification_tasks.notify_job_finished.delay") as delay:
            CeleryJobEventPublisher().publish_job_finished(7, "completed")

        delay.assert_called_once_with(7, "completed")


# ---------------------------------------------------------------------------
# ShutdownCancellationToken
# ---------------------------------------------------------------------------


class TestShutdownCancellationToken:
    def test_follows_injected_event(self):
        event = threading.Event()
        token = ShutdownCancellationToken(event)

        assert token.is_cancelled() is False
        event.set()
        assert token.is_cancelled() is True

    def test_process_wide_shutdown(self):
        token = ShutdownCancellationToken()
        try:
            assert token.is_cancelled() is False
            request_shutdown()
            assert token.is_cancelled() is True
            # idempotent
            request_shutdown()
        finally:
            reset_shutdown()

        assert token.is_cancelled() is False
