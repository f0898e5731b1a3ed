"""Unit tests for the HTTP readiness poller."""

from unittest.mock import MagicMock

import pytest
import requests

from mwaacli.core.exceptions import InvalidURLError, ReadinessTimeoutError
from mwaacli.local.readiness import wait_for_ready


class FakeClock:
    def __init__(self):
        self.now = 0.0

    def __call__(self):
        return self.now

    def sleep(self, seconds):
        self.now += seconds


def response(status):
    r = MagicMock()
    r.status_code = status
    return r


def test_ready_after_a_few_unavailable_answers():
    clock = FakeClock()
    session = MagicMock()
    session.get.side_effect = [response(503)] * 4 + [response(200)]

    wait_for_ready(
        "http://localhost:8080/health", timeout=60, interval=5, session=session,
        clock=clock, sleep=clock.sleep,
    )
    assert session.get.call_count == 5
    session.get.assert_called_with("http://localhost:8080/health", timeout=10)


def test_connection_errors_are_retried():
    clock = FakeClock()
    session = MagicMock()
    session.get.side_effect = [requests.ConnectionError("refused"), response(200)]

    wait_for_ready(
        "http://localhost:8080/health", timeout=60, session=session,
        clock=clock, sleep=clock.sleep,
    )
    assert session.get.call_count == 2


def test_always_failing_times_out_after_budget():
    clock = FakeClock()
    session = MagicMock()
    session.get.return_value = response(500)

    with pytest.raises(ReadinessTimeoutError):
        wait_for_ready(
            "http://localhost:8080/health", timeout=30, interval=5, session=session,
            clock=clock, sleep=clock.sleep,
        )
    assert clock.now >= 30
    assert session.get.call_count == 6


@pytest.mark.parametrize(
    "url",
    ["ftp://localhost/health", "localhost:8080/health", "http:///health", "file:///etc/passwd"],
)
def test_invalid_urls_fail_before_any_request(url):
    session = MagicMock()
    with pytest.raises(InvalidURLError):
        wait_for_ready(url, session=session)
    session.get.assert_not_called()
