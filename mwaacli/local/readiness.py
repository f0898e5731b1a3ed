"""HTTP readiness polling for the Airflow webserver."""

from __future__ import annotations

import logging
import time
from typing import Callable
from urllib.parse import urlparse

import requests

from mwaacli import config
from mwaacli.core.exceptions import InvalidURLError, ReadinessTimeoutError

logger = logging.getLogger(__name__)


def validate_url(url: str) -> str:
    parsed = urlparse(url)
    if parsed.scheme not in ("http", "https") or not parsed.netloc:
        raise InvalidURLError(f"invalid URL {url!r}: expected an http(s) URL with a host")
    return url


def wait_for_ready(
    url: str,
    timeout: float = config.WEBSERVER_READY_TIMEOUT,
    interval: float = config.READINESS_INTERVAL,
    request_timeout: float = config.READINESS_REQUEST_TIMEOUT,
    *,
    session: requests.Session | None = None,
    clock: Callable[[], float] = time.monotonic,
    sleep: Callable[[float], None] = time.sleep,
) -> None:
    """Poll url with GET until it answers 200 OK.

    Connection errors and non-200 answers are retried every interval seconds;
    ReadinessTimeoutError is raised only once timeout seconds have elapsed.
    """
    validate_url(url)
    http = session or requests.Session()
    deadline = clock() + timeout
    attempt = 0
    try:
        while True:
            if clock() >= deadline:
                raise ReadinessTimeoutError(url, timeout)
            attempt += 1
            try:
                response = http.get(url, timeout=request_timeout)
            except requests.RequestException as exc:
                logger.debug("Readiness check %d for %s failed: %s", attempt, url, exc)
            else:
                if response.status_code == 200:
                    logger.info("%s is ready", url)
                    return
                logger.debug(
                    "Readiness check %d for %s returned HTTP %d", attempt, url, response.status_code
                )
            sleep(interval)
    finally:
        if session is None:
            http.close()
