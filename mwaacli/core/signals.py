"""Translate interrupt signals into a cancellation event."""

from __future__ import annotations

import logging
import signal
import threading
from contextlib import contextmanager
from typing import Iterator

logger = logging.getLogger(__name__)

DEFAULT_SIGNALS = (signal.SIGINT, signal.SIGTERM)


@contextmanager
def cancel_on_signals(signals=DEFAULT_SIGNALS) -> Iterator[threading.Event]:
    """Yield an event that is set when one of signals arrives.

    Previous handlers are restored on exit. Must be entered from the main thread.
    """
    cancel = threading.Event()

    def _handler(signum, frame):
        logger.debug("Received signal %s, cancelling", signal.Signals(signum).name)
        cancel.set()

    previous = {}
    for sig in signals:
        previous[sig] = signal.signal(sig, _handler)
    try:
        yield cancel
    finally:
        for sig, handler in previous.items():
            signal.signal(sig, handler)
