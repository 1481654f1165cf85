"""
Fire-and-forget delivery of event URLs.

Each dispatch is a GET on its own daemon thread. Nothing waits for it,
nothing reads the response, and failures are dropped: losing an event is
cheaper than blocking the caller.
"""

from __future__ import annotations

import logging
import threading
import time
from typing import Optional, Protocol, Set

import requests

logger = logging.getLogger(__name__)

DEFAULT_TIMEOUT_S = 5.0
DEFAULT_USER_AGENT = "dvt-beacon/1.0"


class Transport(Protocol):
    def dispatch(self, url: str) -> None:
        ...


class ThreadedTransport:
    def __init__(
        self,
        *,
        timeout_s: float = DEFAULT_TIMEOUT_S,
        user_agent: str = DEFAULT_USER_AGENT,
    ) -> None:
        self.timeout_s = timeout_s
        self.user_agent = user_agent
        self._lock = threading.Lock()
        self._in_flight: Set[threading.Thread] = set()

    def dispatch(self, url: str) -> None:
        t = threading.Thread(target=self._runner, args=(url,), name="dvt-dispatch", daemon=True)
        # Started under the lock so flush() never sees an unstarted thread.
        with self._lock:
            self._in_flight.add(t)
            t.start()

    def _runner(self, url: str) -> None:
        try:
            self._send(url)
        finally:
            with self._lock:
                self._in_flight.discard(threading.current_thread())

    def _send(self, url: str) -> None:
        logger.debug("Dispatching %s", url)
        try:
            resp = requests.get(
                url,
                headers={"User-Agent": self.user_agent, "Accept": "image/*,*/*;q=0.8"},
                timeout=self.timeout_s,
            )
            # Status and body are irrelevant; just give the connection back.
            resp.close()
        except requests.RequestException as e:
            logger.debug("Dispatch dropped (%s): %s", url, e)

    def pending(self) -> int:
        with self._lock:
            return len(self._in_flight)

    def flush(self, timeout: Optional[float] = None) -> bool:
        """
        Wait for in-flight dispatches, e.g. before a short-lived process exits.
        Returns True when nothing is left running.
        """
        deadline = None if timeout is None else time.monotonic() + timeout
        while True:
            with self._lock:
                threads = list(self._in_flight)
            if not threads:
                return True
            for t in threads:
                remaining = None if deadline is None else max(0.0, deadline - time.monotonic())
                t.join(remaining)
            if deadline is not None and time.monotonic() >= deadline:
                return self.pending() == 0
