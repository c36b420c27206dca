"""Cancellable periodic tasks that drive session countdowns."""

from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from threading import Event, Thread
from typing import Callable

logger = logging.getLogger(__name__)

TickCallback = Callable[[], None]


class Ticker(ABC):
    """A repeating timer owned by a session. Subclasses choose the event loop."""

    @abstractmethod
    def start(self) -> None:
        raise NotImplementedError

    @abstractmethod
    def cancel(self) -> None:
        raise NotImplementedError

    @abstractmethod
    def is_active(self) -> bool:
        raise NotImplementedError


TickerFactory = Callable[[float, TickCallback], Ticker]


class ThreadTicker(Ticker):
    """Invokes a callback from a daemon thread every ``interval_seconds`` until cancelled."""

    def __init__(self, interval_seconds: float, callback: TickCallback, name: str = "SessionTicker") -> None:
        if interval_seconds <= 0:
            raise ValueError("Tick interval must be positive.")
        self._interval = interval_seconds
        self._callback = callback
        self._name = name
        self._stopped = Event()
        self._thread: Thread | None = None

    def start(self) -> None:
        if self._thread is not None or self._stopped.is_set():
            return
        self._thread = Thread(target=self._run, name=self._name, daemon=True)
        self._thread.start()

    def cancel(self) -> None:
        # Never joins: cancel() may be called from inside the callback itself.
        self._stopped.set()

    def is_active(self) -> bool:
        return self._thread is not None and not self._stopped.is_set()

    def _run(self) -> None:
        while not self._stopped.wait(self._interval):
            try:
                self._callback()
            except Exception:
                logger.exception("Tick callback for %s failed; stopping ticker", self._name)
                self._stopped.set()


def thread_ticker_factory(interval_seconds: float, callback: TickCallback) -> Ticker:
    return ThreadTicker(interval_seconds, callback)
