"""Countdown ticker for sessions hosted inside a Qt event loop."""

from __future__ import annotations

from PySide6.QtCore import QObject, QTimer

from quizbuddy.core.scheduling import TickCallback, Ticker


class QtTicker(Ticker):
    """Delivers ticks on the thread that owns the Qt event loop."""

    def __init__(self, interval_seconds: float, callback: TickCallback, parent: QObject | None = None) -> None:
        if interval_seconds <= 0:
            raise ValueError("Tick interval must be positive.")
        self._timer = QTimer(parent)
        self._timer.setInterval(int(interval_seconds * 1000))
        self._timer.timeout.connect(callback)
        self._cancelled = False

    def start(self) -> None:
        if self._cancelled or self._timer.isActive():
            return
        self._timer.start()

    def cancel(self) -> None:
        self._cancelled = True
        self._timer.stop()

    def is_active(self) -> bool:
        return self._timer.isActive()


def qt_ticker_factory(interval_seconds: float, callback: TickCallback) -> Ticker:
    return QtTicker(interval_seconds, callback)
