from threading import Event

import pytest

from quizbuddy.core.scheduling import ThreadTicker, Ticker, thread_ticker_factory


class TestThreadTicker:
    """Daemon-thread ticker used by the API server"""

    def test_ticks_until_cancelled(self):
        ticks = []
        done = Event()
        ticker = None

        def on_tick():
            ticks.append(1)
            if len(ticks) == 3:
                ticker.cancel()
                done.set()

        ticker = ThreadTicker(0.01, on_tick)
        ticker.start()
        assert done.wait(5)
        assert not ticker.is_active()
        assert len(ticks) == 3

    def test_inactive_before_start(self):
        ticker = thread_ticker_factory(1.0, lambda: None)
        assert not ticker.is_active()

    def test_cancel_before_start_prevents_start(self):
        ticker = ThreadTicker(0.01, lambda: None)
        ticker.cancel()
        ticker.start()
        assert not ticker.is_active()

    def test_failing_callback_stops_ticker(self):
        calls = []

        def on_tick():
            calls.append(1)
            raise RuntimeError("boom")

        ticker = ThreadTicker(0.01, on_tick)
        ticker.start()
        ticker._thread.join(5)
        assert calls == [1]
        assert not ticker.is_active()

    def test_interval_must_be_positive(self):
        with pytest.raises(ValueError):
            ThreadTicker(0, lambda: None)

    def test_incomplete_ticker_cannot_be_created(self):
        class StartOnlyTicker(Ticker):
            def start(self):
                pass

        with pytest.raises(TypeError):
            StartOnlyTicker()


class TestQtTicker:
    """QTimer-backed ticker for Qt hosts"""

    @pytest.fixture
    def qt_app(self):
        qt_core = pytest.importorskip("PySide6.QtCore")
        return qt_core.QCoreApplication.instance() or qt_core.QCoreApplication([])

    def test_ticks_inside_event_loop(self, qt_app):
        from PySide6.QtCore import QEventLoop, QTimer

        from quizbuddy.ui import qt_ticker_factory

        loop = QEventLoop()
        ticks = []
        ticker = None

        def on_tick():
            ticks.append(1)
            if len(ticks) == 2:
                ticker.cancel()
                loop.quit()

        ticker = qt_ticker_factory(0.01, on_tick)
        ticker.start()
        assert ticker.is_active()
        QTimer.singleShot(5000, loop.quit)
        loop.exec()

        assert len(ticks) == 2
        assert not ticker.is_active()

    def test_cancelled_ticker_does_not_restart(self, qt_app):
        from quizbuddy.ui import QtTicker

        ticker = QtTicker(1.0, lambda: None)
        ticker.cancel()
        ticker.start()
        assert not ticker.is_active()
