"""Qt integration for hosting quiz sessions inside a Qt event loop."""

from .qt_ticker import QtTicker, qt_ticker_factory

__all__ = [
    "QtTicker",
    "qt_ticker_factory",
]
