"""
Listener dispatch and error reporting.

Listeners are invoked synchronously in registration order. A listener that
raises is reported to the error sink and the remaining listeners still run.
"""

import logging
from collections.abc import Callable
from typing import Generic, TypeVar

from hotswap_monitor.core.interfaces import IErrorSink
from hotswap_monitor.models import ArchiveEntryChangeEvent, BaseError, FileChangeEvent, ListenerError

logger = logging.getLogger(__name__)

E = TypeVar("E", FileChangeEvent, ArchiveEntryChangeEvent)


class LoggingErrorSink(IErrorSink):
    """Error sink that logs every reported failure once."""

    def __init__(self, log: logging.Logger | None = None):
        self._log = log or logger

    def report(self, error: BaseError) -> None:
        self._log.error("%s %s", error, error.context, exc_info=error.cause)


def report_safely(sink: IErrorSink, error: BaseError) -> None:
    """Hand an error to a sink; a failing sink is logged and never propagates."""
    try:
        sink.report(error)
    except Exception as e:
        logger.error("Error sink %r failed while reporting %s: %s", sink, error, e)


def _listener_name(listener: Callable) -> str:
    return getattr(listener, "__qualname__", None) or repr(listener)


class ListenerList(Generic[E]):
    """
    Ordered, append-only list of callbacks for one event category.

    Args:
        category: Name used in logs, e.g. ``"added"``
        error_sink: Receives a ``ListenerError`` for every failing callback
    """

    def __init__(self, category: str, error_sink: IErrorSink):
        self.category = category
        self._error_sink = error_sink
        self._listeners: list[Callable[[E], object]] = []

    def add(self, listener: Callable[[E], object]) -> None:
        if not callable(listener):
            raise TypeError(f"Listener for {self.category} events must be callable, got {listener!r}")
        self._listeners.append(listener)

    def notify(self, event: E) -> int:
        """
        Invoke every listener with the event.

        Returns:
            Number of listeners that raised
        """
        failures = 0
        for listener in list(self._listeners):
            try:
                listener(event)
            except Exception as e:
                failures += 1
                if isinstance(event, ArchiveEntryChangeEvent):
                    path, entry = event.archive.relative_path, event.entry_name
                else:
                    path, entry = event.relative_path, None
                report_safely(
                    self._error_sink,
                    ListenerError(
                        f"Listener {_listener_name(listener)} failed on {self.category} event for {path}: {e}",
                        path=path,
                        entry=entry,
                        listener=_listener_name(listener),
                        underlying_error=e,
                    ),
                )
        return failures

    def __len__(self) -> int:
        return len(self._listeners)
