"""Progress and error notifications for patch subscribers."""

from __future__ import annotations

from collections.abc import Callable

import structlog

from mhf_patcher.core.types import PatchState, ProgressEvent

logger = structlog.get_logger()

EventCallback = Callable[[ProgressEvent], None]
ErrorCallback = Callable[[str], None]


class ProgressReporter:
    """Fire-and-forget event sink.

    Subscribers are optional. A subscriber that raises is logged and
    ignored so that a broken UI never aborts a patch run.

    Args:
        on_event: Called with every ProgressEvent, in order
        on_error: Called with the human-readable message of an error
    """

    def __init__(
        self,
        on_event: EventCallback | None = None,
        on_error: ErrorCallback | None = None,
    ):
        self.on_event = on_event
        self.on_error = on_error

    def emit(self, state: PatchState, total: int = 0, current: int = 0) -> None:
        """Send a progress event."""
        event = ProgressEvent(total=total, current=current, state=state)
        if self.on_event is None:
            return
        try:
            self.on_event(event)
        except Exception as e:
            logger.warning("emit_failed", channel="patcher", error=str(e))

    def error(self, message: str) -> None:
        """Report a terminal error: message first, then an ERROR event."""
        logger.warning("patcher_error", message=message)
        if self.on_error is not None:
            try:
                self.on_error(message)
            except Exception as e:
                logger.warning("emit_failed", channel="log", error=str(e))
        self.emit(PatchState.ERROR)


class EventLog:
    """Subscriber that records everything it receives.

    Example:
        >>> log = EventLog()
        >>> reporter = log.reporter()
        >>> reporter.emit(PatchState.CHECKING)
        >>> log.states
        [<PatchState.CHECKING: 0>]
    """

    def __init__(self) -> None:
        self.events: list[ProgressEvent] = []
        self.errors: list[str] = []

    def on_event(self, event: ProgressEvent) -> None:
        self.events.append(event)

    def on_error(self, message: str) -> None:
        self.errors.append(message)

    def reporter(self) -> ProgressReporter:
        """Create a reporter wired to this log."""
        return ProgressReporter(on_event=self.on_event, on_error=self.on_error)

    @property
    def states(self) -> list[PatchState]:
        """States of all recorded events, in order."""
        return [event.state for event in self.events]
