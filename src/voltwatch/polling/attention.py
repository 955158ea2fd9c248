"""Host visibility and focus observer.

A :class:`HostAttention` stands in for whatever hosts the polling engines
(a browser tab, a dashboard window, a terminal session). The host reports
transitions through :meth:`HostAttention.set_visible` and
:meth:`HostAttention.set_focused`; engines subscribe to them.
"""

from __future__ import annotations

import logging
from collections.abc import Callable
from enum import StrEnum

_logger = logging.getLogger(__name__)


class AttentionEvent(StrEnum):
    VISIBLE = "visible"
    HIDDEN = "hidden"
    FOCUS = "focus"
    BLUR = "blur"


AttentionListener = Callable[[AttentionEvent], None]


class HostAttention:
    """Visibility/focus state shared by every engine of one host.

    Listeners are only notified on actual transitions; setting the current
    value again is a no-op.
    """

    def __init__(self, *, visible: bool = True, focused: bool = True) -> None:
        self._visible = visible
        self._focused = focused
        self._listeners: list[AttentionListener] = []

    @property
    def visible(self) -> bool:
        return self._visible

    @property
    def focused(self) -> bool:
        return self._focused

    def add_listener(self, listener: AttentionListener) -> Callable[[], None]:
        """Register *listener*; returns a callable that removes it again."""
        self._listeners.append(listener)

        def _remove() -> None:
            try:
                self._listeners.remove(listener)
            except ValueError:
                pass

        return _remove

    def set_visible(self, visible: bool) -> None:
        if visible == self._visible:
            return
        self._visible = visible
        self._emit(AttentionEvent.VISIBLE if visible else AttentionEvent.HIDDEN)

    def set_focused(self, focused: bool) -> None:
        if focused == self._focused:
            return
        self._focused = focused
        self._emit(AttentionEvent.FOCUS if focused else AttentionEvent.BLUR)

    def _emit(self, event: AttentionEvent) -> None:
        _logger.debug("Host attention changed: %s", event)
        for listener in list(self._listeners):
            try:
                listener(event)
            except Exception:
                _logger.exception("Attention listener failed for %s", event)
