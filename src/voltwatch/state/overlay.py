"""Optimistic overlay on top of the confirmed charger snapshot.

The confirmed snapshot always comes from the polling engine. A pending patch
(e.g. "connector 1 is Preparing" right after the user pressed start) is laid
over it until the next confirmed snapshot arrives, at which point the patch
is dropped: the server is the source of truth.
"""

from __future__ import annotations

import logging
from collections.abc import Callable
from datetime import UTC, datetime, timedelta
from typing import TYPE_CHECKING

from pydantic import BaseModel, ConfigDict

from voltwatch.models.charger import Charger, ChargerPatch, Connector, ConnectorStatus

if TYPE_CHECKING:
    from voltwatch.polling.engine import PollingEngine, PollingSnapshot

_logger = logging.getLogger(__name__)


def _utcnow() -> datetime:
    return datetime.now(UTC)


def apply_patch(base: Charger, patch: ChargerPatch) -> Charger:
    """Return *base* with every field explicitly set on *patch* replaced.

    Connectors are replaced as a whole list, and only when the patch
    supplies them. *base* is never modified.
    """
    update = {name: getattr(patch, name) for name in patch.model_fields_set}
    if update.get("connectors") is None:
        update.pop("connectors", None)
    if not update:
        return base
    return base.model_copy(update=update)


def connector_status_patch(base: Charger, connector_id: int, status: ConnectorStatus) -> ChargerPatch:
    """Patch that sets the status of one connector and leaves the others as-is.

    Raises
    ------
    KeyError
        *base* has no connector with *connector_id*.
    """
    if base.connector(connector_id) is None:
        raise KeyError(f"Charger {base.code} has no connector {connector_id}")
    connectors: list[Connector] = [
        c.model_copy(update={"status": status}) if c.connector_id == connector_id else c for c in base.connectors
    ]
    return ChargerPatch(connectors=connectors)


class PendingPatch(BaseModel):
    model_config = ConfigDict(frozen=True, extra="forbid")

    patch: ChargerPatch
    applied_at: datetime
    expires_at: datetime | None = None

    def is_expired(self, now: datetime) -> bool:
        return self.expires_at is not None and now >= self.expires_at


class OptimisticOverlay:
    """Latest confirmed charger plus at most one pending optimistic patch.

    Parameters
    ----------
    confirmed
        Initial confirmed snapshot.
    ttl
        How long a pending patch survives without a confirmation. ``None``
        keeps it until the next :meth:`confirm`.
    clock
        Source of "now"; replaceable in tests.
    """

    def __init__(
        self,
        confirmed: Charger,
        *,
        ttl: timedelta | None = None,
        clock: Callable[[], datetime] = _utcnow,
    ) -> None:
        self._confirmed = confirmed
        self._ttl = ttl
        self._clock = clock
        self._pending: PendingPatch | None = None
        self._unbind: Callable[[], None] | None = None

    @property
    def confirmed(self) -> Charger:
        return self._confirmed

    @property
    def pending(self) -> ChargerPatch | None:
        pending = self._live_pending()
        return pending.patch if pending is not None else None

    @property
    def current(self) -> Charger:
        """Confirmed snapshot with the pending patch (if any) applied."""
        pending = self._live_pending()
        if pending is None:
            return self._confirmed
        return apply_patch(self._confirmed, pending.patch)

    def add_optimistic_update(self, patch: ChargerPatch) -> Charger:
        """Set *patch* as the pending patch, replacing any earlier one."""
        now = self._clock()
        expires_at = now + self._ttl if self._ttl is not None else None
        self._pending = PendingPatch(patch=patch, applied_at=now, expires_at=expires_at)
        _logger.debug("Optimistic update for charger %s: %s", self._confirmed.code, sorted(patch.model_fields_set))
        return self.current

    def confirm(self, confirmed: Charger) -> Charger:
        """Record a confirmed snapshot and discard the pending patch."""
        self._confirmed = confirmed
        self._pending = None
        return confirmed

    def clear(self) -> None:
        self._pending = None

    def bind(self, engine: PollingEngine[Charger]) -> Callable[[], None]:
        """Confirm every snapshot *engine* successfully fetches.

        Returns a callable that detaches the overlay again.
        """
        if self._unbind is not None:
            self._unbind()
        last_seq = engine.snapshot().confirmed_seq

        def _on_snapshot(snapshot: PollingSnapshot[Charger]) -> None:
            nonlocal last_seq
            if snapshot.confirmed_seq == last_seq:
                return
            last_seq = snapshot.confirmed_seq
            self.confirm(snapshot.data)

        remove = engine.add_listener(_on_snapshot)

        def _unbind() -> None:
            remove()
            self._unbind = None

        self._unbind = _unbind
        return _unbind

    def _live_pending(self) -> PendingPatch | None:
        pending = self._pending
        if pending is None:
            return None
        if pending.is_expired(self._clock()):
            _logger.debug("Optimistic update for charger %s expired", self._confirmed.code)
            self._pending = None
            return None
        return pending
