"""Client-side charger state.

The polling engine owns the confirmed snapshot; this package layers
optimistic, not yet confirmed changes on top of it.
"""

from voltwatch.state.overlay import OptimisticOverlay, apply_patch, connector_status_patch

__all__ = ["OptimisticOverlay", "apply_patch", "connector_status_patch"]
