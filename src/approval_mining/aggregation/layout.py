"""
Layout persistence interface for rendering collaborators.

Manual node positions belong to a rendering layer, not to the analytics.
They are keyed by the selection they were made for; this module defines
that key and the store a renderer injects to keep positions. Nothing in the
analytics pipeline reads or writes a layout store.
"""

from typing import Dict, Iterable, Optional, Protocol, Tuple

Positions = Dict[str, Tuple[float, float]]


def layout_key(variant_ids: Iterable[str]) -> str:
    """
    Deterministic key for a selection of variants.

    The same set of ids always gives the same key, whatever the selection
    order.
    """
    return ",".join(sorted(variant_ids))


class LayoutStore(Protocol):
    """Key-value store for manual node positions."""

    def get(self, key: str) -> Optional[Positions]:
        """Positions saved for a key, or None."""
        ...

    def set(self, key: str, positions: Positions) -> None:
        """Save positions for a key."""
        ...


class InMemoryLayoutStore:
    """LayoutStore kept in a dictionary for the lifetime of a session."""

    def __init__(self):
        self._positions: Dict[str, Positions] = {}

    def get(self, key: str) -> Optional[Positions]:
        positions = self._positions.get(key)
        return dict(positions) if positions is not None else None

    def set(self, key: str, positions: Positions) -> None:
        self._positions[key] = dict(positions)

    def clear(self, key: Optional[str] = None) -> None:
        """Forget one key, or every key when none is given."""
        if key is None:
            self._positions.clear()
        else:
            self._positions.pop(key, None)
