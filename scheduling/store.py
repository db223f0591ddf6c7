from __future__ import annotations

from typing import Hashable, List, Optional, Protocol

from scheduling.intervals import TimeInterval
from scheduling.records import BlockEntry, ReservationEntry


class IntervalStore(Protocol):
    """
    Read side of the booking store.

    Both methods return every entry whose interval intersects ``window``,
    ordered by start time ascending. An unknown resource yields empty lists.
    """

    def list_reservations(
        self,
        resource_id: Hashable,
        window: TimeInterval,
        exclude_id: Optional[Hashable] = None,
    ) -> List[ReservationEntry]:
        """Non-cancelled reservations; ``exclude_id`` never appears in the result."""
        ...

    def list_blocks(self, resource_id: Hashable, window: TimeInterval) -> List[BlockEntry]:
        ...
