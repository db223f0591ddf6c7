from .errors import (
    SchedulingError,
    InvalidInterval,
    InvalidTransition,
    ResourceInactive,
    ResourceNotFound,
    WriteConflict,
)
from .intervals import TimeInterval, overlaps, day_window
from .status import ReservationStatus, Purpose
from .records import ReservationEntry, BlockEntry
from .resolver import ConflictResolver, OverlapVerdict
from .memory import InMemoryIntervalStore
