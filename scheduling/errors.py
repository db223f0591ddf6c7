class SchedulingError(Exception):
    """Base class for booking engine failures."""

    code = "SCHEDULING_ERROR"


class InvalidInterval(SchedulingError):
    code = "INVALID_INTERVAL"


class ResourceNotFound(SchedulingError):
    code = "RESOURCE_NOT_FOUND"

    def __init__(self, resource_key):
        super().__init__(f"Resource {resource_key!r} not found")
        self.resource_key = resource_key


class ResourceInactive(SchedulingError):
    code = "RESOURCE_INACTIVE"

    def __init__(self, resource_key):
        super().__init__(f"Resource {resource_key!r} is not accepting reservations")
        self.resource_key = resource_key


class InvalidTransition(SchedulingError):
    code = "INVALID_TRANSITION"

    def __init__(self, current, target):
        super().__init__(f"Cannot move reservation from {current.value} to {target.value}")
        self.current = current
        self.target = target


class WriteConflict(SchedulingError):
    """
    The storage layer refused a write that passed the advisory check.
    Callers should treat it as "slot just taken, retry".
    """

    code = "WRITE_CONFLICT"

    def __init__(self, message="Time slot was just taken, please retry", verdict=None):
        super().__init__(message)
        self.verdict = verdict
