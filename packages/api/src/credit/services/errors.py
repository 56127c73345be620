# This project was developed with assistance from AI tools.
"""Typed errors raised by the financing and title transfer services.

Every error carries a human-readable message; the route layer maps each
class to an RFC 7807 problem response.
"""


class CreditError(Exception):
    """Base class for engine errors."""

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class NotFoundError(CreditError):
    """Unknown tracker, transfer or reservation id."""


class InvalidStateError(CreditError):
    """A precondition on the reservation, tracker or transfer is not met."""


class AlreadyExistsError(CreditError):
    """A tracker or transfer already exists for the reservation."""


class OutOfOrderError(CreditError):
    """Stage completion attempted before its predecessors were completed."""


class AlreadyTerminalError(CreditError):
    """Mutation attempted on a rejected/completed tracker or a completed transfer."""


class NotScheduledError(CreditError):
    """Unschedule attempted on a transfer without a scheduled date."""


class FinancingIncompleteError(CreditError):
    """Title transfer requested before bank financing completed."""


class AllStagesCompletedError(InvalidStateError):
    """Advance requested on a tracker that is no longer in progress."""


class StageDataError(CreditError):
    """Stage payload does not match the stage's schema."""


class ConcurrentModificationError(CreditError):
    """The row changed underneath the operation on every attempt."""
