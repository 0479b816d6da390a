"""Error types raised by the overlay engine and its adapters."""

from typing import Optional


class TransitMapError(Exception):
    """Base class for all transitmap errors."""


class EmptySolutionSet(TransitMapError):
    """The route solver returned no itinerary for the requested endpoints."""

    def __init__(self, message: str = "No route found"):
        super().__init__(message)


class OracleUnavailable(TransitMapError):
    """A position oracle call failed, timed out or returned unusable data."""

    def __init__(self, message: str, trip_id: Optional[int] = None):
        super().__init__(message)
        self.trip_id = trip_id


class InvalidState(TransitMapError):
    """An operation was attempted on a removed or disposed object."""
