"""Exceptions raised by the Genie client."""

from __future__ import annotations


class GenieError(Exception):
    """Base error for client failures."""


class UnknownId(GenieError):
    """Raised when the reference catalog has no park or experience for an id."""

    def __init__(self, kind: str, ref_id: str):
        super().__init__(f"Unknown {kind} id: {ref_id}")
        self.kind = kind
        self.ref_id = ref_id


class ModifyNotAllowed(GenieError):
    """Raised before any request when a booking can no longer be modified."""


class NormalizationError(GenieError):
    """Raised when a raw itinerary item cannot be turned into a booking."""


class ApiError(GenieError):
    """Raised when the upstream API answers with a non-success status."""

    def __init__(self, status_code: int, message: str):
        super().__init__(f"API request failed with {status_code}: {message}")
        self.status_code = status_code


class Unauthorized(ApiError):
    """Raised on HTTP 401 responses."""
