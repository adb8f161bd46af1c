"""
Exception types raised by the rate adaptation package.

Classes
-------
GroupRateError
    Base class for package errors.
ModeNotFound
    Lookup of a transmission mode that was never registered in the catalog.
MalformedFeedback
    Feedback payload too short or otherwise undecodable.
InvalidTid
    Traffic identifier outside the valid range after normalization.

Notes
-----
ModeNotFound and InvalidTid signal programming errors and are never caught
inside the package. MalformedFeedback is caught by the MAC glue, which logs
the frame and drops it.
"""

###############################################################################

class GroupRateError(Exception):
    """Base class for rate adaptation errors."""

###############################################################################

class ModeNotFound(GroupRateError, LookupError):
    """Mode was never registered in the mode catalog."""

###############################################################################

class MalformedFeedback(GroupRateError, ValueError):
    """Feedback payload could not be decoded."""

###############################################################################

class InvalidTid(GroupRateError, ValueError):
    """Traffic identifier is not in the range [0, 8)."""
