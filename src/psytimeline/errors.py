"""
errors.py
---------

Exception taxonomy for psytimeline.

All errors are raised synchronously to the caller and are never retried.
They subclass ValueError so that callers which already guard against bad
inputs keep working.

- ConfigurationError : malformed construction parameters.
- InvalidResponse : a response outside the accepted domain.
- UnsupportedOperation : unknown operator in a generic attribute update.
- SizeMismatch : element-wise update between sequences of different lengths.
"""

from __future__ import annotations


class PsyTimelineError(ValueError):
    """Base class of all psytimeline errors."""


class ConfigurationError(PsyTimelineError):
    """Raised when a handler or scheduler is constructed with bad parameters."""


class InvalidResponse(PsyTimelineError):
    """Raised when ``add_response`` receives a value outside {0, 1}."""


class UnsupportedOperation(PsyTimelineError):
    """Raised when an attribute update names an unknown operator."""


class SizeMismatch(PsyTimelineError):
    """Raised when two sequences combined element-wise differ in length."""
