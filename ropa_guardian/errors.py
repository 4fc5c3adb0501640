"""Exceptions raised by the ROPA Guardian modules."""
from __future__ import annotations

from typing import Dict, Optional


class RopaGuardianError(Exception):
    """Base exception for all ROPA Guardian errors."""

    pass


class AdvisoryUnavailable(RopaGuardianError):
    """The advisory service could not be reached, timed out or returned a non-2xx status."""

    pass


class AdvisoryMalformedResponse(RopaGuardianError):
    """The advisory service answered, but the answer could not be used."""

    pass


class NotFound(RopaGuardianError):
    """A referenced record does not exist."""

    def __init__(self, kind: str, record_id: str):
        self.kind = kind
        self.record_id = record_id
        super().__init__(f"{kind} not found")


class ValidationError(RopaGuardianError):
    """Input failed validation.

    ``errors`` maps each failing field name to a human-readable message.
    """

    def __init__(self, errors: Dict[str, str], message: Optional[str] = None):
        self.errors = dict(errors)
        if message is None:
            message = "; ".join(f"{field}: {msg}" for field, msg in self.errors.items())
        super().__init__(message)


class ReportGenerationFailed(RopaGuardianError):
    """Building a document failed; the underlying message is preserved."""

    pass
