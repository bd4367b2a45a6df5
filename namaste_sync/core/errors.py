"""Domain errors raised by the terminology engine."""

from __future__ import annotations


class TerminologyError(Exception):
    """Base class for every error raised by the engine."""


class NotFoundError(TerminologyError, LookupError):
    """A code could not be resolved under the asserted code system."""


class ValidationError(TerminologyError, ValueError):
    """A single ingestion row failed validation.

    Collected into the ingestion report, never raised out of ``parse``.
    """

    def __init__(self, line_number: int, message: str) -> None:
        super().__init__(f"Line {line_number}: {message}")
        self.line_number = line_number
        self.message = message


class FormatError(TerminologyError, ValueError):
    """The whole ingestion payload is unusable (bad or missing header)."""


class IngestionRejectedError(TerminologyError, ValueError):
    """Strict ingestion refused a payload that contained row errors."""


class StoreUnavailableError(TerminologyError):
    """The active store failed to serve a read or write."""


class DuplicateKeyError(TerminologyError):
    """A record with the same code already exists in the store."""

    def __init__(self, code: str) -> None:
        super().__init__(f"duplicate mapping code: {code}")
        self.code = code
