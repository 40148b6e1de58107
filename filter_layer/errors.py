"""Exception taxonomy for the filter engine."""

from typing import Any, Optional


class FilterEngineError(Exception):
    """Base class for every error raised inside the filter layer."""


class CandidateRejected(FilterEngineError):
    """A candidate filter was dropped; carries the id and the reason."""

    def __init__(self, filter_id: Any, reason: str):
        self.filter_id = filter_id
        self.reason = reason
        super().__init__(f"filter {filter_id!r}: {reason}")


class CatalogMismatch(CandidateRejected):
    """Unknown id, type or source_type for the catalog being processed."""


class ShapeViolation(CandidateRejected):
    """Value does not match the type/operator contract after repair."""


class ModelRequestFailure(FilterEngineError):
    """The language-model call errored or returned undecodable output."""

    def __init__(self, message: str, raw_response: Optional[str] = None):
        self.raw_response = raw_response
        super().__init__(message)


class ModelOutputUnschematic(ModelRequestFailure):
    """The model output decoded but is not the requested JSON object."""
