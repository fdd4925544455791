"""Exception hierarchy for the conversion service."""

from __future__ import annotations


class RasterError(Exception):
    """Base class for all errors raised by the conversion service."""


class SourceNotFoundError(RasterError):
    """The source PDF is not present on disk when the pipeline starts."""


class DocumentOpenError(RasterError):
    """The source PDF could not be opened or parsed."""


class PageRenderError(RasterError):
    """A single page failed to render; the remaining pages are still converted."""

    def __init__(self, page_number: int, message: str) -> None:
        super().__init__(message)
        self.page_number = page_number


class JobNotFoundError(RasterError, KeyError):
    """No job is registered under the requested identifier."""

    def __init__(self, job_id: int) -> None:
        super().__init__(f"Job {job_id} not found")
        self.job_id = job_id

    def __str__(self) -> str:
        return self.args[0]


class InvalidTransitionError(RasterError):
    """A job status change that the state machine does not allow."""
