from __future__ import annotations


class RebaseError(Exception):
    """Base class for merge/rebase failures."""


class PreconditionError(RebaseError, ValueError):
    """Malformed or mismatched tree inputs.

    Raised before any merged output is built, so a caller never sees a
    partially rebased tree.
    """


class HashComputationError(RebaseError, RuntimeError):
    """The hash provider failed or returned a digest of the wrong size."""


class SubmissionError(RebaseError):
    """A chunk could not be delivered to the node."""

    def __init__(self, message: str, status_code: int | None = None):
        super().__init__(message)
        self.status_code = status_code
