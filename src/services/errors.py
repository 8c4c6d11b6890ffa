# --------------------------- src/services/errors.py ----------------------------
"""
Inquiry Router · Error Types

ERROR TAXONOMY:
- StoreError / DuplicateRecordError: the persistence layer rejected a request
- InvalidTransitionError: a task was asked to move along an edge the workflow
  state machine does not allow
- RecordNotFoundError: an explicit operation (e.g. lead qualification) needs a
  record that does not exist

Lookups that find nothing are NOT errors; they return None or [].
"""


class PipelineError(Exception):
    """Base class for all inquiry pipeline errors."""


class StoreError(PipelineError):
    """The persistence layer rejected a request."""

    def __init__(self, message: str, code: str = None):
        super().__init__(message)
        self.code = code


class DuplicateRecordError(StoreError):
    """Insert violated a unique constraint (the record already exists)."""


class RecordNotFoundError(PipelineError):
    """A record required by an explicit operation is missing."""


class InvalidTransitionError(PipelineError):
    """Illegal workflow state change."""
