"""
Errors raised by the night audit process itself.

Data-integrity problems in the hotel records are never raised; they are
returned as issues.
"""


class AuditError(Exception):
    """Base error for a night audit that could not run."""


class AuditLoadError(AuditError):
    """A source collection could not be read; the run was aborted."""

    def __init__(self, collection: str, cause: BaseException):
        self.collection = collection
        self.cause = cause
        super().__init__(f"Failed to load '{collection}': {cause}")
