"""
Domain exceptions for the position ledger.

Snapshot stores raise these instead of leaking OS/JSON/SQLAlchemy errors.
The ledger catches PersistenceError, logs it and keeps its in-memory
state so the monitoring loop never stops on a disk error.
"""


class AppError(Exception):
    """Base application error."""

    def __init__(self, message: str):
        self.message = message
        super().__init__(message)


class PersistenceError(AppError):
    """Snapshot could not be read or written."""

    def __init__(self, message: str = "Snapshot persistence failed"):
        super().__init__(message)


class SnapshotFormatError(PersistenceError):
    """Stored snapshot exists but is not a valid ledger document."""

    def __init__(self, message: str = "Snapshot document is malformed"):
        super().__init__(message)
