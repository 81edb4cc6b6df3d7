class WorkoutLogError(Exception):
    """Base class for errors raised by the workout log core."""


class StorageError(WorkoutLogError):
    """Raised when the underlying SQLite storage fails."""


class InvalidBackupFormat(WorkoutLogError):
    """Raised when a backup document fails validation.

    Restores validate before touching storage, so when this is raised the
    store still holds its previous contents.
    """


class SessionClosedError(WorkoutLogError):
    """Raised when a finished session is used again."""
