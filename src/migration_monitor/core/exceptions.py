"""Custom exceptions for the migration monitor."""


class MonitorException(Exception):
    """Base application exception."""

    def __init__(self, message: str):
        self.message = message
        super().__init__(self.message)


class VersionConflictError(MonitorException):
    """A conditional write was rejected because the stored version tag changed.

    This is expected control flow for the statistics writer: the caller re-reads
    the record and tries again.
    """

    def __init__(self, migration_id: str, etag: str | None):
        self.migration_id = migration_id
        self.etag = etag
        super().__init__(f"Version tag '{etag}' is stale for migration '{migration_id}'")


class MigrationNotFoundError(MonitorException):
    """Migration record does not exist (anymore)."""

    def __init__(self, migration_id: str):
        self.migration_id = migration_id
        super().__init__(f"Migration '{migration_id}' not found")


class ConflictRetryBudgetExceededError(MonitorException):
    """Statistics write kept conflicting past the configured time budget."""

    def __init__(self, migration_id: str, attempts: int, budget_seconds: float):
        self.migration_id = migration_id
        self.attempts = attempts
        self.budget_seconds = budget_seconds
        super().__init__(
            f"Gave up updating statistics for migration '{migration_id}' after "
            f"{attempts} conflicting attempts within {budget_seconds}s"
        )


class SecretStoreError(MonitorException):
    """Secret could not be retrieved from the secret store."""


class SecretStoreNotInitializedError(SecretStoreError):
    """Secret store was used before ``initialize()`` succeeded."""

    def __init__(self, message: str = "Secret store has not yet been initialized"):
        super().__init__(message)
