"""Error taxonomy shared by the repository, API and startup paths."""

from typing import Optional

NOT_FOUND = "NotFound"
INSERT_FAILED = "InsertFailed"
UPDATE_FAILED = "UpdateFailed"
DELETE_FAILED = "DeleteFailed"


class DeltaMetricsError(Exception):
    """Base class for every error raised by this package."""


class ConfigError(DeltaMetricsError):
    """Configuration is missing or malformed. Fatal at startup."""


class RepositoryError(DeltaMetricsError):
    """
    A repository operation failed.

    Attributes:
        kind: Stable error kind (NotFound, InsertFailed, UpdateFailed, DeleteFailed)
        entity: Entity name the operation targeted
        client_error: True when the store rejected the record itself
            (constraint or data error), False for infrastructure failures
    """

    kind = "RepositoryError"

    def __init__(
        self,
        entity: str,
        message: str,
        client_error: bool = False,
        cause: Optional[BaseException] = None,
    ):
        super().__init__(message)
        self.entity = entity
        self.message = message
        self.client_error = client_error
        self.cause = cause


class NotFoundError(RepositoryError):
    kind = NOT_FOUND


class InsertFailedError(RepositoryError):
    kind = INSERT_FAILED


class UpdateFailedError(RepositoryError):
    kind = UPDATE_FAILED


class DeleteFailedError(RepositoryError):
    kind = DELETE_FAILED


class RequestError(DeltaMetricsError):
    """Caller supplied something this layer cannot act on."""

    kind = "BadRequest"

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class InvalidRecordError(RequestError):
    kind = "InvalidRecord"


class InvalidOrderError(RequestError):
    kind = "InvalidOrder"


class InvalidPaginationError(RequestError):
    kind = "InvalidPagination"


class UnknownEntityError(RequestError):
    kind = "UnknownEntity"
