"""
    Domain exceptions raised by the data-access layer.
"""
from contextlib import contextmanager
from botocore.exceptions import BotoCoreError, ClientError
import logging

log = logging.getLogger(__name__)

class DatabaseException(Exception):
    """Base class for data-access exceptions."""
    def __init__(self, detail: str):
        self.detail = detail
        super().__init__(self.detail)

class NotConnectedError(DatabaseException):
    """Exception for operations attempted while disconnected."""
    def __init__(self, detail: str = "not connected"):
        super().__init__(detail=detail)

class SchemaError(DatabaseException):
    """Exception for write errors reported by the storage engine."""
    def __init__(self, first_error: str):
        self.first_error = first_error
        super().__init__(detail=first_error)

class NotFoundError(DatabaseException):
    """Exception for lookups that match no record."""

class ImageNotFoundError(NotFoundError):
    """Exception for when an image is not found."""
    def __init__(self, public_id: str):
        self.public_id = public_id
        super().__init__(detail=f"Image with ID '{public_id}' not found.")

class UserNotFoundError(NotFoundError):
    """Exception for when a user is not found."""
    def __init__(self, username: str):
        self.username = username
        super().__init__(detail=f"User '{username}' not found.")

class StorageError(DatabaseException):
    """Exception for DynamoDB failures."""

@contextmanager
def wrap_storage_errors(action: str):
    """Re-raises driver failures inside the block as StorageError."""
    try:
        yield
    except (BotoCoreError, ClientError) as e:
        log.error(f"DynamoDB {action} failed: {e}")
        raise StorageError(f"Failed to {action}: {e}") from e
