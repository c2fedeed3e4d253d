"""
Exception taxonomy for pk-shorts.

Four families, all rooted at ShortsError:

- validation: the caller sent a malformed custom identifier or destination
- conflict:   a custom identifier is already taken
- not found:  nothing is stored under the requested identifier
- storage:    the backend failed (unavailable, lock timeout, bad bytes)

Only the storage family is "infrastructure"; the HTTP layer maps it to an
opaque 500 while the others are reported to the caller as-is.
"""

from enum import Enum


class ShortsError(Exception):
    """Base class for every error raised by pk_shorts."""


class ValidationErrorKind(str, Enum):
    TOO_SHORT = "too_short"
    TOO_LONG = "too_long"
    INVALID_CHARACTER = "invalid_character"
    RESERVED = "reserved"


class CustomIdValidationError(ShortsError, ValueError):
    """A custom identifier failed the syntactic or reserved-word rules."""

    def __init__(self, identifier: str, kind: ValidationErrorKind, message: str):
        super().__init__(message)
        self.identifier = identifier
        self.kind = kind


class InvalidCustomIdError(CustomIdValidationError):
    """Raised by LinkStore.create when the requested custom identifier is invalid."""


class InvalidDestinationError(ShortsError, ValueError):
    """The destination URL is empty or not an http(s) URL."""


class AlreadyExistsError(ShortsError):
    def __init__(self, identifier: str):
        super().__init__(f"custom ID '{identifier}' already exists")
        self.identifier = identifier


class LinkNotFoundError(ShortsError, LookupError):
    def __init__(self, identifier: str):
        super().__init__("link not found")
        self.identifier = identifier


class StorageError(ShortsError):
    """Infrastructure failure in the persistent bucket."""


class StorageTimeoutError(StorageError):
    """The write lock could not be acquired within the configured timeout."""


class SerializationError(StorageError):
    """A stored record could not be encoded or decoded."""
