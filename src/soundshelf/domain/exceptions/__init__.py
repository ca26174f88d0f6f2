"""Domain exceptions."""

from typing import Any

from soundshelf.domain.value_objects.locators import display_name


class DomainException(Exception):
    """Base exception for all domain exceptions."""

    # Hey future me, we store message as an attribute so code can inspect it without parsing str(exception).
    # The *args lets subclasses pass extra context. This is your base class - DON'T raise it directly!
    # Always use a specific subclass so callers (and the discover error list) can tell failures apart.
    def __init__(self, message: str, *args: Any) -> None:
        super().__init__(message, *args)
        self.message = message

    def __str__(self) -> str:
        return self.message


# =============================================================================
# FILE-LEVEL ERRORS
# Hey future me - these are the errors a single file can produce during discovery.
# The Discoverer COLLECTS them into DiscoverResult.errors instead of raising, so one
# corrupt cue sheet never blocks the rest of the collection. They all carry .url so
# the UI can list "which file failed and why".
# =============================================================================


class MediaFileError(DomainException):
    """Base class for errors tied to one url."""

    prompt = "Error"

    def __init__(self, url: str, message: str | None = None) -> None:
        super().__init__(message or f"{self.prompt}: {display_name(url)}")
        self.url = url


class NoApplicableImporterError(MediaFileError):
    """No registered importer supports the url's type."""

    prompt = "No applicable importer"


class NoApplicableGrabberError(MediaFileError):
    """No registered metadata grabber supports the url's type."""

    prompt = "No applicable metadata grabber"


class InvalidFormatError(MediaFileError):
    """A plugin detected malformed input."""

    prompt = "Invalid format"


class MediaFileNotFoundError(MediaFileError):
    """A referenced file does not exist."""

    prompt = "File not found"


class AccessDeniedError(MediaFileError):
    """The process is not allowed to read the url."""

    prompt = "Access denied"


class DecodingError(MediaFileError):
    """Content could not be decoded (text encoding or media container)."""

    prompt = "Failed to decode"


class AccessCapabilityError(MediaFileError):
    """An access capability could not be issued or resolved."""

    prompt = "Cannot obtain access to"


class DirectoryListingError(MediaFileError):
    """A directory could not be listed during discovery."""

    prompt = "Cannot list directory"

    def __init__(self, url: str, reason: str | None = None) -> None:
        message = f"{self.prompt}: {display_name(url)}"
        if reason:
            message = f"{message} ({reason})"
        super().__init__(url, message)
        self.reason = reason


# =============================================================================
# SHELF-LEVEL ERRORS
# =============================================================================


class InvariantViolation(DomainException):
    """A Shelf references ids it does not contain, or contains duplicate ids."""

    pass


class PersistenceError(DomainException):
    """Saving or loading the Shelf failed.

    The in-memory Shelf stays valid when a save fails; callers decide whether to retry.
    """

    pass


__all__ = [
    "AccessCapabilityError",
    "AccessDeniedError",
    "DecodingError",
    "DirectoryListingError",
    "DomainException",
    "InvalidFormatError",
    "InvariantViolation",
    "MediaFileError",
    "MediaFileNotFoundError",
    "NoApplicableGrabberError",
    "NoApplicableImporterError",
    "PersistenceError",
]
