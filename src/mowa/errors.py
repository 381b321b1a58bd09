"""Exception types shared across the Mowa server."""

from __future__ import annotations


class MowaError(Exception):
    """Base class for all errors raised by Mowa."""


class ConfigError(MowaError):
    """Configuration could not be read or parsed."""


class StorageError(MowaError):
    """A file operation failed on an already validated path.

    ``public_message`` is safe to return to HTTP callers; the underlying OS
    error is chained as ``__cause__`` and only ever logged.
    """

    def __init__(self, public_message: str, *, operation: str) -> None:
        super().__init__(public_message)
        self.public_message = public_message
        self.operation = operation


class FileMissingError(StorageError):
    """No file exists at the resolved path."""


class StorageIOError(StorageError):
    """Reading, writing or creating directories failed."""


class MessageError(MowaError):
    """A chat message could not be delivered to one recipient."""


class InvalidRecipientError(MessageError):
    pass


class AppleScriptError(MessageError):
    pass


class UptimeError(MowaError):
    """System uptime could not be determined."""
