"""
Error taxonomy for Muddle.

Classification errors are expected and recoverable: the watcher records
them and tries again on the next poll. Storage errors are the only ones
that should reach the user.
"""


class MuddleError(Exception):
    """Base class for all Muddle errors."""


class ClassificationError(MuddleError):
    """A classification attempt failed. The note is left untouched."""


class TransportError(ClassificationError):
    """Network or HTTP failure (timeout, refused connection, non-2xx)."""


class ServiceProtocolError(ClassificationError):
    """The service response envelope did not have the expected shape."""


class ClassificationFormatError(ClassificationError):
    """The model's content was not a valid structured-content document."""


class StorageError(MuddleError):
    """Writing the notes file failed. In-memory state is still authoritative."""
