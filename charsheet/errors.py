"""Error taxonomy for the persistence core.

These are raised at the I/O edges (key-value store, JSON decoding, the remote
API client) and caught at the component boundary, where they are turned into
log records and status events. Nothing in the core lets them escape into the
caller's control flow.

    StorageUnavailable  quota or IO failure; degrade to in-memory only
    MalformedRecord     stored record cannot be parsed; recreate the default
    NoActiveEntity      operation needs a current character and none is set
    SaveFailed          a save cycle was rejected; retried on the next cycle
    RemoteError         the remote API collaborator failed (a SaveFailed)
"""


class CharSheetError(RuntimeError):
    """Base class for every persistence-core failure."""


class StorageUnavailable(CharSheetError):
    """Raised when the key-value store cannot be read or written."""


class MalformedRecord(CharSheetError):
    """Raised when a persisted record is not valid JSON or not an object."""


class NoActiveEntity(CharSheetError):
    """Raised when an operation requires a current character and none is set."""


class SaveFailed(CharSheetError):
    """Raised when a save cycle could not persist the record."""


class RemoteError(SaveFailed):
    """Raised when the remote API cannot be reached or returns an error."""
