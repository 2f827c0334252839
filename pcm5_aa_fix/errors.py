"""Error kinds raised by the codec, repair transform, storage adapter and backup."""


class RepairToolError(Exception):
    """Base class for every error the tool reports to the user."""


class InvalidArguments(RepairToolError):
    """Bad or conflicting command line flags."""


class StorageError(RepairToolError):
    """Raised by the storage adapter."""


class StorageUnavailable(StorageError):
    """Database file missing or not openable."""


class PartitionNotFound(StorageError):
    """No partition row matches the requested logical name."""


class MissingEntry(StorageError):
    """No row for (partition, key). Means no devices have been paired yet."""


class StorageWriteFailed(StorageError):
    """The replacement blob could not be written back."""


class StructuralError(RepairToolError):
    """Blob layout does not match the device list format."""


class TruncatedBlob(StructuralError):
    """A read ran past the end of the blob."""


class ChecksumMismatch(RepairToolError):
    """Stored header checksum differs from the computed one (warning only)."""


class LocatorDisagreement(RepairToolError):
    """Parser and byte scan found different NATIVE_SELECTED offsets."""


class Overflow(RepairToolError):
    """Repaired blob would exceed the addressable size."""


class BackupFailed(RepairToolError):
    """The database backup copy could not be created."""
