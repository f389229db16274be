class ArdarcError(Exception):
    """Base class for ardarc-specific errors."""


# Header/index related
class CorruptHeader(ArdarcError):
    pass


# Facade state
class ArchiveClosed(ArdarcError):
    pass


class EntryNotFound(ArdarcError):
    pass


# Payload related
class PayloadCorrupt(ArdarcError):
    pass


class PayloadTooLarge(ArdarcError):
    pass


class UnsupportedEntryType(ArdarcError):
    pass


# Filesystem failures; still catchable as OSError
class IoFailure(ArdarcError, OSError):
    pass
