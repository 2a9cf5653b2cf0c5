class TarletError(Exception):
    """Base class for tarlet-specific errors."""


# Source file metadata
class MetadataUnavailable(TarletError):
    pass


class IdentityLookupFailed(TarletError):
    pass


class OwnerLookupFailed(IdentityLookupFailed):
    pass


class GroupLookupFailed(IdentityLookupFailed):
    pass


# Container/stream level
class ContainerNotFound(TarletError, FileNotFoundError):
    pass


class IoFailure(TarletError):
    pass


# Header decoding
class MalformedHeader(TarletError):
    pass


class ChecksumMismatch(MalformedHeader):
    pass


class MembershipViolation(TarletError):
    """Raised when an update names files that are not already archived."""

    def __init__(self, missing):
        self.missing = list(missing)
        names = ", ".join(self.missing)
        super().__init__(f"Not present in archive: {names}")
