from __future__ import annotations


class FpkgiServerError(Exception):
    pass


class ConfigInvalidError(FpkgiServerError):
    pass


class FormatError(FpkgiServerError, ValueError):
    pass


class ShortReadError(FormatError):
    def __init__(self, expected: int, actual: int) -> None:
        super().__init__(f"short read: expected {expected} bytes, got {actual}")
        self.expected = expected
        self.actual = actual


class PackageParseError(FormatError):
    pass


class PackageEntryNotFoundError(PackageParseError):
    pass


class SfoParseError(FormatError):
    pass


class RebuildInProgressError(FpkgiServerError):
    pass


class WatcherError(FpkgiServerError):
    pass
