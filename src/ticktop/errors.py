"""Exceptions raised by ticktop."""


class TicktopError(Exception):
    """Base class for ticktop errors."""


class SourceUnavailableError(TicktopError):
    """The process table cannot be read at all."""


class VersionMismatchError(SourceUnavailableError):
    """The process table speaks a format version we do not understand."""

    def __init__(self, found: int, expected: int) -> None:
        super().__init__(f"procfs version mismatch: found {found}, expected {expected}")
        self.found = found
        self.expected = expected
