"""Failure kinds raised by pipeline collaborators."""

from __future__ import annotations


class TempGuardError(Exception):
    """Base class for all pipeline failures."""


class SourceError(TempGuardError):
    """The reading source could not produce a value."""


class SourceUnavailable(SourceError):
    pass


class MalformedResponse(SourceError):
    pass


class MissingField(SourceError):
    pass


class StoreError(TempGuardError):
    """A table could not be read or written."""


class StoreReadError(StoreError):
    pass


class StoreWriteError(StoreError):
    pass


class NotifyError(TempGuardError):
    """The notification could not be delivered."""


class InvalidThresholdError(TempGuardError, ValueError):
    """A threshold config with ``min > max``."""
