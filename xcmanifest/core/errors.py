"""
Named failures raised by manifest operations.

Every error carries the identifier (path, name or key) that caused it so the
caller can report exactly which precondition failed.
"""

from typing import Optional


class ManifestError(Exception):
    """Base class for all manifest errors."""

    def __init__(self, message: str, identifier: Optional[str] = None):
        super().__init__(message)
        self.identifier = identifier

    @property
    def kind(self) -> str:
        return type(self).__name__


class DuplicateEntry(ManifestError):
    """A name already exists in a scope that requires uniqueness."""


class NotFound(ManifestError):
    """A path or name does not exist."""


class Ambiguous(ManifestError):
    """A partial lookup matches more than one entry."""


class UnknownTarget(ManifestError):
    """A target is not present in the store."""


class InvalidKind(ManifestError):
    """An incompatible declared kind was assigned to a reference or phase."""


class ManifestFileError(ManifestError):
    """The project file is missing or cannot be parsed."""
