"""
xcmanifest core

In-memory manifest model and the components that keep it consistent.
"""

from .configuration import ConfigurationMerger, normalize_value
from .errors import (
    Ambiguous,
    DuplicateEntry,
    InvalidKind,
    ManifestError,
    ManifestFileError,
    NotFound,
    UnknownTarget,
)
from .model import (
    KIND_FOLDER,
    KIND_FRAMEWORK,
    KIND_HEADER,
    KIND_PRODUCT,
    KIND_RESOURCE,
    KIND_SOURCE,
    PHASE_KINDS,
    BuildConfiguration,
    BuildPhase,
    FileReference,
    Group,
    Scheme,
    Target,
    guess_kind,
)
from .resolver import ReferenceResolver
from .schemes import SchemeGenerator
from .store import ManifestStore
from .synchronizer import TargetSynchronizer

__all__ = [
    "ManifestStore",
    "ReferenceResolver",
    "TargetSynchronizer",
    "ConfigurationMerger",
    "SchemeGenerator",
    "normalize_value",
    "ManifestError",
    "DuplicateEntry",
    "NotFound",
    "Ambiguous",
    "UnknownTarget",
    "InvalidKind",
    "ManifestFileError",
    "Group",
    "FileReference",
    "Target",
    "BuildPhase",
    "BuildConfiguration",
    "Scheme",
    "guess_kind",
    "PHASE_KINDS",
    "KIND_PRODUCT",
    "KIND_SOURCE",
    "KIND_HEADER",
    "KIND_RESOURCE",
    "KIND_FRAMEWORK",
    "KIND_FOLDER",
]
