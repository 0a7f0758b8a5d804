"""
In-memory manifest objects: groups, file references, targets, build phases,
build configurations and schemes.

These classes hold state only. Invariants that span several objects (leaf-name
uniqueness, cascading removal, product ownership) are enforced by
ManifestStore and TargetSynchronizer, never by callers poking at these fields.
"""

import os
import uuid
from typing import Dict, Iterator, List, Optional, Union

# Setting values are opaque: a scalar string or a list of strings
SettingValue = Union[str, List[str]]

# Declared file kinds
KIND_PRODUCT = "product"
KIND_SOURCE = "source"
KIND_HEADER = "header"
KIND_RESOURCE = "resource"
KIND_FRAMEWORK = "framework"
KIND_FOLDER = "folder"

FILE_KINDS = (KIND_PRODUCT, KIND_SOURCE, KIND_HEADER, KIND_RESOURCE, KIND_FRAMEWORK, KIND_FOLDER)

EXTENSION_KINDS = {
    ".swift": KIND_SOURCE,
    ".m": KIND_SOURCE,
    ".mm": KIND_SOURCE,
    ".c": KIND_SOURCE,
    ".cpp": KIND_SOURCE,
    ".metal": KIND_SOURCE,
    ".h": KIND_HEADER,
    ".hpp": KIND_HEADER,
    ".xcassets": KIND_RESOURCE,
    ".storyboard": KIND_RESOURCE,
    ".xib": KIND_RESOURCE,
    ".strings": KIND_RESOURCE,
    ".xcstrings": KIND_RESOURCE,
    ".json": KIND_RESOURCE,
    ".plist": KIND_RESOURCE,
    ".mlmodel": KIND_SOURCE,
    ".framework": KIND_FRAMEWORK,
    ".xcframework": KIND_FRAMEWORK,
    ".dylib": KIND_FRAMEWORK,
    ".a": KIND_FRAMEWORK,
    ".app": KIND_PRODUCT,
    ".appex": KIND_PRODUCT,
    ".xctest": KIND_PRODUCT,
}

# Build phase kinds, in the order Xcode lays them out for a new target
PHASE_SOURCES = "sources"
PHASE_FRAMEWORKS = "frameworks"
PHASE_RESOURCES = "resources"
PHASE_HEADERS = "headers"
PHASE_COPY_FILES = "copy_files"
PHASE_SHELL_SCRIPT = "shell_script"

PHASE_KINDS = (
    PHASE_SOURCES,
    PHASE_FRAMEWORKS,
    PHASE_RESOURCES,
    PHASE_HEADERS,
    PHASE_COPY_FILES,
    PHASE_SHELL_SCRIPT,
)

DEFAULT_PHASES = (PHASE_SOURCES, PHASE_FRAMEWORKS, PHASE_RESOURCES)
DEFAULT_CONFIGURATIONS = ("Debug", "Release")
APPLICATION_PRODUCT_TYPE = "com.apple.product-type.application"


def generate_xcode_id() -> str:
    """Generate a 24-character hex ID like Xcode uses"""
    return uuid.uuid4().hex[:24].upper()


def guess_kind(name: str) -> Optional[str]:
    """Infer a declared kind from a file name's extension (None when unknown)."""
    return EXTENSION_KINDS.get(os.path.splitext(name)[1].lower())


def split_path(path: str) -> List[str]:
    """Split a logical path into non-empty segments."""
    return [segment for segment in path.strip("/").split("/") if segment]


class FileReference:
    """One manifest entry, owned by exactly one Group."""

    def __init__(
        self,
        name: str,
        kind: Optional[str] = None,
        path: Optional[str] = None,
        identifier: Optional[str] = None,
    ):
        self.name = name
        self.kind = kind
        # On-disk path attribute; defaults to the leaf name
        self.path = path or name
        self.identifier = identifier or generate_xcode_id()
        self.group: Optional["Group"] = None

    @property
    def full_path(self) -> str:
        if self.group is None or not self.group.full_path:
            return self.name
        return f"{self.group.full_path}/{self.name}"

    def __repr__(self):
        return f"FileReference({self.full_path!r}, kind={self.kind!r})"


class Group:
    """A named tree node holding child groups and files keyed by leaf name."""

    def __init__(self, name: str, path: Optional[str] = None, identifier: Optional[str] = None):
        self.name = name
        self.path = path
        self.identifier = identifier or generate_xcode_id()
        self.parent: Optional["Group"] = None
        self.children: List["Group"] = []
        self.files: Dict[str, FileReference] = {}

    @property
    def full_path(self) -> str:
        names = []
        node = self
        while node is not None and node.parent is not None:
            names.append(node.name)
            node = node.parent
        return "/".join(reversed(names))

    def subgroups_named(self, name: str) -> List["Group"]:
        return [child for child in self.children if child.name == name]

    def walk(self) -> Iterator["Group"]:
        """Yield this group and every descendant, depth first."""
        yield self
        for child in self.children:
            yield from child.walk()

    def iter_files(self) -> Iterator[FileReference]:
        for group in self.walk():
            yield from group.files.values()

    def __repr__(self):
        return f"Group({self.full_path or '<root>'!r})"


class BuildFile:
    """Membership of one file reference in one build phase."""

    def __init__(self, ref: FileReference, identifier: Optional[str] = None, settings: Optional[dict] = None):
        self.ref = ref
        self.identifier = identifier or generate_xcode_id()
        self.settings = settings


class BuildPhase:
    """An ordered processing step of a target, keyed by file reference identity."""

    def __init__(self, kind: str, name: Optional[str] = None, identifier: Optional[str] = None):
        self.kind = kind
        self.name = name
        self.identifier = identifier or generate_xcode_id()
        self.entries: Dict[str, BuildFile] = {}

    def __contains__(self, ref: FileReference) -> bool:
        entry = self.entries.get(ref.identifier)
        return entry is not None and entry.ref is ref

    def __len__(self):
        return len(self.entries)

    @property
    def references(self) -> List[FileReference]:
        return [entry.ref for entry in self.entries.values()]

    def add(self, ref: FileReference, identifier: Optional[str] = None, settings: Optional[dict] = None) -> bool:
        if ref in self:
            return False
        self.entries[ref.identifier] = BuildFile(ref, identifier=identifier, settings=settings)
        return True

    def discard(self, ref: FileReference) -> bool:
        if ref not in self:
            return False
        del self.entries[ref.identifier]
        return True

    def __repr__(self):
        return f"BuildPhase({self.kind!r}, files={len(self.entries)})"


class BuildConfiguration:
    """A named key/value settings scope."""

    def __init__(self, name: str, settings: Optional[Dict[str, SettingValue]] = None, identifier: Optional[str] = None):
        self.name = name
        self.settings: Dict[str, SettingValue] = dict(settings or {})
        self.identifier = identifier or generate_xcode_id()

    def __getitem__(self, key: str) -> SettingValue:
        return self.settings[key]

    def __contains__(self, key: str) -> bool:
        return key in self.settings

    def get(self, key: str, default=None):
        return self.settings.get(key, default)

    def __repr__(self):
        return f"BuildConfiguration({self.name!r}, keys={len(self.settings)})"


class Target:
    """A build unit: ordered phases, configuration scopes and an optional product."""

    def __init__(
        self,
        name: str,
        product_type: Optional[str] = None,
        identifier: Optional[str] = None,
        configuration_list_id: Optional[str] = None,
    ):
        self.name = name
        self.product_type = product_type
        self.identifier = identifier or generate_xcode_id()
        self.configuration_list_id = configuration_list_id or generate_xcode_id()
        self.phases: List[BuildPhase] = []
        self.configurations: Dict[str, BuildConfiguration] = {}
        self.product: Optional[FileReference] = None

    def phase(self, kind: str) -> Optional[BuildPhase]:
        """First phase of the given kind, if any."""
        for phase in self.phases:
            if phase.kind == kind:
                return phase
        return None

    def phases_containing(self, ref: FileReference) -> List[BuildPhase]:
        return [phase for phase in self.phases if ref in phase]

    def __repr__(self):
        return f"Target({self.name!r}, phases={[p.kind for p in self.phases]})"


class Scheme:
    """A named build/launch binding to one target (held by name, not owned)."""

    def __init__(self, name: str, target_name: str, shared: bool = True, modified: bool = False):
        self.name = name
        self.target_name = target_name
        self.shared = shared
        # Set when generated in this session and still to be written out
        self.modified = modified

    def __repr__(self):
        visibility = "shared" if self.shared else "private"
        return f"Scheme({self.name!r} -> {self.target_name!r}, {visibility})"
