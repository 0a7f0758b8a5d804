"""
Manifest Store

Single source of truth for the group tree, the target set, the project-level
build configurations and the scheme set. Every mutation checks its
preconditions before touching any state, so a failed call leaves the store
exactly as it was. `transaction()` extends the same guarantee to a sequence of
calls.

Usage:
    store = ManifestStore()
    app = store.find_or_create_group("App")
    main = store.add_file(app, "Main.swift", kind=KIND_SOURCE)
    store.move_file(main, store.find_or_create_group("Shared"))
"""

import copy
import logging
from contextlib import contextmanager
from typing import Dict, Iterable, Iterator, List, Optional

from .errors import Ambiguous, DuplicateEntry, InvalidKind, ManifestError, NotFound, UnknownTarget
from .model import (
    APPLICATION_PRODUCT_TYPE,
    DEFAULT_CONFIGURATIONS,
    DEFAULT_PHASES,
    FILE_KINDS,
    PHASE_KINDS,
    BuildConfiguration,
    BuildPhase,
    FileReference,
    Group,
    Scheme,
    Target,
    generate_xcode_id,
    split_path,
)

logger = logging.getLogger(__name__)

# Store attributes captured by snapshot() and swapped back by restore()
_STATE_FIELDS = (
    "root",
    "targets",
    "schemes",
    "retired_schemes",
    "configurations",
    "attributes",
    "_leaf_index",
)


class ManifestStore:
    """
    In-memory manifest: groups, file references, targets and schemes.
    """

    def __init__(self, source_path: Optional[str] = None):
        self.source_path = source_path
        self.root = Group("")
        self.targets: Dict[str, Target] = {}
        self.schemes: Dict[str, Scheme] = {}
        # Schemes replaced or dropped this session whose files must be deleted
        self.retired_schemes: List[Scheme] = []
        # Project-scope build configurations
        self.configurations: Dict[str, BuildConfiguration] = {}
        self.configuration_list_id = generate_xcode_id()
        # Root object attributes (LastUpgradeCheck, TargetAttributes, ...)
        self.attributes: Dict = {}
        self._leaf_index: Dict[str, List[FileReference]] = {}
        self._in_transaction = False

    # ------------------------------------------------------------------
    # Snapshots
    # ------------------------------------------------------------------

    def snapshot(self) -> Dict:
        """Deep copy of the mutable state, taken in one pass so identities stay consistent."""
        return copy.deepcopy({field: getattr(self, field) for field in _STATE_FIELDS})

    def restore(self, state: Dict):
        for field in _STATE_FIELDS:
            setattr(self, field, state[field])

    @contextmanager
    def transaction(self):
        """
        Apply a sequence of operations all-or-nothing.

        Any exception raised inside the block restores the state captured on
        entry and is re-raised to the caller. A nested transaction joins the
        enclosing one: only the outermost block takes a snapshot, and an
        exception escaping an inner block rolls back to that snapshot.
        """
        if self._in_transaction:
            yield self
            return

        state = self.snapshot()
        self._in_transaction = True
        try:
            yield self
        except Exception:
            self.restore(state)
            logger.debug("Transaction rolled back")
            raise
        finally:
            self._in_transaction = False

    # ------------------------------------------------------------------
    # Lookup
    # ------------------------------------------------------------------

    def child_group(self, parent: Group, name: str) -> Optional[Group]:
        """The subgroup of `parent` called `name`, or None."""
        matches = parent.subgroups_named(name)
        if len(matches) > 1:
            raise Ambiguous(
                f"Group '{parent.full_path or '<root>'}' has {len(matches)} subgroups named '{name}'",
                identifier=f"{parent.full_path}/{name}".lstrip("/"),
            )
        return matches[0] if matches else None

    def contains_group(self, group: Group) -> bool:
        node = group
        while node.parent is not None:
            if node not in node.parent.children:
                return False
            node = node.parent
        return node is self.root

    def contains_file(self, ref: FileReference) -> bool:
        group = ref.group
        if group is None or group.files.get(ref.name) is not ref:
            return False
        return self.contains_group(group)

    def files_named(self, name: str) -> List[FileReference]:
        return list(self._leaf_index.get(name, []))

    def iter_files(self) -> Iterator[FileReference]:
        return self.root.iter_files()

    def target(self, name: str) -> Target:
        target = self.targets.get(name)
        if target is None:
            raise UnknownTarget(f"Target '{name}' not found", identifier=name)
        return target

    def has_target(self, target: Target) -> bool:
        return self.targets.get(target.name) is target

    def product_owner(self, ref: FileReference) -> Optional[Target]:
        for target in self.targets.values():
            if target.product is ref:
                return target
        return None

    def _require_group(self, group: Group):
        if not self.contains_group(group):
            raise NotFound(f"Group '{group.full_path or group.name}' is not part of this manifest", identifier=group.name)

    def _require_file(self, ref: FileReference):
        if not self.contains_file(ref):
            raise NotFound(f"File reference '{ref.name}' is not part of this manifest", identifier=ref.name)

    # ------------------------------------------------------------------
    # Groups
    # ------------------------------------------------------------------

    def find_or_create_group(self, path: str) -> Group:
        """
        Return the group at `path`, creating every missing segment.

        Args:
            path: Slash-separated group names from the manifest root ("" is the root)

        Returns:
            The existing or newly created group
        """
        group = self.root
        for segment in split_path(path):
            child = self.child_group(group, segment)
            if child is None:
                child = self.attach_group(group, Group(segment, path=segment))
                logger.info(f"Created group {child.full_path}")
            group = child
        return group

    def add_group(self, parent: Group, name: str, path: Optional[str] = None) -> Group:
        self._require_group(parent)
        if "/" in name or not name:
            raise ManifestError(f"Invalid group name '{name}'", identifier=name)
        if parent.subgroups_named(name):
            raise DuplicateEntry(
                f"Group '{name}' already exists in '{parent.full_path or '<root>'}'",
                identifier=f"{parent.full_path}/{name}".lstrip("/"),
            )
        group = self.attach_group(parent, Group(name, path=path))
        logger.info(f"Created group {group.full_path}")
        return group

    def attach_group(self, parent: Group, group: Group) -> Group:
        """Link `group` under `parent` without name checks (used when loading a project file)."""
        group.parent = parent
        parent.children.append(group)
        for ref in group.iter_files():
            self._index(ref)
        return group

    def remove_group(self, group: Group):
        """Remove a group, cascading to every file and subgroup beneath it."""
        self._require_group(group)
        if group is self.root:
            raise ManifestError("The root group cannot be removed", identifier="<root>")

        for ref in list(group.iter_files()):
            self._drop_memberships(ref)
            self._unindex(ref)
        group.parent.children.remove(group)
        logger.info(f"Removed group {group.full_path or group.name}")
        group.parent = None

    # ------------------------------------------------------------------
    # Files
    # ------------------------------------------------------------------

    def add_file(
        self,
        group: Group,
        name: str,
        kind: Optional[str] = None,
        path: Optional[str] = None,
        identifier: Optional[str] = None,
    ) -> FileReference:
        """
        Create a file reference directly under `group`.

        Raises:
            DuplicateEntry: a file with the same leaf name is already in `group`
            InvalidKind: `kind` is not a known file kind
        """
        self._require_group(group)
        if not name or "/" in name:
            raise ManifestError(f"Invalid file name '{name}'", identifier=name)
        if kind is not None and kind not in FILE_KINDS:
            raise InvalidKind(f"Unknown file kind '{kind}' for '{name}'", identifier=name)
        if name in group.files:
            full = f"{group.full_path}/{name}".lstrip("/")
            raise DuplicateEntry(f"'{name}' already exists in group '{group.full_path or '<root>'}'", identifier=full)

        ref = FileReference(name, kind=kind, path=path, identifier=identifier)
        self.place_file(ref, group)
        logger.info(f"Added {name} to group {group.full_path or '<root>'}")
        return ref

    def remove_file(self, ref: FileReference):
        """Remove a file from its group and from every target that builds it."""
        self._require_file(ref)
        self._drop_memberships(ref)
        del ref.group.files[ref.name]
        self._unindex(ref)
        logger.info(f"Removed {ref.full_path} from project")
        ref.group = None

    def move_file(self, ref: FileReference, target_group: Group) -> FileReference:
        """
        Reparent `ref` under `target_group`.

        The reference keeps its identity, so every build-phase membership and
        product binding it had is carried across the move.
        """
        self._require_file(ref)
        self._require_group(target_group)
        if ref.group is target_group:
            logger.debug(f"{ref.full_path} already in {target_group.full_path or '<root>'}")
            return ref
        if ref.name in target_group.files:
            full = f"{target_group.full_path}/{ref.name}".lstrip("/")
            raise DuplicateEntry(
                f"'{ref.name}' already exists in group '{target_group.full_path or '<root>'}'", identifier=full
            )

        source = ref.group.full_path or "<root>"
        del ref.group.files[ref.name]
        ref.group = None
        self.place_file(ref, target_group)
        logger.info(f"Moved {ref.name} from {source} to {target_group.full_path or '<root>'}")
        return ref

    def place_file(self, ref: FileReference, group: Group):
        group.files[ref.name] = ref
        ref.group = group
        if ref not in self._leaf_index.get(ref.name, []):
            self._index(ref)

    def _index(self, ref: FileReference):
        self._leaf_index.setdefault(ref.name, []).append(ref)

    def _unindex(self, ref: FileReference):
        refs = self._leaf_index.get(ref.name, [])
        self._leaf_index[ref.name] = [r for r in refs if r is not ref]
        if not self._leaf_index[ref.name]:
            del self._leaf_index[ref.name]

    def _drop_memberships(self, ref: FileReference):
        for target in self.targets.values():
            for phase in target.phases_containing(ref):
                phase.discard(ref)
                logger.info(f"Removed {ref.name} from {target.name} {phase.kind} phase")
            if target.product is ref:
                target.product = None
                logger.info(f"Cleared product of {target.name}")

    # ------------------------------------------------------------------
    # Targets
    # ------------------------------------------------------------------

    def add_target(
        self,
        name: str,
        product_type: str = APPLICATION_PRODUCT_TYPE,
        phases: Iterable[str] = DEFAULT_PHASES,
        configurations: Optional[Iterable[str]] = None,
    ) -> Target:
        """
        Create a target with empty phases and configuration scopes.

        Configuration scopes default to the project-level configuration names
        (Debug/Release for an empty project).
        """
        if name in self.targets:
            raise DuplicateEntry(f"Target '{name}' already exists", identifier=name)
        phases = list(phases)
        for kind in phases:
            if kind not in PHASE_KINDS:
                raise InvalidKind(f"Unknown build phase '{kind}'", identifier=kind)
        target = Target(name, product_type=product_type)
        for kind in phases:
            target.phases.append(BuildPhase(kind))
        if configurations is None:
            configurations = list(self.configurations) or DEFAULT_CONFIGURATIONS
        for config_name in configurations:
            target.configurations[config_name] = BuildConfiguration(config_name)
        self.targets[name] = target
        logger.info(f"Created target {name}")
        return target

    def remove_target(self, name: str):
        """
        Remove a target and retire every scheme bound to it.

        A project keeps at least one target; removing the last one raises
        ManifestError.
        """
        target = self.target(name)
        if len(self.targets) == 1:
            raise ManifestError(f"Cannot remove '{name}': it is the only target in the project", identifier=name)
        del self.targets[name]
        self.attributes.get("TargetAttributes", {}).pop(target.identifier, None)
        for scheme_name in [s.name for s in self.schemes.values() if s.target_name == name]:
            self.retire_scheme(scheme_name)
        logger.info(f"Removed target {name}")

    # ------------------------------------------------------------------
    # Schemes
    # ------------------------------------------------------------------

    def put_scheme(self, scheme: Scheme) -> Optional[Scheme]:
        """Store `scheme`, replacing any scheme with the same name; returns the replaced one."""
        self.target(scheme.target_name)
        previous = self.schemes.get(scheme.name)
        self.schemes[scheme.name] = scheme
        if previous is not None and previous.shared != scheme.shared:
            # The old file lives in the other visibility location
            self.retired_schemes.append(previous)
        return previous

    def retire_scheme(self, name: str):
        scheme = self.schemes.pop(name, None)
        if scheme is None:
            raise NotFound(f"Scheme '{name}' not found", identifier=name)
        self.retired_schemes.append(scheme)
        logger.info(f"Retired scheme {name}")

    # ------------------------------------------------------------------
    # Consistency
    # ------------------------------------------------------------------

    def validate(self) -> List[str]:
        """
        Check every cross-object invariant.

        Returns:
            Human-readable violations; empty when the manifest is consistent
        """
        problems = []
        for group in self.root.walk():
            names = [child.name for child in group.children]
            for name in sorted({n for n in names if names.count(n) > 1}):
                problems.append(f"Duplicate group '{name}' in '{group.full_path or '<root>'}'")
            for name, ref in group.files.items():
                if ref.name != name or ref.group is not group:
                    problems.append(f"File '{name}' in '{group.full_path or '<root>'}' has inconsistent ownership")

        indexed = sum(len(refs) for refs in self._leaf_index.values())
        if indexed != sum(1 for _ in self.iter_files()):
            problems.append("Leaf-name index is out of sync with the group tree")

        owners: Dict[str, str] = {}
        for target in self.targets.values():
            for phase in target.phases:
                for ref in phase.references:
                    if not self.contains_file(ref):
                        problems.append(f"{target.name} {phase.kind} phase references missing file '{ref.name}'")
            if target.product is not None:
                if not self.contains_file(target.product):
                    problems.append(f"Product of {target.name} is not in the manifest")
                other = owners.setdefault(target.product.identifier, target.name)
                if other != target.name:
                    problems.append(f"Product '{target.product.name}' shared by {other} and {target.name}")

        for scheme in self.schemes.values():
            if scheme.target_name not in self.targets:
                problems.append(f"Scheme '{scheme.name}' references unknown target '{scheme.target_name}'")
        return problems
