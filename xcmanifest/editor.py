"""
Manifest Editor

Path-based entry points over one ManifestStore. Each method resolves its
arguments, runs the core components inside a store transaction and either
completes or leaves the store untouched. `apply_plan` runs a whole list of
operations in one transaction and halts on the first failure.

Usage:
    editor = ManifestEditor(store)
    editor.add_file("App/Views/Main.swift", target="App")
    editor.move_file("App/Views/Main.swift", "Shared")
    editor.generate_scheme("App", "App")
"""

import inspect
import logging
from typing import Dict, Iterable, List, Optional, Sequence

from .core import (
    ConfigurationMerger,
    ManifestError,
    ManifestStore,
    NotFound,
    ReferenceResolver,
    SchemeGenerator,
    TargetSynchronizer,
    guess_kind,
)
from .core.model import (
    APPLICATION_PRODUCT_TYPE,
    DEFAULT_PHASES,
    KIND_FRAMEWORK,
    KIND_HEADER,
    KIND_PRODUCT,
    KIND_RESOURCE,
    PHASE_FRAMEWORKS,
    PHASE_HEADERS,
    PHASE_RESOURCES,
    PHASE_SOURCES,
    FileReference,
    Scheme,
    Target,
    split_path,
)
from .settings import PRESETS, settings

logger = logging.getLogger(__name__)

# Phase a file lands in when attached without an explicit phase
KIND_PHASES = {
    KIND_HEADER: PHASE_HEADERS,
    KIND_RESOURCE: PHASE_RESOURCES,
    KIND_FRAMEWORK: PHASE_FRAMEWORKS,
}


def default_phase(ref: FileReference) -> str:
    return KIND_PHASES.get(ref.kind, PHASE_SOURCES)


class ManifestEditor:
    """
    Composite manifest operations addressed by logical path and target name.
    """

    def __init__(self, store: ManifestStore, products_group: Optional[str] = None):
        self.store = store
        self.products_group = products_group or settings.PRODUCTS_GROUP
        self.resolver = ReferenceResolver(store)
        self.synchronizer = TargetSynchronizer(store)
        self.merger = ConfigurationMerger(store)
        self.schemes = SchemeGenerator(store)

    # ------------------------------------------------------------------
    # Files and groups
    # ------------------------------------------------------------------

    def add_file(
        self,
        path: str,
        kind: Optional[str] = None,
        target: Optional[str] = None,
        phase: Optional[str] = None,
        link_existing: bool = False,
    ) -> FileReference:
        """
        Add the file at `path`, creating missing groups, and optionally build it.

        Args:
            path: Logical path; every segment but the last is a group
            kind: Declared kind (guessed from the extension when omitted)
            target: Target that should build the file
            phase: Build phase kind (derived from the file kind when omitted)
            link_existing: Reuse a file already at `path` instead of raising DuplicateEntry

        Returns:
            The new (or reused) file reference
        """
        segments = split_path(path)
        if not segments:
            raise NotFound("Empty path", identifier=path)
        *group_segments, leaf = segments

        with self.store.transaction():
            group = self.store.find_or_create_group("/".join(group_segments))
            ref = group.files.get(leaf) if link_existing else None
            if ref is None:
                ref = self.store.add_file(group, leaf, kind=kind or guess_kind(leaf))
            else:
                logger.debug(f"Linking existing {ref.full_path}")
            if target is not None:
                self.synchronizer.attach(target, ref, phase or default_phase(ref))
        return ref

    def remove_file(self, path: str):
        with self.store.transaction():
            self.store.remove_file(self.resolver.resolve(path))

    def move_file(self, path: str, group_path: str) -> FileReference:
        """Move the file at `path` into `group_path`, creating the destination if needed."""
        with self.store.transaction():
            ref = self.resolver.resolve(path)
            return self.store.move_file(ref, self.store.find_or_create_group(group_path))

    def remove_group(self, group_path: str):
        with self.store.transaction():
            self.store.remove_group(self.resolver.resolve_group(group_path))

    def describe(self, path: str) -> Dict:
        """Where the file at `path` lives and which targets build or produce it."""
        ref = self.resolver.resolve(path)
        owner = self.store.product_owner(ref)
        return {
            "path": ref.full_path,
            "kind": ref.kind,
            "identifier": ref.identifier,
            "memberships": self.synchronizer.memberships(ref),
            "product_of": owner.name if owner is not None else None,
        }

    # ------------------------------------------------------------------
    # Targets
    # ------------------------------------------------------------------

    def attach(self, target: str, path: str, phase: Optional[str] = None) -> bool:
        with self.store.transaction():
            ref = self.resolver.resolve(path)
            return self.synchronizer.attach(target, ref, phase or default_phase(ref))

    def detach(self, target: str, path: str) -> int:
        with self.store.transaction():
            return self.synchronizer.detach(target, self.resolver.resolve(path))

    def set_product(self, target: str, path: str) -> FileReference:
        with self.store.transaction():
            ref = self.resolver.resolve(path)
            self.synchronizer.set_product(target, ref)
        return ref

    def retarget_product(self, target: str, name: str, group_path: Optional[str] = None) -> FileReference:
        """
        Point `target` at the product `name` in the products group, creating the
        group and the reference on demand.
        """
        with self.store.transaction():
            self.store.target(target)
            group = self.store.find_or_create_group(group_path or self.products_group)
            ref = group.files.get(name)
            if ref is None:
                ref = self.store.add_file(group, name, kind=KIND_PRODUCT)
            self.synchronizer.set_product(target, ref)
        return ref

    def add_target(
        self,
        name: str,
        product_type: str = APPLICATION_PRODUCT_TYPE,
        phases: Sequence[str] = DEFAULT_PHASES,
        product: Optional[str] = None,
    ) -> Target:
        with self.store.transaction():
            target = self.store.add_target(name, product_type=product_type, phases=phases)
            if product:
                self.retarget_product(name, product)
        return target

    def remove_target(self, name: str):
        with self.store.transaction():
            self.store.remove_target(name)

    # ------------------------------------------------------------------
    # Build settings
    # ------------------------------------------------------------------

    def set_settings(
        self,
        values: Dict[str, object],
        configuration: Optional[str] = None,
        targets: Optional[Iterable[str]] = None,
        include_project: bool = True,
        removals: Iterable[str] = (),
    ) -> Dict[str, int]:
        """
        Apply `values` (after deleting `removals`) to the selected scopes.

        Args:
            values: Key/value pairs, applied in order
            configuration: Only configurations with this name (all when None)
            targets: Only these targets (all when None, none when empty)
            include_project: Include project-scope configurations
            removals: Keys deleted before the assignments

        Returns:
            Statistics dict with the number of scopes and changes
        """
        with self.store.transaction():
            stats = self.merger.apply_everywhere(
                values,
                removals=removals,
                configuration=configuration,
                targets=targets,
                include_project=include_project,
            )
            if configuration is not None and not stats["scopes"]:
                raise NotFound(f"No '{configuration}' configuration in the selected scopes", identifier=configuration)
        return stats

    def unset_settings(
        self,
        keys: Iterable[str],
        configuration: Optional[str] = None,
        targets: Optional[Iterable[str]] = None,
        include_project: bool = True,
    ) -> Dict[str, int]:
        return self.set_settings(
            {}, configuration=configuration, targets=targets, include_project=include_project, removals=keys
        )

    def apply_preset(self, name: str, configuration: Optional[str] = None) -> Dict[str, int]:
        """Apply a named settings preset to every configuration and set its project attributes."""
        if name not in PRESETS:
            raise NotFound(f"Unknown preset '{name}' (available: {', '.join(sorted(PRESETS))})", identifier=name)
        values, removals, attributes = PRESETS[name]
        with self.store.transaction():
            stats = self.set_settings(values, configuration=configuration, removals=removals)
            for key, value in attributes.items():
                self.merger.set_attribute(key, value)
        return stats

    def set_attribute(self, key: str, value) -> bool:
        return self.merger.set_attribute(key, value)

    # ------------------------------------------------------------------
    # Schemes
    # ------------------------------------------------------------------

    def generate_scheme(self, name: str, target: str, shared: bool = True) -> Scheme:
        return self.schemes.generate(name, target, shared=shared)

    def recreate_schemes(self) -> List[Scheme]:
        with self.store.transaction():
            return self.schemes.recreate_user_schemes()

    # ------------------------------------------------------------------
    # Plans
    # ------------------------------------------------------------------

    PLAN_OPS = frozenset(
        {
            "add_file",
            "remove_file",
            "move_file",
            "remove_group",
            "attach",
            "detach",
            "set_product",
            "retarget_product",
            "add_target",
            "remove_target",
            "set_settings",
            "unset_settings",
            "apply_preset",
            "set_attribute",
            "generate_scheme",
            "recreate_schemes",
        }
    )

    def apply_plan(self, steps: List[Dict]) -> int:
        """
        Run a list of operations as one batch.

        Each step is a dict with an "op" key naming an editor method and the
        method's keyword arguments, e.g.
        {"op": "add_file", "path": "App/Main.swift", "target": "App"}.
        The first failing step halts the batch and rolls every earlier step back.

        Returns:
            Number of steps applied
        """
        with self.store.transaction():
            for index, step in enumerate(steps, start=1):
                step = dict(step)
                op = step.pop("op", None)
                if op not in self.PLAN_OPS:
                    raise ManifestError(f"Step {index}: unknown operation {op!r}", identifier=str(op))
                method = getattr(self, op)
                try:
                    inspect.signature(method).bind(**step)
                except TypeError as e:
                    raise ManifestError(f"Step {index}: invalid arguments for {op}: {e}", identifier=op) from e
                try:
                    method(**step)
                except ManifestError as e:
                    logger.error(f"Step {index} ({op}) failed, rolling back batch: {e.kind}: {e}")
                    raise
                logger.debug(f"Step {index} ({op}) applied")
        logger.info(f"Applied {len(steps)} plan steps")
        return len(steps)
