"""
Target Synchronizer

Maintains which file references each target builds and which reference is its
product. It only touches a target's phases and product binding, never the
group tree; references must already be in the manifest, which the store keeps
true by detaching a file from every target when it is removed.
"""

import logging
from typing import Dict, List, Union

from .errors import DuplicateEntry, InvalidKind, NotFound, UnknownTarget
from .model import KIND_PRODUCT, PHASE_KINDS, PHASE_SOURCES, BuildPhase, FileReference, Target
from .store import ManifestStore

logger = logging.getLogger(__name__)


class TargetSynchronizer:
    """
    Build-phase membership and product binding for the targets of a store.
    """

    def __init__(self, store: ManifestStore):
        self.store = store

    def _target(self, target: Union[Target, str]) -> Target:
        if isinstance(target, str):
            return self.store.target(target)
        if not self.store.has_target(target):
            raise UnknownTarget(f"Target '{target.name}' is not part of this manifest", identifier=target.name)
        return target

    def _require_file(self, ref: FileReference):
        if not self.store.contains_file(ref):
            raise NotFound(f"File reference '{ref.name}' is not part of this manifest", identifier=ref.name)

    def attach(self, target: Union[Target, str], ref: FileReference, phase_kind: str = PHASE_SOURCES) -> bool:
        """
        Add `ref` to the `phase_kind` phase of `target`, creating the phase if the
        target has none. Re-attaching is a no-op.

        Returns:
            True if the membership was added, False if it already existed
        """
        target = self._target(target)
        self._require_file(ref)
        if phase_kind not in PHASE_KINDS:
            raise InvalidKind(f"Unknown build phase '{phase_kind}'", identifier=phase_kind)

        phase = target.phase(phase_kind)
        if phase is None:
            phase = BuildPhase(phase_kind)
            target.phases.append(phase)
            logger.info(f"Created {phase_kind} phase on {target.name}")

        if not phase.add(ref):
            logger.debug(f"{ref.name} already in {target.name} {phase_kind} phase")
            return False
        logger.info(f"Added {ref.name} to {target.name} {phase_kind} phase")
        return True

    def detach(self, target: Union[Target, str], ref: FileReference) -> int:
        """
        Remove `ref` from every phase of `target`.

        Returns:
            Number of phases the reference was removed from
        """
        target = self._target(target)
        removed = 0
        for phase in target.phases_containing(ref):
            phase.discard(ref)
            removed += 1
            logger.info(f"Removed {ref.name} from {target.name} {phase.kind} phase")
        if not removed:
            logger.debug(f"{ref.name} not built by {target.name}")
        return removed

    def set_product(self, target: Union[Target, str], ref: FileReference):
        """
        Make `ref` the product of `target`, replacing any previous product.

        Raises:
            InvalidKind: `ref` is declared as something other than a product
            DuplicateEntry: `ref` is already the product of another target
        """
        target = self._target(target)
        self._require_file(ref)
        if ref.kind not in (None, KIND_PRODUCT):
            raise InvalidKind(f"'{ref.name}' is declared as {ref.kind}, not a product", identifier=ref.full_path)

        owner = self.store.product_owner(ref)
        if owner is not None and owner is not target:
            raise DuplicateEntry(f"'{ref.name}' is already the product of {owner.name}", identifier=ref.full_path)

        ref.kind = KIND_PRODUCT
        if target.product is ref:
            logger.debug(f"{ref.name} already the product of {target.name}")
            return
        target.product = ref
        logger.info(f"Set product of {target.name} to {ref.name}")

    def memberships(self, ref: FileReference) -> Dict[str, List[str]]:
        """Phase kinds per target name that build `ref`."""
        result = {}
        for target in self.store.targets.values():
            kinds = [phase.kind for phase in target.phases_containing(ref)]
            if kinds:
                result[target.name] = kinds
        return result
