"""
Reference Resolver

Turns logical paths ("App/Views/Main.swift") into file references and groups.
Resolution is exact and case-sensitive and never creates structure: a missing
segment is NotFound, a bare leaf name that exists in several groups is
Ambiguous and must be qualified.
"""

import logging
from typing import Optional

from .errors import Ambiguous, NotFound
from .model import FileReference, Group, split_path
from .store import ManifestStore

logger = logging.getLogger(__name__)


class ReferenceResolver:
    """
    Path lookups against a ManifestStore.
    """

    def __init__(self, store: ManifestStore):
        self.store = store

    def resolve(self, logical_path: str) -> FileReference:
        """
        Find the file reference at `logical_path`.

        A multi-segment path is qualified from the manifest root. A single
        segment first matches a file directly under the root and otherwise falls
        back to the leaf-name index across the whole tree; a leading "/"
        disables that fallback.

        Raises:
            NotFound: a group segment or the leaf does not exist
            Ambiguous: a bare leaf name matches files in several groups
        """
        segments = split_path(logical_path)
        if not segments:
            raise NotFound("Empty path", identifier=logical_path)

        *group_segments, leaf = segments
        if group_segments or logical_path.startswith("/"):
            group = self._walk(group_segments, logical_path)
            ref = group.files.get(leaf)
            if ref is None:
                raise NotFound(f"'{leaf}' not found in group '{group.full_path or '<root>'}'", identifier=logical_path)
            return ref

        ref = self.store.root.files.get(leaf)
        if ref is not None:
            return ref

        matches = self.store.files_named(leaf)
        if not matches:
            raise NotFound(f"'{leaf}' not found in project", identifier=logical_path)
        if len(matches) > 1:
            locations = ", ".join(sorted(m.full_path for m in matches))
            raise Ambiguous(f"'{leaf}' matches {len(matches)} files: {locations}", identifier=logical_path)
        logger.debug(f"Resolved {leaf} to {matches[0].full_path}")
        return matches[0]

    def resolve_group(self, logical_path: str) -> Group:
        """Find the group at `logical_path` ("" or "/" is the root)."""
        return self._walk(split_path(logical_path), logical_path)

    def find(self, logical_path: str) -> Optional[FileReference]:
        """Like resolve() but returns None when nothing matches (Ambiguous still raises)."""
        try:
            return self.resolve(logical_path)
        except NotFound:
            return None

    def _walk(self, segments, logical_path: str) -> Group:
        group = self.store.root
        for segment in segments:
            child = self.store.child_group(group, segment)
            if child is None:
                raise NotFound(
                    f"Group '{segment}' not found under '{group.full_path or '<root>'}'", identifier=logical_path
                )
            group = child
        return group
