"""
Scheme Generator

Derives a named scheme that builds and launches one target. Regenerating a
scheme with an existing name replaces it; visibility only decides where the
scheme file is written.
"""

import logging
from typing import List, Union

from .errors import UnknownTarget
from .model import Scheme, Target
from .store import ManifestStore

logger = logging.getLogger(__name__)


class SchemeGenerator:
    def __init__(self, store: ManifestStore):
        self.store = store

    def generate(self, name: str, target: Union[Target, str], shared: bool = True) -> Scheme:
        target_name = target if isinstance(target, str) else target.name
        found = self.store.targets.get(target_name)
        if found is None or (isinstance(target, Target) and found is not target):
            raise UnknownTarget(f"Cannot create scheme '{name}': target '{target_name}' not found", identifier=target_name)

        scheme = Scheme(name, target_name, shared=shared, modified=True)
        previous = self.store.put_scheme(scheme)
        visibility = "shared" if shared else "private"
        if previous is None:
            logger.info(f"Created {visibility} scheme {name} for {target_name}")
        else:
            logger.info(f"Replaced scheme {name} ({previous.target_name} -> {target_name}, {visibility})")
        return scheme

    def recreate_user_schemes(self) -> List[Scheme]:
        """One private scheme per target, named after it."""
        return [self.generate(name, name, shared=False) for name in list(self.store.targets)]
