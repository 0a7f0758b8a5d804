"""
Configuration Merger

Applies key/value overrides to project-scope and target-scope build
configurations. Keys and values are stored untouched: a value is either a
string or a list of strings, and nothing here knows what a key means.
Assignments are last-write-wins and re-applying the same value changes nothing.
"""

import logging
from typing import Dict, Iterable, List, Optional, Union

from .errors import NotFound
from .model import BuildConfiguration, SettingValue, Target
from .store import ManifestStore

logger = logging.getLogger(__name__)


def normalize_value(value) -> SettingValue:
    """Coerce a setting value to the stored form (str or list of str)."""
    if isinstance(value, (list, tuple)):
        return [str(item) for item in value]
    if isinstance(value, bool):
        return "YES" if value else "NO"
    return str(value)


class ConfigurationMerger:
    """
    Settings mutation across the configuration scopes of a store.
    """

    def __init__(self, store: ManifestStore):
        self.store = store

    def scope(self, configuration: str, target: Union[Target, str, None] = None) -> BuildConfiguration:
        """
        Look up one configuration scope.

        Args:
            configuration: Configuration name, e.g. "Debug"
            target: Target (or its name) for target scope; None for project scope
        """
        if target is None:
            scopes = self.store.configurations
            owner = "project"
        else:
            if isinstance(target, str):
                target = self.store.target(target)
            scopes = target.configurations
            owner = target.name
        config = scopes.get(configuration)
        if config is None:
            raise NotFound(f"Configuration '{configuration}' not found on {owner}", identifier=configuration)
        return config

    def scopes(
        self,
        configuration: Optional[str] = None,
        targets: Optional[Iterable[str]] = None,
        include_project: bool = True,
    ) -> List[BuildConfiguration]:
        """
        Collect configuration scopes.

        Args:
            configuration: Only scopes with this name (all when None)
            targets: Only these targets (all when None)
            include_project: Include project-scope configurations
        """
        selected = []
        if include_project:
            selected.extend(self.store.configurations.values())
        names = list(targets) if targets is not None else list(self.store.targets)
        for name in names:
            selected.extend(self.store.target(name).configurations.values())
        if configuration is not None:
            selected = [config for config in selected if config.name == configuration]
        return selected

    def apply(self, scope: BuildConfiguration, key: str, value) -> bool:
        """Set `key` to `value`; returns True when the stored value changed."""
        value = normalize_value(value)
        if key in scope.settings and scope.settings[key] == value:
            logger.debug(f"{scope.name}: {key} already {value}")
            return False
        scope.settings[key] = value
        logger.info(f"{scope.name}: {key} = {value}")
        return True

    def remove(self, scope: BuildConfiguration, key: str) -> bool:
        if key not in scope.settings:
            return False
        del scope.settings[key]
        logger.info(f"{scope.name}: removed {key}")
        return True

    def apply_batch(self, scope: BuildConfiguration, values: Dict[str, object], removals: Iterable[str] = ()) -> int:
        """
        Remove `removals`, then set every pair in `values`, in order.

        Returns:
            Number of keys whose stored state changed
        """
        changed = 0
        for key in removals:
            changed += self.remove(scope, key)
        for key, value in values.items():
            changed += self.apply(scope, key, value)
        return changed

    def apply_everywhere(
        self,
        values: Dict[str, object],
        removals: Iterable[str] = (),
        configuration: Optional[str] = None,
        targets: Optional[Iterable[str]] = None,
        include_project: bool = True,
    ) -> Dict[str, int]:
        """
        Apply one batch to every selected project and target configuration.

        Returns:
            Statistics dict
        """
        removals = list(removals)
        scopes = self.scopes(configuration=configuration, targets=targets, include_project=include_project)
        stats = {"scopes": len(scopes), "changed": 0}
        for scope in scopes:
            stats["changed"] += self.apply_batch(scope, values, removals)
        logger.info(f"Applied {len(values)} settings to {stats['scopes']} configurations ({stats['changed']} changes)")
        return stats

    def set_attribute(self, key: str, value) -> bool:
        """Set a project root attribute such as LastUpgradeCheck."""
        value = normalize_value(value)
        if self.store.attributes.get(key) == value:
            return False
        self.store.attributes[key] = value
        logger.info(f"Project attribute {key} = {value}")
        return True
