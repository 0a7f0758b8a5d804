"""
Scheme files (.xcscheme) inside an .xcodeproj bundle.

Shared schemes live in xcshareddata/xcschemes, private ones in
xcuserdata/<user>.xcuserdatad/xcschemes. Only schemes generated in the current
session are written; schemes retired by the store have their files deleted.
"""

import glob
import logging
import os
import xml.etree.ElementTree as ET
from typing import List, Optional
from xml.sax.saxutils import quoteattr

from ..core.errors import ManifestFileError
from ..core.model import Scheme
from ..core.store import ManifestStore

logger = logging.getLogger(__name__)

DEFAULT_UPGRADE_VERSION = "1600"

SCHEME_TEMPLATE = """<?xml version="1.0" encoding="UTF-8"?>
<Scheme
   LastUpgradeVersion = {version}
   version = "1.7">
   <BuildAction
      parallelizeBuildables = "YES"
      buildImplicitDependencies = "YES">
      <BuildActionEntries>
         <BuildActionEntry
            buildForTesting = "YES"
            buildForRunning = "YES"
            buildForProfiling = "YES"
            buildForArchiving = "YES"
            buildForAnalyzing = "YES">
{reference}
         </BuildActionEntry>
      </BuildActionEntries>
   </BuildAction>
   <TestAction
      buildConfiguration = "Debug"
      selectedDebuggerIdentifier = "Xcode.DebuggerFoundation.Debugger.LLDB"
      selectedLauncherIdentifier = "Xcode.DebuggerFoundation.Launcher.LLDB"
      shouldUseLaunchSchemeArgsEnv = "YES"
      shouldAutocreateTestPlan = "YES">
   </TestAction>
   <LaunchAction
      buildConfiguration = "Debug"
      selectedDebuggerIdentifier = "Xcode.DebuggerFoundation.Debugger.LLDB"
      selectedLauncherIdentifier = "Xcode.DebuggerFoundation.Launcher.LLDB"
      launchStyle = "0"
      useCustomWorkingDirectory = "NO"
      ignoresPersistentStateOnLaunch = "NO"
      debugDocumentVersioning = "YES"
      debugServiceExtension = "internal"
      allowLocationSimulation = "YES">
      <BuildableProductRunnable
         runnableDebuggingMode = "0">
{reference}
      </BuildableProductRunnable>
   </LaunchAction>
   <ProfileAction
      buildConfiguration = "Release"
      shouldUseLaunchSchemeArgsEnv = "YES"
      savedToolIdentifier = ""
      useCustomWorkingDirectory = "NO"
      debugDocumentVersioning = "YES">
      <BuildableProductRunnable
         runnableDebuggingMode = "0">
{reference}
      </BuildableProductRunnable>
   </ProfileAction>
   <AnalyzeAction
      buildConfiguration = "Debug">
   </AnalyzeAction>
   <ArchiveAction
      buildConfiguration = "Release"
      revealArchiveInOrganizer = "YES">
   </ArchiveAction>
</Scheme>
"""

REFERENCE_TEMPLATE = """            <BuildableReference
               BuildableIdentifier = "primary"
               BlueprintIdentifier = {identifier}
               BuildableName = {buildable}
               BlueprintName = {name}
               ReferencedContainer = {container}>
            </BuildableReference>"""


class SchemeFiles:
    """
    Read and write the scheme files of one .xcodeproj bundle.
    """

    def __init__(self, xcodeproj_dir: str, user: str):
        """
        Args:
            xcodeproj_dir: Path to the .xcodeproj bundle
            user: Owner of private schemes (xcuserdata/<user>.xcuserdatad)
        """
        self.xcodeproj_dir = xcodeproj_dir
        self.user = user

    @property
    def shared_dir(self) -> str:
        return os.path.join(self.xcodeproj_dir, "xcshareddata", "xcschemes")

    @property
    def user_dir(self) -> str:
        return os.path.join(self.xcodeproj_dir, "xcuserdata", f"{self.user}.xcuserdatad", "xcschemes")

    def path_for(self, scheme: Scheme) -> str:
        directory = self.shared_dir if scheme.shared else self.user_dir
        return os.path.join(directory, f"{scheme.name}.xcscheme")

    def load(self, store: ManifestStore) -> int:
        """
        Register existing scheme files with `store`.

        Shared schemes are read before private ones, so a private scheme with
        the same name wins, as it does in Xcode.

        Returns:
            Number of schemes registered
        """
        count = 0
        for directory, shared in ((self.shared_dir, True), (self.user_dir, False)):
            for path in sorted(glob.glob(os.path.join(directory, "*.xcscheme"))):
                name = os.path.splitext(os.path.basename(path))[0]
                target_name = self._blueprint_name(path)
                if target_name is None or target_name not in store.targets:
                    logger.warning(f"Skipping scheme {name}: target {target_name!r} not in project")
                    continue
                store.schemes[name] = Scheme(name, target_name, shared=shared)
                count += 1
        logger.debug(f"Loaded {count} schemes from {self.xcodeproj_dir}")
        return count

    def _blueprint_name(self, path: str) -> Optional[str]:
        try:
            tree = ET.parse(path)
        except ET.ParseError as e:
            raise ManifestFileError(f"Cannot parse scheme {path}: {e}", identifier=path) from e
        reference = tree.find("./BuildAction/BuildActionEntries/BuildActionEntry/BuildableReference")
        if reference is None:
            reference = tree.find(".//BuildableReference")
        return None if reference is None else reference.get("BlueprintName")

    def save(self, store: ManifestStore) -> List[str]:
        """
        Delete retired scheme files and write every modified scheme.

        Returns:
            Paths written
        """
        for scheme in store.retired_schemes:
            path = self.path_for(scheme)
            if os.path.exists(path):
                os.remove(path)
                logger.info(f"Deleted scheme file {path}")
        store.retired_schemes = []

        written = []
        for scheme in store.schemes.values():
            if not scheme.modified:
                continue
            path = self.path_for(scheme)
            os.makedirs(os.path.dirname(path), exist_ok=True)
            with open(path, "w", encoding="utf-8") as f:
                f.write(self.render(store, scheme))
            scheme.modified = False
            written.append(path)
            logger.info(f"Wrote scheme {path}")
        return written

    def render(self, store: ManifestStore, scheme: Scheme) -> str:
        """XML for one scheme building and launching its target."""
        target = store.target(scheme.target_name)
        buildable = target.product.name if target.product is not None else target.name
        reference = REFERENCE_TEMPLATE.format(
            identifier=quoteattr(target.identifier),
            buildable=quoteattr(buildable),
            name=quoteattr(target.name),
            container=quoteattr(f"container:{os.path.basename(self.xcodeproj_dir)}"),
        )
        version = store.attributes.get("LastUpgradeCheck") or DEFAULT_UPGRADE_VERSION
        return SCHEME_TEMPLATE.format(version=quoteattr(str(version)), reference=reference)
