"""
Manifest persistence for Xcode project files (project.pbxproj).

Loading parses the file with openstep_parser into plain dicts and builds a
ManifestStore, keeping every object identifier. Saving re-reads the file,
reconciles its object graph with the store and serializes it through
pbxproj.XcodeProject so the output keeps Xcode's layout and comments.

Objects the manifest does not model (package product build files, shell script
bodies, target dependencies, build rules, synchronized folder groups) pass
through untouched. They are deleted only along with the group that holds them.

Loading also repairs the inconsistencies that hand-edited projects accumulate:
build-phase entries whose file reference is gone, entries repeated within one
phase, and duplicate references with the same name in one group.
"""

import copy
import logging
import os
from typing import Dict, List, Optional, Set

import openstep_parser as osp
from pbxproj import XcodeProject

from ..core.errors import ManifestFileError
from ..core.model import (
    APPLICATION_PRODUCT_TYPE,
    KIND_FOLDER,
    KIND_FRAMEWORK,
    KIND_HEADER,
    KIND_PRODUCT,
    KIND_RESOURCE,
    KIND_SOURCE,
    PHASE_COPY_FILES,
    PHASE_FRAMEWORKS,
    PHASE_HEADERS,
    PHASE_RESOURCES,
    PHASE_SHELL_SCRIPT,
    PHASE_SOURCES,
    BuildConfiguration,
    BuildPhase,
    FileReference,
    Group,
    Target,
)
from ..core.store import ManifestStore

logger = logging.getLogger(__name__)

PHASE_ISA = {
    PHASE_SOURCES: "PBXSourcesBuildPhase",
    PHASE_FRAMEWORKS: "PBXFrameworksBuildPhase",
    PHASE_RESOURCES: "PBXResourcesBuildPhase",
    PHASE_HEADERS: "PBXHeadersBuildPhase",
    PHASE_COPY_FILES: "PBXCopyFilesBuildPhase",
    PHASE_SHELL_SCRIPT: "PBXShellScriptBuildPhase",
}
ISA_PHASE = {isa: kind for kind, isa in PHASE_ISA.items()}

TARGET_ISAS = ("PBXNativeTarget", "PBXAggregateTarget", "PBXLegacyTarget")
FILE_ISAS = ("PBXFileReference", "PBXVariantGroup", "XCVersionGroup", "PBXReferenceProxy")

# lastKnownFileType for new references, by extension
FILE_TYPES = {
    ".swift": "sourcecode.swift",
    ".m": "sourcecode.c.objc",
    ".mm": "sourcecode.cpp.objcpp",
    ".c": "sourcecode.c.c",
    ".cpp": "sourcecode.cpp.cpp",
    ".h": "sourcecode.c.h",
    ".hpp": "sourcecode.cpp.h",
    ".metal": "sourcecode.metal",
    ".xcassets": "folder.assetcatalog",
    ".storyboard": "file.storyboard",
    ".xib": "file.xib",
    ".strings": "text.plist.strings",
    ".xcstrings": "text.json.xcstrings",
    ".json": "text.json",
    ".plist": "text.plist.xml",
    ".entitlements": "text.plist.entitlements",
    ".mlmodel": "file.mlmodel",
    ".framework": "wrapper.framework",
    ".xcframework": "wrapper.xcframework",
    ".dylib": "compiled.mach-o.dylib",
    ".a": "archive.ar",
    ".md": "net.daringfireball.markdown",
}

# explicitFileType for product references, by extension
PRODUCT_FILE_TYPES = {
    ".app": "wrapper.application",
    ".appex": "wrapper.app-extension",
    ".xctest": "wrapper.cfbundle",
    ".framework": "wrapper.framework",
    ".bundle": "wrapper.cfbundle",
    ".a": "archive.ar",
}

RESOURCE_FILE_TYPES = (
    "folder.assetcatalog",
    "file.storyboard",
    "file.xib",
    "text.plist.strings",
    "text.json.xcstrings",
)
FRAMEWORK_FILE_TYPES = ("wrapper.framework", "wrapper.xcframework", "compiled.mach-o.dylib", "archive.ar")


def pbxproj_path_for(path: str) -> str:
    """Accept either an .xcodeproj bundle or the project.pbxproj inside it."""
    if path.rstrip("/").endswith(".xcodeproj") or os.path.isdir(path):
        return os.path.join(path, "project.pbxproj")
    return path


def kind_of(raw: Dict) -> Optional[str]:
    """Derive the declared kind of a file object from its isa and file type."""
    isa = raw.get("isa")
    if isa == "PBXVariantGroup":
        return KIND_RESOURCE
    if isa == "XCVersionGroup":
        return KIND_SOURCE
    if raw.get("sourceTree") == "BUILT_PRODUCTS_DIR" and "explicitFileType" in raw:
        return KIND_PRODUCT

    file_type = raw.get("lastKnownFileType") or raw.get("explicitFileType") or ""
    if file_type in PRODUCT_FILE_TYPES.values() and raw.get("sourceTree") == "BUILT_PRODUCTS_DIR":
        return KIND_PRODUCT
    if file_type.endswith(".h"):
        return KIND_HEADER
    if file_type.startswith("sourcecode"):
        return KIND_SOURCE
    if file_type in FRAMEWORK_FILE_TYPES:
        return KIND_FRAMEWORK
    if file_type in RESOURCE_FILE_TYPES:
        return KIND_RESOURCE
    if file_type == "folder":
        return KIND_FOLDER
    return None


def display_name(raw: Dict, fallback: str) -> str:
    if raw.get("name"):
        return raw["name"]
    if raw.get("path"):
        return os.path.basename(raw["path"].rstrip("/")) or raw["path"]
    return fallback


class ProjectFile:
    """
    Load and save a ManifestStore from an Xcode project file.
    """

    def __init__(self, path: str):
        """
        Args:
            path: Path to an .xcodeproj bundle or its project.pbxproj
        """
        self.pbxproj_path = os.path.abspath(pbxproj_path_for(path))
        self.xcodeproj_dir = os.path.dirname(self.pbxproj_path)

    # ------------------------------------------------------------------
    # Reading
    # ------------------------------------------------------------------

    def read_tree(self) -> Dict:
        """Parse the project file into plain dicts."""
        if not os.path.isfile(self.pbxproj_path):
            raise ManifestFileError(f"Project file not found: {self.pbxproj_path}", identifier=self.pbxproj_path)
        try:
            with open(self.pbxproj_path, "r", encoding="utf-8") as fp:
                tree = osp.OpenStepDecoder.ParseFromFile(fp)
        except Exception as e:
            raise ManifestFileError(f"Cannot parse {self.pbxproj_path}: {e}", identifier=self.pbxproj_path) from e

        if not isinstance(tree, dict) or "objects" not in tree or tree.get("rootObject") not in tree["objects"]:
            raise ManifestFileError(f"{self.pbxproj_path} has no root object", identifier=self.pbxproj_path)
        return tree

    def load(self) -> ManifestStore:
        """
        Build a ManifestStore from the project file.

        Returns:
            Store whose objects carry the identifiers used in the file
        """
        tree = self.read_tree()
        objects = tree["objects"]
        root = objects[tree["rootObject"]]

        store = ManifestStore(source_path=self.pbxproj_path)
        store.attributes = copy.deepcopy(root.get("attributes") or {})

        main_id = root.get("mainGroup")
        main = objects.get(main_id)
        if main is None:
            raise ManifestFileError(f"{self.pbxproj_path} has no main group", identifier=self.pbxproj_path)
        store.root.identifier = main_id
        store.root.path = main.get("path")

        refs_by_id: Dict[str, FileReference] = {}
        self._load_group(store, store.root, main, objects, refs_by_id)

        store.configuration_list_id = root.get("buildConfigurationList") or store.configuration_list_id
        store.configurations = self._load_configurations(objects, root.get("buildConfigurationList"))

        for target_id in root.get("targets", []):
            raw = objects.get(target_id)
            if raw is None or raw.get("isa") not in TARGET_ISAS:
                logger.warning(f"Ignoring missing target {target_id}")
                continue
            target = self._load_target(target_id, raw, objects, refs_by_id)
            if target.name in store.targets:
                raise ManifestFileError(
                    f"{self.pbxproj_path} defines target '{target.name}' more than once", identifier=target.name
                )
            store.targets[target.name] = target

        logger.info(
            f"Loaded {self.pbxproj_path}: {len(refs_by_id)} file references, {len(store.targets)} targets"
        )
        return store

    def _load_group(
        self,
        store: ManifestStore,
        group: Group,
        raw: Dict,
        objects: Dict,
        refs_by_id: Dict[str, FileReference],
    ):
        for child_id in raw.get("children", []):
            child = objects.get(child_id)
            if child is None:
                logger.warning(f"Dropping missing child {child_id} from group {group.full_path or '<root>'}")
                continue

            if child.get("isa") == "PBXGroup":
                sub = Group(display_name(child, child_id), path=child.get("path"), identifier=child_id)
                store.attach_group(group, sub)
                self._load_group(store, sub, child, objects, refs_by_id)
                continue

            if is_unmodeled(child):
                logger.debug(f"Preserving unmodeled {child.get('isa')} {child_id} in {group.full_path or '<root>'}")
                continue

            name = display_name(child, child_id)
            existing = group.files.get(name)
            if existing is not None:
                logger.warning(f"Merging duplicate reference {name} in {group.full_path or '<root>'}")
                refs_by_id[child_id] = existing
                continue
            ref = FileReference(name, kind=kind_of(child), path=child.get("path"), identifier=child_id)
            store.place_file(ref, group)
            refs_by_id[child_id] = ref

    def _load_configurations(self, objects: Dict, list_id: Optional[str]) -> Dict[str, BuildConfiguration]:
        configurations = {}
        config_list = objects.get(list_id) or {}
        for config_id in config_list.get("buildConfigurations", []):
            raw = objects.get(config_id)
            if raw is None:
                continue
            name = raw.get("name", config_id)
            configurations[name] = BuildConfiguration(
                name,
                settings=copy.deepcopy(raw.get("buildSettings") or {}),
                identifier=config_id,
            )
        return configurations

    def _load_target(self, target_id: str, raw: Dict, objects: Dict, refs_by_id: Dict[str, FileReference]) -> Target:
        target = Target(
            raw.get("name", target_id),
            product_type=raw.get("productType"),
            identifier=target_id,
            configuration_list_id=raw.get("buildConfigurationList"),
        )
        target.configurations = self._load_configurations(objects, raw.get("buildConfigurationList"))

        for phase_id in raw.get("buildPhases", []):
            phase_raw = objects.get(phase_id)
            kind = ISA_PHASE.get(phase_raw.get("isa")) if phase_raw else None
            if kind is None:
                continue
            phase = BuildPhase(kind, name=phase_raw.get("name"), identifier=phase_id)
            for build_id in phase_raw.get("files", []):
                build = objects.get(build_id)
                if build is None or "fileRef" not in build:
                    continue
                ref = refs_by_id.get(build["fileRef"])
                if ref is None:
                    logger.warning(f"Dropping dangling {kind} entry {build_id} from {target.name}")
                    continue
                if not phase.add(ref, identifier=build_id, settings=copy.deepcopy(build.get("settings"))):
                    logger.warning(f"Dropping duplicate {ref.name} from {target.name} {kind} phase")
            target.phases.append(phase)

        product_id = raw.get("productReference")
        if product_id:
            product = refs_by_id.get(product_id)
            if product is None:
                logger.warning(f"Product reference of {target.name} is not in the project tree")
            else:
                target.product = product
        return target

    # ------------------------------------------------------------------
    # Writing
    # ------------------------------------------------------------------

    def save(self, store: ManifestStore, path: Optional[str] = None, backup: bool = False) -> str:
        """
        Write `store` back over the project file it was loaded from.

        The file is written next to the destination first and moved into place,
        so a failed save leaves the previous file intact.

        Args:
            store: Store loaded from this project file (possibly mutated)
            path: Destination; defaults to the source project file
            backup: Copy the existing destination aside first (timestamped)

        Returns:
            Path written
        """
        destination = os.path.abspath(pbxproj_path_for(path)) if path else self.pbxproj_path
        tree = self.read_tree()
        objects = tree["objects"]
        root = objects[tree["rootObject"]]

        original_nodes = self._tree_ids(objects, root.get("mainGroup"))
        self._write_groups(objects, store)
        root["mainGroup"] = store.root.identifier
        deleted = original_nodes - self._tree_ids(objects, store.root.identifier)
        for obj_id in deleted:
            objects.pop(obj_id, None)
            logger.debug(f"Deleted object {obj_id}")
        if deleted:
            for obj in objects.values():
                if "fileSystemSynchronizedGroups" in obj:
                    obj["fileSystemSynchronizedGroups"] = [
                        g for g in obj["fileSystemSynchronizedGroups"] if g not in deleted
                    ]

        self._write_targets(objects, root, store)
        root["buildConfigurationList"] = store.configuration_list_id
        self._write_configurations(objects, store.configuration_list_id, store.configurations)
        root["attributes"] = copy.deepcopy(store.attributes)

        project = XcodeProject(tree=tree, path=destination)
        if backup and os.path.exists(destination):
            logger.info(f"Backed up project to {project.backup()}")
        temp_path = f"{destination}.tmp"
        project.save(temp_path)
        os.replace(temp_path, destination)
        logger.info(f"Saved {destination}")
        return destination

    def _tree_ids(self, objects: Dict, group_id: Optional[str]) -> Set[str]:
        """Every object reachable from `group_id` through children and exception sets."""
        ids = set()
        pending = [group_id] if group_id else []
        while pending:
            obj_id = pending.pop()
            if obj_id in ids:
                continue
            ids.add(obj_id)
            raw = objects.get(obj_id) or {}
            pending.extend(raw.get("children", []))
            pending.extend(raw.get("exceptions", []))
        return ids

    def _write_groups(self, objects: Dict, store: ManifestStore):
        for group in store.root.walk():
            raw = objects.get(group.identifier)
            if raw is None:
                raw = {"isa": "PBXGroup", "children": [], "sourceTree": "<group>"}
                if group.path:
                    raw["path"] = group.path
                if group.path != group.name and group.parent is not None:
                    raw["name"] = group.name
                objects[group.identifier] = raw

            existing = raw.get("children", [])
            desired = [child.identifier for child in group.children]
            desired += [ref.identifier for ref in group.files.values()]
            desired += [child_id for child_id in existing if is_unmodeled(objects.get(child_id))]
            raw["children"] = merge_order(existing, desired)

            for ref in group.files.values():
                if ref.identifier not in objects:
                    objects[ref.identifier] = new_file_object(ref)

    def _write_targets(self, objects: Dict, root: Dict, store: ManifestStore):
        original = list(root.get("targets", []))
        live = {target.identifier for target in store.targets.values()}
        for target_id in original:
            if target_id not in live:
                self._delete_target(objects, target_id)
        root["targets"] = merge_order(original, [target.identifier for target in store.targets.values()])

        for target in store.targets.values():
            raw = objects.get(target.identifier)
            if raw is None:
                raw = {
                    "isa": "PBXNativeTarget",
                    "buildConfigurationList": target.configuration_list_id,
                    "buildPhases": [],
                    "buildRules": [],
                    "dependencies": [],
                    "name": target.name,
                    "productName": target.name,
                    "productType": target.product_type or APPLICATION_PRODUCT_TYPE,
                }
                objects[target.identifier] = raw

            modeled = {phase.identifier for phase in target.phases}
            kept = []
            for phase_id in raw.get("buildPhases", []):
                phase_raw = objects.get(phase_id)
                if phase_raw is None:
                    continue
                if phase_id in modeled or phase_raw.get("isa") not in ISA_PHASE:
                    kept.append(phase_id)
                else:
                    self._delete_phase(objects, phase_id)
            raw["buildPhases"] = merge_order(kept, kept + [phase.identifier for phase in target.phases])
            for phase in target.phases:
                self._write_phase(objects, phase)

            if target.product is None:
                raw.pop("productReference", None)
            else:
                raw["productReference"] = target.product.identifier

            if not raw.get("buildConfigurationList"):
                raw["buildConfigurationList"] = target.configuration_list_id
            self._write_configurations(objects, raw["buildConfigurationList"], target.configurations)

    def _write_phase(self, objects: Dict, phase: BuildPhase):
        raw = objects.get(phase.identifier)
        if raw is None:
            raw = {
                "isa": PHASE_ISA[phase.kind],
                "buildActionMask": "2147483647",
                "files": [],
                "runOnlyForDeploymentPostprocessing": "0",
            }
            if phase.kind == PHASE_COPY_FILES:
                raw.update({"dstPath": "", "dstSubfolderSpec": "10"})
            elif phase.kind == PHASE_SHELL_SCRIPT:
                raw.update({"inputPaths": [], "outputPaths": [], "shellPath": "/bin/sh", "shellScript": ""})
            if phase.name:
                raw["name"] = phase.name
            objects[phase.identifier] = raw

        wanted = {entry.identifier: entry for entry in phase.entries.values()}
        files: List[str] = []
        for build_id in raw.get("files", []):
            build = objects.get(build_id)
            if build is None:
                continue
            if build_id in wanted:
                build["fileRef"] = wanted[build_id].ref.identifier
                files.append(build_id)
            elif "fileRef" not in build:
                # Swift package products and other non-file entries
                files.append(build_id)
            else:
                objects.pop(build_id, None)

        for build_id, entry in wanted.items():
            if build_id in files:
                continue
            build = {"isa": "PBXBuildFile", "fileRef": entry.ref.identifier}
            if entry.settings:
                build["settings"] = copy.deepcopy(entry.settings)
            objects[build_id] = build
            files.append(build_id)
        raw["files"] = files

    def _write_configurations(self, objects: Dict, list_id: str, configurations: Dict[str, BuildConfiguration]):
        config_list = objects.get(list_id)
        if config_list is None:
            config_list = {
                "isa": "XCConfigurationList",
                "buildConfigurations": [],
                "defaultConfigurationIsVisible": "0",
                "defaultConfigurationName": "Release" if "Release" in configurations else next(iter(configurations), ""),
            }
            objects[list_id] = config_list

        ids = []
        for config in configurations.values():
            raw = objects.get(config.identifier)
            if raw is None:
                raw = {"isa": "XCBuildConfiguration", "name": config.name}
                objects[config.identifier] = raw
            raw["buildSettings"] = copy.deepcopy(config.settings)
            ids.append(config.identifier)
        for config_id in config_list.get("buildConfigurations", []):
            if config_id not in ids:
                objects.pop(config_id, None)
        config_list["buildConfigurations"] = ids

    def _delete_phase(self, objects: Dict, phase_id: str):
        phase = objects.pop(phase_id, None) or {}
        for build_id in phase.get("files", []):
            objects.pop(build_id, None)

    def _delete_target(self, objects: Dict, target_id: str):
        raw = objects.pop(target_id, None) or {}
        for phase_id in raw.get("buildPhases", []):
            self._delete_phase(objects, phase_id)
        config_list = objects.pop(raw.get("buildConfigurationList"), None) or {}
        for config_id in config_list.get("buildConfigurations", []):
            objects.pop(config_id, None)

        # Dependencies of other targets on the removed one
        stale = [
            obj_id
            for obj_id, obj in objects.items()
            if obj.get("isa") == "PBXTargetDependency" and obj.get("target") == target_id
        ]
        for dep_id in stale:
            proxy_id = objects.pop(dep_id).get("targetProxy")
            objects.pop(proxy_id, None)
        if stale:
            for obj in objects.values():
                if obj.get("isa") in TARGET_ISAS and "dependencies" in obj:
                    obj["dependencies"] = [d for d in obj["dependencies"] if d not in stale]

        # Synchronized folder exceptions scoped to the removed target
        exception_sets = [
            obj_id
            for obj_id, obj in objects.items()
            if obj.get("isa") == "PBXFileSystemSynchronizedBuildFileExceptionSet" and obj.get("target") == target_id
        ]
        for set_id in exception_sets:
            objects.pop(set_id)
        if exception_sets:
            for obj in objects.values():
                if "exceptions" in obj:
                    obj["exceptions"] = [e for e in obj["exceptions"] if e not in exception_sets]
        logger.debug(f"Deleted target object {target_id}")


def is_unmodeled(raw: Optional[Dict]) -> bool:
    """A group child the store does not model, such as a synchronized root group."""
    return raw is not None and raw.get("isa") != "PBXGroup" and raw.get("isa") not in FILE_ISAS


def merge_order(existing: List[str], desired: List[str]) -> List[str]:
    """Keep surviving ids in their existing order and append new ones in desired order."""
    wanted = set(desired)
    kept = [obj_id for obj_id in existing if obj_id in wanted]
    seen = set(kept)
    return kept + [obj_id for obj_id in desired if obj_id not in seen]


def new_file_object(ref: FileReference) -> Dict:
    extension = os.path.splitext(ref.name)[1].lower()
    if ref.kind == KIND_PRODUCT:
        return {
            "isa": "PBXFileReference",
            "explicitFileType": PRODUCT_FILE_TYPES.get(extension, "wrapper.application"),
            "includeInIndex": "0",
            "path": ref.path,
            "sourceTree": "BUILT_PRODUCTS_DIR",
        }
    return {
        "isa": "PBXFileReference",
        "lastKnownFileType": FILE_TYPES.get(extension, "text"),
        "path": ref.path,
        "sourceTree": "<group>",
    }
