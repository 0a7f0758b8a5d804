"""Project file and scheme file round trips against the Sample.xcodeproj fixture."""

import xml.etree.ElementTree as ET

import openstep_parser as osp
import pytest

from xcmanifest.core import (
    KIND_FRAMEWORK,
    KIND_HEADER,
    KIND_PRODUCT,
    KIND_RESOURCE,
    KIND_SOURCE,
    ManifestFileError,
    ReferenceResolver,
    SchemeGenerator,
)
from xcmanifest.editor import ManifestEditor
from xcmanifest.persistence import ProjectFile, SchemeFiles, kind_of, pbxproj_path_for

TARGET_ID = "A50000000000000000000001"


def raw_objects(project_dir):
    with open(project_dir / "project.pbxproj", "r", encoding="utf-8") as fp:
        return osp.OpenStepDecoder.ParseFromFile(fp)["objects"]


def test_pbxproj_path_for(tmp_path):
    assert pbxproj_path_for("App.xcodeproj") == "App.xcodeproj/project.pbxproj"
    assert pbxproj_path_for("App.xcodeproj/project.pbxproj") == "App.xcodeproj/project.pbxproj"


@pytest.mark.parametrize(
    "raw,kind",
    [
        ({"isa": "PBXFileReference", "lastKnownFileType": "sourcecode.swift"}, KIND_SOURCE),
        ({"isa": "PBXFileReference", "lastKnownFileType": "sourcecode.c.h"}, KIND_HEADER),
        ({"isa": "PBXFileReference", "lastKnownFileType": "folder.assetcatalog"}, KIND_RESOURCE),
        ({"isa": "PBXFileReference", "lastKnownFileType": "wrapper.framework"}, KIND_FRAMEWORK),
        (
            {"isa": "PBXFileReference", "explicitFileType": "wrapper.application", "sourceTree": "BUILT_PRODUCTS_DIR"},
            KIND_PRODUCT,
        ),
        ({"isa": "PBXVariantGroup"}, KIND_RESOURCE),
        ({"isa": "PBXFileReference", "lastKnownFileType": "text.plist.xml"}, None),
    ],
)
def test_kind_of(raw, kind):
    assert kind_of(raw) == kind


def test_load_builds_store(project_dir):
    store = ProjectFile(str(project_dir)).load()
    resolver = ReferenceResolver(store)

    main = resolver.resolve("App/Main.swift")
    assert main.identifier == "A20000000000000000000001"
    assert main.kind == KIND_SOURCE
    assert resolver.resolve("Shared/Bridge.h").kind == KIND_HEADER

    target = store.target("Sample")
    assert target.identifier == TARGET_ID
    assert [p.kind for p in target.phases] == ["sources", "frameworks", "resources", "shell_script"]
    assert target.product is resolver.resolve("Products/Sample.app")
    assert target.configurations["Debug"]["PRODUCT_NAME"] == "$(TARGET_NAME)"
    assert store.configurations["Debug"]["OTHER_LDFLAGS"] == ["$(inherited)", "-ObjC"]
    assert store.attributes["LastUpgradeCheck"] == "1500"
    assert store.validate() == []


def test_load_repairs_phase_entries(project_dir, caplog):
    store = ProjectFile(str(project_dir)).load()

    sources = store.target("Sample").phase("sources")
    assert [ref.full_path for ref in sources.references] == ["App/Main.swift", "App/Util.swift"]
    assert "Dropping dangling" in caplog.text
    assert "Dropping duplicate" in caplog.text
    assert "Dropping missing child" in caplog.text


def test_load_missing_or_broken_file(tmp_path):
    with pytest.raises(ManifestFileError):
        ProjectFile(str(tmp_path / "Missing.xcodeproj")).load()

    broken = tmp_path / "Broken.xcodeproj"
    broken.mkdir()
    (broken / "project.pbxproj").write_text("{ objects = { }; }")
    with pytest.raises(ManifestFileError):
        ProjectFile(str(broken)).load()


def test_save_round_trip(project_dir):
    project = ProjectFile(str(project_dir))
    store = project.load()
    editor = ManifestEditor(store)

    editor.add_file("App/Views/Detail.swift", target="Sample")
    editor.move_file("App/Main.swift", "Shared")
    editor.remove_file("Shared/Util.swift")
    editor.set_settings({"SWIFT_VERSION": "6.0"}, configuration="Release")
    editor.set_attribute("LastUpgradeCheck", "1610")
    project.save(store)

    reloaded = ProjectFile(str(project_dir)).load()
    resolver = ReferenceResolver(reloaded)
    detail = resolver.resolve("App/Views/Detail.swift")
    main = resolver.resolve("Shared/Main.swift")
    sources = reloaded.target("Sample").phase("sources")
    assert detail in sources
    assert main in sources
    assert main.identifier == "A20000000000000000000001"
    assert resolver.find("Shared/Util.swift") is None
    assert resolver.resolve("Util.swift").full_path == "App/Util.swift"
    assert reloaded.configurations["Release"]["SWIFT_VERSION"] == "6.0"
    assert reloaded.target("Sample").configurations["Release"]["SWIFT_VERSION"] == "6.0"
    assert reloaded.attributes["LastUpgradeCheck"] == "1610"
    assert reloaded.validate() == []


def test_save_drops_repaired_and_keeps_unmodeled_objects(project_dir):
    project = ProjectFile(str(project_dir))
    project.save(project.load())

    objects = raw_objects(project_dir)
    assert "A10000000000000000000003" not in objects
    assert "A10000000000000000000004" not in objects
    assert objects["A10000000000000000000005"]["productRef"] == "A90000000000000000000001"
    assert "A10000000000000000000005" in objects["A40000000000000000000002"]["files"]
    assert objects["A40000000000000000000004"]["shellPath"] == "/bin/sh"
    assert objects[TARGET_ID]["packageProductDependencies"] == ["A90000000000000000000001"]
    assert "A2000000000000000000BEEF" not in objects["A30000000000000000000003"]["children"]


def test_save_keeps_synchronized_and_variant_groups(project_dir):
    project = ProjectFile(str(project_dir))
    store = project.load()
    assert ReferenceResolver(store).resolve("Shared/Localizable.strings").kind == KIND_RESOURCE
    project.save(store)

    objects = raw_objects(project_dir)
    shared = objects["A30000000000000000000003"]["children"]
    assert "A30000000000000000000005" in shared
    assert "A30000000000000000000006" in shared
    assert objects["A30000000000000000000005"]["exceptions"] == ["AB0000000000000000000001"]
    assert objects["AB0000000000000000000001"]["membershipExceptions"] == ["Stub.swift"]
    assert objects[TARGET_ID]["fileSystemSynchronizedGroups"] == ["A30000000000000000000005"]
    assert objects["A30000000000000000000006"]["children"] == ["A20000000000000000000008"]
    assert "A20000000000000000000008" in objects


def test_removed_target_takes_its_folder_exceptions(project_dir):
    project = ProjectFile(str(project_dir))
    store = project.load()
    editor = ManifestEditor(store)
    editor.add_target("Widget")
    editor.remove_target("Sample")
    project.save(store)

    objects = raw_objects(project_dir)
    assert "AB0000000000000000000001" not in objects
    assert objects["A30000000000000000000005"]["exceptions"] == []
    assert "A30000000000000000000005" in objects["A30000000000000000000003"]["children"]


def test_save_removes_deleted_objects(project_dir):
    project = ProjectFile(str(project_dir))
    store = project.load()
    ManifestEditor(store).remove_group("Shared")
    project.save(store)

    objects = raw_objects(project_dir)
    assert "A30000000000000000000003" not in objects
    assert "A20000000000000000000006" not in objects
    assert "A20000000000000000000007" not in objects
    assert "A30000000000000000000005" not in objects
    assert "AB0000000000000000000001" not in objects
    assert objects[TARGET_ID]["fileSystemSynchronizedGroups"] == []
    assert "A30000000000000000000006" not in objects
    assert "A20000000000000000000008" not in objects


def test_save_new_target_and_removed_target(project_dir):
    project = ProjectFile(str(project_dir))
    store = project.load()
    editor = ManifestEditor(store)
    editor.add_target("Widget", product="Widget.appex")
    editor.add_file("Widget/Widget.swift", target="Widget")
    editor.remove_target("Sample")
    project.save(store)

    objects = raw_objects(project_dir)
    assert TARGET_ID not in objects
    assert "A40000000000000000000001" not in objects
    assert "A70000000000000000000002" not in objects

    reloaded = ProjectFile(str(project_dir)).load()
    assert list(reloaded.targets) == ["Widget"]
    widget = reloaded.target("Widget")
    assert widget.product.full_path == "Products/Widget.appex"
    assert [ref.name for ref in widget.phase("sources").references] == ["Widget.swift"]
    assert list(widget.configurations) == ["Debug", "Release"]


def test_scheme_files_round_trip(project_dir):
    project = ProjectFile(str(project_dir))
    store = project.load()
    schemes = SchemeFiles(project.xcodeproj_dir, "tester")
    SchemeGenerator(store).generate("Sample", "Sample")

    written = schemes.save(store)

    shared_path = project_dir / "xcshareddata" / "xcschemes" / "Sample.xcscheme"
    assert written == [str(shared_path)]
    reference = ET.parse(shared_path).find(".//BuildableReference")
    assert reference.get("BlueprintIdentifier") == TARGET_ID
    assert reference.get("BuildableName") == "Sample.app"
    assert reference.get("ReferencedContainer") == "container:Sample.xcodeproj"
    assert store.schemes["Sample"].modified is False

    reloaded = project.load()
    assert schemes.load(reloaded) == 1
    assert reloaded.schemes["Sample"].target_name == "Sample"
    assert reloaded.schemes["Sample"].shared is True


def test_private_scheme_replaces_shared_file(project_dir):
    project = ProjectFile(str(project_dir))
    store = project.load()
    schemes = SchemeFiles(project.xcodeproj_dir, "tester")
    generator = SchemeGenerator(store)
    generator.generate("Sample", "Sample", shared=True)
    schemes.save(store)

    generator.generate("Sample", "Sample", shared=False)
    schemes.save(store)

    assert not (project_dir / "xcshareddata" / "xcschemes" / "Sample.xcscheme").exists()
    assert (project_dir / "xcuserdata" / "tester.xcuserdatad" / "xcschemes" / "Sample.xcscheme").exists()


def test_scheme_for_missing_target_is_skipped(project_dir):
    project = ProjectFile(str(project_dir))
    store = project.load()
    schemes = SchemeFiles(project.xcodeproj_dir, "tester")
    SchemeGenerator(store).generate("Sample", "Sample")
    schemes.save(store)

    fresh = project.load()
    fresh.targets.clear()
    assert schemes.load(fresh) == 0
    assert fresh.schemes == {}
