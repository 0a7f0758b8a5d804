"""Configuration merger over project and target scopes."""

import pytest

from xcmanifest.core import BuildConfiguration, ConfigurationMerger, NotFound, normalize_value


@pytest.fixture
def merger(app_store):
    app_store.configurations = {
        "Debug": BuildConfiguration("Debug", {"SWIFT_VERSION": "5.0"}),
        "Release": BuildConfiguration("Release"),
    }
    return ConfigurationMerger(app_store)


def test_overwrite_then_reapply_is_idempotent(merger):
    scope = merger.scope("Debug", "App")

    assert merger.apply(scope, "SWIFT_VERSION", "5.0") is True
    assert merger.apply(scope, "SWIFT_VERSION", "6.0") is True
    assert merger.apply(scope, "SWIFT_VERSION", "6.0") is False
    assert scope["SWIFT_VERSION"] == "6.0"


def test_values_are_stored_untouched(merger):
    scope = merger.scope("Debug")

    merger.apply(scope, "OTHER_LDFLAGS", ["$(inherited)", "-ObjC"])
    merger.apply(scope, "ENABLE_BITCODE", False)

    assert scope["OTHER_LDFLAGS"] == ["$(inherited)", "-ObjC"]
    assert scope["ENABLE_BITCODE"] == "NO"
    assert normalize_value(17) == "17"


def test_remove_absent_key_is_noop(merger):
    scope = merger.scope("Release")

    assert merger.remove(scope, "VALID_ARCHS") is False
    assert scope.settings == {}


def test_batch_is_sequential_last_write_wins(merger):
    scope = merger.scope("Release", "App")

    changed = merger.apply_batch(scope, {"A": "1", "B": "2"}, removals=["A"])

    assert changed == 2
    assert scope.settings == {"A": "1", "B": "2"}


def test_unknown_configuration(merger):
    with pytest.raises(NotFound):
        merger.scope("Beta")
    with pytest.raises(NotFound):
        merger.scope("Beta", "App")


def test_apply_everywhere(merger):
    merger.scope("Debug").settings["VALID_ARCHS"] = "arm64"

    stats = merger.apply_everywhere({"ENABLE_USER_SCRIPT_SANDBOXING": "YES"}, removals=["VALID_ARCHS"])

    assert stats == {"scopes": 4, "changed": 5}
    for scope in merger.scopes():
        assert scope["ENABLE_USER_SCRIPT_SANDBOXING"] == "YES"
        assert "VALID_ARCHS" not in scope


def test_scopes_selection(merger):
    assert len(merger.scopes(configuration="Debug")) == 2
    assert len(merger.scopes(targets=[], include_project=True)) == 2
    assert len(merger.scopes(targets=["App"], include_project=False)) == 2


def test_set_attribute(merger):
    assert merger.set_attribute("LastUpgradeCheck", 1610) is True
    assert merger.set_attribute("LastUpgradeCheck", "1610") is False
    assert merger.store.attributes["LastUpgradeCheck"] == "1610"
