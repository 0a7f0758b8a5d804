"""Target synchronizer: phase membership and product binding."""

import pytest

from xcmanifest.core import (
    KIND_PRODUCT,
    KIND_SOURCE,
    DuplicateEntry,
    FileReference,
    InvalidKind,
    NotFound,
    TargetSynchronizer,
    UnknownTarget,
)


@pytest.fixture
def sync(app_store):
    return TargetSynchronizer(app_store)


@pytest.fixture
def main(app_store):
    return app_store.files_named("Main.swift")[0]


def test_attach_is_idempotent(app_store, sync):
    ref = app_store.add_file(app_store.find_or_create_group("App"), "Detail.swift", kind=KIND_SOURCE)

    assert sync.attach("App", ref, "sources") is True
    assert sync.attach("App", ref, "sources") is False
    assert app_store.targets["App"].phase("sources").references.count(ref) == 1


def test_attach_creates_missing_phase(app_store, sync, main):
    assert app_store.targets["App"].phase("headers") is None

    sync.attach("App", main, "headers")

    assert main in app_store.targets["App"].phase("headers")


def test_attach_rejects_unknown_phase(sync, main):
    with pytest.raises(InvalidKind):
        sync.attach("App", main, "linking")


def test_attach_rejects_files_outside_the_tree(sync):
    with pytest.raises(NotFound):
        sync.attach("App", FileReference("Loose.swift"), "sources")


def test_attach_unknown_target(sync, main):
    with pytest.raises(UnknownTarget):
        sync.attach("Widget", main)


def test_detach_removes_from_every_phase(app_store, sync, main):
    sync.attach("App", main, "resources")

    assert sync.detach("App", main) == 2
    assert app_store.targets["App"].phases_containing(main) == []
    assert sync.detach("App", main) == 0


def test_detach_leaves_group_tree_alone(app_store, sync, main):
    sync.detach("App", main)

    assert app_store.contains_file(main)


def test_set_product_replaces_previous(app_store, sync):
    products = app_store.find_or_create_group("Products")
    first = app_store.add_file(products, "App.app")
    second = app_store.add_file(products, "App2.app")

    sync.set_product("App", first)
    sync.set_product("App", second)

    assert app_store.targets["App"].product is second
    assert second.kind == KIND_PRODUCT
    assert app_store.contains_file(first)


def test_set_product_rejects_incompatible_kind(app_store, sync, main):
    with pytest.raises(InvalidKind):
        sync.set_product("App", main)
    assert app_store.targets["App"].product is None
    assert main.kind == KIND_SOURCE


def test_product_cannot_belong_to_two_targets(app_store, sync):
    app_store.add_target("Widget")
    product = app_store.add_file(app_store.find_or_create_group("Products"), "App.app")
    sync.set_product("App", product)

    with pytest.raises(DuplicateEntry):
        sync.set_product("Widget", product)
    assert app_store.targets["Widget"].product is None


def test_memberships(app_store, sync, main):
    app_store.add_target("Widget")
    sync.attach("Widget", main, "sources")

    assert sync.memberships(main) == {"App": ["sources"], "Widget": ["sources"]}
