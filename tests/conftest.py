"""Shared fixtures for the xcmanifest tests."""

import shutil
from pathlib import Path

import pytest

from xcmanifest.core import KIND_SOURCE, ManifestStore
from xcmanifest.editor import ManifestEditor

FIXTURES = Path(__file__).resolve().parent / "fixtures"


@pytest.fixture
def store():
    return ManifestStore()


@pytest.fixture
def app_store():
    """Store with an App target (Debug/Release) and App/Main.swift built by it."""
    store = ManifestStore()
    store.add_target("App")
    main = store.add_file(store.find_or_create_group("App"), "Main.swift", kind=KIND_SOURCE)
    store.targets["App"].phase("sources").add(main)
    return store


@pytest.fixture
def editor(app_store):
    return ManifestEditor(app_store, products_group="Products")


@pytest.fixture
def project_dir(tmp_path):
    """Writable copy of the Sample.xcodeproj fixture."""
    destination = tmp_path / "Sample.xcodeproj"
    shutil.copytree(FIXTURES / "Sample.xcodeproj", destination)
    return destination
