"""Scheme generation and regeneration."""

import pytest

from xcmanifest.core import SchemeGenerator, UnknownTarget


@pytest.fixture
def generator(app_store):
    app_store.add_target("Widget")
    return SchemeGenerator(app_store)


def test_generate_binds_target(generator):
    scheme = generator.generate("App", "App")

    assert scheme.target_name == "App"
    assert scheme.shared is True
    assert scheme.modified is True
    assert generator.store.schemes == {"App": scheme}


def test_generate_unknown_target(generator):
    with pytest.raises(UnknownTarget):
        generator.generate("Ghost", "Ghost")
    assert generator.store.schemes == {}


def test_regeneration_keeps_one_scheme_bound_to_last_target(generator):
    generator.generate("Main", "App")
    generator.generate("Main", "Widget")

    assert list(generator.store.schemes) == ["Main"]
    assert generator.store.schemes["Main"].target_name == "Widget"
    assert generator.store.retired_schemes == []


def test_visibility_change_retires_old_file_location(generator):
    generator.generate("Main", "App", shared=True)
    generator.generate("Main", "App", shared=False)

    assert generator.store.schemes["Main"].shared is False
    assert [s.shared for s in generator.store.retired_schemes] == [True]


def test_recreate_user_schemes(generator):
    generator.generate("App", "App", shared=True)

    schemes = generator.recreate_user_schemes()

    assert sorted(s.name for s in schemes) == ["App", "Widget"]
    assert all(not s.shared for s in generator.store.schemes.values())
    assert len(generator.store.schemes) == 2
