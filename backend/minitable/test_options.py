import pytest
from pydantic import ValidationError

from minitable import DeleteOptions, SaveOptions


def test_defaults():
    options = SaveOptions.coerce()

    assert options.atomic is True
    assert options.validation is True
    assert options.associated is True


def test_coerce_merges_mapping_and_keywords():
    options = SaveOptions.coerce({"validate": "strict", "atomic": False}, atomic=True, check_rules=False)

    assert options.validation == "strict"
    assert options.atomic is True
    assert options.to_dict() == {"atomic": True, "validate": "strict", "associated": True, "check_rules": False}


def test_coerce_returns_existing_instance():
    options = SaveOptions(associated=("Authors",))

    assert SaveOptions.coerce(options) is options
    assert options.associated == ["Authors"]
    assert options.to_dict(exclude=["associated"]) == {"atomic": True, "validate": True}


def test_assignments_are_validated():
    options = DeleteOptions.coerce()

    with pytest.raises(ValidationError):
        options.atomic = "sometimes"
    with pytest.raises(ValidationError):
        SaveOptions.coerce(associated=3)


def test_save_options_become_delete_options():
    options = DeleteOptions.coerce(SaveOptions(atomic=False))

    assert options.atomic is False
