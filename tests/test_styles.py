"""Tests for the built-in style catalog."""

import pytest

from restyle.models.style import STYLES, get_style


def test_catalog_ids_are_unique():
    ids = [style.id for style in STYLES]

    assert len(ids) == len(set(ids)) == 6


def test_every_style_has_name_and_prompt():
    for style in STYLES:
        assert style.name
        assert style.prompt


def test_lookup_by_id():
    style = get_style("modern")

    assert style.name == "现代风格"


def test_unknown_style():
    with pytest.raises(KeyError):
        get_style("baroque")
