from __future__ import annotations

import copy
from typing import Any

from fpkgi_server.domain.workflows.merge_overrides import deep_merge, merge_category


def _catalog() -> dict[str, dict[str, dict[str, Any]]]:
    return {
        "games": {
            "http://x/y.pkg": {
                "title_id": "CUSA12345",
                "region": "USA",
                "name": "Demo",
                "size": 10,
                "meta": {"a": 1, "b": {"c": 2}},
            }
        }
    }


def test_merge_category_given_existing_url_when_merged_then_overrides_only_given_fields():
    catalog = _catalog()

    merged = merge_category(catalog, "games", {"http://x/y.pkg": {"region": "EUR"}})

    assert merged is True
    assert catalog["games"]["http://x/y.pkg"] == {
        "title_id": "CUSA12345",
        "region": "EUR",
        "name": "Demo",
        "size": 10,
        "meta": {"a": 1, "b": {"c": 2}},
    }


def test_merge_category_given_new_url_when_merged_then_adds_entry():
    catalog = _catalog()

    _ = merge_category(catalog, "games", {"http://x/z.pkg": {"name": "Other"}})

    assert catalog["games"]["http://x/z.pkg"] == {"name": "Other"}
    assert "http://x/y.pkg" in catalog["games"]


def test_merge_category_given_missing_category_when_merged_then_creates_it_verbatim():
    catalog = _catalog()
    overlay = {"http://x/t.pkg": {"name": "Theme", "tags": ["a"]}}

    merged = merge_category(catalog, "themes", overlay)

    assert merged is False
    assert catalog["themes"] == overlay
    catalog["themes"]["http://x/t.pkg"]["tags"].append("b")
    assert overlay["http://x/t.pkg"]["tags"] == ["a"]


def test_deep_merge_given_nested_objects_then_merges_recursively_and_replaces_scalars():
    target: dict[str, Any] = {"meta": {"a": 1, "b": {"c": 2}}, "list": [1, 2]}

    _ = deep_merge(target, {"meta": {"b": {"d": 3}, "e": 4}, "list": [3]})

    assert target == {"meta": {"a": 1, "b": {"c": 2, "d": 3}, "e": 4}, "list": [3]}


def test_deep_merge_given_object_over_scalar_then_replaces_value():
    target: dict[str, Any] = {"meta": "plain"}

    _ = deep_merge(target, {"meta": {"k": "v"}})

    assert target == {"meta": {"k": "v"}}


def test_merge_category_given_same_overlay_twice_then_result_is_unchanged():
    overlay = {
        "http://x/y.pkg": {"region": "EUR", "meta": {"b": {"d": 3}}},
        "http://x/new.pkg": {"name": "New"},
    }
    once = _catalog()
    _ = merge_category(once, "games", overlay)
    twice = copy.deepcopy(once)

    _ = merge_category(twice, "games", overlay)

    assert twice == once
