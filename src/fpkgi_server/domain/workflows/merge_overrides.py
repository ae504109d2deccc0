from __future__ import annotations

import copy
from collections.abc import Mapping
from typing import Any


def deep_merge(target: dict[str, Any], overlay: Mapping[str, Any]) -> dict[str, Any]:
    """Merge ``overlay`` into ``target`` in place.

    Nested objects merge key by key; any other overlay value replaces the
    target value. Keys only present in the overlay are copied over.
    """
    for key, value in overlay.items():
        current = target.get(key)
        if isinstance(current, dict) and isinstance(value, Mapping):
            _ = deep_merge(current, value)
        else:
            target[key] = copy.deepcopy(value)
    return target


def merge_category(
    catalog: dict[str, dict[str, dict[str, Any]]],
    category: str,
    overlay: Mapping[str, Mapping[str, Any]],
) -> bool:
    """Apply an overlay ``DATA`` mapping to one catalog category.

    Returns ``True`` when the category already existed and was merged, and
    ``False`` when it was created from the overlay.
    """
    existing = catalog.get(category)
    if existing is None:
        catalog[category] = {url: copy.deepcopy(dict(entry)) for url, entry in overlay.items()}
        return False

    for url, entry in overlay.items():
        current = existing.get(url)
        if current is None:
            existing[url] = copy.deepcopy(dict(entry))
            continue
        _ = deep_merge(current, entry)
    return True
