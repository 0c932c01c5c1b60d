"""CHARTA — Settings Differ.

Shared by the automatic sync and the draft flow. Compares two
``{category: {key: value}}`` documents leaf by leaf using canonical-JSON
equality, so lists and nested objects compare structurally.
"""

import copy
from typing import Any, Dict, List, Optional

from pydantic import BaseModel

from charta.core.idempotency import canonical_json
from charta.models.normalized_models import SETTINGS_CATEGORIES


class SettingsChange(BaseModel):
    """One changed leaf."""

    path: str  # category.key
    old_value: Any = None
    new_value: Any = None

    @property
    def category(self) -> str:
        return self.path.split(".", 1)[0]

    @property
    def key(self) -> str:
        return self.path.split(".", 1)[1]


def values_equal(a: Any, b: Any) -> bool:
    return canonical_json(a) == canonical_json(b)


def diff_settings(
    old: Optional[Dict[str, Any]],
    new: Dict[str, Any],
    missing_as_change: bool = False,
) -> List[SettingsChange]:
    """Leaf changes from ``old`` to ``new``.

    Only keys present in the new category are compared. With no ``old``
    document there is nothing to compare against and the result is empty,
    unless ``missing_as_change`` asks for every new leaf to be reported
    (the draft flow diffs against a possibly empty constitution).
    """
    if old is None and not missing_as_change:
        return []
    old = old or {}

    changes: List[SettingsChange] = []
    for category in SETTINGS_CATEGORIES:
        new_category = new.get(category)
        old_category = old.get(category)
        if not isinstance(new_category, dict):
            continue
        if not isinstance(old_category, dict):
            if not missing_as_change:
                continue
            old_category = {}

        for key, new_value in new_category.items():
            old_value = old_category.get(key)
            absent = key not in old_category
            if not (absent and missing_as_change) and values_equal(old_value, new_value):
                continue
            changes.append(
                SettingsChange(path=f"{category}.{key}", old_value=old_value, new_value=new_value)
            )
    return changes


def apply_changes(document: Dict[str, Any], changes: List[Dict[str, Any]]) -> Dict[str, Any]:
    """Return a copy of ``document`` with each change's new value written at its path."""
    updated = copy.deepcopy(document or {})
    for change in changes:
        path = change["path"]
        category, _, key = path.partition(".")
        if not key:
            continue
        section = updated.get(category)
        if not isinstance(section, dict):
            section = {}
            updated[category] = section
        section[key] = copy.deepcopy(change.get("new_value"))
    return updated
