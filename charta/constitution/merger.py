"""CHARTA — Override Merger.

Effective settings = canonical settings with commissioner overrides on top.
"""

import copy
from typing import Any, Dict, Optional


def merge_settings(
    base: Dict[str, Any], overrides: Optional[Dict[str, Any]]
) -> Dict[str, Any]:
    """Deep-merge ``overrides`` onto ``base``; neither input is mutated.

    Plain dicts on both sides recurse. Anything else from the override,
    lists included, replaces the base value outright.
    """
    result = copy.deepcopy(base or {})
    for key, value in (overrides or {}).items():
        if isinstance(value, dict) and isinstance(result.get(key), dict):
            result[key] = merge_settings(result[key], value)
        else:
            result[key] = copy.deepcopy(value)
    return result
