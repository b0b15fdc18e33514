"""State merging for append-only object state."""
import copy
from typing import Any


def _merge_into(target: dict, updates: dict) -> dict:
    for key, value in updates.items():
        if value is None and key in target:
            continue
        current = target.get(key)
        if isinstance(current, list):
            if isinstance(value, list):
                target[key] = current + copy.deepcopy(value)
            else:
                target[key] = current + [copy.deepcopy(value)]
        elif isinstance(current, dict) and isinstance(value, dict):
            target[key] = _merge_into(current, value)
        else:
            target[key] = copy.deepcopy(value)
    return target


def merge_state(current: Any, updates: Any) -> dict:
    """Deep-merge ``updates`` on top of ``current`` without mutating either.

    Lists found on both sides are concatenated (current items first)
    instead of replaced; missing branches are treated as empty.
    """
    merged = copy.deepcopy(current) if current else {}
    if not updates:
        return merged
    return _merge_into(merged, updates)
