"""
Core Utility Functions.

Small helpers shared by the recommendation modules.
"""

from typing import Any, Hashable, Iterable, List, TypeVar

T = TypeVar("T", bound=Hashable)


def uniq(items: Iterable[T]) -> List[T]:
    """
    Deduplicate while keeping first-seen order.

    Example:
        >>> uniq(["b", "a", "b"])
        ['b', 'a']
    """
    seen = set()
    out: List[T] = []
    for item in items:
        if item in seen:
            continue
        seen.add(item)
        out.append(item)
    return out


def clean_str(value: Any) -> str:
    """
    Render a value as a stripped string, treating None as empty.

    Store rows and LLM payloads hand us ids as str, int, or None.
    """
    if value is None:
        return ""
    return str(value).strip()
