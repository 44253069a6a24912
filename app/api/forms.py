"""Decoding of bracketed form field names.

``answers[12][q1]=3`` -> ``{"answers": {"12": {"q1": "3"}}}``
``answers[12][q2][]=a`` (repeated) -> ``{"answers": {"12": {"q2": ["a", ...]}}}``
"""

import re
from typing import Any, Iterable

_KEY_RE = re.compile(r"\[([^\[\]]*)\]")


def split_field_name(name: str) -> list[str]:
    """``resp[s1][i1][now]`` -> ``["resp", "s1", "i1", "now"]``.

    A trailing ``[]`` becomes an empty final segment.
    """
    head, bracket, _ = name.partition("[")
    if not bracket:
        return [name]
    return [head] + _KEY_RE.findall(name[len(head):])


def parse_bracketed_form(items: Iterable[tuple[str, Any]]) -> dict[str, Any]:
    """Fold ``(name, value)`` pairs into nested dicts.

    Later scalar values replace earlier ones; ``[]`` names collect lists.
    Names that clash with an existing value of another shape are dropped.
    """
    data: dict[str, Any] = {}
    for name, value in items:
        if not isinstance(value, str):
            continue
        parts = split_field_name(name)
        if not parts or not parts[0]:
            continue

        node = data
        ok = True
        for part in parts[:-2] if parts[-1] == "" else parts[:-1]:
            child = node.setdefault(part, {})
            if not isinstance(child, dict):
                ok = False
                break
            node = child
        if not ok:
            continue

        if parts[-1] == "" and len(parts) > 1:
            bucket = node.setdefault(parts[-2], [])
            if isinstance(bucket, list):
                bucket.append(value)
        elif not isinstance(node.get(parts[-1]), dict):
            node[parts[-1]] = value
    return data
