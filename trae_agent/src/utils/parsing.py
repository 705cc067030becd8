# Self-Improving Coding Agent
# Copyright (c) 2025 Maxime Robeyns
#
# This source code is licensed under the MIT license found in the
# LICENSE file in the root directory of this source tree.
"""
Some parsing utilities for pulling tagged sections out of model output.
"""

from typing import Literal


def extract_between_patterns(
    s: str,
    pattern_a: str,
    pattern_b: str,
    a_occurrence: Literal["first"] | Literal["last"] = "first",
    b_occurrence: Literal["first"] | Literal["last"] = "last",
) -> str | None:
    if a_occurrence not in ("first", "last"):
        raise ValueError("Invalid value for a_occurrence. Use 'first' or 'last'.")
    if b_occurrence not in ("first", "last"):
        raise ValueError("Invalid value for b_occurrence. Use 'first' or 'last'.")

    start_index = s.find(pattern_a) if a_occurrence == "first" else s.rfind(pattern_a)
    if start_index == -1:
        return None
    start_index += len(pattern_a)

    end_index = s.find(pattern_b, start_index) if b_occurrence == "first" else s.rfind(pattern_b)
    if end_index == -1 or end_index < start_index:
        return None

    return s[start_index:end_index]


def extract_tag(s: str, tag: str) -> str | None:
    """The stripped text of the first <tag>...</tag> section, if any."""
    inner = extract_between_patterns(s, f"<{tag}>", f"</{tag}>", "first", "first")
    return inner.strip() if inner is not None else None


def split_tags(s: str, separators: str = ",") -> list[str]:
    """Split a tag list such as 'WRITE_FIX, VERIFY_FIX' into upper-case names."""
    for sep in separators[1:]:
        s = s.replace(sep, separators[0])
    return [t.strip().upper() for t in s.split(separators[0]) if t.strip()]
