# Self-Improving Coding Agent
# Copyright (c) 2025 Maxime Robeyns
#
# This source code is licensed under the MIT license found in the
# LICENSE file in the root directory of this source tree.
"""
Tests for the parsing utilities module.
"""
import pytest
from src.utils.parsing import extract_between_patterns, extract_tag, split_tags


@pytest.mark.parametrize(
    "text, a, b, a_occ, b_occ, expected",
    [
        ("<t>x</t><t>y</t>", "<t>", "</t>", "first", "first", "x"),  # First pair
        ("<t>x</t><t>y</t>", "<t>", "</t>", "first", "last", "x</t><t>y"),  # Widest span
        ("<t>x</t><t>y</t>", "<t>", "</t>", "last", "last", "y"),  # Last pair
        ("no tags", "<t>", "</t>", "first", "first", None),  # Not found
        ("</t> then <t>", "<t>", "</t>", "first", "last", None),  # Wrong order
    ],
    ids=["first", "widest", "last", "not_found", "wrong_order"],
)
def test_extract_between_patterns(text, a, b, a_occ, b_occ, expected):
    assert extract_between_patterns(text, a, b, a_occ, b_occ) == expected


def test_extract_between_patterns_invalid_occurrence():
    with pytest.raises(ValueError):
        extract_between_patterns("x", "a", "b", "middle")


def test_extract_tag():
    text = "Sure. <task>The agent runs the tests</task>\n<details> because they failed </details>"
    assert extract_tag(text, "task") == "The agent runs the tests"
    assert extract_tag(text, "details") == "because they failed"
    assert extract_tag(text, "tags") is None


@pytest.mark.parametrize(
    "text, expected",
    [
        ("WRITE_FIX, VERIFY_FIX", ["WRITE_FIX", "VERIFY_FIX"]),
        ("write_fix,,  think ", ["WRITE_FIX", "THINK"]),
        ("", []),
    ],
)
def test_split_tags(text, expected):
    assert split_tags(text) == expected


def test_split_tags_multiple_separators():
    assert split_tags("A, B; C", separators=",;") == ["A", "B", "C"]
