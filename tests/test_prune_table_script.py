"""Tests for the prune_table CLI helpers."""
import sys
from pathlib import Path

import pytest

sys.path.insert(0, str(Path(__file__).parent.parent))

from scripts.prune_table import parse_expression


@pytest.mark.parametrize(
    "text, expected",
    [
        ("fare > 50", ("fare", ">", 50)),
        ("fare<=1.5", ("fare", "<=", 1.5)),
        ("city == berlin", ("city", "==", "berlin")),
        ("city != paris", ("city", "!=", "paris")),
        ("city in berlin, paris", ("city", "in", ["berlin", "paris"])),
        ("tip is_null", ("tip", "is_null")),
    ],
)
def test_parse_expression(text, expected):
    assert parse_expression(text) == expected


def test_parse_expression_rejects_garbage():
    with pytest.raises(ValueError):
        parse_expression("fare ~ 3")
