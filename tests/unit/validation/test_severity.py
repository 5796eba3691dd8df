"""Tests for severity ranking and parsing."""

import pytest

from src.validation.severity import Severity, parse_severity, rank


def test_ranks_follow_declaration_order():
    """Each severity ranks strictly above the previous one."""
    ranks = [rank(severity) for severity in Severity]
    assert ranks == [0, 1, 2, 3]
    assert ranks == sorted(set(ranks))


def test_missing_severity_ranks_lowest():
    """An absent severity ranks like information."""
    assert rank(None) == 0
    assert rank(None) == rank(Severity.INFORMATION)


@pytest.mark.parametrize(
    "value,expected",
    [
        ("information", Severity.INFORMATION),
        ("WARNING", Severity.WARNING),
        (" Error ", Severity.ERROR),
        ("fatal", Severity.FATAL),
    ],
)
def test_parse_known_values(value, expected):
    """Configured values are parsed case-insensitively."""
    assert parse_severity(value) is expected


@pytest.mark.parametrize("value", ["banana", "", "info", None])
def test_parse_unknown_values(value):
    """Unknown values do not parse."""
    assert parse_severity(value) is None
