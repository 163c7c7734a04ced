"""Tests for document number formatting (supply_kernel/domain/numbering.py)."""

from datetime import datetime, timezone

import pytest
from hypothesis import given
from hypothesis import strategies as st

from supply_kernel.domain.numbering import candidate_numbers, format_number

ISSUED = datetime(2025, 3, 14, 9, 30, tzinfo=timezone.utc)


class TestFormatNumber:
    def test_layout(self):
        assert format_number("REQ", ISSUED, 123) == "REQ-202503-000123"

    def test_suffix_keeps_low_digits(self):
        assert format_number("ORD", ISSUED, 1741944600123) == "ORD-202503-600123"

    def test_custom_digit_count(self):
        assert format_number("SHP", ISSUED, 42, digits=4) == "SHP-202503-0042"

    def test_empty_prefix_rejected(self):
        with pytest.raises(ValueError):
            format_number("", ISSUED, 1)

    @given(st.integers(min_value=0, max_value=10**15), st.integers(min_value=1, max_value=12))
    def test_suffix_always_has_exact_width(self, suffix, digits):
        number = format_number("REQ", ISSUED, suffix, digits)
        assert len(number.rsplit("-", 1)[1]) == digits


class TestCandidateNumbers:
    def test_walks_suffix_forward(self):
        assert candidate_numbers("REQ", ISSUED, 999998, 3) == [
            "REQ-202503-999998",
            "REQ-202503-999999",
            "REQ-202503-000000",
        ]

    @given(st.integers(min_value=0, max_value=10**13), st.integers(min_value=1, max_value=50))
    def test_candidates_are_distinct(self, millis, attempts):
        candidates = candidate_numbers("ORD", ISSUED, millis, attempts)
        assert len(candidates) == attempts
        assert len(set(candidates)) == attempts
