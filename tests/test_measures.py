"""Tests for measurable-value analysis."""

import pytest

from specforge.measures import (
    Measure,
    expected_result,
    find_measure,
    find_path,
    find_percentile,
    find_status,
    is_binary_checkable,
)


class TestFindMeasure:
    """Comparator + number + unit."""

    @pytest.mark.parametrize(
        "text,expected",
        [
            ("under 200 ms for the 95th percentile", "≤200ms p95"),
            ("respond within 2 seconds", "≤2s"),
            ("at least 99.9% uptime", "≥99.9%"),
            ("no more than 5 retries", "≤5 retries"),
            ("<= 300ms at p99", "≤300ms p99"),
            ("apply a 10% discount", "10%"),
        ],
    )
    def test_measures(self, text, expected):
        """Bounds are normalized to a compact form."""
        assert str(find_measure(text)) == expected

    def test_bare_number_is_not_a_measure(self):
        """A number with neither comparator nor unit is ignored."""
        assert find_measure("return 404") is None

    def test_measure_str(self):
        """Non-compact units are separated by a space."""
        assert str(Measure("≤", "3", "attempts")) == "≤3 attempts"


class TestFindStatus:
    """HTTP status detection."""

    @pytest.mark.parametrize(
        "text,expected",
        [
            ("404", 404),
            ("return 404 if absent", 404),
            ("responds with 201 Created", 201),
            ("reject with status 402", 402),
        ],
    )
    def test_statuses(self, text, expected):
        """Three-digit codes not followed by a unit are statuses."""
        assert find_status(text) == expected

    @pytest.mark.parametrize("text", ["within 200 ms", "more than 500 users", "costs $100"])
    def test_not_statuses(self, text):
        """Measured values and amounts are not statuses."""
        assert find_status(text) is None


class TestHelpers:
    """Paths, percentiles and binary checkability."""

    def test_find_path(self):
        """Paths are found and stripped of trailing punctuation."""
        assert find_path("redirect to /dashboard.") == "/dashboard"
        assert find_path("nothing here") is None

    def test_find_percentile(self):
        """Both '95th percentile' and 'p95' spellings are recognized."""
        assert find_percentile("the 95th percentile") == "95"
        assert find_percentile("p99 latency") == "99"

    @pytest.mark.parametrize(
        "text",
        ['show "Saved"', "the account is locked", "redirect to /home", "at most 3 attempts"],
    )
    def test_checkable(self, vocabulary, text):
        """Quoted text, enumerable states, paths and bounds are checkable."""
        assert is_binary_checkable(text, vocabulary)

    def test_not_checkable(self, vocabulary):
        """A subjective statement is not checkable."""
        assert not is_binary_checkable("the page looks nice", vocabulary)


class TestExpectedResult:
    """What a test would assert."""

    def test_status_wins_over_text(self, vocabulary):
        """A known status is asserted as such."""
        assert expected_result("returns the user", vocabulary, status=200) == "HTTP 200"

    def test_clarification_first(self, vocabulary):
        """The clarification is preferred over the original wording."""
        result = expected_result(
            "The system should be fast", vocabulary, clarification="under 200 ms"
        )
        assert result == "≤200ms"

    def test_none_when_unmeasurable(self, vocabulary):
        """Nothing concrete gives None."""
        assert expected_result("the page looks nice", vocabulary) is None
