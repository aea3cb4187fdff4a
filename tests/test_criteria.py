"""Tests for acceptance criteria derivation."""

import logging

from conftest import DISCOUNT_TEXT, ENDPOINT_TEXT, LOGIN_TEXT
from specforge.criteria import (
    INCOMPLETE_REASON,
    CriteriaExtractor,
    criteria_signature,
    derive_criteria,
    unresolved_assumptions,
)
from specforge.extractor import extract
from specforge.synthesizer import synthesize
from specforge.types import (
    AcceptanceCriterion,
    Branch,
    Gap,
    GapCategory,
    IncompleteCriterion,
    Section,
    SpecFormat,
)


class TestDerive:
    """One criterion per outcome branch."""

    def test_login_criterion(self):
        """The redirect is asserted by its path."""
        document = synthesize(extract(LOGIN_TEXT), SpecFormat.BEHAVIORAL)
        criteria = derive_criteria(document)
        assert len(criteria) == 1
        criterion = criteria[0]
        assert isinstance(criterion, AcceptanceCriterion)
        assert criterion.linked_statement_id == "s4"
        assert criterion.expected_result == "redirect to /dashboard"
        assert criterion.description == (
            "Scenario 'Users: log in with email and password': redirect to /dashboard; "
            "met when the result is redirect to /dashboard"
        )

    def test_endpoint_criteria_use_statuses(self):
        """Contract branches are asserted by HTTP status."""
        document = synthesize(extract(ENDPOINT_TEXT), SpecFormat.CONTRACT)
        criteria = derive_criteria(document)
        assert [(c.linked_statement_id, c.expected_result) for c in criteria] == [
            ("s3", "HTTP 200"),
            ("s4", "HTTP 404"),
        ]
        assert criteria[1].description == (
            "GET /users/{id} if absent: 404; met when the result is HTTP 404"
        )

    def test_rule_criteria_are_ranked(self):
        """Decision table criteria name their row rank and condition."""
        document = synthesize(extract(DISCOUNT_TEXT), SpecFormat.FUNCTIONAL)
        criteria = derive_criteria(document)
        assert [c.expected_result for c in criteria] == ["10%", "0%"]
        assert criteria[0].description.startswith("Rule 1 (the order total exceeds 100): ")
        assert criteria[1].description.startswith("Rule 2 (otherwise): ")

    def test_unmeasurable_branch_is_incomplete(self):
        """A branch with nothing to check against yields a marker, not a placeholder."""
        section = Section(
            "invariants",
            "Invariants",
            (Branch("s1", "invariant", "the page looks nice"),),
        )
        criteria = CriteriaExtractor().derive([section])
        assert len(criteria) == 1
        entry = criteria[0]
        assert isinstance(entry, IncompleteCriterion)
        assert entry.incomplete is True
        assert INCOMPLETE_REASON in entry.reason
        assert entry.note.startswith("Incomplete criterion for s1")

    def test_clarification_wins(self):
        """A clarified branch is asserted by its clarification."""
        section = Section(
            "invariants",
            "Invariants",
            (Branch("s1", "invariant", "The system should be fast", "under 200 ms for the 95th percentile"),),
        )
        criteria = CriteriaExtractor().derive([section])
        assert criteria[0].expected_result == "≤200ms p95"
        assert criteria[0].description == (
            "Invariant: The system should be fast; met when the result is ≤200ms p95"
        )

    def test_one_criterion_per_statement(self):
        """A statement rendered twice yields one criterion."""
        branch = Branch("s1", "then", "show status 200")
        sections = [Section("scenario", "A", (branch,)), Section("scenario", "B", (branch,))]
        assert len(CriteriaExtractor().derive(sections)) == 1

    def test_non_outcome_roles_are_skipped(self):
        """Given/when/condition steps produce no criteria."""
        section = Section(
            "scenario",
            "A",
            (Branch("s1", "given", "Users"), Branch("s2", "when", "log in")),
        )
        assert CriteriaExtractor().derive([section]) == []

    def test_counts_are_logged(self, caplog):
        """Derivation logs the criteria and incomplete counts."""
        section = Section(
            "invariants",
            "Invariants",
            (
                Branch("s1", "invariant", "the page looks nice"),
                Branch("s2", "invariant", "show status 200"),
            ),
        )
        with caplog.at_level(logging.DEBUG, logger="specforge.criteria"):
            CriteriaExtractor().derive([section])
        record = caplog.records[-1]
        assert record.getMessage() == "Derived criteria"
        assert record.structured_fields == {"criteria": 2, "incomplete": 1}


class TestAssumptions:
    """Unresolved assumptions."""

    def test_gaps_then_incomplete_notes(self):
        """Open gap questions come first, then incomplete-criterion notes."""
        gap = Gap(GapCategory.MISSING_NEGATIVE_PATH, ("s2",), "What if it fails?", blocking=False)
        incomplete = IncompleteCriterion("s4", "no value")
        notes = unresolved_assumptions([gap], [incomplete])
        assert notes == ["What if it fails?", incomplete.note]


class TestSignature:
    """Comparable criteria lists."""

    def test_signature_distinguishes_entries(self):
        """Complete and incomplete entries compare by their content."""
        complete = AcceptanceCriterion("d", "s1", "HTTP 200")
        incomplete = IncompleteCriterion("s1", "no value")
        assert criteria_signature([complete]) == [("s1", "HTTP 200", "d")]
        assert criteria_signature([incomplete]) == [("s1", None, "no value")]
