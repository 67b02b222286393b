"""Tests for compliance/recommendations.py."""

from __future__ import annotations

from assessor.compliance.recommendations import select_timeframe, synthesize_recommendations
from assessor.models.analysis import GapItem, Severity, Timeframe
from assessor.models.framework import CoverageLevel


def _gap(code: str, severity: Severity, policy_type: str, category: str = "CAT") -> GapItem:
    coverage = CoverageLevel.PARTIAL if severity is Severity.MEDIUM else CoverageLevel.NONE
    return GapItem(
        control_id=code,
        control_code=code,
        control_title=f"Title {code}",
        category_code=category,
        coverage=coverage,
        severity=severity,
        description=f"Gap {code}",
        remediation=f"Fix {code}",
        suggested_policy_type=policy_type,
    )


class TestSelectTimeframe:
    def test_critical_is_immediate(self):
        gaps = [_gap("A", Severity.HIGH, "P"), _gap("B", Severity.CRITICAL, "P")]
        assert select_timeframe(gaps) is Timeframe.IMMEDIATE

    def test_high_is_short_term(self):
        assert select_timeframe([_gap("A", Severity.HIGH, "P")]) is Timeframe.SHORT_TERM

    def test_medium_only_is_medium_term(self):
        assert select_timeframe([_gap("A", Severity.MEDIUM, "P")]) is Timeframe.MEDIUM_TERM


class TestSynthesizeRecommendations:
    def test_groups_by_policy_type(self):
        gaps = [
            _gap("A1", Severity.HIGH, "Access Policy"),
            _gap("A2", Severity.MEDIUM, "Access Policy"),
            _gap("B1", Severity.HIGH, "Backup Policy"),
        ]
        recs = synthesize_recommendations(gaps)
        assert len(recs) == 2
        access = next(r for r in recs if r.policy_type == "Access Policy")
        assert access.related_gaps == ["A1", "A2"]

    def test_medium_only_groups_skipped(self):
        gaps = [
            _gap("A1", Severity.MEDIUM, "Access Policy"),
            _gap("B1", Severity.HIGH, "Backup Policy"),
        ]
        recs = synthesize_recommendations(gaps)
        assert [r.policy_type for r in recs] == ["Backup Policy"]

    def test_immediate_first_then_size(self):
        gaps = [
            _gap("C1", Severity.CRITICAL, "Crypto Policy"),
            _gap("H1", Severity.HIGH, "Hiring Policy"),
            _gap("L1", Severity.HIGH, "Logging Policy"),
            _gap("L2", Severity.HIGH, "Logging Policy"),
            _gap("L3", Severity.MEDIUM, "Logging Policy"),
        ]
        recs = synthesize_recommendations(gaps)
        assert [r.policy_type for r in recs] == ["Crypto Policy", "Logging Policy", "Hiring Policy"]
        assert [r.priority for r in recs] == [1, 2, 3]
        assert recs[0].timeframe is Timeframe.IMMEDIATE
        assert recs[1].timeframe is Timeframe.SHORT_TERM

    def test_ties_keep_gap_list_order(self):
        gaps = [
            _gap("X1", Severity.HIGH, "X Policy"),
            _gap("Y1", Severity.HIGH, "Y Policy"),
        ]
        recs = synthesize_recommendations(gaps)
        assert [r.policy_type for r in recs] == ["X Policy", "Y Policy"]

    def test_cap_drops_whole_groups(self):
        gaps = []
        for i in range(15):
            gaps.append(_gap(f"G{i}-1", Severity.HIGH, f"Policy {i:02d}"))
            gaps.append(_gap(f"G{i}-2", Severity.MEDIUM, f"Policy {i:02d}"))
        recs = synthesize_recommendations(gaps, max_count=10)
        assert len(recs) == 10
        assert all(len(r.related_gaps) == 2 for r in recs)

    def test_default_cap(self):
        gaps = [_gap(f"G{i}", Severity.HIGH, f"Policy {i}") for i in range(25)]
        assert len(synthesize_recommendations(gaps)) == 10

    def test_immediate_always_references_severe_gap(self):
        gaps = [
            _gap("C1", Severity.CRITICAL, "P1"),
            _gap("M1", Severity.MEDIUM, "P1"),
            _gap("H1", Severity.HIGH, "P2"),
        ]
        severity_by_code = {g.control_code: g.severity for g in gaps}
        for rec in synthesize_recommendations(gaps):
            if rec.timeframe is Timeframe.IMMEDIATE:
                assert any(
                    severity_by_code[code] in (Severity.CRITICAL, Severity.HIGH)
                    for code in rec.related_gaps
                )

    def test_title_and_description(self):
        recs = synthesize_recommendations([
            _gap("A1", Severity.HIGH, "Access Policy", category="AC"),
        ])
        assert recs[0].title == "Establish Access Policy"
        assert "1 gap (1 high)" in recs[0].description
        assert "AC" in recs[0].description

    def test_no_gaps(self):
        assert synthesize_recommendations([]) == []
