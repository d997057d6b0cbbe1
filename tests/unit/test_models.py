"""
Unit tests for the specgate data models.

Covers phase parsing and ordering, gate overrides, and the JSON forms of
statuses and iteration records.
"""

import pytest

from specgate.models import (
    AssessmentResult,
    ContentDelta,
    IterationRecord,
    PHASE_ORDER,
    Phase,
    QualityAssessment,
    QualityDimension,
    Severity,
    UnknownPhaseError,
    WorkflowGate,
    WorkflowStatus,
)


class TestPhase:
    """Test cases for the Phase enumeration."""

    def test_parse_accepts_names_case_insensitively(self):
        assert Phase.parse("spec") is Phase.SPEC
        assert Phase.parse(" PLAN ") is Phase.PLAN
        assert Phase.parse(Phase.TASKS) is Phase.TASKS

    def test_parse_rejects_unknown_phase(self):
        with pytest.raises(UnknownPhaseError, match="Unknown phase: deploy"):
            Phase.parse("deploy")

    def test_unknown_phase_error_is_value_error(self):
        with pytest.raises(ValueError):
            Phase.parse("")

    def test_order_and_next_phase(self):
        assert PHASE_ORDER == (Phase.SPEC, Phase.PLAN, Phase.TASKS, Phase.IMPLEMENT)
        assert Phase.SPEC.next_phase() is Phase.PLAN
        assert Phase.TASKS.next_phase() is Phase.IMPLEMENT
        assert Phase.IMPLEMENT.next_phase() is None

    def test_directory_backed_phases(self):
        assert not Phase.SPEC.is_directory_backed
        assert not Phase.PLAN.is_directory_backed
        assert Phase.TASKS.is_directory_backed
        assert Phase.IMPLEMENT.is_directory_backed


class TestWorkflowGate:
    """Test cases for WorkflowGate."""

    def test_with_overrides_replaces_only_given_fields(self):
        gate = WorkflowGate(Phase.SPEC, 75, 2, ('user_definition',), ('insufficient_detail',))

        changed = gate.with_overrides(required_quality=90)

        assert changed.required_quality == 90
        assert changed.required_iterations == 2
        assert changed.required_content == ('user_definition',)
        assert gate.required_quality == 75

    def test_gate_is_immutable(self):
        gate = WorkflowGate(Phase.PLAN, 80, 1)
        with pytest.raises(Exception):
            gate.required_quality = 10


class TestAssessmentModels:
    """Test cases for quality assessment models."""

    def _assessment(self):
        return QualityAssessment(
            phase=Phase.SPEC,
            overall_score=66,
            dimensions=[QualityDimension("Completeness", 0.475, 0.30, ["User Definition: 50%"], ["gap"])],
            severity=Severity.MAJOR,
            recommendations=["gap"],
            requires_iteration=True
        )

    def test_dimension_percentage(self):
        assert QualityDimension("Clarity", 0.5, 0.25).percentage == 50

    def test_assessment_to_dict(self):
        data = self._assessment().to_dict()

        assert data["phase"] == "spec"
        assert data["severity"] == "major"
        assert data["dimensions"][0]["name"] == "Completeness"
        assert data["requires_iteration"] is True

    def test_misalignments_default_to_empty(self):
        assessment = self._assessment()
        assert assessment.misalignments == []

        assessment.misalignments.append("Deployment configuration should be in technical planning phase")
        assert assessment.to_dict()["misalignments"] == [
            "Deployment configuration should be in technical planning phase"
        ]

    def test_result_wrappers(self):
        confident = AssessmentResult.confident(self._assessment())
        degraded = AssessmentResult.degraded_from(self._assessment(), "analyzer failed")

        assert not confident.degraded and confident.error is None
        assert degraded.degraded and degraded.error == "analyzer failed"
        assert degraded.overall_score == 66


class TestWorkflowStatus:
    """Test cases for WorkflowStatus."""

    def test_defaults_fail_closed(self):
        status = WorkflowStatus(current_phase="spec", can_proceed=False)

        assert status.quality_score == 0.0
        assert status.document_exists is False
        assert status.to_dict()["blocking_reasons"] == []


class TestIterationRecord:
    """Test cases for IterationRecord persistence."""

    def test_create_stamps_length_and_time(self):
        record = IterationRecord.create("# Spec\nbody", 42, recommendations=["Add goals"])

        assert record.content_length == len("# Spec\nbody")
        assert record.quality_score == 42
        assert record.recommendations == ["Add goals"]
        assert record.timestamp
        assert record.analysis is None

    def test_to_dict_uses_persisted_key_names(self):
        data = IterationRecord.create("text", 10).to_dict()

        assert data["contentLength"] == 4
        assert data["qualityScore"] == 10
        assert "timestamp" in data

    def test_from_dict_tolerates_minimal_records(self):
        record = IterationRecord.from_dict({
            "timestamp": "2024-01-01T00:00:00",
            "contentLength": 120,
            "qualityScore": 55
        })

        assert record.content_length == 120
        assert record.quality_score == 55.0
        assert record.content == ""
        assert record.recommendations == []
        assert record.analysis is None

    def test_content_delta_net_change(self):
        delta = ContentDelta(total_added_words=30, total_removed_words=12)
        assert delta.net_word_change == 18
        assert delta.to_dict()["net_word_change"] == 18
