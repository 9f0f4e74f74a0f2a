"""Test suite for data model validation.

Tests the accuracy formula, value bounds, immutability and the ground
truth count invariant.
"""

import pytest
from pydantic import ValidationError

from ocr_eval.core.datamodels import (
    ENTITY_CATEGORIES,
    AlertSeverity,
    DocumentComplexity,
    DocumentFormat,
    DocumentMetadata,
    DocumentQuality,
    DocumentTemplate,
    EntityAccuracy,
    EntityPosition,
    ExpectedProjectStatus,
    ExpectedRisk,
    ExtractedRisk,
    ExtractionResult,
    GroundTruthDataset,
    PerformanceAlert,
    Priority,
    RagStatus,
    RiskImpact,
    category_counts,
)


def _metadata():
    return DocumentMetadata(pages=2, format=DocumentFormat.PDF, quality=DocumentQuality.HIGH, text_density=0.5)


class TestEntityAccuracy:
    """Test EntityAccuracy.from_counts()."""

    def test_zero_counts_are_zero_not_nan(self):
        """Test TP=FP=FN=0 gives all scores 0."""
        accuracy = EntityAccuracy.from_counts(0, 0, 0)

        assert accuracy.precision == 0.0
        assert accuracy.recall == 0.0
        assert accuracy.f1_score == 0.0
        assert accuracy.accuracy_score == 0.0

    def test_known_values(self):
        """Test precision, recall, F1 and accuracy for TP=6, FP=2, FN=4."""
        accuracy = EntityAccuracy.from_counts(6, 2, 4)

        assert accuracy.precision == pytest.approx(0.75)
        assert accuracy.recall == pytest.approx(0.6)
        assert accuracy.f1_score == pytest.approx(2 * 0.75 * 0.6 / 1.35)
        assert accuracy.accuracy_score == pytest.approx(50.0)

    def test_no_true_positives(self):
        """Test precision and recall are 0 when nothing matched."""
        accuracy = EntityAccuracy.from_counts(0, 3, 5)

        assert accuracy.precision == 0.0
        assert accuracy.recall == 0.0
        assert accuracy.accuracy_score == 0.0

    @pytest.mark.parametrize("tp,fp,fn", [(1, 0, 0), (3, 7, 0), (0, 0, 9), (50, 1, 2), (2, 2, 2)])
    def test_bounds(self, tp, fp, fn):
        """Test every score stays within its range."""
        accuracy = EntityAccuracy.from_counts(tp, fp, fn)

        for value in (accuracy.precision, accuracy.recall, accuracy.f1_score):
            assert 0.0 <= value <= 1.0
        assert 0.0 <= accuracy.accuracy_score <= 100.0

    def test_out_of_range_rejected(self):
        """Test direct construction validates ranges."""
        with pytest.raises(ValidationError):
            EntityAccuracy(
                precision=1.5, recall=0.5, f1_score=0.5,
                true_positives=1, false_positives=0, false_negatives=0, accuracy_score=50,
            )


class TestGroundTruthDataset:
    """Test the dataset count invariant."""

    def test_total_must_match(self):
        """Test a wrong total is rejected."""
        status = ExpectedProjectStatus(
            project_name="Alpha", status=RagStatus.RED, position=EntityPosition(page=1, section="S")
        )

        with pytest.raises(ValidationError, match="does not match"):
            GroundTruthDataset(
                document_id="d",
                expected_project_statuses=[status],
                total_expected_entities=2,
                document_metadata=_metadata(),
            )

    def test_frozen(self):
        """Test datasets cannot be mutated."""
        dataset = GroundTruthDataset(document_id="d", total_expected_entities=0, document_metadata=_metadata())

        with pytest.raises(ValidationError):
            dataset.document_id = "other"

    def test_entity_lists_cannot_grow(self, high_quality_dataset):
        """Test entity collections reject in-place mutation, keeping the total consistent."""
        extra = ExpectedRisk(
            risk_description="Vendor delays",
            impact=RiskImpact.HIGH,
            position=EntityPosition(page=2, section="Risks"),
        )

        with pytest.raises(AttributeError):
            high_quality_dataset.expected_risks.append(extra)
        with pytest.raises(TypeError):
            high_quality_dataset.expected_risks[0] = extra

        assert high_quality_dataset.total_expected_entities == sum(category_counts(high_quality_dataset).values())

    def test_lists_coerced_to_tuples(self):
        """Test list input is stored as a tuple."""
        result = ExtractionResult(risks=[ExtractedRisk(confidence=0.5, risk_description="r")])

        assert isinstance(result.risks, tuple)
        with pytest.raises(AttributeError):
            result.risks.append(ExtractedRisk(confidence=0.5, risk_description="r2"))

    def test_page_is_one_indexed(self):
        """Test page 0 is rejected."""
        with pytest.raises(ValidationError):
            EntityPosition(page=0, section="S")


class TestExtractionResult:
    """Test ExtractionResult helpers."""

    def test_entity_count(self):
        """Test entity_count spans all categories."""
        result = ExtractionResult(risks=[
            ExtractedRisk(confidence=0.5, risk_description="r1"),
            ExtractedRisk(confidence=0.5, risk_description="r2"),
        ])

        assert result.entity_count == 2
        assert len(result.all_entities()) == 2

    def test_confidence_bounds(self):
        """Test confidence outside [0, 1] is rejected."""
        with pytest.raises(ValidationError):
            ExtractedRisk(confidence=1.2, risk_description="r")


class TestMiscModels:
    """Test enums, alerts and templates."""

    def test_priority_rank(self):
        """Test priority ordering."""
        assert Priority.HIGH.rank > Priority.MEDIUM.rank > Priority.LOW.rank

    def test_alert_str(self):
        """Test alert string rendering."""
        alert = PerformanceAlert(
            type=AlertSeverity.WARNING,
            metric="queue_length",
            current_value=12,
            threshold=10,
            message="Operation queue is backing up",
        )

        assert str(alert).startswith("WARNING | queue_length |")
        assert "current=12" in str(alert)

    def test_template_id_required(self):
        """Test blank template ids are rejected."""
        with pytest.raises(ValidationError):
            DocumentTemplate(
                id="  ",
                name="n",
                format=DocumentFormat.PDF,
                quality=DocumentQuality.HIGH,
                complexity=DocumentComplexity.SIMPLE,
                pages=1,
                text_density=0.5,
                template="x",
            )

    def test_categories(self):
        """Test the five entity categories."""
        assert len(ENTITY_CATEGORIES) == 5
