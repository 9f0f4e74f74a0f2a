"""Accuracy metrics for entity extraction benchmarking.

Provides quantitative measurements for:
- Entity matching per category (project status, risk, financial, milestone, team)
- Precision / recall / F1 from true/false positive/negative counts
- Extraction quality heuristics (confidence, OCR text noise, structure)
"""

import re
from typing import Callable, List, Optional, Sequence, TypeVar

from loguru import logger

from ocr_eval.core.datamodels import (
    AccuracyMetrics,
    ConfidenceDistribution,
    EntityAccuracy,
    EntityTypeAccuracy,
    ExpectedFinancial,
    ExpectedMilestone,
    ExpectedProjectStatus,
    ExpectedRisk,
    ExpectedTeamUpdate,
    ExtractedFinancial,
    ExtractedMilestone,
    ExtractedProjectStatus,
    ExtractedRisk,
    ExtractedTeamUpdate,
    ExtractionResult,
    GroundTruthDataset,
    QualityMetrics,
)


E = TypeVar("E")
X = TypeVar("X")

RISK_SIMILARITY_THRESHOLD = 0.7
MILESTONE_SIMILARITY_THRESHOLD = 0.8
FINANCIAL_TOLERANCE = 0.1  # relative
UTILIZATION_TOLERANCE = 5.0  # percentage points

HIGH_CONFIDENCE = 0.8
MEDIUM_CONFIDENCE = 0.6
VERY_LOW_CONFIDENCE = 0.4

OCR_NOISE_PATTERNS = [
    re.compile(r"[Il1|]{3,}"),  # runs of ambiguous glyphs
    re.compile(r"[^\w\s.,!?;:()\-'\"]"),  # unusual characters
    re.compile(r"\s{3,}"),  # excessive whitespace
    re.compile(r"[A-Z]{10,}"),  # very long uppercase runs
]
OCR_NOISE_PENALTY = 5
WORD_LENGTH_PENALTY = 20
SENTENCE_LENGTH_PENALTY = 15

SPARSE_EXTRACTION_PENALTY = 30
LOW_CONFIDENCE_PENALTY = 25
SNIPPET_LENGTH_PENALTY = 20


class AccuracyEvaluator:
    """Scores an extraction result against a ground truth dataset.

    Every method is pure; the same inputs always give the same metrics.

    Usage:
        metrics = AccuracyEvaluator.score(ground_truth, extraction_result)
        print(metrics.overall.f1_score)
    """

    # =========================================================================
    # Text helpers
    # =========================================================================

    @staticmethod
    def normalize_text(text: Optional[str]) -> str:
        """Normalize text for fair comparison.

        Args:
            text: Input text string

        Returns:
            Normalized text (lowercase, single spaces, trimmed)
        """
        if not text:
            return ""
        normalized = text.lower()
        normalized = re.sub(r'\s+', ' ', normalized)
        return normalized.strip()

    @staticmethod
    def text_similarity(text_a: Optional[str], text_b: Optional[str]) -> float:
        """Word-overlap (Jaccard) similarity of two strings.

        Args:
            text_a: First text
            text_b: Second text

        Returns:
            |words_a & words_b| / |words_a | words_b|, 0.0 when both are empty
        """
        words_a = set(AccuracyEvaluator.normalize_text(text_a).split())
        words_b = set(AccuracyEvaluator.normalize_text(text_b).split())

        union = words_a | words_b
        if not union:
            return 0.0
        return len(words_a & words_b) / len(union)

    # =========================================================================
    # Matching rules
    # =========================================================================

    @staticmethod
    def _same_name(a: Optional[str], b: Optional[str]) -> bool:
        return AccuracyEvaluator.normalize_text(a) == AccuracyEvaluator.normalize_text(b)

    @staticmethod
    def _within_tolerance(expected: Optional[float], extracted: Optional[float]) -> bool:
        # Zero or missing amounts never count as evidence.
        if not expected or not extracted:
            return False
        return abs(extracted - expected) < abs(expected) * FINANCIAL_TOLERANCE

    @staticmethod
    def project_status_matches(exp: ExpectedProjectStatus, ext: ExtractedProjectStatus) -> bool:
        return AccuracyEvaluator._same_name(ext.project_name, exp.project_name) and ext.status == exp.status

    @staticmethod
    def risk_matches(exp: ExpectedRisk, ext: ExtractedRisk) -> bool:
        return (
            AccuracyEvaluator.text_similarity(ext.risk_description, exp.risk_description)
            > RISK_SIMILARITY_THRESHOLD
            and ext.impact == exp.impact
        )

    @staticmethod
    def financial_matches(exp: ExpectedFinancial, ext: ExtractedFinancial) -> bool:
        if not AccuracyEvaluator._same_name(ext.project_name, exp.project_name):
            return False
        return (
            AccuracyEvaluator._within_tolerance(exp.budget_amount, ext.budget_amount)
            or AccuracyEvaluator._within_tolerance(exp.actual_amount, ext.actual_amount)
            or AccuracyEvaluator._within_tolerance(exp.forecast_amount, ext.forecast_amount)
        )

    @staticmethod
    def milestone_matches(exp: ExpectedMilestone, ext: ExtractedMilestone) -> bool:
        return (
            AccuracyEvaluator.text_similarity(ext.milestone_name, exp.milestone_name)
            > MILESTONE_SIMILARITY_THRESHOLD
            and AccuracyEvaluator._same_name(ext.project_name, exp.project_name)
        )

    @staticmethod
    def team_update_matches(exp: ExpectedTeamUpdate, ext: ExtractedTeamUpdate) -> bool:
        return (
            AccuracyEvaluator._same_name(ext.team_name, exp.team_name)
            and ext.utilization is not None
            and abs(ext.utilization - exp.utilization) < UTILIZATION_TOLERANCE
        )

    @staticmethod
    def find_matches(
        expected: Sequence[E],
        extracted: Sequence[X],
        is_match: Callable[[E, X], bool]
    ) -> List[tuple]:
        """Pair expected entities with extracted ones.

        Each expected entity takes the first extracted entity that satisfies
        `is_match` and has not already been paired. Matching is one-to-one,
        so true positives never exceed the number of extracted entities.

        Args:
            expected: Ground truth entities
            extracted: Entities produced by the pipeline
            is_match: Category-specific equivalence rule

        Returns:
            List of (expected, extracted) pairs
        """
        consumed = set()
        matches = []

        for exp in expected:
            for index, ext in enumerate(extracted):
                if index in consumed:
                    continue
                if is_match(exp, ext):
                    consumed.add(index)
                    matches.append((exp, ext))
                    break

        return matches

    @staticmethod
    def category_accuracy(
        expected: Sequence[E],
        extracted: Sequence[X],
        is_match: Callable[[E, X], bool]
    ) -> EntityAccuracy:
        """EntityAccuracy for one category from its match count."""
        true_positives = len(AccuracyEvaluator.find_matches(expected, extracted, is_match))
        return EntityAccuracy.from_counts(
            true_positives=true_positives,
            false_positives=len(extracted) - true_positives,
            false_negatives=len(expected) - true_positives,
        )

    # =========================================================================
    # Quality heuristics
    # =========================================================================

    @staticmethod
    def assess_text_quality(raw_text: Optional[str]) -> float:
        """Score raw OCR text for signs of scan noise.

        Starts at 100 and deducts a fixed penalty per noise-pattern match,
        plus penalties for implausible word and sentence lengths.

        Args:
            raw_text: Recognized text of the whole document

        Returns:
            Score between 0.0 and 100.0 (0.0 for empty text)
        """
        if not raw_text or not raw_text.strip():
            return 0.0

        score = 100.0

        for pattern in OCR_NOISE_PATTERNS:
            score -= len(pattern.findall(raw_text)) * OCR_NOISE_PENALTY

        words = raw_text.split()
        avg_word_length = sum(len(w) for w in words) / len(words)
        if avg_word_length < 2 or avg_word_length > 15:
            score -= WORD_LENGTH_PENALTY

        sentences = [s for s in re.split(r"[.!?]+", raw_text) if s.strip()]
        if sentences:
            avg_sentence_length = sum(len(s.split()) for s in sentences) / len(sentences)
            if avg_sentence_length < 3 or avg_sentence_length > 50:
                score -= SENTENCE_LENGTH_PENALTY

        return max(0.0, min(100.0, score))

    @staticmethod
    def assess_structural_accuracy(extraction: ExtractionResult) -> float:
        """Score how plausible the shape of an extraction is.

        Penalizes sparse extraction, a majority of very low confidence
        entities, and text spans that are too short or too long.

        Args:
            extraction: Extraction result to inspect

        Returns:
            Score between 0.0 and 100.0
        """
        score = 100.0
        entities = extraction.all_entities()

        if len(entities) / 5 < 1:
            score -= SPARSE_EXTRACTION_PENALTY

        if entities:
            low_count = sum(1 for e in entities if e.confidence < VERY_LOW_CONFIDENCE)
            if low_count / len(entities) > 0.5:
                score -= LOW_CONFIDENCE_PENALTY

        avg_snippet_length = (
            sum(len(e.text) for e in entities) / len(entities) if entities else 0.0
        )
        if avg_snippet_length < 10 or avg_snippet_length > 200:
            score -= SNIPPET_LENGTH_PENALTY

        return max(0.0, min(100.0, score))

    @staticmethod
    def quality_metrics(extraction: ExtractionResult) -> QualityMetrics:
        """Confidence statistics and quality heuristics for an extraction."""
        confidences = [e.confidence for e in extraction.all_entities()]
        n = len(confidences)

        if n:
            average_confidence = sum(confidences) / n
            distribution = ConfidenceDistribution(
                high=sum(1 for c in confidences if c > HIGH_CONFIDENCE) / n * 100,
                medium=sum(1 for c in confidences if MEDIUM_CONFIDENCE <= c <= HIGH_CONFIDENCE) / n * 100,
                low=sum(1 for c in confidences if c < MEDIUM_CONFIDENCE) / n * 100,
            )
        else:
            average_confidence = 0.0
            distribution = ConfidenceDistribution()

        return QualityMetrics(
            average_confidence=min(1.0, average_confidence),
            confidence_distribution=distribution,
            text_quality_score=AccuracyEvaluator.assess_text_quality(extraction.raw_text),
            structural_accuracy=AccuracyEvaluator.assess_structural_accuracy(extraction),
        )

    # =========================================================================
    # Scoring
    # =========================================================================

    @staticmethod
    def score(
        ground_truth: GroundTruthDataset,
        extraction: ExtractionResult
    ) -> AccuracyMetrics:
        """Score one extraction result against one ground truth dataset.

        Args:
            ground_truth: Expected entities
            extraction: Entities produced by the pipeline

        Returns:
            AccuracyMetrics with overall, per-category and quality metrics
        """
        by_type = EntityTypeAccuracy(
            project_statuses=AccuracyEvaluator.category_accuracy(
                ground_truth.expected_project_statuses,
                extraction.project_statuses,
                AccuracyEvaluator.project_status_matches,
            ),
            risks=AccuracyEvaluator.category_accuracy(
                ground_truth.expected_risks,
                extraction.risks,
                AccuracyEvaluator.risk_matches,
            ),
            financials=AccuracyEvaluator.category_accuracy(
                ground_truth.expected_financials,
                extraction.financials,
                AccuracyEvaluator.financial_matches,
            ),
            milestones=AccuracyEvaluator.category_accuracy(
                ground_truth.expected_milestones,
                extraction.milestones,
                AccuracyEvaluator.milestone_matches,
            ),
            team_updates=AccuracyEvaluator.category_accuracy(
                ground_truth.expected_team_updates,
                extraction.team_updates,
                AccuracyEvaluator.team_update_matches,
            ),
        )

        categories = [accuracy for _, accuracy in by_type.items()]
        overall = EntityAccuracy.from_counts(
            true_positives=sum(a.true_positives for a in categories),
            false_positives=sum(a.false_positives for a in categories),
            false_negatives=sum(a.false_negatives for a in categories),
        )

        logger.debug(
            f"Scored {ground_truth.document_id}: "
            f"P={overall.precision:.3f} R={overall.recall:.3f} F1={overall.f1_score:.3f}"
        )

        return AccuracyMetrics(
            overall=overall,
            by_entity_type=by_type,
            quality_metrics=AccuracyEvaluator.quality_metrics(extraction),
        )


def calculate_accuracy_metrics(
    ground_truth: GroundTruthDataset,
    extraction: ExtractionResult
) -> AccuracyMetrics:
    """Module-level shortcut for AccuracyEvaluator.score."""
    return AccuracyEvaluator.score(ground_truth, extraction)
