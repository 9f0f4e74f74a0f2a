"""Core data models for the OCR evaluation toolkit.

This module defines the Pydantic models for ground truth datasets, the
entities an extraction pipeline produces, accuracy and performance
measurements, alerts, benchmarks and benchmark reports.

Everything except the monitor's own bookkeeping is a frozen value object:
built once, never mutated afterward. Collection fields are tuples so the
entity lists cannot be changed in place either.
"""

from datetime import datetime
from enum import Enum
from typing import Dict, List, Optional, Tuple

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator


ENTITY_CATEGORIES = (
    "project_statuses",
    "risks",
    "financials",
    "milestones",
    "team_updates",
)


class FrozenModel(BaseModel):
    """Base for immutable value objects."""

    model_config = ConfigDict(frozen=True)


# =========================================================================
# Enumerations
# =========================================================================

class RagStatus(str, Enum):
    """Project RAG (red/amber/green) status values."""

    RED = "red"
    AMBER = "amber"
    GREEN = "green"
    BLUE = "blue"
    COMPLETE = "complete"


class RiskImpact(str, Enum):
    """Impact rating of a risk."""

    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"
    CRITICAL = "critical"


class RiskProbability(str, Enum):
    """Probability rating of a risk."""

    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"


class MilestoneStatus(str, Enum):
    """Delivery status of a milestone."""

    NOT_STARTED = "not-started"
    IN_PROGRESS = "in-progress"
    COMPLETED = "completed"
    DELAYED = "delayed"


class DocumentFormat(str, Enum):
    """Source document formats."""

    PDF = "pdf"
    PPTX = "pptx"
    IMAGE = "image"


class DocumentQuality(str, Enum):
    """Scan / render quality tier of a document."""

    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"


class DocumentComplexity(str, Enum):
    """Complexity tier; drives how many entities a template yields."""

    SIMPLE = "simple"
    MODERATE = "moderate"
    COMPLEX = "complex"


class OperationStage(str, Enum):
    """Lifecycle stages of a tracked pipeline operation."""

    OCR = "ocr"
    EXTRACTION = "extraction"
    MAPPING = "mapping"
    COMPLETE = "complete"


class AlertSeverity(str, Enum):
    """Alert severity levels."""

    WARNING = "warning"
    ERROR = "error"
    CRITICAL = "critical"


class Priority(str, Enum):
    """Priority of an improvement area."""

    HIGH = "high"
    MEDIUM = "medium"
    LOW = "low"

    @property
    def rank(self) -> int:
        return {"high": 3, "medium": 2, "low": 1}[self.value]


class TrendDirection(str, Enum):
    """Direction of accuracy over a series of benchmarks."""

    IMPROVING = "improving"
    DECLINING = "declining"
    STABLE = "stable"


# =========================================================================
# Ground truth
# =========================================================================

class EntityPosition(FrozenModel):
    """Where an expected entity sits in the source document.

    Used for traceability only, never for matching.
    """

    page: int = Field(..., ge=1, description="Page number (1-indexed)")
    section: str = Field(..., description="Section heading the entity belongs to")


class ExpectedProjectStatus(FrozenModel):
    project_name: str
    status: RagStatus
    rag_reason: Optional[str] = None
    position: EntityPosition


class ExpectedRisk(FrozenModel):
    risk_description: str
    impact: RiskImpact
    probability: Optional[RiskProbability] = None
    mitigation: Optional[str] = None
    position: EntityPosition


class ExpectedFinancial(FrozenModel):
    project_name: str
    budget_amount: Optional[float] = None
    actual_amount: Optional[float] = None
    forecast_amount: Optional[float] = None
    currency: str = "USD"
    position: EntityPosition


class ExpectedMilestone(FrozenModel):
    milestone_name: str
    project_name: str
    target_date: str = Field(..., description="ISO date (YYYY-MM-DD)")
    status: MilestoneStatus
    position: EntityPosition


class ExpectedTeamUpdate(FrozenModel):
    team_name: str
    utilization: float = Field(..., ge=0, description="Utilization percentage")
    commentary: Optional[str] = None
    position: EntityPosition


class DocumentMetadata(FrozenModel):
    """Metadata describing the (synthetic or real) source document."""

    pages: int = Field(..., ge=1, description="Total number of pages")
    format: DocumentFormat
    quality: DocumentQuality
    text_density: float = Field(..., ge=0.0, le=1.0, description="Share of the page covered by text")


class GroundTruthDataset(FrozenModel):
    """What a document *should* yield when extracted perfectly."""

    document_id: str
    expected_project_statuses: Tuple[ExpectedProjectStatus, ...] = Field(default_factory=tuple)
    expected_risks: Tuple[ExpectedRisk, ...] = Field(default_factory=tuple)
    expected_financials: Tuple[ExpectedFinancial, ...] = Field(default_factory=tuple)
    expected_milestones: Tuple[ExpectedMilestone, ...] = Field(default_factory=tuple)
    expected_team_updates: Tuple[ExpectedTeamUpdate, ...] = Field(default_factory=tuple)
    total_expected_entities: int = Field(..., ge=0)
    document_metadata: DocumentMetadata

    @model_validator(mode="after")
    def validate_total(self) -> "GroundTruthDataset":
        """Ensure the stored total matches the recomputed sum of the lists."""
        counted = (
            len(self.expected_project_statuses)
            + len(self.expected_risks)
            + len(self.expected_financials)
            + len(self.expected_milestones)
            + len(self.expected_team_updates)
        )
        if counted != self.total_expected_entities:
            raise ValueError(
                f"total_expected_entities={self.total_expected_entities} "
                f"does not match entity lists ({counted})"
            )
        return self


# =========================================================================
# Extraction output (produced by the external pipeline)
# =========================================================================

class ExtractedEntity(FrozenModel):
    """Common fields of everything the extraction pipeline emits."""

    text: str = Field(default="", description="OCR text span the entity was read from")
    confidence: float = Field(..., ge=0.0, le=1.0, description="Extraction confidence")


class ExtractedProjectStatus(ExtractedEntity):
    project_name: str
    status: RagStatus
    rag_reason: Optional[str] = None


class ExtractedRisk(ExtractedEntity):
    risk_description: str
    impact: Optional[RiskImpact] = None
    probability: Optional[RiskProbability] = None
    mitigation: Optional[str] = None
    category: Optional[str] = None


class ExtractedFinancial(ExtractedEntity):
    project_name: str
    budget_amount: Optional[float] = None
    actual_amount: Optional[float] = None
    forecast_amount: Optional[float] = None
    variance: Optional[float] = None
    currency: Optional[str] = None


class ExtractedMilestone(ExtractedEntity):
    milestone_name: str
    project_name: str = ""
    target_date: Optional[str] = None
    actual_date: Optional[str] = None
    status: Optional[MilestoneStatus] = None


class ExtractedTeamUpdate(ExtractedEntity):
    team_name: str
    utilization: Optional[float] = None
    commentary: Optional[str] = None


class ExtractionResult(FrozenModel):
    """Output of the OCR + entity-extraction pipeline for one document."""

    raw_text: str = ""
    project_statuses: Tuple[ExtractedProjectStatus, ...] = Field(default_factory=tuple)
    risks: Tuple[ExtractedRisk, ...] = Field(default_factory=tuple)
    financials: Tuple[ExtractedFinancial, ...] = Field(default_factory=tuple)
    milestones: Tuple[ExtractedMilestone, ...] = Field(default_factory=tuple)
    team_updates: Tuple[ExtractedTeamUpdate, ...] = Field(default_factory=tuple)

    def all_entities(self) -> List[ExtractedEntity]:
        """All extracted entities across the five categories, in category order."""
        return [
            *self.project_statuses,
            *self.risks,
            *self.financials,
            *self.milestones,
            *self.team_updates,
        ]

    @property
    def entity_count(self) -> int:
        return len(self.all_entities())


# =========================================================================
# Accuracy
# =========================================================================

class EntityAccuracy(FrozenModel):
    """Retrieval metrics for one entity category (or all of them)."""

    precision: float = Field(..., ge=0.0, le=1.0)
    recall: float = Field(..., ge=0.0, le=1.0)
    f1_score: float = Field(..., ge=0.0, le=1.0)
    true_positives: int = Field(..., ge=0)
    false_positives: int = Field(..., ge=0)
    false_negatives: int = Field(..., ge=0)
    accuracy_score: float = Field(..., ge=0.0, le=100.0, description="100 * TP / (TP + FP + FN)")

    @classmethod
    def from_counts(
        cls,
        true_positives: int,
        false_positives: int,
        false_negatives: int
    ) -> "EntityAccuracy":
        """Compute precision, recall, F1 and accuracy score from raw counts.

        This is the only place accuracy scores are derived; every score in a
        report goes through it so percentages never drift from counts.

        Args:
            true_positives: Expected entities that found a match
            false_positives: Extracted entities that matched nothing
            false_negatives: Expected entities that were not found

        Returns:
            EntityAccuracy with all scores 0 when every count is 0
        """
        tp, fp, fn = true_positives, false_positives, false_negatives
        precision = tp / (tp + fp) if tp > 0 else 0.0
        recall = tp / (tp + fn) if tp > 0 else 0.0
        f1_score = (
            2 * precision * recall / (precision + recall)
            if precision + recall > 0 else 0.0
        )
        total = tp + fp + fn
        accuracy_score = tp / total * 100 if total > 0 else 0.0

        return cls(
            precision=precision,
            recall=recall,
            f1_score=f1_score,
            true_positives=tp,
            false_positives=fp,
            false_negatives=fn,
            accuracy_score=accuracy_score,
        )


class EntityTypeAccuracy(FrozenModel):
    """Per-category accuracy breakdown."""

    project_statuses: EntityAccuracy
    risks: EntityAccuracy
    financials: EntityAccuracy
    milestones: EntityAccuracy
    team_updates: EntityAccuracy

    def items(self) -> List[tuple]:
        """(category name, EntityAccuracy) pairs in category order."""
        return [(name, getattr(self, name)) for name in ENTITY_CATEGORIES]


class ConfidenceDistribution(FrozenModel):
    """Share of extracted entities per confidence bucket, in percent."""

    high: float = Field(0.0, ge=0.0, le=100.0, description="confidence > 0.8")
    medium: float = Field(0.0, ge=0.0, le=100.0, description="0.6 <= confidence <= 0.8")
    low: float = Field(0.0, ge=0.0, le=100.0, description="confidence < 0.6")


class QualityMetrics(FrozenModel):
    average_confidence: float = Field(..., ge=0.0, le=1.0)
    confidence_distribution: ConfidenceDistribution
    text_quality_score: float = Field(..., ge=0.0, le=100.0)
    structural_accuracy: float = Field(..., ge=0.0, le=100.0)


class AccuracyMetrics(FrozenModel):
    """Full scoring of one extraction result against one ground truth.

    `overall` is computed from the summed counts of all five categories,
    not by averaging the category scores.
    """

    overall: EntityAccuracy
    by_entity_type: EntityTypeAccuracy
    quality_metrics: QualityMetrics


# =========================================================================
# Performance
# =========================================================================

class PerformanceMetrics(FrozenModel):
    """Resource usage of one completed pipeline operation."""

    processing_time: float = Field(..., ge=0, description="Total elapsed time in milliseconds")
    memory_usage: float = Field(..., ge=0, description="Memory growth during the operation in bytes")
    ocr_time: float = Field(0.0, ge=0, description="Milliseconds spent in the OCR stage")
    extraction_time: float = Field(0.0, ge=0, description="Milliseconds spent extracting entities")
    mapping_time: float = Field(0.0, ge=0, description="Milliseconds spent mapping entities")
    throughput: float = Field(0.0, ge=0, description="Entities per second")


class PerformanceSnapshot(FrozenModel):
    """Point-in-time sample of the monitor's state."""

    timestamp: datetime
    memory_usage: int = Field(..., ge=0, description="Process memory in bytes")
    active_operations: int = Field(..., ge=0)
    queue_length: int = Field(..., ge=0)
    error_rate: float = Field(..., ge=0.0, le=100.0, description="Failed operations in percent")
    cpu_usage: Optional[float] = None


class PerformanceAlert(FrozenModel):
    """One threshold breach or pipeline failure."""

    type: AlertSeverity
    metric: str
    current_value: float
    threshold: float
    timestamp: datetime = Field(default_factory=datetime.now)
    message: str
    suggestions: Tuple[str, ...] = Field(default_factory=tuple)

    def __str__(self) -> str:
        return (
            f"{self.type.value.upper()} | {self.metric} | {self.message} "
            f"(current={self.current_value:g}, threshold={self.threshold:g})"
        )


# =========================================================================
# Benchmarks and reports
# =========================================================================

class AccuracyBenchmark(FrozenModel):
    """One scored extraction run: accuracy and performance together."""

    ground_truth: GroundTruthDataset
    extraction_result: ExtractionResult
    accuracy: AccuracyMetrics
    performance: PerformanceMetrics
    timestamp: datetime
    document_type: str
    document_id: str


class DateRange(FrozenModel):
    start: datetime
    end: datetime


class DocumentScore(FrozenModel):
    document_id: str
    accuracy: float


class BenchmarkSummary(FrozenModel):
    total_documents: int = Field(..., ge=1)
    average_accuracy: AccuracyMetrics
    average_performance: PerformanceMetrics
    date_range: DateRange
    best_performing: DocumentScore
    worst_performing: DocumentScore


class ImprovementArea(FrozenModel):
    area: str
    current_score: float
    target_score: float
    priority: Priority
    suggested_actions: Tuple[str, ...] = Field(default_factory=tuple)


class SignificantChange(FrozenModel):
    metric: str
    change: float = Field(..., description="Percent change from the previous benchmark")
    date: datetime


class AccuracyTrend(FrozenModel):
    trend: TrendDirection
    change_rate: float = Field(..., description="Percent change from first to last benchmark")
    significant_changes: Tuple[SignificantChange, ...] = Field(default_factory=tuple)


class BenchmarkReport(FrozenModel):
    summary: BenchmarkSummary
    benchmarks: Tuple[AccuracyBenchmark, ...]
    recommendations: Tuple[str, ...] = Field(default_factory=tuple)
    improvement_areas: Tuple[ImprovementArea, ...] = Field(default_factory=tuple)
    trend: AccuracyTrend


# =========================================================================
# Templates
# =========================================================================

class DocumentTemplate(FrozenModel):
    """A synthetic document layout the ground truth generator can fill."""

    id: str
    name: str
    format: DocumentFormat
    quality: DocumentQuality
    complexity: DocumentComplexity
    pages: int = Field(..., ge=1)
    text_density: float = Field(..., ge=0.0, le=1.0)
    template: str

    @field_validator('id')
    @classmethod
    def validate_id(cls, v: str) -> str:
        """Ensure template id is not empty."""
        if not v or not v.strip():
            raise ValueError("Template id cannot be empty")
        return v


def category_counts(dataset: GroundTruthDataset) -> Dict[str, int]:
    """Number of expected entities per category."""
    return {
        "project_statuses": len(dataset.expected_project_statuses),
        "risks": len(dataset.expected_risks),
        "financials": len(dataset.expected_financials),
        "milestones": len(dataset.expected_milestones),
        "team_updates": len(dataset.expected_team_updates),
    }
