"""Benchmarking and accuracy validation module.

Provides tools for:
- Deterministic synthetic ground truth datasets and documents
- Entity-level precision / recall / F1 scoring of extraction results
- Aggregated benchmark reports with recommendations and trends
"""

from ocr_eval.benchmarks.ground_truth import (
    SeededRandom,
    SyntheticDocumentConfig,
    TestSuite,
    build_perfect_extraction,
    generate_ground_truth_dataset,
    generate_test_suite,
    render_synthetic_document,
)
from ocr_eval.benchmarks.metrics import AccuracyEvaluator, calculate_accuracy_metrics
from ocr_eval.benchmarks.report import (
    create_benchmark,
    create_benchmark_with_simulated_performance,
    format_report,
    generate_report,
)

__all__ = [
    "SeededRandom",
    "SyntheticDocumentConfig",
    "TestSuite",
    "build_perfect_extraction",
    "generate_ground_truth_dataset",
    "generate_test_suite",
    "render_synthetic_document",
    "AccuracyEvaluator",
    "calculate_accuracy_metrics",
    "create_benchmark",
    "create_benchmark_with_simulated_performance",
    "format_report",
    "generate_report",
]
