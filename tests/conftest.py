"""Shared fixtures for the OCR evaluation test suite."""

from datetime import datetime

import pytest

from ocr_eval.benchmarks.ground_truth import (
    SyntheticDocumentConfig,
    build_perfect_extraction,
    generate_ground_truth_dataset,
)
from ocr_eval.benchmarks.templates import SAMPLE_DOCUMENT_CONFIGS
from ocr_eval.core.alerts import AlertChannel, AlertLog
from ocr_eval.core.config_manager import AlertConfig, PerformanceThresholds
from ocr_eval.core.datamodels import PerformanceMetrics
from ocr_eval.core.monitor import PerformanceMonitor


MB = 1024 * 1024


class FakeClock:
    """Manually advanced monotonic clock (seconds)."""

    def __init__(self, start: float = 100.0):
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


class FakeMemory:
    """Memory probe returning a settable byte count."""

    def __init__(self, value: int = 50 * MB):
        self.value = value

    def __call__(self) -> int:
        return self.value


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def memory():
    return FakeMemory()


@pytest.fixture
def alert_log():
    return AlertLog()


@pytest.fixture
def make_monitor(clock, memory, alert_log):
    """Factory for sampler-less monitors wired to the fake clock, memory and alert log."""
    created = []

    def factory(**threshold_overrides) -> PerformanceMonitor:
        config = AlertConfig(
            thresholds=PerformanceThresholds(**threshold_overrides),
            alert_channels=[AlertChannel.CALLBACK],
            callback=alert_log.record,
        )
        monitor = PerformanceMonitor(
            config,
            auto_start=False,
            clock=clock,
            memory_probe=memory,
        )
        created.append(monitor)
        return monitor

    yield factory

    for monitor in created:
        monitor.stop()


@pytest.fixture(autouse=True)
def reset_global_monitor():
    """Keep the process-wide monitor from leaking between tests."""
    yield
    PerformanceMonitor.reset_instance()


@pytest.fixture
def high_quality_dataset():
    sample = SAMPLE_DOCUMENT_CONFIGS["high_quality"]
    return generate_ground_truth_dataset(SyntheticDocumentConfig(
        template=sample["template"],
        projects=sample["projects"],
        teams=sample["teams"],
        risks=sample["risks"],
        seed=12345,
    ))


@pytest.fixture
def perfect_extraction(high_quality_dataset):
    return build_perfect_extraction(high_quality_dataset)


@pytest.fixture
def performance():
    return PerformanceMetrics(
        processing_time=8000,
        memory_usage=80 * MB,
        ocr_time=5600,
        extraction_time=1600,
        mapping_time=800,
        throughput=1.5,
    )


@pytest.fixture
def base_time():
    return datetime(2025, 3, 1, 9, 0, 0)
