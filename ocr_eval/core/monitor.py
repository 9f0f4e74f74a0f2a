"""Performance Monitor - tracking of OCR pipeline operations.

This module tracks document-processing operations from start to
completion and provides:
- Per-operation performance metrics (elapsed time, memory growth, stage times, throughput)
- A background sampler recording periodic snapshots into a rolling history
- Threshold checks that emit PerformanceAlert values to the alert channels
- Stress detection and optimization recommendations

Requirements: psutil (process memory, CPU)
"""

import threading
import time
from collections import deque
from dataclasses import dataclass, field
from datetime import datetime, timedelta
from typing import Callable, Deque, Dict, List, Optional, Tuple

import psutil
from loguru import logger

from ocr_eval.core.alerts import AlertDispatcher
from ocr_eval.core.config_manager import PROFILE_THRESHOLDS, AlertConfig, OcrEvalConfig, PerformanceThresholds
from ocr_eval.core.datamodels import (
    AlertSeverity,
    OperationStage,
    PerformanceAlert,
    PerformanceMetrics,
    PerformanceSnapshot,
)
from ocr_eval.core.exceptions import OperationNotFoundError


DEFAULT_SAMPLE_INTERVAL = 5.0  # seconds
DEFAULT_HISTORY_WINDOW = 3600.0  # seconds

# Share of total time attributed to each stage when no transitions were reported
STAGE_RATIOS = {
    OperationStage.OCR: 0.7,
    OperationStage.EXTRACTION: 0.2,
    OperationStage.MAPPING: 0.1,
}

STRESS_FACTOR = 0.8


@dataclass
class OperationContext:
    """Bookkeeping for one in-flight operation."""
    operation_id: str
    document_id: str
    document_type: str
    start_time: float  # clock seconds
    memory_baseline: int  # bytes
    stage: OperationStage = OperationStage.OCR
    stage_started: float = 0.0
    stage_durations: Dict[OperationStage, float] = field(default_factory=dict)
    transitioned: bool = False

    def close_stage(self, now: float) -> None:
        """Attribute the time since the last transition to the current stage."""
        elapsed = max(0.0, now - self.stage_started)
        self.stage_durations[self.stage] = self.stage_durations.get(self.stage, 0.0) + elapsed
        self.stage_started = now


def format_bytes(num_bytes: float) -> str:
    """Human-readable byte size, e.g. 262144000 -> '250 MB'."""
    if num_bytes <= 0:
        return "0 Bytes"
    value = float(num_bytes)
    for unit in ("Bytes", "KB", "MB", "GB"):
        if value < 1024 or unit == "GB":
            return f"{round(value, 2):g} {unit}"
        value /= 1024
    return f"{round(value, 2):g} GB"


def _process_memory_probe() -> Callable[[], int]:
    process = psutil.Process()
    return lambda: process.memory_info().rss


class PerformanceMonitor:
    """Tracks pipeline operations, samples resource usage and raises alerts.

    Instances are meant to be created and passed explicitly to the code
    they observe. `get_instance()` offers a lazily created process-wide
    instance for applications that want one; `reset_instance()` stops and
    discards it (use it for test isolation).

    Usage:
        monitor = PerformanceMonitor(AlertConfig(callback=alert_log.record))
        monitor.start_operation("op-1", "doc-42")
        monitor.update_operation_stage("op-1", OperationStage.EXTRACTION)
        metrics = monitor.complete_operation("op-1", success=True, extracted_entities=17)
        monitor.stop()
    """

    _instance: Optional['PerformanceMonitor'] = None
    _instance_lock = threading.Lock()

    def __init__(
        self,
        config: Optional[AlertConfig] = None,
        sample_interval: float = DEFAULT_SAMPLE_INTERVAL,
        history_window: float = DEFAULT_HISTORY_WINDOW,
        auto_start: bool = True,
        clock: Callable[[], float] = time.perf_counter,
        memory_probe: Optional[Callable[[], int]] = None
    ):
        """Initialize performance monitor.

        Args:
            config: Alert configuration (defaults to AlertConfig())
            sample_interval: Seconds between background snapshots
            history_window: Seconds of snapshot history to keep
            auto_start: Start the background sampler immediately
            clock: Monotonic clock in seconds, used for durations
            memory_probe: Returns current memory usage in bytes
                          (defaults to the process RSS via psutil)
        """
        if sample_interval <= 0:
            raise ValueError(f"sample_interval must be > 0, got {sample_interval}")
        if history_window <= 0:
            raise ValueError(f"history_window must be > 0, got {history_window}")

        self.config = config or AlertConfig()
        self.sample_interval = sample_interval
        self.history_window = history_window

        self._clock = clock
        self._cpu_probe: Optional[Callable[[], float]] = None
        if memory_probe is None:
            memory_probe = _process_memory_probe()
            process = psutil.Process()
            self._cpu_probe = lambda: process.cpu_percent(interval=None)
        self._memory_probe = memory_probe

        self._dispatcher = AlertDispatcher(self.config.alert_channels, self.config.callback)

        self._lock = threading.RLock()
        self._active: Dict[str, OperationContext] = {}
        self._queue: List[str] = []
        self._snapshots: List[PerformanceSnapshot] = []
        self._completed: Deque[Tuple[datetime, float]] = deque(maxlen=10000)
        self._error_count = 0
        self._total_operations = 0

        self._stop_event = threading.Event()
        self._sampler: Optional[threading.Thread] = None

        logger.debug(
            f"PerformanceMonitor initialized (interval={sample_interval}s, "
            f"alerts={'on' if self.config.enabled else 'off'})"
        )

        if auto_start:
            self.start()

    @classmethod
    def from_config(
        cls,
        config: OcrEvalConfig,
        auto_start: bool = True,
        **kwargs
    ) -> 'PerformanceMonitor':
        """Build a monitor from a loaded OcrEvalConfig.

        Args:
            config: Configuration from ConfigManager.load_config()
            auto_start: Start the background sampler immediately
            **kwargs: Passed through (clock, memory_probe)

        Returns:
            PerformanceMonitor using the config's alerts, sample interval
            and history window
        """
        return cls(
            config.alerts,
            sample_interval=config.sample_interval,
            history_window=config.history_window,
            auto_start=auto_start,
            **kwargs
        )

    @classmethod
    def get_instance(cls, config: Optional[AlertConfig] = None) -> 'PerformanceMonitor':
        """Get the process-wide monitor, creating it on first use.

        Args:
            config: Used only when the instance is created

        Returns:
            PerformanceMonitor instance
        """
        with cls._instance_lock:
            if cls._instance is None:
                cls._instance = cls(config)
            elif config is not None:
                logger.debug("get_instance(): monitor already exists, ignoring config")
            return cls._instance

    @classmethod
    def reset_instance(cls) -> None:
        """Stop and discard the process-wide monitor."""
        with cls._instance_lock:
            if cls._instance is not None:
                cls._instance.stop()
                cls._instance = None

    @property
    def thresholds(self) -> PerformanceThresholds:
        return self.config.thresholds

    @property
    def active_operations(self) -> int:
        with self._lock:
            return len(self._active)

    @property
    def queue_length(self) -> int:
        with self._lock:
            return len(self._queue)

    @property
    def error_count(self) -> int:
        return self._error_count

    @property
    def total_operations(self) -> int:
        return self._total_operations

    # =========================================================================
    # Operation Lifecycle
    # =========================================================================

    def start_operation(
        self,
        operation_id: str,
        document_id: str,
        document_type: str = "steering-committee"
    ) -> None:
        """Start tracking an operation.

        Args:
            operation_id: Unique id of the operation
            document_id: Document being processed
            document_type: Free-form document type label

        Raises:
            ValueError: If an operation with this id is already active
        """
        now = self._clock()
        baseline = self._memory_probe()

        with self._lock:
            if operation_id in self._active:
                raise ValueError(f"Operation {operation_id} is already active")

            self._active[operation_id] = OperationContext(
                operation_id=operation_id,
                document_id=document_id,
                document_type=document_type,
                start_time=now,
                memory_baseline=baseline,
                stage_started=now,
            )
            self._queue.append(operation_id)
            self._total_operations += 1

        logger.debug(f"Started operation {operation_id} for {document_id}")
        self._check_performance_thresholds()

    def update_operation_stage(self, operation_id: str, stage: OperationStage) -> None:
        """Move an operation to a new stage.

        Unknown ids are ignored; a stage update is informational only.
        """
        stage = OperationStage(stage)
        now = self._clock()

        with self._lock:
            context = self._active.get(operation_id)
            if context is None:
                logger.debug(f"Stage update for unknown operation {operation_id} ignored")
                return
            if stage == context.stage:
                return
            context.close_stage(now)
            context.stage = stage
            context.transitioned = True

    def complete_operation(
        self,
        operation_id: str,
        success: bool = True,
        extracted_entities: int = 0
    ) -> PerformanceMetrics:
        """Finish an operation and compute its metrics.

        Args:
            operation_id: Id passed to start_operation()
            success: False counts the operation as an error
            extracted_entities: Number of entities the operation produced

        Returns:
            PerformanceMetrics for the operation

        Raises:
            OperationNotFoundError: If the id is not active
        """
        now = self._clock()
        memory_now = self._memory_probe()

        with self._lock:
            context = self._active.pop(operation_id, None)
            if context is None:
                raise OperationNotFoundError(operation_id)
            if operation_id in self._queue:
                self._queue.remove(operation_id)
            if not success:
                self._error_count += 1

            elapsed = max(0.0, now - context.start_time)
            processing_time = round(elapsed * 1000)
            self._completed.append((datetime.now(), float(processing_time)))

        ocr_time, extraction_time, mapping_time = self._stage_times(context, now, elapsed)
        throughput = extracted_entities / elapsed if extracted_entities > 0 and elapsed > 0 else 0.0

        metrics = PerformanceMetrics(
            processing_time=processing_time,
            memory_usage=max(0, memory_now - context.memory_baseline),
            ocr_time=ocr_time,
            extraction_time=extraction_time,
            mapping_time=mapping_time,
            throughput=throughput,
        )

        logger.debug(
            f"Completed operation {operation_id} ({'ok' if success else 'failed'}) "
            f"in {processing_time}ms, {extracted_entities} entities"
        )
        self._check_operation_metrics(metrics)
        return metrics

    def record_error(self, operation_id: str, error: BaseException) -> PerformanceMetrics:
        """Complete an operation as failed and emit an operation_error alert.

        Args:
            operation_id: Id passed to start_operation()
            error: The exception the operation raised

        Returns:
            PerformanceMetrics for the failed operation

        Raises:
            OperationNotFoundError: If the id is not active
        """
        metrics = self.complete_operation(operation_id, success=False)

        self._send_alert(PerformanceAlert(
            type=AlertSeverity.ERROR,
            metric="operation_error",
            current_value=1,
            threshold=0,
            message=f"OCR operation failed: {error}",
            suggestions=[
                "Check document quality and format",
                "Verify available memory and resources",
                "Consider reducing concurrent operations",
            ],
        ))
        return metrics

    def _stage_times(
        self,
        context: OperationContext,
        now: float,
        elapsed: float
    ) -> Tuple[float, float, float]:
        """(ocr, extraction, mapping) milliseconds for a finished operation."""
        if context.transitioned:
            context.close_stage(now)
            return tuple(
                round(context.stage_durations.get(stage, 0.0) * 1000)
                for stage in (OperationStage.OCR, OperationStage.EXTRACTION, OperationStage.MAPPING)
            )

        elapsed_ms = elapsed * 1000
        return (
            round(elapsed_ms * STAGE_RATIOS[OperationStage.OCR]),
            round(elapsed_ms * STAGE_RATIOS[OperationStage.EXTRACTION]),
            round(elapsed_ms * STAGE_RATIOS[OperationStage.MAPPING]),
        )

    # =========================================================================
    # Snapshots and History
    # =========================================================================

    def _error_rate(self) -> float:
        if self._total_operations == 0:
            return 0.0
        return min(100.0, self._error_count / self._total_operations * 100)

    def get_current_snapshot(self) -> PerformanceSnapshot:
        """Get a point-in-time snapshot of the monitor's state."""
        memory = self._memory_probe()
        cpu = self._cpu_probe() if self._cpu_probe else None

        with self._lock:
            return PerformanceSnapshot(
                timestamp=datetime.now(),
                memory_usage=max(0, int(memory)),
                active_operations=len(self._active),
                queue_length=len(self._queue),
                error_rate=self._error_rate(),
                cpu_usage=cpu,
            )

    def sample(self) -> PerformanceSnapshot:
        """Take one snapshot, store it, prune old history and check thresholds.

        This is what the background sampler runs every `sample_interval`.
        """
        snapshot = self.get_current_snapshot()
        cutoff = snapshot.timestamp - timedelta(seconds=self.history_window)

        with self._lock:
            self._snapshots.append(snapshot)
            self._snapshots = [s for s in self._snapshots if s.timestamp > cutoff]

        self._check_performance_thresholds(snapshot)
        return snapshot

    def get_performance_history(self, minutes: float = 10) -> List[PerformanceSnapshot]:
        """Snapshots taken within the last `minutes`, oldest first."""
        cutoff = datetime.now() - timedelta(minutes=minutes)
        with self._lock:
            return [s for s in self._snapshots if s.timestamp > cutoff]

    def get_performance_stats(self, time_window: float = DEFAULT_HISTORY_WINDOW) -> Dict[str, float]:
        """Aggregate statistics over recent snapshots.

        Args:
            time_window: Seconds of history to include

        Returns:
            Dictionary with avg_processing_time (ms, completed operations),
            avg_memory_usage, peak_memory_usage, avg_queue_length,
            total_operations and error_rate
        """
        cutoff = datetime.now() - timedelta(seconds=time_window)

        with self._lock:
            recent = [s for s in self._snapshots if s.timestamp > cutoff]
            durations = [ms for finished_at, ms in self._completed if finished_at > cutoff]
            stats = {
                "avg_processing_time": sum(durations) / len(durations) if durations else 0.0,
                "avg_memory_usage": 0.0,
                "peak_memory_usage": 0.0,
                "avg_queue_length": 0.0,
                "total_operations": self._total_operations,
                "error_rate": self._error_rate(),
            }

        if recent:
            stats["avg_memory_usage"] = sum(s.memory_usage for s in recent) / len(recent)
            stats["peak_memory_usage"] = float(max(s.memory_usage for s in recent))
            stats["avg_queue_length"] = sum(s.queue_length for s in recent) / len(recent)

        return stats

    # =========================================================================
    # Stress and Recommendations
    # =========================================================================

    def is_system_under_stress(self) -> bool:
        """True when memory, queue length or error rate is above 80% of its limit."""
        snapshot = self.get_current_snapshot()
        t = self.thresholds

        return (
            snapshot.memory_usage > t.max_memory_usage * STRESS_FACTOR
            or snapshot.queue_length > t.max_queue_length * STRESS_FACTOR
            or snapshot.error_rate > t.max_error_rate * STRESS_FACTOR
        )

    def get_optimization_recommendations(self) -> List[str]:
        """Heuristic advice based on which resource is closest to its limit."""
        recommendations = []
        snapshot = self.get_current_snapshot()
        t = self.thresholds

        if snapshot.memory_usage > t.max_memory_usage * 0.7:
            recommendations.append("Consider reducing concurrent operations to manage memory usage")
            recommendations.append("Implement document preprocessing to reduce memory footprint")

        if snapshot.queue_length > t.max_queue_length * 0.7:
            recommendations.append("Increase processing capacity or implement queue management")
            recommendations.append("Consider batch processing for better throughput")

        if snapshot.error_rate > t.max_error_rate * 0.5:
            recommendations.append("Review document quality validation before OCR processing")
            recommendations.append("Implement more robust error handling and retry mechanisms")

        if snapshot.active_operations == 0 and snapshot.queue_length == 0:
            recommendations.append("System is idle - consider proactive document processing")

        return recommendations

    # =========================================================================
    # Threshold Checks
    # =========================================================================

    def _check_performance_thresholds(self, snapshot: Optional[PerformanceSnapshot] = None) -> None:
        """Check a snapshot against memory, queue and error-rate limits."""
        if not self.config.enabled:
            return

        snapshot = snapshot or self.get_current_snapshot()
        t = self.thresholds

        if snapshot.memory_usage > t.max_memory_usage:
            self._send_alert(PerformanceAlert(
                type=AlertSeverity.CRITICAL,
                metric="memory_usage",
                current_value=snapshot.memory_usage,
                threshold=t.max_memory_usage,
                timestamp=snapshot.timestamp,
                message=f"Memory usage exceeded threshold: {format_bytes(snapshot.memory_usage)}",
                suggestions=[
                    "Reduce concurrent operations",
                    "Clear document cache",
                    "Consider processing smaller documents",
                ],
            ))

        if snapshot.queue_length > t.max_queue_length:
            self._send_alert(PerformanceAlert(
                type=AlertSeverity.WARNING,
                metric="queue_length",
                current_value=snapshot.queue_length,
                threshold=t.max_queue_length,
                timestamp=snapshot.timestamp,
                message=f"Operation queue is backing up: {snapshot.queue_length} operations queued",
                suggestions=[
                    "Increase processing capacity",
                    "Implement queue prioritization",
                    "Consider batch processing",
                ],
            ))

        if snapshot.error_rate > t.max_error_rate:
            self._send_alert(PerformanceAlert(
                type=AlertSeverity.ERROR,
                metric="error_rate",
                current_value=snapshot.error_rate,
                threshold=t.max_error_rate,
                timestamp=snapshot.timestamp,
                message=f"High error rate detected: {snapshot.error_rate:.1f}%",
                suggestions=[
                    "Review document quality validation",
                    "Check system resources",
                    "Implement better error handling",
                ],
            ))

    def _check_operation_metrics(self, metrics: PerformanceMetrics) -> None:
        """Check one completed operation against time and throughput limits."""
        if not self.config.enabled:
            return

        t = self.thresholds

        if metrics.processing_time > t.max_processing_time:
            self._send_alert(PerformanceAlert(
                type=AlertSeverity.WARNING,
                metric="processing_time",
                current_value=metrics.processing_time,
                threshold=t.max_processing_time,
                message=f"Operation took longer than expected: {metrics.processing_time / 1000:.1f}s",
                suggestions=[
                    "Consider document preprocessing",
                    "Check system resources",
                    "Optimize extraction patterns",
                ],
            ))

        # Zero throughput means no entities were reported, not a slow pipeline
        if 0 < metrics.throughput < t.min_throughput:
            self._send_alert(PerformanceAlert(
                type=AlertSeverity.WARNING,
                metric="throughput",
                current_value=metrics.throughput,
                threshold=t.min_throughput,
                message=f"Low throughput detected: {metrics.throughput:.2f} entities/sec",
                suggestions=[
                    "Optimize extraction algorithms",
                    "Improve document quality",
                    "Consider parallel processing",
                ],
            ))

    def _send_alert(self, alert: PerformanceAlert) -> None:
        if not self.config.enabled:
            return
        self._dispatcher.dispatch(alert)

    # =========================================================================
    # Sampler Lifecycle
    # =========================================================================

    @property
    def is_running(self) -> bool:
        return self._sampler is not None and self._sampler.is_alive()

    def start(self) -> None:
        """Start the background sampler thread (no-op if already running)."""
        if self.is_running:
            return

        self._stop_event.clear()
        self._sampler = threading.Thread(
            target=self._sampling_loop,
            name="ocr-eval-sampler",
            daemon=True
        )
        self._sampler.start()
        logger.info(f"Performance sampler started (every {self.sample_interval}s)")

    def _sampling_loop(self) -> None:
        while not self._stop_event.wait(self.sample_interval):
            try:
                self.sample()
            except Exception as e:
                logger.error(f"Performance sampling error: {e}")

    def stop(self) -> None:
        """Stop the background sampler. Tracking keeps working without it."""
        self._stop_event.set()
        sampler = self._sampler
        self._sampler = None

        if sampler is not None and sampler.is_alive() and sampler is not threading.current_thread():
            sampler.join(timeout=self.sample_interval + 1.0)
            logger.info("Performance sampler stopped")

    def reset(self) -> None:
        """Clear all tracked operations, counters and history."""
        with self._lock:
            self._active.clear()
            self._queue.clear()
            self._snapshots.clear()
            self._completed.clear()
            self._error_count = 0
            self._total_operations = 0
        logger.debug("PerformanceMonitor reset")


def create_pipeline_monitor(
    callback: Optional[Callable[[PerformanceAlert], None]] = None,
    auto_start: bool = True
) -> PerformanceMonitor:
    """Monitor preset for full OCR pipeline runs.

    Thresholds: 60 s per operation, 500 MB memory, queue of 5, 15% errors,
    0.3 entities/s.

    Args:
        callback: Optional alert callback; adds the callback channel
        auto_start: Start the background sampler immediately

    Returns:
        A new PerformanceMonitor
    """
    config = AlertConfig(
        enabled=True,
        thresholds=PerformanceThresholds(**PROFILE_THRESHOLDS["pipeline"]),
        callback=callback,
    )
    return PerformanceMonitor(config, auto_start=auto_start)
