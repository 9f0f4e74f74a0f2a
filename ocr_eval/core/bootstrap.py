"""Startup helper that wires configuration into logging and monitoring.

Order of initialization:
1. Load configuration (config.yaml + OCR_EVAL_* environment)
2. Configure logging at the configured level
3. Build the performance monitor from the same configuration
"""

from pathlib import Path
from typing import Optional, Tuple, Union

from loguru import logger

from ocr_eval.core.config_manager import ConfigManager, OcrEvalConfig
from ocr_eval.core.logging_setup import setup_logging
from ocr_eval.core.monitor import PerformanceMonitor


def bootstrap(
    config_path: Optional[str] = None,
    enable_file_logging: bool = False,
    log_dir: Union[str, Path] = Path("logs"),
    auto_start: bool = True,
    **monitor_kwargs
) -> Tuple[OcrEvalConfig, PerformanceMonitor]:
    """Load configuration, set up logging and create a monitor.

    Args:
        config_path: Path to config.yaml (defaults to ./config.yaml)
        enable_file_logging: Also write rotating log files
        log_dir: Directory for log files
        auto_start: Start the monitor's background sampler
        **monitor_kwargs: Passed to PerformanceMonitor (clock, memory_probe)

    Returns:
        (loaded config, monitor built from it)

    Raises:
        ConfigurationError: If the configuration is invalid
    """
    config = ConfigManager(config_path).load_config()

    setup_logging(
        log_level=config.log_level,
        log_dir=log_dir,
        enable_file_logging=enable_file_logging
    )
    logger.info(f"✓ Configuration loaded (profile: {config.profile})")

    monitor = PerformanceMonitor.from_config(config, auto_start=auto_start, **monitor_kwargs)
    logger.info(
        f"✓ Performance monitor ready (interval={config.sample_interval}s, "
        f"history={config.history_window}s)"
    )
    return config, monitor
