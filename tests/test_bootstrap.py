"""Test suite for configuration-driven startup."""

import os
from unittest.mock import patch

import yaml

from ocr_eval.core.bootstrap import bootstrap
from ocr_eval.core.config_manager import MB, ConfigManager
from ocr_eval.core.monitor import PerformanceMonitor


CLEAN_ENV = {k: v for k, v in os.environ.items() if not k.startswith("OCR_EVAL_")}


@patch.dict(os.environ, CLEAN_ENV, clear=True)
class TestFromConfig:
    """Test PerformanceMonitor.from_config()."""

    def test_loaded_values_reach_monitor(self, tmp_path, memory):
        """Test interval, history window and alert settings come from the file."""
        path = tmp_path / "config.yaml"
        path.write_text(yaml.safe_dump({
            "profile": "pipeline",
            "sample_interval": 2,
            "history_window": 120,
        }))
        config = ConfigManager(str(path)).load_config()

        monitor = PerformanceMonitor.from_config(config, auto_start=False, memory_probe=memory)

        assert monitor.sample_interval == 2
        assert monitor.history_window == 120
        assert monitor.config is config.alerts
        assert monitor.thresholds.max_memory_usage == 500 * MB
        assert not monitor.is_running


@patch.dict(os.environ, CLEAN_ENV, clear=True)
class TestBootstrap:
    """Test bootstrap()."""

    @patch('ocr_eval.core.bootstrap.setup_logging')
    def test_logging_and_monitor_configured(self, mock_setup_logging, tmp_path, memory):
        """Test the configured log level and monitor settings are applied."""
        path = tmp_path / "config.yaml"
        path.write_text(yaml.safe_dump({"log_level": "WARNING", "sample_interval": 3}))

        config, monitor = bootstrap(str(path), log_dir=tmp_path, auto_start=False, memory_probe=memory)

        mock_setup_logging.assert_called_once_with(
            log_level="WARNING",
            log_dir=tmp_path,
            enable_file_logging=False
        )
        assert config.log_level == "WARNING"
        assert monitor.sample_interval == 3

    @patch('ocr_eval.core.bootstrap.setup_logging')
    def test_env_profile(self, mock_setup_logging, tmp_path, memory):
        """Test environment overrides flow through to the monitor."""
        with patch.dict(os.environ, {"OCR_EVAL_PROFILE": "prod", "OCR_EVAL_MAX_QUEUE_LENGTH": "3"}):
            config, monitor = bootstrap(
                str(tmp_path / "none.yaml"), auto_start=False, memory_probe=memory
            )

        assert mock_setup_logging.call_args.kwargs["log_level"] == "INFO"
        assert monitor.thresholds.max_queue_length == 3
        assert monitor.thresholds.max_error_rate == 5.0
