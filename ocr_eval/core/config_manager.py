"""Configuration management for the OCR evaluation toolkit.

This module handles loading, validation, and management of monitor and
alert configuration from YAML files and environment variables.
"""

import os
from pathlib import Path
from typing import Any, Callable, Dict, List, Optional

import yaml
from loguru import logger
from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator, model_validator

from ocr_eval.core.alerts import AlertChannel
from ocr_eval.core.datamodels import PerformanceAlert
from ocr_eval.core.exceptions import ConfigurationError


MB = 1024 * 1024

PROFILES = ("dev", "prod", "pipeline")

# Threshold presets applied underneath file/env values
PROFILE_THRESHOLDS: Dict[str, Dict[str, float]] = {
    "dev": {
        "max_processing_time": 30000,
        "max_memory_usage": 200 * MB,
        "max_queue_length": 10,
        "max_error_rate": 10.0,
        "min_throughput": 0.5,
    },
    "prod": {
        "max_processing_time": 30000,
        "max_memory_usage": 200 * MB,
        "max_queue_length": 10,
        "max_error_rate": 5.0,
        "min_throughput": 0.5,
    },
    "pipeline": {
        "max_processing_time": 60000,
        "max_memory_usage": 500 * MB,
        "max_queue_length": 5,
        "max_error_rate": 15.0,
        "min_throughput": 0.3,
    },
}


class PerformanceThresholds(BaseModel):
    """Limits the performance monitor checks against."""

    max_processing_time: float = Field(
        default=30000,
        gt=0,
        description="Maximum processing time per operation in milliseconds"
    )
    max_memory_usage: float = Field(
        default=200 * MB,
        gt=0,
        description="Maximum process memory in bytes"
    )
    max_queue_length: int = Field(
        default=10,
        ge=0,
        description="Maximum number of queued operations"
    )
    max_error_rate: float = Field(
        default=10.0,
        ge=0.0,
        le=100.0,
        description="Maximum share of failed operations in percent"
    )
    min_throughput: float = Field(
        default=0.5,
        ge=0.0,
        description="Minimum extracted entities per second"
    )

    model_config = ConfigDict(validate_assignment=True)


class AlertConfig(BaseModel):
    """Alert configuration accepted by PerformanceMonitor."""

    enabled: bool = Field(default=True, description="Whether alerts are emitted at all")
    thresholds: PerformanceThresholds = Field(default_factory=PerformanceThresholds)
    alert_channels: List[AlertChannel] = Field(
        default_factory=lambda: [AlertChannel.CONSOLE],
        description="Channels alerts are delivered to"
    )
    callback: Optional[Callable[[PerformanceAlert], None]] = Field(
        default=None,
        exclude=True,
        description="Receives every alert; setting it enables the callback channel"
    )

    model_config = ConfigDict(validate_assignment=True)

    @field_validator('alert_channels')
    @classmethod
    def validate_alert_channels(cls, v: List[AlertChannel]) -> List[AlertChannel]:
        """Drop duplicate channels, keeping the first occurrence."""
        seen = []
        for channel in v:
            if channel not in seen:
                seen.append(channel)
        return seen

    @model_validator(mode="after")
    def enable_callback_channel(self) -> "AlertConfig":
        """A configured callback always receives alerts."""
        if self.callback is not None and AlertChannel.CALLBACK not in self.alert_channels:
            self.alert_channels.append(AlertChannel.CALLBACK)
        return self


class OcrEvalConfig(BaseModel):
    """Top-level configuration file model.

    Can be loaded from config.yaml and overridden by environment variables
    prefixed with OCR_EVAL_.
    """

    profile: str = Field(
        default="dev",
        description="Configuration profile: dev, prod, or pipeline"
    )
    log_level: str = Field(
        default="INFO",
        description="Logging level (DEBUG, INFO, WARNING, ERROR)"
    )
    sample_interval: float = Field(
        default=5.0,
        gt=0,
        description="Seconds between monitor snapshots"
    )
    history_window: float = Field(
        default=3600.0,
        gt=0,
        description="Seconds of snapshot history the monitor keeps"
    )
    alerts: AlertConfig = Field(default_factory=AlertConfig)

    model_config = ConfigDict(validate_assignment=True)

    @field_validator('profile')
    @classmethod
    def validate_profile(cls, v: str) -> str:
        """Validate profile is one of the allowed values."""
        if v not in PROFILES:
            raise ValueError(f"profile must be one of {list(PROFILES)}, got '{v}'")
        return v

    @field_validator('log_level')
    @classmethod
    def validate_log_level(cls, v: str) -> str:
        """Validate log level is one of the allowed values."""
        allowed = ["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"]
        v_upper = v.upper()
        if v_upper not in allowed:
            raise ValueError(f"log_level must be one of {allowed}, got '{v}'")
        return v_upper

    @field_validator('sample_interval')
    @classmethod
    def validate_sample_interval(cls, v: float) -> float:
        """Warn when sampling is fast enough to cost noticeable CPU."""
        if v < 1.0:
            logger.warning(
                f"sample_interval={v}s is below 1s. "
                f"Snapshots will be taken very frequently."
            )
        return v


def _parse_bool(value: str) -> bool:
    return value.lower() in ['true', '1', 'yes']


def _parse_channels(value: str) -> List[str]:
    return [c.strip() for c in value.split(',') if c.strip()]


class ConfigManager:
    """Manages configuration with support for YAML files and environment variables.

    Configuration priority (highest to lowest):
    1. Environment variables (OCR_EVAL_*)
    2. config.yaml file
    3. Profile threshold presets
    4. Default values from OcrEvalConfig
    """

    ENV_PREFIX = "OCR_EVAL_"

    def __init__(self, config_path: Optional[str] = None):
        """Initialize the configuration manager.

        Args:
            config_path: Path to config.yaml file. If None, looks for config.yaml
                        in the current directory or uses defaults.
        """
        self.config_path = config_path or "config.yaml"
        self._config: Optional[OcrEvalConfig] = None

    def load_config(self) -> OcrEvalConfig:
        """Load configuration from file and environment variables.

        Returns:
            Loaded and validated OcrEvalConfig instance

        Raises:
            ConfigurationError: If the file is unreadable or values are invalid
        """
        config_dict: Dict[str, Any] = {}

        if os.path.exists(self.config_path):
            try:
                with open(self.config_path, 'r') as f:
                    yaml_config = yaml.safe_load(f)
            except yaml.YAMLError as e:
                raise ConfigurationError(
                    f"Invalid YAML in {self.config_path}: {e}",
                    config_key="config_path"
                ) from e
            if yaml_config:
                if not isinstance(yaml_config, dict):
                    raise ConfigurationError(
                        f"{self.config_path} must contain a mapping",
                        config_key="config_path",
                        expected_value="mapping"
                    )
                config_dict = _deep_merge(config_dict, yaml_config)

        config_dict = _deep_merge(config_dict, self._load_from_env())
        config_dict = self._apply_profile_settings(config_dict)

        self._config = self._validate(config_dict)
        return self._config

    def _load_from_env(self) -> Dict[str, Any]:
        """Load configuration overrides from environment variables.

        Environment variables are prefixed with OCR_EVAL_ and use uppercase
        with underscores (e.g., OCR_EVAL_MAX_QUEUE_LENGTH).

        Returns:
            Nested dictionary of configuration overrides from environment
        """
        prefix = self.ENV_PREFIX
        env_config: Dict[str, Any] = {}

        top_level = {
            f"{prefix}PROFILE": ("profile", str),
            f"{prefix}LOG_LEVEL": ("log_level", str),
            f"{prefix}SAMPLE_INTERVAL": ("sample_interval", float),
            f"{prefix}HISTORY_WINDOW": ("history_window", float),
        }
        alert_level = {
            f"{prefix}ALERTS_ENABLED": ("enabled", _parse_bool),
            f"{prefix}ALERT_CHANNELS": ("alert_channels", _parse_channels),
        }
        threshold_level = {
            f"{prefix}MAX_PROCESSING_TIME": ("max_processing_time", float),
            f"{prefix}MAX_MEMORY_USAGE": ("max_memory_usage", float),
            f"{prefix}MAX_QUEUE_LENGTH": ("max_queue_length", int),
            f"{prefix}MAX_ERROR_RATE": ("max_error_rate", float),
            f"{prefix}MIN_THROUGHPUT": ("min_throughput", float),
        }

        def collect(mappings: Dict[str, tuple]) -> Dict[str, Any]:
            values = {}
            for env_var, (config_key, converter) in mappings.items():
                value = os.getenv(env_var)
                if value is None:
                    continue
                try:
                    values[config_key] = converter(value)
                except (ValueError, TypeError) as e:
                    logger.warning(f"Failed to convert {env_var}={value}: {e}")
            return values

        env_config.update(collect(top_level))

        alerts = collect(alert_level)
        thresholds = collect(threshold_level)
        if thresholds:
            alerts["thresholds"] = thresholds
        if alerts:
            env_config["alerts"] = alerts

        return env_config

    def _apply_profile_settings(self, config_dict: Dict[str, Any]) -> Dict[str, Any]:
        """Apply profile-specific defaults underneath explicit values.

        Profiles:
        - dev: Verbose logging, standard thresholds
        - prod: Info logging, stricter error-rate threshold
        - pipeline: Thresholds sized for full OCR pipeline runs

        Args:
            config_dict: Merged file and environment configuration

        Returns:
            Configuration with profile-specific defaults filled in

        Raises:
            ConfigurationError: If the profile is unknown
        """
        profile = config_dict.get("profile", "dev")
        if profile not in PROFILE_THRESHOLDS:
            raise ConfigurationError(
                f"Unknown profile '{profile}'",
                config_key="profile",
                expected_value=", ".join(PROFILES)
            )

        alerts = config_dict.setdefault("alerts", {})
        thresholds = alerts.setdefault("thresholds", {})
        for key, value in PROFILE_THRESHOLDS[profile].items():
            thresholds.setdefault(key, value)

        if profile == "dev":
            config_dict.setdefault("log_level", "DEBUG")
        else:
            config_dict.setdefault("log_level", "INFO")

        logger.debug(f"Applied '{profile}' profile defaults")
        return config_dict

    @staticmethod
    def _validate(config_dict: Dict[str, Any]) -> OcrEvalConfig:
        try:
            return OcrEvalConfig(**config_dict)
        except ValidationError as e:
            first = e.errors()[0]
            key = ".".join(str(part) for part in first["loc"])
            raise ConfigurationError(
                f"Invalid configuration: {key}: {first['msg']}",
                config_key=key
            ) from e

    def get_config(self) -> OcrEvalConfig:
        """Get the current configuration.

        Returns:
            Current OcrEvalConfig instance

        Raises:
            RuntimeError: If configuration hasn't been loaded yet
        """
        if self._config is None:
            raise RuntimeError("Configuration not loaded. Call load_config() first.")
        return self._config

    def save_config(self, path: Optional[str] = None) -> None:
        """Save current configuration to YAML file.

        The alert callback is never written.

        Args:
            path: Path to save config file. If None, uses self.config_path
        """
        if self._config is None:
            raise RuntimeError("No configuration to save. Load or create config first.")

        save_path = path or self.config_path
        config_dict = self._config.model_dump(mode="json", exclude_none=True)

        Path(save_path).parent.mkdir(parents=True, exist_ok=True)

        with open(save_path, 'w') as f:
            yaml.dump(config_dict, f, default_flow_style=False, sort_keys=False)

        logger.info(f"Configuration saved to {save_path}")

    def update_config(self, updates: Dict[str, Any]) -> OcrEvalConfig:
        """Update configuration with new values.

        Nested sections (alerts, alerts.thresholds) are merged, not replaced.

        Args:
            updates: Dictionary of configuration updates

        Returns:
            Updated OcrEvalConfig instance
        """
        callback = self._config.alerts.callback if self._config else None
        current_dict = self._config.model_dump() if self._config else {}
        merged = _deep_merge(current_dict, updates)

        self._config = self._validate(merged)
        if callback is not None and self._config.alerts.callback is None:
            self._config.alerts.callback = callback
        return self._config


def _deep_merge(base: Dict[str, Any], overrides: Dict[str, Any]) -> Dict[str, Any]:
    """Recursively merge `overrides` into a copy of `base`."""
    merged = dict(base)
    for key, value in overrides.items():
        if isinstance(value, dict) and isinstance(merged.get(key), dict):
            merged[key] = _deep_merge(merged[key], value)
        else:
            merged[key] = value
    return merged
