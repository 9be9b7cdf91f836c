"""
Configuration management and loading.

Handles monitoring settings, risk thresholds and feature toggles.
"""

import math
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, Optional

import yaml


DEFAULT_LATENCY_PROBE_URL = "https://api.openai.com/v1/models"


class ConfigValidationError(ValueError):
    """Raised when monitoring configuration is invalid."""


def _check_probability(name: str, value: float) -> None:
    if not 0.0 <= value <= 1.0:
        raise ConfigValidationError(f"{name} must be between 0 and 1")


@dataclass(frozen=True)
class RiskThresholds:
    """Alert and risk thresholds."""
    high_risk: float = 0.7
    rate_limit_probability: float = 0.6
    cost_threshold: float = 0.10
    token_threshold: int = 4000
    consecutive_failures: int = 3

    def __post_init__(self):
        """Validate threshold ranges."""
        _check_probability("high_risk", self.high_risk)
        _check_probability("rate_limit_probability", self.rate_limit_probability)
        if not math.isfinite(self.cost_threshold):
            raise ConfigValidationError("cost_threshold must be finite")
        if self.cost_threshold < 0:
            raise ConfigValidationError("cost_threshold cannot be negative")
        if self.token_threshold < 0:
            raise ConfigValidationError("token_threshold cannot be negative")
        if self.consecutive_failures < 1:
            raise ConfigValidationError("consecutive_failures must be >= 1")


@dataclass(frozen=True)
class MonitoringConfig:
    """Complete monitoring configuration, fixed for a session's lifetime."""
    enabled: bool = True
    monitoring_window: int = 60  # minutes
    monitoring_data_path: str = "monitoring/"
    enable_real_time_alerts: bool = True
    enable_pre_call_metrics: bool = True
    enable_context_analysis: bool = True
    enable_risk_assessment: bool = True
    enable_predictive_alerts: bool = True
    probe_timeout: float = 2.0  # seconds
    latency_probe_url: Optional[str] = DEFAULT_LATENCY_PROBE_URL
    thresholds: RiskThresholds = field(default_factory=RiskThresholds)

    def __post_init__(self):
        """Validate window and probe settings."""
        if self.monitoring_window <= 0:
            raise ConfigValidationError("monitoring_window must be > 0")
        if not math.isfinite(self.probe_timeout):
            raise ConfigValidationError("probe_timeout must be finite")
        if self.probe_timeout <= 0:
            raise ConfigValidationError("probe_timeout must be > 0")
        if not self.monitoring_data_path:
            raise ConfigValidationError("monitoring_data_path cannot be empty")


_BOOL_KEYS = {
    'enabled',
    'enable_real_time_alerts',
    'enable_pre_call_metrics',
    'enable_context_analysis',
    'enable_risk_assessment',
    'enable_predictive_alerts',
}
_ALLOWED_TOP_KEYS = _BOOL_KEYS | {
    'monitoring_window',
    'monitoring_data_path',
    'probe_timeout',
    'latency_probe_url',
    'thresholds',
}
_FLOAT_THRESHOLD_KEYS = {'high_risk', 'rate_limit_probability', 'cost_threshold'}
_INT_THRESHOLD_KEYS = {'token_threshold', 'consecutive_failures'}


def load_monitoring_config(path: str) -> MonitoringConfig:
    """Load and validate monitoring configuration from a YAML file.

    Strict validation ensures a misconfigured threshold is rejected at
    startup instead of silently skewing risk predictions mid-session.

    Args:
        path: Path to YAML configuration file

    Returns:
        Validated MonitoringConfig object

    Raises:
        FileNotFoundError: If config file doesn't exist
        yaml.YAMLError: If YAML is invalid
        ConfigValidationError: If configuration is invalid
    """
    config_path = Path(path)
    if not config_path.exists():
        raise FileNotFoundError(f"Monitoring config file not found: {path}")

    with open(config_path, 'r', encoding='utf-8') as f:
        try:
            raw_config = yaml.safe_load(f)
        except yaml.YAMLError as e:
            raise yaml.YAMLError(f"Invalid YAML in config file {path}: {e}")

    if raw_config is None:
        return MonitoringConfig()
    if not isinstance(raw_config, dict):
        raise ConfigValidationError("Configuration root must be a mapping")

    return parse_monitoring_config(raw_config)


def parse_monitoring_config(data: Dict[str, Any]) -> MonitoringConfig:
    """Build a MonitoringConfig from a plain dictionary.

    Missing keys take their defaults; unknown keys and wrong types are
    rejected.

    Args:
        data: Configuration mapping (as loaded from YAML or JSON)

    Returns:
        Validated MonitoringConfig

    Raises:
        ConfigValidationError: If configuration is invalid
    """
    unknown_keys = set(data.keys()) - _ALLOWED_TOP_KEYS
    if unknown_keys:
        raise ConfigValidationError(f"Unknown configuration keys: {unknown_keys}")

    kwargs: Dict[str, Any] = {}
    for key in _BOOL_KEYS & data.keys():
        if not isinstance(data[key], bool):
            raise ConfigValidationError(f"'{key}' must be a boolean")
        kwargs[key] = data[key]

    if 'monitoring_window' in data:
        kwargs['monitoring_window'] = _require_int(data['monitoring_window'], 'monitoring_window')

    if 'monitoring_data_path' in data:
        value = data['monitoring_data_path']
        if not isinstance(value, str):
            raise ConfigValidationError("'monitoring_data_path' must be a string")
        kwargs['monitoring_data_path'] = value

    if 'probe_timeout' in data:
        kwargs['probe_timeout'] = _require_number(data['probe_timeout'], 'probe_timeout')

    if 'latency_probe_url' in data:
        value = data['latency_probe_url']
        if value is not None and not isinstance(value, str):
            raise ConfigValidationError("'latency_probe_url' must be a string or null")
        kwargs['latency_probe_url'] = value

    if 'thresholds' in data:
        kwargs['thresholds'] = _parse_thresholds(data['thresholds'])

    return MonitoringConfig(**kwargs)


def _parse_thresholds(data: Any) -> RiskThresholds:
    """Parse and validate the thresholds section.

    Args:
        data: Thresholds mapping

    Returns:
        Validated RiskThresholds

    Raises:
        ConfigValidationError: If thresholds are invalid
    """
    if not isinstance(data, dict):
        raise ConfigValidationError("'thresholds' must be a dictionary")

    unknown_keys = set(data.keys()) - _FLOAT_THRESHOLD_KEYS - _INT_THRESHOLD_KEYS
    if unknown_keys:
        raise ConfigValidationError(f"Unknown keys in thresholds: {unknown_keys}")

    kwargs: Dict[str, Any] = {}
    for key in _FLOAT_THRESHOLD_KEYS & data.keys():
        kwargs[key] = _require_number(data[key], f"thresholds.{key}")
    for key in _INT_THRESHOLD_KEYS & data.keys():
        kwargs[key] = _require_int(data[key], f"thresholds.{key}")

    return RiskThresholds(**kwargs)


def _require_number(value: Any, name: str) -> float:
    # bool is an int subclass; reject it explicitly
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        raise ConfigValidationError(f"'{name}' must be a number")
    if not math.isfinite(value):
        raise ConfigValidationError(f"'{name}' must be a finite number")
    return float(value)


def _require_int(value: Any, name: str) -> int:
    if isinstance(value, bool) or not isinstance(value, int):
        raise ConfigValidationError(f"'{name}' must be an integer")
    return value
