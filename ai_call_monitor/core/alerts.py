"""
Predictive alerts.

Projects metrics and risk scores onto alert flags, and keeps a bounded log
of the real-time alerts a session has raised.
"""

from collections import deque
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any, Dict, List

from .metrics import PreCallMetrics
from .risk import HIGH_CPU_PERCENT, HIGH_MEMORY_MB, RiskAssessment
from ai_call_monitor.config.loader import RiskThresholds

RATE_LIMIT_ACTIONS = ["Implement exponential backoff", "Consider local LLM", "Batch requests"]


@dataclass(frozen=True)
class AlertSet:
    """Threshold flags for one pending call, with one message per raised flag."""
    high_risk: bool = False
    rate_limit_warning: bool = False
    cost_alert: bool = False
    performance_alert: bool = False
    messages: List[str] = field(default_factory=list)

    @property
    def any(self) -> bool:
        return self.high_risk or self.rate_limit_warning or self.cost_alert or self.performance_alert


class AlertType(Enum):
    RISK = "risk"
    RATE_LIMIT = "rate_limit"


class AlertSeverity(Enum):
    WARNING = "warning"
    CRITICAL = "critical"


@dataclass(frozen=True)
class PredictiveAlert:
    """Real-time alert raised before a call."""
    type: AlertType
    severity: AlertSeverity
    message: str
    timestamp: datetime
    context: Dict[str, Any] = field(default_factory=dict)
    actions: List[str] = field(default_factory=list)


def generate_alerts(
    metrics: PreCallMetrics,
    risk: RiskAssessment,
    thresholds: RiskThresholds
) -> AlertSet:
    """Compare metrics and risk scores against thresholds.

    Flags are checked in a fixed order (high risk, rate limit, cost,
    performance) and each raised flag adds exactly one message.

    Args:
        metrics: Pre-call metrics for the request
        risk: Risk assessment for the request
        thresholds: Configured alert thresholds

    Returns:
        AlertSet with flags and messages
    """
    messages: List[str] = []

    high_risk = risk.overall_risk > thresholds.high_risk
    if high_risk:
        messages.append(f"High risk detected ({risk.overall_risk * 100:.1f}%)")

    rate_limit_warning = risk.rate_limit_probability > thresholds.rate_limit_probability
    if rate_limit_warning:
        messages.append(f"Rate limit likely ({risk.rate_limit_probability * 100:.1f}% probability)")

    cost_alert = metrics.estimated_cost > thresholds.cost_threshold
    if cost_alert:
        messages.append(f"High cost estimated (${metrics.estimated_cost:.4f})")

    performance_alert = metrics.memory_usage > HIGH_MEMORY_MB or metrics.cpu_usage > HIGH_CPU_PERCENT
    if performance_alert:
        messages.append("Performance issues detected")

    return AlertSet(
        high_risk=high_risk,
        rate_limit_warning=rate_limit_warning,
        cost_alert=cost_alert,
        performance_alert=performance_alert,
        messages=messages,
    )


def build_real_time_alerts(
    metrics: PreCallMetrics,
    risk: RiskAssessment,
    alerts: AlertSet,
    timestamp: datetime
) -> List[PredictiveAlert]:
    """Turn high-risk and rate-limit flags into PredictiveAlerts."""
    raised = []
    if alerts.high_risk:
        raised.append(PredictiveAlert(
            type=AlertType.RISK,
            severity=AlertSeverity.WARNING,
            message=f"High risk detected before LLM call: {', '.join(alerts.messages)}",
            timestamp=timestamp,
            context={
                "risk_score": risk.overall_risk,
                "risk_factors": list(risk.risk_factors),
            },
            actions=list(risk.recommendations),
        ))
    if alerts.rate_limit_warning:
        raised.append(PredictiveAlert(
            type=AlertType.RATE_LIMIT,
            severity=AlertSeverity.WARNING,
            message=f"Rate limit likely: {risk.rate_limit_probability * 100:.1f}% probability",
            timestamp=timestamp,
            context={
                "recent_call_frequency": metrics.recent_call_frequency,
                "recent_rate_limit_events": metrics.recent_rate_limit_events,
            },
            actions=list(RATE_LIMIT_ACTIONS),
        ))
    return raised


class AlertLog:
    """Bounded, append-only log of real-time alerts."""

    def __init__(self, max_size: int = 100):
        self._alerts = deque(maxlen=max_size)

    def append(self, alert: PredictiveAlert) -> None:
        self._alerts.append(alert)

    def recent(self, limit: int = 10) -> List[PredictiveAlert]:
        """Most recent `limit` alerts, oldest first."""
        if limit <= 0:
            return []
        return list(self._alerts)[-limit:]

    def __len__(self) -> int:
        return len(self._alerts)
