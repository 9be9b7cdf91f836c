"""
Risk assessment for pending calls.

Combines pre-call metrics and situational context into per-category risk
scores, an overall risk, and the factors and recommendations behind them.
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import List, Optional

from .context import HumanReadableContext
from .metrics import PreCallMetrics
from ai_call_monitor.config.loader import RiskThresholds

HIGH_CALL_FREQUENCY = 5
HIGH_PROVIDER_LOAD = 0.8
HIGH_MEMORY_MB = 500
HIGH_CPU_PERCENT = 80
HIGH_LATENCY_MS = 1000
SENSITIVE_FILE_MARKERS = ("password", "secret")

MEDIUM_RISK_LEVEL = 0.4
HIGH_RISK_LEVEL = 0.7


class RiskLevel(Enum):
    """Coarse decision bands for an overall risk score."""
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"


@dataclass(frozen=True)
class RiskAssessment:
    """Category risk scores with their explanations.

    Category scores are plain sums of rule weights and are never
    normalized. `overall_risk` is the largest category score.
    """
    rate_limit_probability: float = 0.0
    cost_risk: float = 0.0
    performance_risk: float = 0.0
    security_risk: float = 0.0
    overall_risk: float = 0.0
    risk_factors: List[str] = field(default_factory=list)
    recommendations: List[str] = field(default_factory=list)


def empty_assessment() -> RiskAssessment:
    """Neutral assessment used when monitoring is disabled or fails."""
    return RiskAssessment()


def is_sensitive_file(path: Optional[str]) -> bool:
    if not path:
        return False
    return any(marker in path for marker in SENSITIVE_FILE_MARKERS)


def assess_risk(
    metrics: PreCallMetrics,
    context: HumanReadableContext,
    thresholds: RiskThresholds
) -> RiskAssessment:
    """Score a pending call across the four risk categories.

    Rules (each adds its weight and one factor/recommendation pair):
    - Rate limit: frequency > 5 (+0.3), rate-limit events > 0 (+0.4),
      provider load > 0.8 (+0.2)
    - Cost: estimated cost > cost_threshold (+0.5),
      estimated tokens > token_threshold (+0.3)
    - Performance: memory > 500 MB (+0.3), CPU > 80% (+0.4),
      latency > 1000 ms (+0.3)
    - Security: current file mentions password/secret (+0.5)

    Args:
        metrics: Pre-call metrics for the request
        context: Human-readable context for the request
        thresholds: Configured cost and token thresholds

    Returns:
        RiskAssessment with overall_risk = max of the category scores
    """
    risk_factors: List[str] = []
    recommendations: List[str] = []

    def _flag(factor: str, recommendation: str) -> None:
        risk_factors.append(factor)
        recommendations.append(recommendation)

    rate_limit_probability = 0.0
    cost_risk = 0.0
    performance_risk = 0.0
    security_risk = 0.0

    # Rate limit risk
    if metrics.recent_call_frequency > HIGH_CALL_FREQUENCY:
        rate_limit_probability += 0.3
        _flag("High call frequency", "Consider batching requests or using local LLM")

    if metrics.recent_rate_limit_events > 0:
        rate_limit_probability += 0.4
        _flag("Recent rate limit events", "Implement exponential backoff and retry logic")

    if metrics.provider_load > HIGH_PROVIDER_LOAD:
        rate_limit_probability += 0.2
        _flag("High provider load", "Consider switching to alternative provider")

    # Cost risk
    if metrics.estimated_cost > thresholds.cost_threshold:
        cost_risk += 0.5
        _flag("High estimated cost", "Consider using local LLM or optimizing prompt")

    if metrics.estimated_tokens > thresholds.token_threshold:
        cost_risk += 0.3
        _flag("High token usage", "Truncate or optimize input messages")

    # Performance risk
    if metrics.memory_usage > HIGH_MEMORY_MB:
        performance_risk += 0.3
        _flag("High memory usage", "Consider garbage collection or memory optimization")

    if metrics.cpu_usage > HIGH_CPU_PERCENT:
        performance_risk += 0.4
        _flag("High CPU usage", "Consider reducing concurrent operations")

    if metrics.network_latency > HIGH_LATENCY_MS:
        performance_risk += 0.3
        _flag("High network latency", "Check network connectivity or use local LLM")

    # Security risk
    if is_sensitive_file(context.current_file):
        security_risk += 0.5
        _flag("Sensitive file context", "Ensure no sensitive data in prompts")

    return RiskAssessment(
        rate_limit_probability=rate_limit_probability,
        cost_risk=cost_risk,
        performance_risk=performance_risk,
        security_risk=security_risk,
        overall_risk=max(rate_limit_probability, cost_risk, performance_risk, security_risk),
        risk_factors=risk_factors,
        recommendations=recommendations,
    )


def classify_risk(overall_risk: float) -> RiskLevel:
    """Map an overall risk score to a decision band."""
    if overall_risk > HIGH_RISK_LEVEL:
        return RiskLevel.HIGH
    if overall_risk > MEDIUM_RISK_LEVEL:
        return RiskLevel.MEDIUM
    return RiskLevel.LOW
