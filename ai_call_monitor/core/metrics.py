"""
Pre-call metrics collection.

Derives computable signals for a pending request from the request itself,
the sliding call history and live system probes.
"""

import logging
from dataclasses import dataclass, field
from datetime import datetime
from typing import Callable, Dict, List, Optional, TypeVar

from .pricing import TokenCostEstimator
from .probes import SystemProbe
from .token_counter import TokenEstimate, message_length
from ai_call_monitor.storage.models import CallOutcome

logger = logging.getLogger(__name__)

T = TypeVar("T")

HIGH_LOAD_CALLS_PER_WINDOW_HOUR = 10
COMPLEXITY_CHARS = 2000


@dataclass(frozen=True)
class CallRequest:
    """A pending outbound call as seen by the monitor."""
    model: str
    messages: List[Dict[str, str]] = field(default_factory=list)
    context: Optional[str] = None
    purpose: Optional[str] = None
    value_score: Optional[float] = None
    current_file: Optional[str] = None


@dataclass(frozen=True)
class PreCallMetrics:
    """Computable metrics for one pending call."""
    estimated_tokens: int
    estimated_cost: float
    message_complexity: float
    request_urgency: float
    provider_available: bool
    recent_call_frequency: float
    recent_error_rate: float
    recent_rate_limit_events: int
    provider_load: float
    time_since_last_success: float  # ms, inf when no success in window
    session_duration: float  # ms
    memory_usage: float  # MB
    cpu_usage: float  # percent
    network_latency: float  # ms


def empty_metrics() -> PreCallMetrics:
    """Neutral metrics used when monitoring is disabled or fails."""
    return PreCallMetrics(
        estimated_tokens=0,
        estimated_cost=0.0,
        message_complexity=0.0,
        request_urgency=0.0,
        provider_available=True,
        recent_call_frequency=0.0,
        recent_error_rate=0.0,
        recent_rate_limit_events=0,
        provider_load=0.0,
        time_since_last_success=0.0,
        session_duration=0.0,
        memory_usage=0.0,
        cpu_usage=0.0,
        network_latency=0.0,
    )


def calculate_request_urgency(context: Optional[str], purpose: Optional[str]) -> float:
    """Score how time-sensitive a request is, from 0.5 up to 1.0."""
    purpose = purpose or ""
    urgency = 0.5

    if "urgent" in purpose or "critical" in purpose:
        urgency += 0.3
    if context in ("production", "live"):
        urgency += 0.2
    if "real-time" in purpose or "immediate" in purpose:
        urgency += 0.2

    return min(1.0, urgency)


def _milliseconds(delta) -> float:
    return delta.total_seconds() * 1000


class MetricsCollector:
    """Builds PreCallMetrics for a request.

    Collection never fails: estimator and probe errors are logged at DEBUG
    level and replaced by neutral values.
    """

    def __init__(
        self,
        window_minutes: int,
        estimator: TokenCostEstimator,
        system_probe: SystemProbe,
        session_start: datetime,
        clock: Callable[[], datetime] = datetime.now
    ):
        self.window_minutes = window_minutes
        self.estimator = estimator
        self.system_probe = system_probe
        self.session_start = session_start
        self._clock = clock

    def collect(self, request: CallRequest, history: List[CallOutcome]) -> PreCallMetrics:
        """Collect metrics for `request` against the windowed `history`.

        Args:
            request: The pending call
            history: Outcomes inside the monitoring window

        Returns:
            PreCallMetrics for the request
        """
        now = self._clock()

        estimate = self._estimate(request)

        recent_call_frequency = len(history) / (self.window_minutes / 60)
        failures = sum(1 for outcome in history if not outcome.success)
        recent_error_rate = failures / len(history) if history else 0.0
        rate_limit_events = sum(1 for outcome in history if outcome.is_rate_limited)
        provider_load = min(1.0, recent_call_frequency / HIGH_LOAD_CALLS_PER_WINDOW_HOUR)

        successes = [outcome.timestamp for outcome in history if outcome.success]
        time_since_last_success = (
            _milliseconds(now - max(successes)) if successes else float("inf")
        )

        complexity = min(1.0, message_length(request.messages) / COMPLEXITY_CHARS)

        # Latency first: availability is judged from the latency response
        network_latency = self._probe(self.system_probe.network_latency_ms, 0.0, "network latency")

        return PreCallMetrics(
            estimated_tokens=estimate.tokens,
            estimated_cost=estimate.cost,
            message_complexity=complexity,
            request_urgency=calculate_request_urgency(request.context, request.purpose),
            provider_available=self._probe(
                lambda: self.system_probe.provider_available(request.model),
                True,
                "provider availability",
            ),
            recent_call_frequency=recent_call_frequency,
            recent_error_rate=recent_error_rate,
            recent_rate_limit_events=rate_limit_events,
            provider_load=provider_load,
            time_since_last_success=time_since_last_success,
            session_duration=_milliseconds(now - self.session_start),
            memory_usage=self._probe(self.system_probe.memory_usage_mb, 0.0, "memory"),
            cpu_usage=self._probe(self.system_probe.cpu_usage_percent, 0.0, "cpu"),
            network_latency=network_latency,
        )

    def _estimate(self, request: CallRequest) -> TokenEstimate:
        try:
            return self.estimator.estimate(request.messages, request.model)
        except Exception as e:
            logger.debug(f"Token/cost estimation failed for {request.model}: {e}")
            return TokenEstimate(tokens=0, cost=0.0)

    @staticmethod
    def _probe(read: Callable[[], T], default: T, name: str) -> T:
        try:
            return read()
        except Exception as e:
            logger.debug(f"{name} probe unavailable: {e}")
            return default
