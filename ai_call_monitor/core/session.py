"""
Monitoring session orchestration.

A MonitoringSession owns the configuration, the call history and the alert
log for one process. It runs the pre-call pipeline (metrics, context, risk,
alerts), persists a snapshot per call and takes outcomes back afterwards.

Monitoring is advisory: nothing in `monitor_before_call` or
`record_call_result` raises to the caller. Only an invalid configuration
fails, and it fails at construction time.
"""

import logging
import math
import uuid
from collections import deque
from dataclasses import asdict, dataclass
from datetime import datetime
from enum import Enum
from typing import Any, Callable, Dict, List, Optional

from .alerts import AlertLog, AlertSet, PredictiveAlert, build_real_time_alerts, generate_alerts
from .context import HumanReadableContext, ContextCollector, SystemContext
from .history import CallHistoryStore
from .metrics import CallRequest, MetricsCollector, PreCallMetrics, empty_metrics
from .pricing import TokenCostEstimator
from .probes import GitProbe, PlatformProbe, SystemProbe, VersionControlProbe
from .risk import RiskAssessment, assess_risk, empty_assessment
from ai_call_monitor.config.loader import MonitoringConfig
from ai_call_monitor.storage.models import CallOutcome
from ai_call_monitor.storage.snapshots import JsonFileSnapshotSink

logger = logging.getLogger(__name__)

RECENT_ACTION_LIMIT = 5
RECENT_ALERT_LIMIT = 10


def _to_json_value(value: Any) -> Any:
    if isinstance(value, dict):
        return {key: _to_json_value(item) for key, item in value.items()}
    if isinstance(value, (list, tuple)):
        return [_to_json_value(item) for item in value]
    if isinstance(value, datetime):
        return value.isoformat()
    if isinstance(value, Enum):
        return value.value
    if isinstance(value, float) and math.isinf(value):
        # JSON has no infinity; "no success in window" is written as null
        return None
    return value


@dataclass(frozen=True)
class MonitoringSnapshot:
    """Everything the monitor knew about one pending call."""
    session_id: str
    timestamp: datetime
    pre_call_metrics: PreCallMetrics
    human_readable_context: HumanReadableContext
    risk_assessment: RiskAssessment
    alerts: AlertSet

    def to_dict(self) -> Dict[str, Any]:
        """JSON-ready representation of the snapshot."""
        return _to_json_value(asdict(self))


def neutral_context(moment: datetime) -> HumanReadableContext:
    """Context carrying no signal; only the clock readings are real."""
    return HumanReadableContext(
        user_intent="Unknown",
        current_workflow="Unknown",
        system_context=SystemContext(
            time_of_day=moment.strftime("%H:%M:%S"),
            day_of_week=moment.strftime("%A"),
            is_business_hours=False,
            is_weekend=False,
        ),
    )


class MonitoringSession:
    """Predictive monitor for outbound LLM calls.

    Collaborators default to the real platform probes, git, the built-in
    pricing table and a JSON file sink under `config.monitoring_data_path`;
    each can be replaced for tests or other environments.
    """

    def __init__(
        self,
        config: Optional[MonitoringConfig] = None,
        estimator: Optional[TokenCostEstimator] = None,
        system_probe: Optional[SystemProbe] = None,
        vcs_probe: Optional[VersionControlProbe] = None,
        snapshot_sink=None,
        clock: Callable[[], datetime] = datetime.now
    ):
        """Initialize the session.

        Args:
            config: Monitoring configuration (defaults if omitted)
            estimator: Token/cost estimator
            system_probe: Memory/CPU/latency probe
            vcs_probe: Version-control probe
            snapshot_sink: Object with a `write(snapshot)` method
            clock: Callable returning the current local time

        Raises:
            ConfigValidationError: If config is invalid
            TypeError: If config is not a MonitoringConfig
        """
        if config is None:
            config = MonitoringConfig()
        if not isinstance(config, MonitoringConfig):
            raise TypeError("config must be a MonitoringConfig")

        self.config = config
        self._clock = clock
        self.started_at = clock()
        self.session_id = f"monitoring-{int(self.started_at.timestamp() * 1000)}-{uuid.uuid4().hex[:9]}"

        self.history = CallHistoryStore(config.monitoring_window, clock=clock)
        self.alert_log = AlertLog()
        self._recent_actions = deque(maxlen=RECENT_ACTION_LIMIT)

        self.snapshot_sink = snapshot_sink or JsonFileSnapshotSink(config.monitoring_data_path)
        self.metrics_collector = MetricsCollector(
            window_minutes=config.monitoring_window,
            estimator=estimator or TokenCostEstimator(),
            system_probe=system_probe or PlatformProbe(
                latency_url=config.latency_probe_url,
                timeout=config.probe_timeout,
            ),
            session_start=self.started_at,
            clock=clock,
        )
        self.context_collector = ContextCollector(
            vcs_probe=vcs_probe or GitProbe(timeout=config.probe_timeout),
            consecutive_failure_limit=config.thresholds.consecutive_failures,
            clock=clock,
        )

    def monitor_before_call(self, request: CallRequest) -> MonitoringSnapshot:
        """Assess a pending call.

        Never raises. When monitoring is disabled or any stage fails, the
        neutral snapshot is returned (zero risk, no alerts).

        Args:
            request: The call about to be made

        Returns:
            MonitoringSnapshot for the call
        """
        if not self.config.enabled:
            return self.empty_snapshot()

        try:
            snapshot = self._run_pipeline(request)
        except Exception as e:
            logger.warning(f"Predictive monitoring failed: {e}")
            return self.empty_snapshot()

        try:
            self.snapshot_sink.write(snapshot)
        except Exception as e:
            logger.warning(f"Failed to save monitoring data: {e}")

        if self.config.enable_real_time_alerts:
            self._raise_real_time_alerts(snapshot)

        self._recent_actions.append(f"Monitored {request.model} call ({request.purpose or 'no purpose'})")
        return snapshot

    def record_call_result(
        self,
        call_id: Optional[str],
        success: bool,
        error: Optional[str] = None,
        provider: Optional[str] = None,
        cost: Optional[float] = None,
        tokens: Optional[int] = None
    ) -> None:
        """Feed the outcome of a call back into the history.

        Safe to call without a matching `monitor_before_call`. Invalid
        values are logged and dropped rather than raised.

        Args:
            call_id: Caller's identifier for the call
            success: Whether the call succeeded
            error: Error message for failed calls
            provider: Provider that served the call
            cost: Actual cost of the call
            tokens: Actual tokens used
        """
        try:
            outcome = CallOutcome(
                timestamp=self._clock(),
                success=success,
                error=error,
                provider=provider or "unknown",
                cost=cost or 0.0,
                tokens=tokens or 0,
                call_id=call_id,
            )
            self.history.record(outcome)
        except Exception as e:
            logger.warning(f"Could not record result for call {call_id}: {e}")
            return

        verb = "succeeded" if success else "failed"
        self._recent_actions.append(f"Call {call_id or 'unknown'} {verb} via {outcome.provider}")

    def get_recent_alerts(self, limit: int = RECENT_ALERT_LIMIT) -> List[PredictiveAlert]:
        """Latest real-time alerts raised by this session."""
        return self.alert_log.recent(limit)

    def empty_snapshot(self) -> MonitoringSnapshot:
        """Neutral snapshot: zero metrics, zero risk, no alerts."""
        now = self._clock()
        return MonitoringSnapshot(
            session_id=self.session_id,
            timestamp=now,
            pre_call_metrics=empty_metrics(),
            human_readable_context=neutral_context(now),
            risk_assessment=empty_assessment(),
            alerts=AlertSet(),
        )

    def _run_pipeline(self, request: CallRequest) -> MonitoringSnapshot:
        config = self.config
        history = self.history.query(config.monitoring_window)
        now = self._clock()

        if config.enable_pre_call_metrics:
            metrics = self.metrics_collector.collect(request, history)
        else:
            metrics = empty_metrics()

        if config.enable_context_analysis:
            context = self.context_collector.collect(request, history, list(self._recent_actions))
        else:
            context = neutral_context(now)

        if config.enable_risk_assessment:
            risk = assess_risk(metrics, context, config.thresholds)
        else:
            risk = empty_assessment()

        if config.enable_predictive_alerts:
            alerts = generate_alerts(metrics, risk, config.thresholds)
        else:
            alerts = AlertSet()

        return MonitoringSnapshot(
            session_id=self.session_id,
            timestamp=now,
            pre_call_metrics=metrics,
            human_readable_context=context,
            risk_assessment=risk,
            alerts=alerts,
        )

    def _raise_real_time_alerts(self, snapshot: MonitoringSnapshot) -> None:
        raised = build_real_time_alerts(
            snapshot.pre_call_metrics,
            snapshot.risk_assessment,
            snapshot.alerts,
            snapshot.timestamp,
        )
        for alert in raised:
            self.alert_log.append(alert)
            logger.warning(alert.message)
