"""
Unit tests for the monitoring session.

Tests the end-to-end pre-call pipeline, feature toggles, failure isolation
and outcome recording.
"""

import json
import logging
import math
from unittest.mock import patch

import pytest

from ai_call_monitor.config.loader import MonitoringConfig, RiskThresholds
from ai_call_monitor.core.alerts import AlertType
from ai_call_monitor.core.metrics import CallRequest
from ai_call_monitor.core.session import MonitoringSession

from conftest import BrokenSystemProbe, FakeEstimator, FakeSystemProbe, FakeVcsProbe

HELLO = [{"role": "user", "content": "Hello"}]


def hello_request(model: str = "gpt-3.5-turbo", **kwargs) -> CallRequest:
    return CallRequest(model=model, messages=HELLO, context="general", purpose="greeting", **kwargs)


class _FailingSink:
    def write(self, snapshot):
        raise OSError("disk full")


class TestPipeline:
    """Test the full pre-call assessment."""

    def test_quiet_first_call(self, make_session, sink):
        """A first small call has no risk, no alerts and no last success."""
        session = make_session()

        snapshot = session.monitor_before_call(hello_request())

        metrics = snapshot.pre_call_metrics
        assert metrics.estimated_tokens == 2
        assert metrics.estimated_cost < 0.0001
        assert metrics.recent_call_frequency == 0
        assert math.isinf(metrics.time_since_last_success)
        assert snapshot.risk_assessment.overall_risk == 0
        assert snapshot.risk_assessment.risk_factors == []
        assert not snapshot.alerts.any
        assert snapshot.session_id == session.session_id
        assert sink.snapshots == [snapshot]

    def test_high_call_frequency(self, make_session):
        """Six recent calls in a one-hour window trip the frequency rule."""
        session = make_session()
        for i in range(6):
            session.record_call_result(f"call-{i}", success=True, provider="openai")

        snapshot = session.monitor_before_call(hello_request())

        assert snapshot.pre_call_metrics.recent_call_frequency == pytest.approx(6.0)
        assert "High call frequency" in snapshot.risk_assessment.risk_factors
        assert snapshot.risk_assessment.rate_limit_probability >= 0.3

    def test_rate_limit_warning(self, make_session):
        """A recent 429 with a low threshold raises a rate-limit warning."""
        session = make_session(thresholds=RiskThresholds(rate_limit_probability=0.3))
        session.record_call_result("call-1", success=False, error="429 Too Many Requests", provider="openai")

        snapshot = session.monitor_before_call(hello_request())

        assert snapshot.pre_call_metrics.recent_rate_limit_events == 1
        assert snapshot.risk_assessment.rate_limit_probability >= 0.4
        assert snapshot.alerts.rate_limit_warning
        assert any(message.startswith("Rate limit likely") for message in snapshot.alerts.messages)

    def test_cost_alert(self, make_session):
        """An expensive estimate trips the cost rule and the cost alert."""
        session = make_session(
            thresholds=RiskThresholds(cost_threshold=0.10),
            estimator=FakeEstimator(tokens=5000, cost=0.20)
        )

        snapshot = session.monitor_before_call(hello_request(model="gpt-4"))

        assert snapshot.alerts.cost_alert
        assert "High estimated cost" in snapshot.risk_assessment.risk_factors
        assert "High cost estimated ($0.2000)" in snapshot.alerts.messages

    def test_repeated_monitoring_is_stable(self, make_session):
        """Monitoring twice with no outcome in between gives the same risk."""
        session = make_session()
        session.record_call_result("call-1", success=False, error="429", provider="openai")

        first = session.monitor_before_call(hello_request())
        second = session.monitor_before_call(hello_request())

        assert first.risk_assessment == second.risk_assessment
        assert first.pre_call_metrics == second.pre_call_metrics

    def test_time_since_last_success(self, make_session, clock):
        """Elapsed time is measured from the newest success."""
        session = make_session()
        session.record_call_result("call-1", success=True, provider="openai")
        clock.advance(minutes=2)
        session.record_call_result("call-2", success=True, provider="openai")
        clock.advance(seconds=30)

        snapshot = session.monitor_before_call(hello_request())

        assert snapshot.pre_call_metrics.time_since_last_success == pytest.approx(30_000)
        assert snapshot.pre_call_metrics.session_duration == pytest.approx(150_000)

    def test_outcomes_outside_window_are_forgotten(self, make_session, clock):
        """Outcomes older than the window no longer count."""
        session = make_session()
        session.record_call_result("call-1", success=False, error="429", provider="openai")
        clock.advance(minutes=61)

        snapshot = session.monitor_before_call(hello_request())

        assert snapshot.pre_call_metrics.recent_rate_limit_events == 0
        assert len(session.history) == 0

    def test_recent_actions_feed_context(self, make_session):
        """Session activity shows up as recent actions."""
        session = make_session()
        session.monitor_before_call(hello_request())
        session.record_call_result("call-1", success=True, provider="openai")

        snapshot = session.monitor_before_call(hello_request())

        assert snapshot.human_readable_context.recent_actions == [
            "Monitored gpt-3.5-turbo call (greeting)",
            "Call call-1 succeeded via openai",
        ]


class TestConfigurationToggles:
    """Test disabled monitoring and per-stage toggles."""

    def test_disabled_returns_neutral_snapshot(self, make_session, sink):
        """Disabled monitoring assesses nothing and persists nothing."""
        estimator = FakeEstimator(cost=5.0)
        session = make_session(config=MonitoringConfig(enabled=False, latency_probe_url=None), estimator=estimator)
        session.record_call_result("call-429", success=False, error="429 Too Many Requests", provider="openai")
        for i in range(6):
            session.record_call_result(f"call-{i}", success=True, provider="openai")

        snapshot = session.monitor_before_call(hello_request())

        assert len(session.history) == 7
        assert snapshot.risk_assessment.overall_risk == 0
        assert snapshot.risk_assessment.risk_factors == []
        assert not snapshot.alerts.any
        assert snapshot.pre_call_metrics.estimated_cost == 0
        assert snapshot.pre_call_metrics.recent_call_frequency == 0
        assert snapshot.pre_call_metrics.recent_rate_limit_events == 0
        assert estimator.calls == []
        assert sink.snapshots == []
        assert session.get_recent_alerts() == []

    def test_neutral_context_carries_no_time_signal(self, make_session):
        """The neutral snapshot reports no business hours or weekend."""
        session = make_session(config=MonitoringConfig(enabled=False, latency_probe_url=None))

        system = session.monitor_before_call(hello_request()).human_readable_context.system_context

        # FIXED_NOW is a Wednesday at 10:00, inside business hours
        assert system.is_business_hours is False
        assert system.is_weekend is False
        assert system.day_of_week == "Wednesday"
        assert system.time_of_day == "10:00:00"

    def test_metrics_toggle(self, make_session):
        """With metrics off nothing is estimated or probed."""
        estimator = FakeEstimator(cost=5.0)
        config = MonitoringConfig(enable_pre_call_metrics=False, latency_probe_url=None)
        session = make_session(config=config, estimator=estimator)

        snapshot = session.monitor_before_call(hello_request())

        assert estimator.calls == []
        assert snapshot.pre_call_metrics.estimated_cost == 0
        assert not snapshot.alerts.cost_alert

    def test_context_toggle(self, make_session):
        """With context analysis off the context is neutral."""
        config = MonitoringConfig(enable_context_analysis=False, latency_probe_url=None)
        session = make_session(config=config)

        snapshot = session.monitor_before_call(hello_request())

        assert snapshot.human_readable_context.user_intent == "Unknown"
        assert snapshot.human_readable_context.git_context is None

    def test_risk_toggle(self, make_session):
        """With risk assessment off, risk is zero even with bad history."""
        config = MonitoringConfig(enable_risk_assessment=False, latency_probe_url=None)
        session = make_session(config=config)
        session.record_call_result("call-1", success=False, error="429", provider="openai")

        snapshot = session.monitor_before_call(hello_request())

        assert snapshot.pre_call_metrics.recent_rate_limit_events == 1
        assert snapshot.risk_assessment.overall_risk == 0

    def test_alerts_toggle(self, make_session):
        """With predictive alerts off no flag is raised."""
        config = MonitoringConfig(enable_predictive_alerts=False, latency_probe_url=None)
        session = make_session(config=config, estimator=FakeEstimator(cost=5.0))

        snapshot = session.monitor_before_call(hello_request())

        assert snapshot.risk_assessment.cost_risk > 0
        assert not snapshot.alerts.any

    def test_invalid_config_type(self):
        """Construction rejects something that is not a MonitoringConfig."""
        with pytest.raises(TypeError):
            MonitoringSession({"enabled": True})


class TestFailureIsolation:
    """Monitoring problems never reach the caller."""

    def test_pipeline_failure_returns_neutral_snapshot(self, make_session, sink, caplog):
        """An exception inside the pipeline yields the neutral snapshot."""
        session = make_session()

        with patch('ai_call_monitor.core.session.assess_risk', side_effect=RuntimeError("boom")):
            with caplog.at_level(logging.WARNING):
                snapshot = session.monitor_before_call(hello_request())

        assert snapshot.risk_assessment.overall_risk == 0
        assert not snapshot.alerts.any
        assert sink.snapshots == []
        assert "Predictive monitoring failed" in caplog.text

    def test_sink_failure_is_tolerated(self, make_session, caplog):
        """A failing sink still returns the computed snapshot."""
        session = make_session(snapshot_sink=_FailingSink(), estimator=FakeEstimator(cost=5.0))

        with caplog.at_level(logging.WARNING):
            snapshot = session.monitor_before_call(hello_request())

        assert snapshot.alerts.cost_alert
        assert "Failed to save monitoring data" in caplog.text

    def test_broken_probes_do_not_fail_monitoring(self, make_session):
        """Unavailable system readings fall back to defaults."""
        session = make_session(system_probe=BrokenSystemProbe())

        snapshot = session.monitor_before_call(hello_request())

        assert snapshot.pre_call_metrics.memory_usage == 0
        assert snapshot.pre_call_metrics.provider_available is True
        assert snapshot.pre_call_metrics.estimated_tokens == 2


class TestRecordCallResult:
    """Test outcome recording."""

    def test_record_without_prior_monitoring(self, make_session):
        """Outcomes can be recorded for calls that were never monitored."""
        session = make_session()

        session.record_call_result("orphan", success=True)

        assert len(session.history) == 1
        assert session.history.query(60)[0].provider == "unknown"

    def test_invalid_outcome_is_dropped(self, make_session, caplog):
        """Invalid values are logged instead of raised."""
        session = make_session()

        with caplog.at_level(logging.WARNING):
            session.record_call_result("bad", success=True, cost=-1.0)

        assert len(session.history) == 0
        assert "Could not record result for call bad" in caplog.text

    def test_actual_cost_and_tokens_are_kept(self, make_session):
        """Recorded outcomes carry their cost and token usage."""
        session = make_session()

        session.record_call_result("call-1", success=True, provider="openai", cost=0.012, tokens=800)

        outcome = session.history.query(60)[0]
        assert outcome.cost == 0.012
        assert outcome.tokens == 800
        assert outcome.call_id == "call-1"


class TestRealTimeAlerts:
    """Test alerts surfaced while monitoring."""

    def test_rate_limit_alert_is_logged_and_kept(self, make_session, caplog):
        """Rate-limit warnings land in the alert log and the log output."""
        session = make_session(thresholds=RiskThresholds(rate_limit_probability=0.3))
        session.record_call_result("call-1", success=False, error="429", provider="openai")

        with caplog.at_level(logging.WARNING):
            session.monitor_before_call(hello_request())

        alerts = session.get_recent_alerts()
        assert [alert.type for alert in alerts] == [AlertType.RATE_LIMIT]
        assert "Rate limit likely" in caplog.text

    def test_real_time_alerts_can_be_disabled(self, make_session):
        """The alert log stays empty when real-time alerts are off."""
        config = MonitoringConfig(
            enable_real_time_alerts=False,
            latency_probe_url=None,
            thresholds=RiskThresholds(rate_limit_probability=0.3)
        )
        session = make_session(config=config)
        session.record_call_result("call-1", success=False, error="429", provider="openai")

        snapshot = session.monitor_before_call(hello_request())

        assert snapshot.alerts.rate_limit_warning
        assert session.get_recent_alerts() == []


class TestSnapshotSerialization:
    """Test JSON-ready snapshot output."""

    def test_to_dict_is_json_serializable(self, make_session):
        """Infinity, datetimes and nested dataclasses serialize cleanly."""
        session = make_session(vcs_probe=FakeVcsProbe(branch="main"))
        snapshot = session.monitor_before_call(hello_request())

        data = snapshot.to_dict()
        encoded = json.dumps(data)

        assert data["pre_call_metrics"]["time_since_last_success"] is None
        assert data["timestamp"] == "2024-01-10T10:00:00"
        assert data["human_readable_context"]["git_context"]["branch"] == "main"
        assert "Infinity" not in encoded

    def test_default_sink_writes_json_files(self, tmp_path, clock):
        """The default sink writes under the configured data path."""
        config = MonitoringConfig(monitoring_data_path=str(tmp_path / "monitoring"), latency_probe_url=None)
        session = MonitoringSession(
            config,
            system_probe=FakeSystemProbe(),
            vcs_probe=FakeVcsProbe(),
            clock=clock
        )

        session.monitor_before_call(hello_request())
        session.monitor_before_call(hello_request())

        files = sorted((tmp_path / "monitoring").glob("monitoring-*.json"))
        assert len(files) == 2
        with open(files[0], 'r', encoding='utf-8') as f:
            assert json.load(f)["session_id"] == session.session_id
