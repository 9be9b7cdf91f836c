"""
Shared fakes for monitor tests.

Deterministic stand-ins for the clock, system probe, version-control probe,
estimator and snapshot sink.
"""

from datetime import datetime, timedelta

import pytest

from ai_call_monitor.config.loader import MonitoringConfig, RiskThresholds
from ai_call_monitor.core.probes import GitStatus, SystemProbe, VersionControlProbe
from ai_call_monitor.core.session import MonitoringSession
from ai_call_monitor.core.token_counter import TokenEstimate

# A Wednesday, inside business hours
FIXED_NOW = datetime(2024, 1, 10, 10, 0, 0)


class FixedClock:
    """Clock that only moves when told to."""

    def __init__(self, now: datetime = FIXED_NOW):
        self.now = now

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs) -> None:
        self.now = self.now + timedelta(**kwargs)


class FakeSystemProbe(SystemProbe):
    """System probe returning fixed readings."""

    def __init__(self, memory: float = 100.0, cpu: float = 10.0, latency: float = 50.0, available: bool = True):
        self.memory = memory
        self.cpu = cpu
        self.latency = latency
        self.available = available

    def memory_usage_mb(self) -> float:
        return self.memory

    def cpu_usage_percent(self) -> float:
        return self.cpu

    def network_latency_ms(self) -> float:
        return self.latency

    def provider_available(self, model: str) -> bool:
        return self.available


class BrokenSystemProbe(SystemProbe):
    """System probe whose every reading fails."""

    def memory_usage_mb(self) -> float:
        raise RuntimeError("memory probe down")

    def cpu_usage_percent(self) -> float:
        raise RuntimeError("cpu probe down")

    def network_latency_ms(self) -> float:
        raise TimeoutError("latency probe timed out")

    def provider_available(self, model: str) -> bool:
        raise RuntimeError("availability probe down")


class FakeVcsProbe(VersionControlProbe):
    """Version-control probe with a fixed answer (None means no repository)."""

    def __init__(self, branch="main", status=GitStatus(dirty=False, uncommitted_count=0), last_commit="abc123 Initial commit"):
        self.branch = branch
        self._status = status
        self.last_commit = last_commit

    def current_branch(self):
        return self.branch

    def status(self):
        return self._status

    def last_commit_summary(self):
        return self.last_commit


class FakeEstimator:
    """Estimator returning a fixed token and cost estimate."""

    def __init__(self, tokens: int = 2, cost: float = 0.000003):
        self.tokens = tokens
        self.cost = cost
        self.calls = []

    def estimate(self, messages, model):
        self.calls.append((messages, model))
        return TokenEstimate(tokens=self.tokens, cost=self.cost)


class RecordingSink:
    """Snapshot sink that keeps snapshots in memory."""

    def __init__(self):
        self.snapshots = []

    def write(self, snapshot):
        self.snapshots.append(snapshot)


@pytest.fixture
def clock():
    return FixedClock()


@pytest.fixture
def sink():
    return RecordingSink()


@pytest.fixture
def make_session(clock, sink):
    """Factory for sessions wired to deterministic fakes."""
    def _make(
        config=None,
        thresholds=None,
        system_probe=None,
        vcs_probe=None,
        estimator=None,
        snapshot_sink=None
    ):
        if config is None:
            config = MonitoringConfig(
                thresholds=thresholds or RiskThresholds(),
                latency_probe_url=None
            )
        return MonitoringSession(
            config,
            estimator=estimator,
            system_probe=system_probe or FakeSystemProbe(),
            vcs_probe=vcs_probe or FakeVcsProbe(),
            snapshot_sink=snapshot_sink or sink,
            clock=clock
        )
    return _make
