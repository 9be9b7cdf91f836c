"""
Monitoring analytics.

Summarizes saved monitoring snapshots: how many sessions ran, how risky
the monitored calls were and which risk factors keep coming back.

Analysis is read-only and deterministic for the same set of snapshots.
"""

from collections import Counter
from dataclasses import dataclass, field
from typing import Any, Dict, List

TOP_N = 5


@dataclass
class MonitoringAnalytics:
    """Aggregate view over a set of monitoring snapshots."""
    total_sessions: int
    total_snapshots: int
    average_risk_score: float
    alert_count: int
    top_risk_factors: List[str] = field(default_factory=list)
    recommendations: List[str] = field(default_factory=list)


def summarize_snapshots(snapshots: List[Dict[str, Any]]) -> MonitoringAnalytics:
    """Aggregate snapshot dictionaries as written by the snapshot sink.

    Args:
        snapshots: Snapshot documents (see `load_snapshots`)

    Returns:
        MonitoringAnalytics; all zero/empty when no snapshots are given
    """
    if not snapshots:
        return MonitoringAnalytics(
            total_sessions=0,
            total_snapshots=0,
            average_risk_score=0.0,
            alert_count=0
        )

    factor_counts: Counter = Counter()
    recommendation_counts: Counter = Counter()
    sessions = set()
    total_risk = 0.0
    alert_count = 0

    for snapshot in snapshots:
        sessions.add(snapshot.get("session_id"))
        risk = snapshot.get("risk_assessment") or {}
        total_risk += float(risk.get("overall_risk") or 0.0)
        factor_counts.update(risk.get("risk_factors") or [])
        recommendation_counts.update(risk.get("recommendations") or [])
        alert_count += len((snapshot.get("alerts") or {}).get("messages") or [])

    return MonitoringAnalytics(
        total_sessions=len(sessions),
        total_snapshots=len(snapshots),
        average_risk_score=total_risk / len(snapshots),
        alert_count=alert_count,
        top_risk_factors=[name for name, _ in factor_counts.most_common(TOP_N)],
        recommendations=[name for name, _ in recommendation_counts.most_common(TOP_N)]
    )
