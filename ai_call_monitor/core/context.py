"""
Human-readable context collection.

Describes the situation around a call: what the caller seems to be doing,
where in the workflow it happens, repository state, time of day and any
recurring errors in the recent history.
"""

import logging
import os
from dataclasses import dataclass, field
from datetime import datetime
from typing import Callable, List, Mapping, Optional, Sequence

from .metrics import CallRequest
from .probes import VersionControlProbe
from ai_call_monitor.storage.models import CallOutcome

logger = logging.getLogger(__name__)

CURRENT_FILE_ENV = "VSCODE_CURRENT_FILE"
PREVIOUS_ERROR_LIMIT = 5

# Checked in order; first match wins
INTENT_KEYWORDS = (
    ("analysis", "Analyzing data or code"),
    ("generation", "Generating content"),
    ("review", "Reviewing code or content"),
    ("debug", "Debugging or troubleshooting"),
)
WORKFLOW_KEYWORDS = (
    ("test", "Testing"),
    ("ci", "Continuous Integration"),
    ("deploy", "Deployment"),
    ("development", "Development"),
)


@dataclass(frozen=True)
class GitContext:
    branch: Optional[str]
    status: str  # "clean" or "dirty"
    last_commit: Optional[str]
    uncommitted_changes: int


@dataclass(frozen=True)
class SystemContext:
    time_of_day: str
    day_of_week: str
    is_business_hours: bool
    is_weekend: bool


@dataclass(frozen=True)
class ErrorContext:
    previous_errors: List[str]
    error_patterns: List[str]
    last_error_time: Optional[datetime]
    consecutive_failures: int = 0


@dataclass(frozen=True)
class HumanReadableContext:
    """Situational context for one pending call."""
    user_intent: str
    current_workflow: str
    system_context: SystemContext
    recent_actions: List[str] = field(default_factory=list)
    current_file: Optional[str] = None
    git_context: Optional[GitContext] = None
    error_context: Optional[ErrorContext] = None


def infer_user_intent(context: Optional[str], purpose: Optional[str]) -> str:
    purpose = purpose or ""
    for keyword, intent in INTENT_KEYWORDS:
        if keyword in purpose:
            return intent
    if context == "production":
        return "Production system operation"
    return "General task"


def identify_workflow(context: Optional[str]) -> str:
    context = context or ""
    for keyword, workflow in WORKFLOW_KEYWORDS:
        if keyword in context:
            return workflow
    return "Unknown workflow"


def is_business_hours(moment: datetime) -> bool:
    """Monday to Friday, 9 AM to 5 PM local time."""
    return moment.weekday() < 5 and 9 <= moment.hour < 17


def build_system_context(moment: datetime) -> SystemContext:
    return SystemContext(
        time_of_day=moment.strftime("%H:%M:%S"),
        day_of_week=moment.strftime("%A"),
        is_business_hours=is_business_hours(moment),
        is_weekend=moment.weekday() >= 5,
    )


def count_consecutive_failures(history: Sequence[CallOutcome]) -> int:
    """Length of the failure streak ending at the most recent outcome."""
    streak = 0
    for outcome in sorted(history, key=lambda o: o.timestamp, reverse=True):
        if outcome.success:
            break
        streak += 1
    return streak


def identify_error_patterns(history: Sequence[CallOutcome], consecutive_failure_limit: int) -> List[str]:
    """Name recurring error signatures in the windowed history.

    Args:
        history: Outcomes inside the monitoring window
        consecutive_failure_limit: Streak length that counts as a pattern

    Returns:
        Pattern labels in a fixed order
    """
    errors = [outcome.error for outcome in history if outcome.error]
    patterns = []

    if sum(1 for error in errors if "429" in error) > 2:
        patterns.append("Rate limiting pattern")
    if any("401" in error for error in errors):
        patterns.append("Authentication issues")
    if sum(1 for error in errors if "timeout" in error.lower()) > 1:
        patterns.append("Timeout pattern")
    if count_consecutive_failures(history) >= consecutive_failure_limit:
        patterns.append("Consecutive failures")

    return patterns


class ContextCollector:
    """Builds HumanReadableContext for a request."""

    def __init__(
        self,
        vcs_probe: Optional[VersionControlProbe],
        consecutive_failure_limit: int = 3,
        clock: Callable[[], datetime] = datetime.now,
        environ: Mapping[str, str] = os.environ
    ):
        """Initialize the collector.

        Args:
            vcs_probe: Version-control probe, or None to skip git context
            consecutive_failure_limit: Failure streak reported as a pattern
            clock: Callable returning the current local time
            environ: Environment used to find the editor's current file
        """
        self.vcs_probe = vcs_probe
        self.consecutive_failure_limit = consecutive_failure_limit
        self._clock = clock
        self._environ = environ

    def collect(
        self,
        request: CallRequest,
        history: Sequence[CallOutcome],
        recent_actions: Sequence[str] = ()
    ) -> HumanReadableContext:
        """Collect context for `request`.

        Args:
            request: The pending call
            history: Outcomes inside the monitoring window
            recent_actions: The session's latest activity, oldest first

        Returns:
            HumanReadableContext for the request
        """
        return HumanReadableContext(
            user_intent=infer_user_intent(request.context, request.purpose),
            current_workflow=identify_workflow(request.context),
            system_context=build_system_context(self._clock()),
            recent_actions=list(recent_actions),
            current_file=request.current_file or self._environ.get(CURRENT_FILE_ENV),
            git_context=self._git_context(),
            error_context=self._error_context(history),
        )

    def _git_context(self) -> Optional[GitContext]:
        if self.vcs_probe is None:
            return None
        try:
            branch = self.vcs_probe.current_branch()
            status = self.vcs_probe.status()
            if branch is None and status is None:
                return None
            last_commit = self.vcs_probe.last_commit_summary()
        except Exception as e:
            logger.debug(f"Version-control probe unavailable: {e}")
            return None
        return GitContext(
            branch=branch,
            status="dirty" if status and status.dirty else "clean",
            last_commit=last_commit,
            uncommitted_changes=status.uncommitted_count if status else 0,
        )

    def _error_context(self, history: Sequence[CallOutcome]) -> Optional[ErrorContext]:
        if not history:
            return None
        errored = sorted((o for o in history if o.error), key=lambda o: o.timestamp)
        return ErrorContext(
            previous_errors=[o.error for o in errored][-PREVIOUS_ERROR_LIMIT:],
            error_patterns=identify_error_patterns(history, self.consecutive_failure_limit),
            last_error_time=errored[-1].timestamp if errored else None,
            consecutive_failures=count_consecutive_failures(history),
        )
