"""
System and version-control probes.

Live signals sampled before each call: process memory, CPU load, network
latency to the provider, and the state of the surrounding git checkout.
Every probe has a bounded timeout and falls back to a neutral default
instead of raising.
"""

import logging
import os
import subprocess
import time
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import List, Optional

import httpx
import psutil

logger = logging.getLogger(__name__)


class SystemProbe(ABC):
    """Source of process and network health signals."""

    @abstractmethod
    def memory_usage_mb(self) -> float:
        """Resident memory of the current process in MB."""

    @abstractmethod
    def cpu_usage_percent(self) -> float:
        """System-wide CPU utilisation in percent."""

    @abstractmethod
    def network_latency_ms(self) -> float:
        """Round-trip latency to the provider endpoint in milliseconds."""

    def provider_available(self, model: str) -> bool:
        """Whether the provider serving `model` looks reachable."""
        return True


@dataclass(frozen=True)
class GitStatus:
    """Working tree summary."""
    dirty: bool
    uncommitted_count: int


class VersionControlProbe(ABC):
    """Source of version-control state; every method may return None."""

    @abstractmethod
    def current_branch(self) -> Optional[str]:
        ...

    @abstractmethod
    def status(self) -> Optional[GitStatus]:
        ...

    @abstractmethod
    def last_commit_summary(self) -> Optional[str]:
        ...


class PlatformProbe(SystemProbe):
    """psutil and httpx backed system probe."""

    def __init__(
        self,
        latency_url: Optional[str] = None,
        timeout: float = 2.0,
        cpu_interval: float = 0.1
    ):
        """Initialize the probe.

        Args:
            latency_url: Endpoint timed with a HEAD request; None disables
                the latency check
            timeout: Upper bound in seconds for the latency request
            cpu_interval: CPU sampling interval in seconds
        """
        self.latency_url = latency_url
        self.timeout = timeout
        self.cpu_interval = min(cpu_interval, timeout)
        self._last_status_code: Optional[int] = None

    def memory_usage_mb(self) -> float:
        try:
            return psutil.Process(os.getpid()).memory_info().rss / 1024 / 1024
        except (psutil.Error, OSError) as e:
            logger.debug(f"Memory probe unavailable: {e}")
            return 0.0

    def cpu_usage_percent(self) -> float:
        try:
            return float(psutil.cpu_percent(interval=self.cpu_interval))
        except (psutil.Error, OSError) as e:
            logger.debug(f"CPU probe unavailable: {e}")
            return 0.0

    def network_latency_ms(self) -> float:
        if not self.latency_url:
            return 0.0
        start = time.perf_counter()
        try:
            with httpx.Client(timeout=self.timeout) as client:
                response = client.head(self.latency_url, follow_redirects=False)
        except httpx.HTTPError as e:
            logger.debug(f"Latency probe to {self.latency_url} failed: {e}")
            self._last_status_code = None
            return 0.0
        self._last_status_code = response.status_code
        return (time.perf_counter() - start) * 1000

    def provider_available(self, model: str) -> bool:
        # Only a server-side error from the last latency probe counts as down
        if self._last_status_code is None:
            return True
        return self._last_status_code < 500


class GitProbe(VersionControlProbe):
    """Reads branch and working tree state by shelling out to git."""

    def __init__(self, cwd: Optional[str] = None, timeout: float = 2.0):
        self.cwd = cwd
        self.timeout = timeout

    def _git(self, args: List[str]) -> Optional[str]:
        try:
            result = subprocess.run(
                ["git", *args],
                cwd=self.cwd,
                capture_output=True,
                text=True,
                timeout=self.timeout,
                check=True,
            )
        except (OSError, subprocess.SubprocessError) as e:
            logger.debug(f"git {' '.join(args)} unavailable: {e}")
            return None
        return result.stdout

    def current_branch(self) -> Optional[str]:
        output = self._git(["branch", "--show-current"])
        if output is None:
            return None
        return output.strip() or None

    def status(self) -> Optional[GitStatus]:
        output = self._git(["status", "--porcelain"])
        if output is None:
            return None
        changes = [line for line in output.splitlines() if line.strip()]
        return GitStatus(dirty=bool(changes), uncommitted_count=len(changes))

    def last_commit_summary(self) -> Optional[str]:
        output = self._git(["log", "-1", "--oneline"])
        if output is None:
            return None
        return output.strip() or None
