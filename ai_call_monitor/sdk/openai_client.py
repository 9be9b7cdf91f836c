"""
Monitored OpenAI client wrapper.

Runs the predictive monitor before each chat completion and feeds the
outcome back into the session afterwards.
"""

import uuid
from typing import Any, Dict, List, Optional

from openai import OpenAI

from ..core.metrics import CallRequest
from ..core.pricing import PRICING_TABLE, calculate_cost
from ..core.session import MonitoringSession, MonitoringSnapshot
from ..core.token_counter import TokenUsage

PROVIDER_NAME = "openai"


class HighRiskCallBlocked(Exception):
    """Raised when a call's predicted risk exceeds the client's max_risk."""
    def __init__(self, message: str, snapshot: MonitoringSnapshot):
        super().__init__(message)
        self.snapshot = snapshot


class MonitoredOpenAI:
    """OpenAI client wrapper that consults a MonitoringSession.

    The monitor is advisory; the wrapper only refuses a call when
    `max_risk` is set and the predicted overall risk exceeds it. API
    errors are recorded as failed outcomes and then re-raised unchanged.
    """

    def __init__(
        self,
        model: str,
        session: MonitoringSession,
        max_risk: Optional[float] = None,
        client: Optional[OpenAI] = None
    ):
        """Initialize monitored OpenAI client.

        Args:
            model: OpenAI model name (required)
            session: Monitoring session that owns the call history
            max_risk: Optional overall-risk ceiling above which calls are refused
            client: Preconfigured OpenAI client (created if omitted)

        Raises:
            ValueError: If model is missing/empty or max_risk is negative
        """
        if not model or not model.strip():
            raise ValueError("model is required and cannot be empty")
        if max_risk is not None and max_risk < 0:
            raise ValueError("max_risk cannot be negative")

        self.model = model
        self.session = session
        self.max_risk = max_risk
        self.client = client or OpenAI()
        self.last_snapshot: Optional[MonitoringSnapshot] = None

    def chat(
        self,
        messages: List[Dict[str, str]],
        context: Optional[str] = None,
        purpose: Optional[str] = None,
        temperature: Optional[float] = None,
        max_tokens: Optional[int] = None,
        snapshot: Optional[MonitoringSnapshot] = None,
        **kwargs: Any
    ) -> Any:
        """Create a chat completion with pre-call monitoring.

        Args:
            messages: List of message dictionaries (required)
            context: Execution context label (e.g. "production", "ci")
            purpose: What the call is for (e.g. "code-analysis")
            temperature: Sampling temperature (optional)
            max_tokens: Maximum tokens to generate (optional)
            snapshot: Snapshot already taken for this call; when given the
                session is not consulted again
            **kwargs: Additional OpenAI parameters

        Returns:
            OpenAI chat completion response, unchanged

        Raises:
            ValueError: If messages is empty
            HighRiskCallBlocked: If predicted risk exceeds max_risk
            OpenAI API errors: Propagated after the failure is recorded
        """
        if not messages:
            raise ValueError("messages is required and cannot be empty")

        if snapshot is None:
            snapshot = self.session.monitor_before_call(CallRequest(
                model=self.model,
                messages=messages,
                context=context,
                purpose=purpose
            ))
        self.last_snapshot = snapshot

        overall_risk = snapshot.risk_assessment.overall_risk
        if self.max_risk is not None and overall_risk > self.max_risk:
            raise HighRiskCallBlocked(
                f"Predicted risk {overall_risk:.2f} exceeds maximum {self.max_risk:.2f} "
                f"for {self.model}: {', '.join(snapshot.risk_assessment.risk_factors)}",
                snapshot
            )

        call_id = f"call-{uuid.uuid4().hex[:12]}"
        estimate = snapshot.pre_call_metrics
        try:
            response = self.client.chat.completions.create(
                model=self.model,
                messages=messages,
                temperature=temperature,
                max_tokens=max_tokens,
                **kwargs
            )
        except Exception as e:
            self.session.record_call_result(
                call_id,
                False,
                error=str(e),
                provider=PROVIDER_NAME,
                cost=estimate.estimated_cost,
                tokens=estimate.estimated_tokens
            )
            raise

        cost, tokens = self._actual_usage(response, estimate.estimated_cost, estimate.estimated_tokens)
        self.session.record_call_result(
            getattr(response, "id", None) or call_id,
            True,
            provider=PROVIDER_NAME,
            cost=cost,
            tokens=tokens
        )
        return response

    def _actual_usage(self, response: Any, estimated_cost: float, estimated_tokens: int):
        # Fall back to the pre-call estimate when usage is missing or unpriced
        usage = getattr(response, "usage", None)
        if not usage:
            return estimated_cost, estimated_tokens
        token_usage = TokenUsage(
            prompt_tokens=usage.prompt_tokens,
            completion_tokens=usage.completion_tokens
        )
        if not PRICING_TABLE.supports(self.model):
            return estimated_cost, token_usage.total_tokens
        return calculate_cost(self.model, token_usage), token_usage.total_tokens
