"""
SDK for AI Call Monitor.

Provides monitored wrappers around outbound LLM clients.
"""

from .openai_client import HighRiskCallBlocked, MonitoredOpenAI

__all__ = ["HighRiskCallBlocked", "MonitoredOpenAI"]
