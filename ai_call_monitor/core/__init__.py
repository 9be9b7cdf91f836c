"""
Core modules for AI Call Monitor.

This package contains call history, metrics and context collection, risk
assessment, alerting and the monitoring session that ties them together.
"""
