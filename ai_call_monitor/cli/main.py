"""
CLI interface for AI Call Monitor.

Provides command-line access to pre-call monitoring and snapshot analysis.
"""

import json
import logging
import sys
from dataclasses import asdict
from typing import Optional

import typer
import yaml
from rich.console import Console
from rich.logging import RichHandler

from ai_call_monitor.config.loader import (
    ConfigValidationError,
    MonitoringConfig,
    RiskThresholds,
    load_monitoring_config
)
from ai_call_monitor.core.analytics import summarize_snapshots
from ai_call_monitor.core.metrics import CallRequest
from ai_call_monitor.core.risk import RiskLevel, classify_risk
from ai_call_monitor.core.session import MonitoringSession, MonitoringSnapshot
from ai_call_monitor.sdk.openai_client import MonitoredOpenAI
from ai_call_monitor.storage.snapshots import load_snapshots

app = typer.Typer()
console = Console()

EXIT_CODE_PASS = 0
EXIT_CODE_FAIL = 1

# Demo scenarios at or above this overall risk are shown but not executed
DEMO_EXECUTE_MAX_RISK = 0.8

DEMO_SCENARIOS = [
    (
        "Low Risk Scenario",
        CallRequest(
            model="gpt-3.5-turbo",
            messages=[{"role": "user", "content": "Hello, how are you?"}],
            context="demo",
            purpose="greeting",
            value_score=0.3
        )
    ),
    (
        "Medium Risk Scenario",
        CallRequest(
            model="gpt-4",
            messages=[{"role": "user", "content": (
                "Please analyze this complex code and provide detailed recommendations "
                "for optimization and refactoring..."
            ) * 10}],
            context="production",
            purpose="code-analysis",
            value_score=0.8
        )
    ),
    (
        "High Risk Scenario",
        CallRequest(
            model="gpt-4",
            messages=[{"role": "user", "content": (
                "Generate a comprehensive analysis of the entire codebase including all "
                "dependencies, security vulnerabilities, performance bottlenecks, and "
                "architectural recommendations..."
            ) * 20}],
            context="production",
            purpose="urgent-analysis",
            value_score=0.9
        )
    ),
]

DEMO_CONFIG = MonitoringConfig(
    enable_real_time_alerts=True,
    thresholds=RiskThresholds(
        high_risk=0.6,
        rate_limit_probability=0.5,
        cost_threshold=0.05,
        token_threshold=2000,
        consecutive_failures=2
    )
)


def _create_session(config: MonitoringConfig) -> MonitoringSession:
    """Create the session used by CLI commands."""
    return MonitoringSession(config)


def _load_config(path: Optional[str]) -> MonitoringConfig:
    if path is None:
        return MonitoringConfig()
    return load_monitoring_config(path)


@app.callback(invoke_without_command=True)
def main(
    ctx: typer.Context,
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Show debug logging")
):
    """AI Call Monitor CLI."""
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(message)s",
        handlers=[RichHandler(console=console, show_path=False)],
        force=True
    )
    if ctx.invoked_subcommand is None:
        console.print("AI Call Monitor - Use --help to see available commands")


@app.command()
def status():
    """Show the effective default configuration."""
    config = MonitoringConfig()
    console.print("[green]✓[/] AI Call Monitor is ready")
    console.print(f"Monitoring window: {config.monitoring_window} minutes")
    console.print(f"Snapshot directory: {config.monitoring_data_path}")


@app.command()
def monitor(
    model: str = typer.Option("gpt-3.5-turbo", "--model", help="LLM model to use"),
    context: str = typer.Option("general", "--context", help="Context for the call"),
    purpose: str = typer.Option("analysis", "--purpose", help="Purpose of the call"),
    message: str = typer.Option("Hello, how are you?", "--message", help="Message content"),
    value_score: float = typer.Option(0.7, "--value-score", help="Value score (0-1)"),
    config_path: Optional[str] = typer.Option(None, "--config", "-c", help="Monitoring configuration file (YAML)"),
    output: Optional[str] = typer.Option(None, "--output", "-o", help="Write the snapshot as JSON to this file"),
    execute: bool = typer.Option(False, "--execute", help="Execute the LLM call after monitoring")
):
    """
    Analyze the circumstances of an LLM call before making it.

    Collects pre-call metrics and context, assesses risk and prints
    alerts plus a decision recommendation. With --execute the call is
    made through the OpenAI SDK and its outcome recorded.
    """
    try:
        config = _load_config(config_path)
    except (FileNotFoundError, yaml.YAMLError, ConfigValidationError) as e:
        console.print(f"[red]Error loading configuration:[/] {str(e)}")
        sys.exit(EXIT_CODE_FAIL)

    try:
        session = _create_session(config)
        request = CallRequest(
            model=model,
            messages=[{"role": "user", "content": message}],
            context=context,
            purpose=purpose,
            value_score=value_score
        )

        console.print("Collecting pre-call metrics and context...")
        snapshot = session.monitor_before_call(request)
        _display_snapshot(snapshot)

        if output:
            with open(output, 'w', encoding='utf-8') as f:
                json.dump(snapshot.to_dict(), f, indent=2)
            console.print(f"\nResults saved to: {output}")

        if execute:
            _execute_call(session, request, snapshot)

        sys.exit(EXIT_CODE_PASS)
    except Exception as e:
        console.print(f"[red]Error:[/] {str(e)}")
        sys.exit(EXIT_CODE_FAIL)


@app.command()
def analyze(
    days: int = typer.Option(7, "--days", "-d", help="Number of days to analyze"),
    config_path: Optional[str] = typer.Option(None, "--config", "-c", help="Monitoring configuration file (YAML)"),
    output: Optional[str] = typer.Option(None, "--output", "-o", help="Write the analysis as JSON to this file")
):
    """Summarize saved monitoring snapshots."""
    try:
        config = _load_config(config_path)
        snapshots = load_snapshots(config.monitoring_data_path, days=days)
        analytics = summarize_snapshots(snapshots)

        if analytics.total_snapshots == 0:
            console.print("\n[bold yellow]No monitoring data found[/]")
            console.print(f"Looked in {config.monitoring_data_path} for the last {days} days\n")
            sys.exit(EXIT_CODE_PASS)

        console.print("\n[bold]Monitoring Analytics[/bold]")
        console.print("-" * 40)
        console.print(f"Total sessions: {analytics.total_sessions}")
        console.print(f"Monitored calls: {analytics.total_snapshots}")
        console.print(f"Average risk score: {_format_percent(analytics.average_risk_score)}")
        console.print(f"Alert count: {analytics.alert_count}")
        if analytics.top_risk_factors:
            console.print(f"Top risk factors: {', '.join(analytics.top_risk_factors)}")
        if analytics.recommendations:
            console.print(f"Recommendations: {', '.join(analytics.recommendations)}")

        if output:
            with open(output, 'w', encoding='utf-8') as f:
                json.dump({"days_analyzed": days, "analytics": asdict(analytics)}, f, indent=2)
            console.print(f"\nAnalysis saved to: {output}")

        sys.exit(EXIT_CODE_PASS)
    except Exception as e:
        console.print(f"[red]Error:[/] {str(e)}")
        sys.exit(EXIT_CODE_FAIL)


@app.command()
def demo(
    execute: bool = typer.Option(False, "--execute", help="Execute scenarios whose risk is below the demo ceiling")
):
    """Run the monitor over three canned scenarios."""
    try:
        session = _create_session(DEMO_CONFIG)
        for name, request in DEMO_SCENARIOS:
            console.print(f"\n[bold]Scenario:[/bold] {name}")
            console.print("=" * 50)
            snapshot = session.monitor_before_call(request)
            risk = snapshot.risk_assessment
            metrics = snapshot.pre_call_metrics
            console.print(f"Risk score: {_format_percent(risk.overall_risk)}")
            console.print(f"Rate limit probability: {_format_percent(risk.rate_limit_probability)}")
            console.print(f"Estimated cost: ${metrics.estimated_cost:.4f}")
            console.print(f"Estimated tokens: {metrics.estimated_tokens}")
            if snapshot.alerts.high_risk:
                console.print("[red]HIGH RISK DETECTED[/]")
            if snapshot.alerts.rate_limit_warning:
                console.print("[yellow]RATE LIMIT WARNING[/]")
            if execute:
                if risk.overall_risk < DEMO_EXECUTE_MAX_RISK:
                    _execute_call(session, request, snapshot)
                else:
                    console.print("Skipping execution: risk too high")
        console.print("\nDemo complete")
        sys.exit(EXIT_CODE_PASS)
    except Exception as e:
        console.print(f"[red]Error:[/] {str(e)}")
        sys.exit(EXIT_CODE_FAIL)


def _format_percent(value: float) -> str:
    """Format a 0-1 score as a percentage."""
    return f"{value * 100:.1f}%"


def _execute_call(session: MonitoringSession, request: CallRequest, snapshot: MonitoringSnapshot) -> None:
    console.print("\nExecuting LLM call...")
    client = MonitoredOpenAI(model=request.model, session=session)
    try:
        response = client.chat(
            messages=request.messages,
            context=request.context,
            purpose=request.purpose,
            snapshot=snapshot
        )
    except Exception as e:
        # The failure is already recorded in the session history
        console.print(f"[red]✗[/] Call failed: {str(e)}")
        return
    content = response.choices[0].message.content or ""
    console.print(f"[green]✓[/] Call completed: {content[:100]}")


def _display_snapshot(snapshot: MonitoringSnapshot):
    """Display a monitoring snapshot."""
    metrics = snapshot.pre_call_metrics
    context = snapshot.human_readable_context
    risk = snapshot.risk_assessment
    alerts = snapshot.alerts

    console.print("\n[bold]Pre-call Analysis Result[/bold]")
    console.print("-" * 40)

    console.print("\n[bold]Computable Metrics[/bold]")
    console.print(f"Estimated tokens: {metrics.estimated_tokens}")
    console.print(f"Estimated cost: ${metrics.estimated_cost:.4f}")
    console.print(f"Message complexity: {_format_percent(metrics.message_complexity)}")
    console.print(f"Request urgency: {_format_percent(metrics.request_urgency)}")
    console.print(f"Recent call frequency: {metrics.recent_call_frequency:.2f}")
    console.print(f"Recent error rate: {_format_percent(metrics.recent_error_rate)}")
    console.print(f"Recent rate limit events: {metrics.recent_rate_limit_events}")
    console.print(f"Provider load: {_format_percent(metrics.provider_load)}")
    console.print(f"Memory usage: {metrics.memory_usage:.1f} MB")
    console.print(f"CPU usage: {metrics.cpu_usage:.1f}%")
    console.print(f"Network latency: {metrics.network_latency:.0f}ms")

    console.print("\n[bold]Context[/bold]")
    console.print(f"User intent: {context.user_intent}")
    console.print(f"Current workflow: {context.current_workflow}")
    if context.recent_actions:
        console.print(f"Recent actions: {', '.join(context.recent_actions)}")
    if context.git_context:
        console.print(f"Git branch: {context.git_context.branch or 'detached'}")
        console.print(f"Git status: {context.git_context.status}")
        console.print(f"Uncommitted changes: {context.git_context.uncommitted_changes}")
    system = context.system_context
    console.print(f"Time: {system.day_of_week} {system.time_of_day}")
    console.print(f"Business hours: {'Yes' if system.is_business_hours else 'No'}")
    if context.error_context:
        console.print(f"Previous errors: {len(context.error_context.previous_errors)}")
        if context.error_context.error_patterns:
            console.print(f"Error patterns: {', '.join(context.error_context.error_patterns)}")

    console.print("\n[bold]Risk Assessment[/bold]")
    console.print(f"Overall risk: {_format_percent(risk.overall_risk)}")
    console.print(f"Rate limit probability: {_format_percent(risk.rate_limit_probability)}")
    console.print(f"Cost risk: {_format_percent(risk.cost_risk)}")
    console.print(f"Performance risk: {_format_percent(risk.performance_risk)}")
    console.print(f"Security risk: {_format_percent(risk.security_risk)}")
    if risk.risk_factors:
        console.print(f"Risk factors: {', '.join(risk.risk_factors)}")
    if risk.recommendations:
        console.print(f"Recommendations: {', '.join(risk.recommendations)}")

    if alerts.messages:
        console.print("\n[bold]Alerts[/bold]")
        for alert_message in alerts.messages:
            console.print(f"- {alert_message}")

    level = classify_risk(risk.overall_risk)
    console.print(f"\n[bold]Decision:[/bold] {level.name} RISK", end=" ")
    if level == RiskLevel.HIGH:
        console.print("(consider postponing or using an alternative approach)")
    elif level == RiskLevel.MEDIUM:
        console.print("(proceed with caution and monitoring)")
    else:
        console.print("(safe to proceed)")


if __name__ == "__main__":
    app()
