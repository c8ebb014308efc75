#!/usr/bin/env python3
"""Swap Station Alert Monitor - CLI Entry Point."""
import sys
import json
import time
from pathlib import Path

# Add project root to path
sys.path.insert(0, str(Path(__file__).parent))

import click
from rich.console import Console
from rich.markup import escape
from rich.table import Table

from __version__ import __version__

console = Console()


def build_notifier(config, interactive=False):
    """Notification channels from the `notifications` config section."""
    from alerts.channels import ConsoleChannel, FileChannel, WebhookChannel, Notifier

    notif_cfg = config.get("notifications", {})
    channels = []

    file_cfg = notif_cfg.get("file", {}) or {}
    if file_cfg.get("enabled", True):
        channels.append(FileChannel(file_cfg.get("path", "data/alerts.jsonl")))

    # Console only if running interactively
    if interactive and notif_cfg.get("console", True):
        channels.append(ConsoleChannel(console))

    hook_cfg = notif_cfg.get("webhook", {}) or {}
    if hook_cfg.get("url"):
        channels.append(WebhookChannel(
            hook_cfg["url"],
            min_severity=hook_cfg.get("min_severity", "LOW"),
            timeout=hook_cfg.get("timeout", 10),
            max_retries=hook_cfg.get("max_retries", 2),
        ))

    return Notifier(channels)


def _init_components(config_path=None, verbose=False):
    """Lazy initialization of all components."""
    from utils.logger import setup_logging
    from config import load_config
    from models.database import Database
    from alerts.audit import AuditLog
    from alerts.engine import AlertEngine
    from alerts.evaluator import RuleEvaluator
    from alerts.lifecycle import AlertLifecycle
    from alerts.rules import RuleThresholds
    from monitor.ingestion import MetricIngestor

    config = load_config(config_path)
    log_cfg = config.get("logging", {})
    setup_logging("DEBUG" if verbose else log_cfg.get("level", "INFO"), log_cfg.get("file"))

    db = Database(config["database"]["path"])
    db.connect()
    audit = AuditLog(db)

    evaluator = RuleEvaluator(RuleThresholds.from_config(config))
    notifier = build_notifier(config, interactive=sys.stdout.isatty())
    engine = AlertEngine(db, evaluator, notifier, config, audit)

    return {
        "config": config, "db": db, "audit": audit, "evaluator": evaluator,
        "engine": engine, "notifier": notifier,
        "ingestor": MetricIngestor(db, engine, audit),
        "lifecycle": AlertLifecycle(db, audit),
    }


@click.group()
@click.option("--config", "config_path", default=None, help="Path to config YAML")
@click.option("--verbose", "-v", is_flag=True, help="Enable debug logging")
@click.version_option(__version__, prog_name="swapwatch")
@click.pass_context
def cli(ctx, config_path, verbose):
    """Swap Station Alert Monitor - rule evaluation, alerts & operator decisions."""
    ctx.ensure_object(dict)
    ctx.obj["config_path"] = config_path
    ctx.obj["verbose"] = verbose


def _get_components(ctx):
    if "_components" not in ctx.obj:
        ctx.obj["_components"] = _init_components(ctx.obj.get("config_path"), ctx.obj.get("verbose"))
    return ctx.obj["_components"]


# ──────────────────────────────────────────────────────
# INGEST
# ──────────────────────────────────────────────────────
@cli.command()
@click.argument("path", type=click.Path(exists=True, dir_okay=False))
@click.pass_context
def ingest(ctx, path):
    """Ingest station samples from a JSON file (one object or a list)."""
    c = _get_components(ctx)
    with open(path) as f:
        try:
            data = json.load(f)
        except json.JSONDecodeError as e:
            raise click.ClickException(f"Invalid JSON in {path}: {e}")
    bodies = data if isinstance(data, list) else [data]

    results, failures = c["ingestor"].ingest_many(bodies)
    for r in results:
        console.print(f"[green]✓[/green] {r.station_id} @ {r.timestamp} "
                      f"({len(r.alerts)} alert(s) created)")
        for a in r.alerts:
            console.print(f"    {escape('[' + a['severity'] + ']')} {a['alertType']}: {a['title']}")
    for f in failures:
        console.print(f"[red]✗[/red] record {f['index']}: {'; '.join(f['errors'])}")
    if failures:
        ctx.exit(1)


# ──────────────────────────────────────────────────────
# EVALUATE
# ──────────────────────────────────────────────────────
@cli.command()
@click.argument("station_id")
@click.option("--json", "as_json", is_flag=True, help="Output as JSON")
@click.pass_context
def evaluate(ctx, station_id, as_json):
    """Dry-run all rules for a station without creating alerts."""
    c = _get_components(ctx)
    from alerts.classifier import AlertClassifier
    from alerts.recommendations import RecommendationComposer
    from utils.clock import now_ms
    from utils.formatters import format_flags, format_severity

    now = now_ms()
    window = c["engine"].load_window(station_id, now)
    if not len(window):
        console.print(f"[dim]No recent metrics for {station_id}[/dim]")
        return

    result = c["evaluator"].evaluate(window, now)
    candidates = AlertClassifier().classify(result)
    rec = RecommendationComposer().compose_for(result)

    if as_json:
        out = result.to_dict()
        out["candidates"] = [{"alertType": a.alert_type.value, "priority": a.priority} for a in candidates]
        out["recommendation"] = rec.to_dict()
        click.echo(json.dumps(out, indent=2, default=str))
        return

    table = Table(title=f"Rule Evaluation: {station_id} ({len(window)} samples)", show_header=True)
    table.add_column("Rule", style="dim")
    table.add_column("Type")
    table.add_column("Triggered")
    table.add_column("Severity")
    table.add_column("Detail")
    for rule_id, outcome in result.rules.items():
        fired = "[green]✓[/green]" if outcome.triggered else "[dim]–[/dim]"
        detail = outcome.description if outcome.triggered else (outcome.reason or "")
        table.add_row(rule_id.value, outcome.alert_type.value, fired,
                      format_severity(outcome.severity) if outcome.severity else "", detail)
    console.print(table)

    console.print(f"\n[bold]Flags:[/bold] {format_flags(result.flags_dict())}")
    console.print(f"[bold]Max severity:[/bold] {format_severity(result.max_severity)}")
    if candidates:
        console.print("[bold]Candidates:[/bold] " + ", ".join(
            f"{a.alert_type.value} (p{a.priority})" for a in candidates))
    console.print(f"[bold]Primary action:[/bold] {rec.primary_action}")
    if rec.human_readable:
        console.print(f"[dim italic]{rec.human_readable}[/dim italic]")


# ──────────────────────────────────────────────────────
# SWEEP / SCHEDULE
# ──────────────────────────────────────────────────────
@cli.command()
@click.pass_context
def sweep(ctx):
    """Run the rule engine once over all recently active stations."""
    c = _get_components(ctx)
    summary = c["engine"].sweep()
    console.print(f"Processed [bold]{summary.stations_processed}[/bold] station(s): "
                  f"{summary.alerts_created} created, {summary.alerts_skipped} skipped as duplicates "
                  f"({summary.duration_ms}ms)")
    fired = {k: v for k, v in summary.rule_stats.items() if v}
    if fired:
        console.print("  Rule stats: " + ", ".join(f"{k}={v}" for k, v in fired.items()))
    for err in summary.errors:
        console.print(f"  [red]{err['stationId']}: {err['error']}[/red]")


@cli.command()
@click.option("--interval", default=None, type=int, help="Sweep interval in seconds")
@click.pass_context
def schedule(ctx, interval):
    """Run the rule engine sweep periodically until interrupted."""
    c = _get_components(ctx)
    from monitor.scheduler import SweepScheduler

    interval = interval or c["config"]["engine"]["sweep_interval"]
    scheduler = SweepScheduler(c["engine"], interval)
    scheduler.on_sweep(lambda s: console.print(
        f"[dim]sweep: {s.stations_processed} stations, {s.alerts_created} created, "
        f"{s.alerts_skipped} skipped[/dim]"))
    scheduler.start()
    console.print(f"Sweeping every {interval}s. Press Ctrl+C to stop.")
    try:
        while scheduler.running:
            time.sleep(1)
    except KeyboardInterrupt:
        scheduler.stop()


# ──────────────────────────────────────────────────────
# ALERTS
# ──────────────────────────────────────────────────────
@cli.group()
def alerts():
    """Alert review and operator decisions."""
    pass


@alerts.command("list")
@click.option("--status", type=click.Choice(["PENDING", "EXECUTED", "DISMISSED"], case_sensitive=False),
              default=None, help="Filter by status")
@click.option("--limit", default=50, type=int, help="Max alerts to show")
@click.pass_context
def alerts_list(ctx, status, limit):
    """List alerts, newest first."""
    c = _get_components(ctx)
    from utils.formatters import format_severity, format_status, time_ago
    data = c["lifecycle"].list_alerts(status=status, limit=limit)
    if not data["alerts"]:
        console.print("[dim]No alerts[/dim]")
        return
    table = Table(title=f"Alerts ({data['count']} of {data['total']}, {data['filters']['status']})",
                  show_header=True)
    table.add_column("Created", style="dim")
    table.add_column("Alert ID", style="dim")
    table.add_column("Station")
    table.add_column("Type")
    table.add_column("Severity")
    table.add_column("Status")
    table.add_column("Title")
    for a in data["alerts"]:
        table.add_row(time_ago(a["createdAt"]), a["alertId"][:8], a["stationId"], a["alertType"],
                      format_severity(a["severity"]), format_status(a["status"]), a["title"])
    console.print(table)


@alerts.command("show")
@click.argument("alert_id")
@click.pass_context
def alerts_show(ctx, alert_id):
    """Show one alert with its decisions."""
    c = _get_components(ctx)
    from alerts.errors import NotFoundError
    try:
        alert = c["lifecycle"].get_alert(alert_id)
    except NotFoundError as e:
        raise click.ClickException(str(e))
    click.echo(json.dumps(alert, indent=2, default=str))


@alerts.command("decide")
@click.argument("alert_id")
@click.argument("decision", type=click.Choice(["approve", "reject"], case_sensitive=False))
@click.option("--reason", default=None, help="Reason (recommended when rejecting)")
@click.option("--user", "user_id", default=None, help="Deciding user id")
@click.pass_context
def alerts_decide(ctx, alert_id, decision, reason, user_id):
    """Approve (execute) or reject (dismiss) a PENDING alert."""
    c = _get_components(ctx)
    from alerts.errors import SwapwatchError
    user_id = user_id or c["config"].get("web", {}).get("default_user", "ops-manager")
    try:
        outcome = c["lifecycle"].decide(alert_id, decision, user_id=user_id, reason=reason)
    except SwapwatchError as e:
        raise click.ClickException(str(e))
    console.print(f"[green]✓[/green] Alert {alert_id} → {outcome.alert.status.value} "
                  f"(decision {outcome.decision.decision_id})")


# ──────────────────────────────────────────────────────
# AUDIT
# ──────────────────────────────────────────────────────
@cli.command()
@click.option("--alert", "alert_id", default=None, help="Only entries for this alert")
@click.option("--type", "action_type", default=None, help="Only this action type")
@click.option("--limit", default=50, type=int)
@click.option("--purge", is_flag=True, help="Delete expired entries first")
@click.pass_context
def audit(ctx, alert_id, action_type, limit, purge):
    """Show the audit trail."""
    c = _get_components(ctx)
    from utils.formatters import format_timestamp
    db = c["db"]
    if purge:
        console.print(f"Purged {db.purge_expired_audit()} expired entries")
    if alert_id:
        entries = db.get_actions_by_alert(alert_id)[:limit]
    elif action_type:
        entries = db.get_actions_by_type(action_type.upper(), limit=limit)
    else:
        entries = db.get_recent_actions(limit)
    if not entries:
        console.print("[dim]No audit entries[/dim]")
        return
    table = Table(title="Audit Log", show_header=True)
    table.add_column("Time", style="dim")
    table.add_column("Action")
    table.add_column("Status")
    table.add_column("User")
    table.add_column("Target")
    for e in entries:
        status_color = "green" if e["status"] == "SUCCESS" else "red"
        target = e["alertId"] or e["stationId"] or ""
        table.add_row(format_timestamp(e["timestamp"]), e["actionType"],
                      f"[{status_color}]{e['status']}[/{status_color}]", e["userId"] or "", target)
    console.print(table)


# ──────────────────────────────────────────────────────
# WEB
# ──────────────────────────────────────────────────────
@cli.command()
@click.option("--port", default=None, type=int, help="Port to bind to")
@click.option("--host", default=None, type=str, help="Host to bind to")
@click.pass_context
def web(ctx, port, host):
    """Launch the HTTP API."""
    from web.app import create_app

    c = _get_components(ctx)
    web_cfg = c["config"].get("web", {})
    port = port or web_cfg.get("port", 5000)
    host = host or web_cfg.get("host", "0.0.0.0")

    app = create_app(c["config"], c)
    console.print(f"\n[bold]swapwatch API[/bold] on http://{host}:{port}")
    console.print("  POST /metrics   GET /alerts   POST /alerts/decision")
    console.print("\n  Press Ctrl+C to stop.\n")
    app.run(host=host, port=port, debug=False)


if __name__ == "__main__":
    cli()
