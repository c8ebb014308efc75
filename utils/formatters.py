"""Formatting utilities for CLI display."""
from utils.clock import ms_to_datetime, now_ms

SEVERITY_COLORS = {
    "CRITICAL": "bold white on red",
    "HIGH": "red",
    "MEDIUM": "yellow",
    "LOW": "blue",
}

STATUS_COLORS = {
    "PENDING": "yellow",
    "EXECUTED": "green",
    "DISMISSED": "dim",
}


def format_timestamp(ms):
    """Epoch ms to 'YYYY-MM-DD HH:MM UTC'."""
    if ms is None:
        return "N/A"
    return ms_to_datetime(ms).strftime("%Y-%m-%d %H:%M UTC")


def time_ago(ms, now=None):
    """Return human-readable time since ms. E.g., '3h ago', '2d ago'."""
    if ms is None:
        return "N/A"
    seconds = max(0, ((now or now_ms()) - ms) // 1000)

    if seconds < 60:
        return f"{seconds}s ago"
    elif seconds < 3600:
        return f"{seconds // 60}m ago"
    elif seconds < 86400:
        return f"{seconds // 3600}h ago"
    else:
        return f"{seconds // 86400}d ago"


def format_severity(severity):
    """Severity with rich color markup."""
    if severity is None:
        return "N/A"
    sev = severity.value if hasattr(severity, "value") else str(severity)
    style = SEVERITY_COLORS.get(sev, "white")
    return f"[{style}]{sev}[/{style}]"


def format_status(status):
    s = status.value if hasattr(status, "value") else str(status)
    style = STATUS_COLORS.get(s, "white")
    return f"[{style}]{s}[/{style}]"


def format_flags(flags):
    """Comma-separated names of the raised flags, or '-'."""
    raised = [name for name, on in flags.items() if on]
    return ", ".join(raised) if raised else "-"
