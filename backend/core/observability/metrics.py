"""In-process metrics counters and histograms."""

from collections import defaultdict
from typing import Any

from backend.core.config import settings

# Global metrics storage
_metrics = defaultdict(lambda: {"count": 0, "sum": 0.0, "values": [], "buckets": defaultdict(int)})


def init_metrics() -> None:
    """Initialize metrics if enabled."""
    if not settings.enable_metrics:
        return


def _key(name: str, labels: dict[str, str] | None) -> str:
    if not labels:
        return name
    return name + "{" + ",".join(f"{k}={v}" for k, v in sorted(labels.items())) + "}"


def increment_counter(name: str, labels: dict[str, str] = None, value: float = 1.0) -> None:
    """Increment a counter metric."""
    if not settings.enable_metrics:
        return

    _metrics[_key(name, labels)]["count"] += value


def record_histogram(name: str, value: float, labels: dict[str, str] = None) -> None:
    """Record a histogram measurement."""
    if not settings.enable_metrics:
        return

    metrics = _metrics[_key(name, labels)]
    metrics["count"] += 1
    metrics["sum"] += value
    metrics["values"].append(value)

    # Simple buckets for basic histogram visualization
    if value < 1:
        metrics["buckets"]["<1"] += 1
    elif value < 10:
        metrics["buckets"]["1-10"] += 1
    elif value < 100:
        metrics["buckets"]["10-100"] += 1
    elif value < 1000:
        metrics["buckets"]["100-1000"] += 1
    else:
        metrics["buckets"][">=1000"] += 1


def get_metrics() -> dict[str, Any]:
    """Get current metrics snapshot."""
    if not settings.enable_metrics:
        return {"note": "metrics disabled"}

    result = {}
    for key, data in _metrics.items():
        metric_result = {"count": data["count"], "sum": data["sum"]}

        if data["values"]:
            values = data["values"]
            metric_result.update(
                {
                    "min": min(values),
                    "max": max(values),
                    "avg": data["sum"] / len(values),
                    "buckets": dict(data["buckets"]),
                }
            )

        result[key] = metric_result

    return result


def reset_metrics() -> None:
    """Reset all metrics (useful for testing)."""
    _metrics.clear()


# Premium billing metrics
def increment_payments_recorded(kind: str) -> None:
    """Count reconciled payments; ``kind`` is ``full`` or ``partial``."""
    increment_counter("premium_payments_recorded_total", labels={"kind": kind})


def increment_reconciliation_failures(reason: str) -> None:
    increment_counter("premium_reconciliation_failures_total", labels={"reason": reason})


def record_reconciliation_duration(duration_ms: float) -> None:
    record_histogram("premium_reconciliation_duration_ms", duration_ms)


def increment_due_date_advances() -> None:
    increment_counter("premium_due_date_advances_total")


def record_status_query_duration(duration_ms: float) -> None:
    record_histogram("premium_status_query_duration_ms", duration_ms)


# Reminder metrics
def increment_reminders_dispatched(channel: str, status: str) -> None:
    increment_counter("reminders_dispatched_total", labels={"channel": channel, "status": status})


def increment_reminders_skipped(reason: str) -> None:
    increment_counter("reminders_skipped_total", labels={"reason": reason})


def increment_automation_runs(automation: str) -> None:
    increment_counter("reminder_automation_runs_total", labels={"type": automation})


# Workspace header metrics
def increment_workspace_validation_failure(reason: str) -> None:
    increment_counter("workspace_validation_failures_total", labels={"reason": reason})
