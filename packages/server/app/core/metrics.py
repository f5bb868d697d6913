"""
Metrics collection and Prometheus-compatible exposition.

One collector is created per application and handed to route handlers
through the `get_metrics` dependency.
"""

from __future__ import annotations

import time
from collections import defaultdict

from fastapi import Request

PREFIX = "dashhub_"

DASHBOARD_SEARCH_NOT_SERVED = "dashboard_search_not_served_requests_total"
USER_SIGNUP_COMPLETED = "user_signup_completed_total"
USER_SIGNUP_INVITE = "user_signup_invite_total"

LabelSet = tuple[tuple[str, str], ...]


def _label_set(labels: dict[str, str]) -> LabelSet:
    return tuple(sorted(labels.items()))


def _render_labels(labels: LabelSet) -> str:
    if not labels:
        return ""
    inner = ",".join(f'{k}="{v}"' for k, v in labels)
    return "{" + inner + "}"


class MetricsCollector:
    """
    Labelled counter collector with Prometheus text export.
    """

    def __init__(self) -> None:
        self._counters: dict[str, dict[LabelSet, int]] = defaultdict(lambda: defaultdict(int))
        self._start_time = time.time()

    def inc(self, name: str, value: int = 1, **labels: str) -> None:
        """Increment a counter, optionally scoped to a label set."""
        self._counters[f"{PREFIX}{name}"][_label_set(labels)] += value

    def get(self, name: str, **labels: str) -> int:
        """Get a counter value. Without labels, returns the total over all series."""
        series = self._counters.get(f"{PREFIX}{name}", {})
        if labels:
            return series.get(_label_set(labels), 0)
        return sum(series.values())

    def to_prometheus(self) -> str:
        """Export all metrics in Prometheus text format."""
        lines = []
        for name, series in sorted(self._counters.items()):
            lines.append(f"# TYPE {name} counter")
            for labels, value in sorted(series.items()):
                lines.append(f"{name}{_render_labels(labels)} {value}")
        uptime = time.time() - self._start_time
        lines.append(f"# TYPE {PREFIX}uptime_seconds gauge")
        lines.append(f"{PREFIX}uptime_seconds {uptime:.1f}")
        return "\n".join(lines) + "\n"


def get_metrics(request: Request) -> MetricsCollector:
    """FastAPI dependency: the app's metrics collector."""
    return request.app.state.metrics
