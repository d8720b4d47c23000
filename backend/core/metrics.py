"""In-process metrics for the automation engine.

Provides:
- Run metrics (total by status, duration, in-progress gauge)
- Node execution metrics (by node type and status)
- Lifecycle hook error counter

Renders plain Prometheus exposition text so any scraper or log shipper
owned by the host process can publish it.
"""

import time
import threading
from collections import defaultdict
from typing import Optional

# ---------------------------------------------------------------------------
# In-process metric store (lightweight, no prometheus_client dependency)
# ---------------------------------------------------------------------------

_lock = threading.Lock()

_counters: dict[str, float] = defaultdict(float)
_gauges: dict[str, float] = defaultdict(float)
_histograms: dict[str, list[float]] = defaultdict(list)
_start_time = time.time()


def inc(name: str, value: float = 1.0, labels: Optional[dict] = None) -> None:
    key = _label_key(name, labels)
    with _lock:
        _counters[key] += value


def gauge_inc(name: str, value: float = 1.0, labels: Optional[dict] = None) -> None:
    key = _label_key(name, labels)
    with _lock:
        _gauges[key] += value


def gauge_dec(name: str, value: float = 1.0, labels: Optional[dict] = None) -> None:
    gauge_inc(name, -value, labels)


def observe(name: str, value: float, labels: Optional[dict] = None) -> None:
    key = _label_key(name, labels)
    with _lock:
        _histograms[key].append(value)
        # Keep only last 10k observations to bound memory
        if len(_histograms[key]) > 10_000:
            _histograms[key] = _histograms[key][-5_000:]


def get_counter(name: str, labels: Optional[dict] = None) -> float:
    """Current value of a counter (0 when never incremented)."""
    with _lock:
        return _counters.get(_label_key(name, labels), 0.0)


def get_gauge(name: str, labels: Optional[dict] = None) -> float:
    with _lock:
        return _gauges.get(_label_key(name, labels), 0.0)


def reset() -> None:
    """Drop every recorded value."""
    with _lock:
        _counters.clear()
        _gauges.clear()
        _histograms.clear()


def _label_key(name: str, labels: Optional[dict] = None) -> str:
    if not labels:
        return name
    label_str = ",".join(f'{k}="{v}"' for k, v in sorted(labels.items()))
    return f"{name}{{{label_str}}}"


# ---------------------------------------------------------------------------
# Exposition format generator
# ---------------------------------------------------------------------------

def generate_metrics() -> str:
    """Generate Prometheus exposition format text."""
    lines: list[str] = []

    lines.append("# HELP automation_uptime_seconds Time since process start.")
    lines.append("# TYPE automation_uptime_seconds gauge")
    lines.append(f"automation_uptime_seconds {time.time() - _start_time:.1f}")
    lines.append("")

    with _lock:
        # Counters
        if _counters:
            seen_names: set[str] = set()
            for key, val in sorted(_counters.items()):
                base_name = key.split("{")[0]
                if base_name not in seen_names:
                    lines.append(f"# TYPE {base_name} counter")
                    seen_names.add(base_name)
                lines.append(f"{key} {val}")
            lines.append("")

        # Gauges
        if _gauges:
            seen_names = set()
            for key, val in sorted(_gauges.items()):
                base_name = key.split("{")[0]
                if base_name not in seen_names:
                    lines.append(f"# TYPE {base_name} gauge")
                    seen_names.add(base_name)
                lines.append(f"{key} {val}")
            lines.append("")

        # Summaries: sum and count only
        if _histograms:
            seen_names = set()
            for key, values in sorted(_histograms.items()):
                base_name = key.split("{")[0]
                if base_name not in seen_names:
                    lines.append(f"# TYPE {base_name} summary")
                    seen_names.add(base_name)
                if values:
                    lines.append(f"{key}_count {len(values)}")
                    lines.append(f"{key}_sum {sum(values):.4f}")
            lines.append("")

    return "\n".join(lines) + "\n"
