"""Prometheus metric definitions for the BPM Flow backend."""

from __future__ import annotations

from prometheus_client import Counter, Gauge, Info

# ── Application info ────────────────────────────────────────────────
app_info = Info("bpmflow", "BPM Flow application metadata")

# ── Database pool metrics ───────────────────────────────────────────
db_pool_size = Gauge("db_pool_size", "Current number of connections in the pool")
db_pool_checked_in = Gauge("db_pool_checked_in", "Connections currently idle in the pool")
db_pool_checked_out = Gauge("db_pool_checked_out", "Connections currently in use")
db_pool_overflow = Gauge("db_pool_overflow", "Current overflow connections beyond pool_size")

# ── Process engine metrics ──────────────────────────────────────────
process_transitions_total = Counter(
    "process_transitions_total",
    "Process instance state changes performed by the execution engine",
    ["action"],  # started / advanced / completed
)

automation_steps_total = Counter(
    "automation_steps_total",
    "Automation steps executed on activity entry",
    ["kind", "status"],  # kind: finance / email / webhook; status: success / failure
)

assignment_fallbacks_total = Counter(
    "assignment_fallbacks_total",
    "Assignment resolutions that degraded to the group queue after an error",
)

# ── Background task metrics ─────────────────────────────────────────
bg_task_runs_total = Counter(
    "bg_task_runs_total",
    "Total background task executions",
    ["task_name", "status"],
)

bg_task_last_success = Gauge(
    "bg_task_last_success_timestamp",
    "Timestamp of last successful background task run",
    ["task_name"],
)
