from __future__ import annotations

from typing import Optional

from flask import Blueprint, Response
from prometheus_client import Counter, Gauge, Histogram, generate_latest

metrics_blueprint = Blueprint("metrics_bp", __name__)

CONTENT_TYPE_LATEST = "text/plain; version=0.0.4; charset=utf-8"

JOB_ATTEMPTS = Counter(
    "tuberelay_job_attempts_total",
    "Total number of jobs received by the API.",
    ["kind"],
)
JOB_SUCCESSES = Counter(
    "tuberelay_job_success_total",
    "Total number of jobs that completed, including the transfer.",
    ["kind"],
)
JOB_FAILURES = Counter(
    "tuberelay_job_failure_total",
    "Total number of failed jobs by error category.",
    ["kind", "error_code"],
)
JOBS_IN_FLIGHT = Gauge(
    "tuberelay_jobs_in_flight",
    "Jobs currently between provisioning and transfer completion.",
)
JOB_EXECUTION_TIME = Histogram(
    "tuberelay_job_execution_seconds",
    "Time from job start until the job completed or failed.",
    ["kind"],
    buckets=(1, 5, 10, 30, 60, 120, 300, 600, float("inf")),
)
TOOL_TIMEOUTS = Counter(
    "tuberelay_tool_timeouts_total",
    "Tool invocations killed after exceeding the wall-clock budget.",
)


def record_job_attempt(kind: str) -> None:
    JOB_ATTEMPTS.labels(kind=kind).inc()
    JOBS_IN_FLIGHT.inc()


def record_job_success(kind: str, duration_seconds: Optional[float] = None) -> None:
    JOB_SUCCESSES.labels(kind=kind).inc()
    if duration_seconds is not None:
        JOB_EXECUTION_TIME.labels(kind=kind).observe(duration_seconds)


def record_job_failure(kind: str, error_code: str, duration_seconds: Optional[float] = None) -> None:
    JOB_FAILURES.labels(kind=kind, error_code=error_code).inc()
    if error_code == "timeout":
        TOOL_TIMEOUTS.inc()
    if duration_seconds is not None:
        JOB_EXECUTION_TIME.labels(kind=kind).observe(duration_seconds)


def record_job_finished() -> None:
    JOBS_IN_FLIGHT.dec()


@metrics_blueprint.route("/metrics")
def metrics_endpoint() -> Response:
    return Response(generate_latest(), mimetype=CONTENT_TYPE_LATEST)
