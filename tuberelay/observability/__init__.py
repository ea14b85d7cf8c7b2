# noqa: D104 - package initialization
from .logging import configure_structured_logging  # noqa: F401
from .metrics import (  # noqa: F401
    metrics_blueprint,
    record_job_attempt,
    record_job_failure,
    record_job_finished,
    record_job_success,
)
