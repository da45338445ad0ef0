"""Structured per-job pipeline events, one JSON log line each."""

import json
import logging
from datetime import datetime, timezone

logger = logging.getLogger("tube_automator.stage")


def _norm(value):
    if value is None or isinstance(value, (bool, int, float, str)):
        return value
    return str(value)


def log_stage(*, job_id, stage, event, error=None, **extra):
    """Emit one JSON line describing a pipeline step for a job.

    Logged at ERROR when an error is given or the event is FAILED.
    """
    payload = {
        "ts": datetime.now(timezone.utc).isoformat(),
        "job_id": job_id,
        "stage": stage,
        "event": event.upper(),
    }
    if error:
        payload["error"] = error

    for key, value in extra.items():
        norm = _norm(value)
        if norm is not None:
            payload[key] = norm

    msg = json.dumps(payload, ensure_ascii=False)
    if error or payload["event"] == "FAILED":
        logger.error("stage_event %s", msg)
    else:
        logger.info("stage_event %s", msg)
