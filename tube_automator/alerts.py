"""Alert dispatch for job failures.

Supports:
- Console/stderr output (always active)
- Optional: Slack webhook (SLACK_WEBHOOK_URL)
"""

import logging
import os
import sys
from datetime import datetime
from enum import Enum

import requests

logger = logging.getLogger("tube_automator.alerts")


class AlertSeverity(Enum):
    INFO = "info"
    WARNING = "warning"
    CRITICAL = "critical"


class AlertType(Enum):
    UPLOAD_FAILURE = "upload_failure"


def send_alert(alert_type, severity, title, message, job_id=None, webhook_url=None):
    """Dispatch an alert to stderr and, when configured, to Slack.

    Returns:
        dict with one boolean per channel tried
    """
    results = {}

    _alert_console(severity, title, message, job_id)
    results["console"] = True

    slack_url = webhook_url or os.environ.get("SLACK_WEBHOOK_URL")
    if slack_url:
        try:
            _alert_slack(alert_type, title, message, slack_url, severity)
            results["slack"] = True
        except requests.RequestException as exc:
            logger.warning("slack_alert_failed error=%s", str(exc)[:100])
            results["slack"] = False

    return results


def _alert_console(severity, title, message, job_id=None):
    icon = {"info": "i", "warning": "!", "critical": "X"}.get(severity.value, "?")
    timestamp = datetime.now().strftime("%Y-%m-%d %H:%M:%S")
    suffix = f" (job {job_id})" if job_id else ""
    print(f"[{icon}] [{timestamp}] {title}{suffix}", file=sys.stderr)
    for line in message.split("\n"):
        print(f"    {line}", file=sys.stderr)


def _alert_slack(alert_type, title, message, webhook_url, severity=None):
    color = {
        AlertSeverity.INFO: "#36a64f",
        AlertSeverity.WARNING: "#ff9900",
        AlertSeverity.CRITICAL: "#ff0000",
    }.get(severity, "#808080")

    payload = {
        "attachments": [{
            "color": color,
            "title": f"TubeAutomator: {title}",
            "text": message[:1000],
            "footer": alert_type.value,
            "ts": int(datetime.now().timestamp()),
        }]
    }
    resp = requests.post(webhook_url, json=payload, timeout=10)
    resp.raise_for_status()
