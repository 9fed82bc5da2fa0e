"""
Notification sinks: where alert batches are handed off.

Delivery is best effort: a failing sink is logged and never breaks the
operation that produced the alerts.
"""
import logging

import requests

import config


class LogNotificationSink:
    def emit(self, owner_id, title, alerts):
        for alert in alerts:
            logging.info(f"[notify] owner={owner_id} {title} [{alert.severity}] {alert.message}")
        return True


class WebhookNotificationSink:
    def __init__(self, url, timeout=None, session=None):
        self.url = url
        self.timeout = timeout or config.NOTIFY_TIMEOUT_SECONDS
        self.session = session or requests.Session()

    def emit(self, owner_id, title, alerts):
        severity = "warning" if any(a.severity == "warning" for a in alerts) else "info"
        payload = {
            "owner_id": owner_id,
            "type": severity,
            "title": title,
            "message": "\n".join(a.message for a in alerts),
            "alerts": [a.to_dict() for a in alerts],
        }
        try:
            r = self.session.post(self.url, json=payload, timeout=self.timeout)
            r.raise_for_status()
        except requests.RequestException as e:
            logging.warning(f"Failed to deliver notification for owner={owner_id}: {e}")
            return False
        return True


def get_notification_sink():
    if config.NOTIFY_WEBHOOK_URL:
        return WebhookNotificationSink(config.NOTIFY_WEBHOOK_URL)
    return LogNotificationSink()


def emit_alerts(owner_id, alerts, title="Budget alert", sink=None):
    """Hand a non-empty alert batch to the sink; returns whether it was delivered."""
    if not alerts:
        return False
    sink = sink or get_notification_sink()
    return sink.emit(owner_id, title, alerts)
