# src/cryptoadvisor/infrastructure/monitoring/metrics.py
from prometheus_client import Counter, Histogram

ALERT_PASSES = Counter("ca_alert_passes_total", "Smart alert evaluation passes", ["result"])
ALERTS_EVALUATED = Counter("ca_alerts_evaluated_total", "Alerts evaluated", ["kind"])
ALERTS_TRIGGERED = Counter("ca_alerts_triggered_total", "Alerts that fired", ["kind"])
ALERT_ERRORS = Counter("ca_alert_errors_total", "Per-alert evaluation errors", ["tag"])
PASS_DURATION = Histogram("ca_alert_pass_duration_seconds", "Duration of one evaluation pass")
NOTIFICATIONS_DISPATCHED = Counter("ca_notifications_dispatched_total", "Notification deliveries", ["result"])
