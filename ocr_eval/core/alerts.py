"""Alert delivery for performance threshold breaches.

The monitor builds PerformanceAlert values; this module routes them to the
configured channels (console log and/or a caller-supplied callback) and
offers AlertLog, an in-memory sink that can serve as that callback.
"""

from collections import deque
from enum import Enum
from typing import Callable, Deque, Dict, Iterable, List, Optional

from loguru import logger

from ocr_eval.core.datamodels import AlertSeverity, PerformanceAlert


__all__ = ["AlertSeverity", "AlertChannel", "AlertCallback", "AlertDispatcher", "AlertLog"]


AlertCallback = Callable[[PerformanceAlert], None]


class AlertChannel(str, Enum):
    """Where alerts get delivered."""
    CONSOLE = "console"  # loguru at the alert's severity
    CALLBACK = "callback"  # user-supplied function


_LOG_LEVELS = {
    AlertSeverity.WARNING: "WARNING",
    AlertSeverity.ERROR: "ERROR",
    AlertSeverity.CRITICAL: "CRITICAL",
}


class AlertDispatcher:
    """Delivers each alert to every configured channel.

    Delivery never raises: an exception from the callback is logged and
    the remaining channels still receive the alert.

    Usage:
        dispatcher = AlertDispatcher(
            channels=[AlertChannel.CONSOLE, AlertChannel.CALLBACK],
            callback=alert_log.record
        )
        dispatcher.dispatch(alert)
    """

    def __init__(
        self,
        channels: Iterable[AlertChannel] = (AlertChannel.CONSOLE,),
        callback: Optional[AlertCallback] = None
    ):
        """Initialize dispatcher.

        Args:
            channels: Channels to deliver to
            callback: Function called with each alert on the callback channel
        """
        self.channels = [AlertChannel(c) for c in channels]
        self.callback = callback

        if AlertChannel.CALLBACK in self.channels and callback is None:
            logger.warning("Callback alert channel configured without a callback; it will be skipped")

    def dispatch(self, alert: PerformanceAlert) -> None:
        """Send one alert to all channels."""
        for channel in self.channels:
            if channel == AlertChannel.CONSOLE:
                logger.log(_LOG_LEVELS[alert.type], f"🚨 Performance alert: {alert}")
                for suggestion in alert.suggestions:
                    logger.debug(f"   suggestion: {suggestion}")
            elif channel == AlertChannel.CALLBACK and self.callback is not None:
                self._invoke_callback(alert)

    def _invoke_callback(self, alert: PerformanceAlert) -> None:
        try:
            self.callback(alert)
        except Exception as e:
            logger.error(f"Alert callback failed for {alert.metric}: {e}")


class AlertLog:
    """Bounded in-memory history of delivered alerts.

    Pass `alert_log.record` as the monitor's alert callback to collect
    alerts for dashboards or tests.

    Usage:
        alert_log = AlertLog(max_history=500)
        monitor = PerformanceMonitor(AlertConfig(callback=alert_log.record))
        critical = alert_log.get_alerts(severity=AlertSeverity.CRITICAL)
    """

    def __init__(self, max_history: int = 1000):
        """Initialize the alert log.

        Args:
            max_history: Oldest alerts are dropped beyond this many
        """
        if max_history < 1:
            raise ValueError("max_history must be at least 1")
        self._alerts: Deque[PerformanceAlert] = deque(maxlen=max_history)

    def __len__(self) -> int:
        return len(self._alerts)

    def record(self, alert: PerformanceAlert) -> None:
        """Store an alert (AlertCallback signature)."""
        self._alerts.append(alert)

    def get_alerts(
        self,
        metric: Optional[str] = None,
        severity: Optional[AlertSeverity] = None
    ) -> List[PerformanceAlert]:
        """Get stored alerts, oldest first.

        Args:
            metric: Optional filter by metric name
            severity: Optional filter by severity

        Returns:
            List of alerts matching criteria
        """
        alerts = list(self._alerts)

        if metric:
            alerts = [a for a in alerts if a.metric == metric]

        if severity:
            alerts = [a for a in alerts if a.type == severity]

        return alerts

    def latest(self) -> Optional[PerformanceAlert]:
        return self._alerts[-1] if self._alerts else None

    def get_alert_summary(self) -> Dict[str, int]:
        """Count of stored alerts per severity, plus the total."""
        summary = {"total_alerts": len(self._alerts)}
        for severity in AlertSeverity:
            summary[severity.value] = sum(1 for a in self._alerts if a.type == severity)
        return summary

    def has_critical_alerts(self) -> bool:
        return any(a.type == AlertSeverity.CRITICAL for a in self._alerts)

    def clear(self) -> None:
        cleared = len(self._alerts)
        self._alerts.clear()
        logger.debug(f"Cleared {cleared} alert(s)")
