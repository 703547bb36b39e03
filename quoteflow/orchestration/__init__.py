"""Orchestration layer for refresh scheduling and notifications."""
from .notifications import (
    LogNotificationSink,
    NotificationGate,
    NotificationSink,
    PriceChange,
)
from .scheduler import CycleReport, RefreshScheduler


__all__ = [
    "LogNotificationSink",
    "NotificationGate",
    "NotificationSink",
    "PriceChange",
    "CycleReport",
    "RefreshScheduler",
]
