"""docwatch — Feishu document change notifications with debouncing."""

from docwatch.cache import TTLCache
from docwatch.clock import Clock, ManualClock, system_clock
from docwatch.detector import (
    ChangeDetectionConfig,
    analyze_change_pattern,
    create_updated_tracked_state,
    detect_change,
    format_detection_result,
    should_notify_again,
    time_since_last_notification,
)
from docwatch.models import (
    ChangeDetectionResult,
    ChangeEvent,
    ChangePattern,
    ChangeType,
    DocMetadata,
    Subscription,
    TrackedDoc,
)
from docwatch.poller import DocumentPoller, PollingConfig, PollingMetrics, HealthStatus
from docwatch.store import ChangeLog, TrackedDocStore
from docwatch.channels.base import Channel, Notification
from docwatch.channels.cli import ConsoleChannel

__version__ = "0.1.0"
__all__ = [
    # Detection
    "detect_change", "ChangeDetectionConfig",
    "should_notify_again", "time_since_last_notification",
    "format_detection_result", "create_updated_tracked_state", "analyze_change_pattern",
    # Models
    "DocMetadata", "TrackedDoc", "ChangeDetectionResult", "ChangeType",
    "ChangePattern", "ChangeEvent", "Subscription",
    # Time / cache
    "Clock", "ManualClock", "system_clock", "TTLCache",
    # Polling
    "DocumentPoller", "PollingConfig", "PollingMetrics", "HealthStatus",
    # Store
    "TrackedDocStore", "ChangeLog",
    # Channels
    "Channel", "Notification", "ConsoleChannel",
]
