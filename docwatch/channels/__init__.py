"""
Channel package.
"""

from docwatch.channels.base import Channel, Notification
from docwatch.channels.cli import ConsoleChannel

__all__ = [
    "Channel",
    "Notification",
    "ConsoleChannel",
]
