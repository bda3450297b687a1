"""
Adapters layer - External integrations (schedule file, Microsoft Graph, caches).
"""

from .busy_intervals import BusyIntervalAdapter
from .cache import CachedScheduleSource, TTLCache
from .graph_authenticator import GraphAuthenticator
from .graph_calendar import GraphCalendarClient
from .mock_calendar import MockCalendarClient
from .yaml_schedule_source import YamlScheduleSource

__all__ = [
    "BusyIntervalAdapter",
    "CachedScheduleSource",
    "GraphAuthenticator",
    "GraphCalendarClient",
    "MockCalendarClient",
    "TTLCache",
    "YamlScheduleSource",
]
