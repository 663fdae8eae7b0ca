"""
Utilities package for the referee league sync application.

This package contains utility functions and constants used throughout the application.
"""
from .time_utils import now_ts, utc_now, next_timestamp, format_iso, parse_iso, ensure_utc
from .constants import (
    APP_TITLE, API_PREFIX, DEFAULT_LEAGUES, DEFAULT_TEAM_COLOR,
    DOCUMENT_NAMES, MATCHDAYS_DOCUMENT, TEAMS_DOCUMENT
)

__all__ = [
    "now_ts", "utc_now", "next_timestamp", "format_iso", "parse_iso", "ensure_utc",
    "APP_TITLE", "API_PREFIX", "DEFAULT_LEAGUES", "DEFAULT_TEAM_COLOR",
    "DOCUMENT_NAMES", "MATCHDAYS_DOCUMENT", "TEAMS_DOCUMENT"
]
