"""
Constants for the referee league sync application.

This module contains configuration defaults used throughout the application.
"""

# Application metadata
APP_TITLE = "Soccer Referee League"
BACKUP_VERSION = "1.0.0"
BACKUP_FILENAME = "soccer-referee-backup.json"

# Server defaults
DEFAULT_HOST = "0.0.0.0"
DEFAULT_PORT = 3000
API_PREFIX = "/api"
DEFAULT_DATA_DIR = "data"
CORS_ORIGINS = "*"
MAX_CONTENT_LENGTH = 50 * 1024 * 1024  # player photos travel inline

# Persisted documents
TEAMS_DOCUMENT = "teams"
MATCHDAYS_DOCUMENT = "matchdays"
DOCUMENT_NAMES = (TEAMS_DOCUMENT, MATCHDAYS_DOCUMENT)

# Client sync defaults
DEFAULT_SERVER_URL = "http://localhost:3000/api"
DEFAULT_REQUEST_TIMEOUT = 10.0
DEFAULT_REFRESH_INTERVAL_SECONDS = 30

# Team defaults
DEFAULT_TEAM_COLOR = "#2196F3"
MIN_JERSEY_NUMBER = 0
MAX_JERSEY_NUMBER = 99

# Leagues every new client starts with; team documents reference these ids
DEFAULT_LEAGUES = [
    ("78E07FBD-352D-46A0-87F7-F3F119E08FC6", "Over 30"),
    ("364C47E0-D393-4945-9A26-E16E3B18E4A0", "Over 40"),
]
