"""
Soccer Referee League

Keeps a league's teams, rosters, match days and per-match attendance in step
across several referee devices through a small JSON document server.

This package provides the Flask gateway and the client-side sync engine.
"""
from .models import League, Player, Team, Match, MatchDay, LeagueSnapshot
from .services import JsonDocumentStore, LeagueSyncService, ServiceFactory
from .api import create_app, run_web_app
from .utils import now_ts, APP_TITLE

__version__ = "1.0.0"

__all__ = [
    "League", "Player", "Team", "Match", "MatchDay", "LeagueSnapshot",
    "JsonDocumentStore", "LeagueSyncService", "ServiceFactory",
    "create_app", "run_web_app", "now_ts", "APP_TITLE"
]
