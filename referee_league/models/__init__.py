"""
Models package for the referee league sync application.

This package contains the core data models and the pure queries over them.
"""
from .player import Player, new_id
from .league import League
from .team import Team
from .match import Match, MatchStatus, TeamSide
from .match_day import MatchDay
from .snapshot import LeagueSnapshot
from . import queries

__all__ = [
    "Player", "League", "Team", "Match", "MatchStatus", "TeamSide",
    "MatchDay", "LeagueSnapshot", "queries", "new_id"
]
