"""
Pure derived queries over the domain model.

Nothing here performs I/O or mutates its arguments.
"""
import re
from datetime import datetime
from typing import Iterable, List, Optional, Sequence, Tuple

from .match import Match
from .match_day import MatchDay
from .team import Team
from ..utils import ensure_utc

_FIELD_NUMBER = re.compile(r"(\d+)")


def present_count(team: Team) -> int:
    """Number of players flagged present on the team-level roster."""
    return sum(1 for p in team.players if p.is_present)


def total_count(team: Team) -> int:
    return len(team.players)


def upcoming(match_days: Iterable[MatchDay], now: datetime) -> List[MatchDay]:
    """Match days on or after ``now``, soonest first. A naive ``now`` is read as UTC."""
    now = ensure_utc(now)
    return sorted((md for md in match_days if md.date >= now), key=lambda md: md.date)


def past(match_days: Iterable[MatchDay], now: datetime) -> List[MatchDay]:
    """Match days before ``now``, most recent first."""
    now = ensure_utc(now)
    return sorted((md for md in match_days if md.date < now), key=lambda md: md.date, reverse=True)


def teams_in_league(teams: Iterable[Team], league_id: str) -> List[Team]:
    return sorted((t for t in teams if t.league_id == league_id), key=lambda t: t.name.casefold())


def teams_without_league(teams: Iterable[Team]) -> List[Team]:
    return sorted((t for t in teams if not t.league_id), key=lambda t: t.name.casefold())


def find_team(teams: Iterable[Team], team_id: str) -> Optional[Team]:
    return next((t for t in teams if t.id == team_id), None)


def find_match(match_days: Iterable[MatchDay], match_id: str) -> Optional[Tuple[MatchDay, Match]]:
    """Locate a match and the match day that owns it."""
    for match_day in match_days:
        match = match_day.find_match(match_id)
        if match is not None:
            return match_day, match
    return None


def total_players(teams: Iterable[Team]) -> int:
    return sum(total_count(t) for t in teams)


def total_matches(match_days: Iterable[MatchDay]) -> int:
    return sum(len(md.matches) for md in match_days)


def _field_sort_key(label: str) -> int:
    found = _FIELD_NUMBER.search(label or "")
    if found:
        return int(found.group(1))
    return ord(label.lower()[0]) if label else 0


def sort_matches(matches: Sequence[Match]) -> List[Match]:
    """Order matches by kick-off time, then by the number in the field label."""
    return sorted(matches, key=lambda m: (m.scheduled_time, _field_sort_key(m.field)))
