"""
Match model for the referee league sync application.

This module contains the Match dataclass, its status enumeration, and the
per-match attendance tracking that superseded the team-level presence flag.
"""
import logging
from dataclasses import dataclass, field as dataclass_field
from datetime import datetime
from enum import Enum
from typing import Any, Dict, Iterable, Optional, Set

from .player import new_id
from ..utils import ensure_utc, format_iso, parse_iso

logger = logging.getLogger(__name__)


class MatchStatus(Enum):
    """Lifecycle of a single match."""
    SCHEDULED = "Scheduled"
    IN_PROGRESS = "In Progress"
    COMPLETED = "Completed"
    CANCELLED = "Cancelled"

    @classmethod
    def parse(cls, value: Optional[str]) -> "MatchStatus":
        """Accept either the display value or the member name ("InProgress")."""
        if not value:
            return cls.SCHEDULED
        for status in cls:
            if value == status.value or value.replace(" ", "").lower() == status.value.replace(" ", "").lower():
                return status
        raise ValueError(f"Unknown match status: {value}")


class TeamSide(Enum):
    HOME = "home"
    AWAY = "away"


@dataclass
class Match:
    """
    A scheduled game between two teams.

    Attributes:
        home_team_id: Weak reference to the home Team; must resolve
        away_team_id: Weak reference to the away Team; must resolve
        scheduled_time: Kick-off time
        field: Free-text field label (e.g. "Field 2")
        status: Current MatchStatus
        home_score: Home goals, populated together with away_score
        away_score: Away goals, populated together with home_score
        home_team_present_players: Ids of home players checked in for this match
        away_team_present_players: Ids of away players checked in for this match
        id: Stable identifier
    """
    home_team_id: str
    away_team_id: str
    scheduled_time: datetime
    field: str = ""
    status: MatchStatus = MatchStatus.SCHEDULED
    home_score: Optional[int] = None
    away_score: Optional[int] = None
    home_team_present_players: Set[str] = dataclass_field(default_factory=set)
    away_team_present_players: Set[str] = dataclass_field(default_factory=set)
    id: str = dataclass_field(default_factory=new_id)

    def __post_init__(self):
        self.scheduled_time = ensure_utc(self.scheduled_time)

    @property
    def home_team_present(self) -> int:
        return len(self.home_team_present_players)

    @property
    def away_team_present(self) -> int:
        return len(self.away_team_present_players)

    @property
    def has_score(self) -> bool:
        return self.home_score is not None and self.away_score is not None

    @property
    def score_display(self) -> str:
        if self.has_score:
            return f"{self.home_score} - {self.away_score}"
        return "No score"

    def references(self, team_id: str) -> bool:
        """True if the team plays in this match on either side."""
        return self.home_team_id == team_id or self.away_team_id == team_id

    def team_id_for(self, side: TeamSide) -> str:
        return self.home_team_id if side is TeamSide.HOME else self.away_team_id

    def present_players(self, side: TeamSide) -> Set[str]:
        return self.home_team_present_players if side is TeamSide.HOME else self.away_team_present_players

    def toggle_attendance(self, side: TeamSide, player_id: str) -> bool:
        """
        Flip one player's presence for this match.

        Returns:
            True if the player is now marked present
        """
        present = self.present_players(side)
        if player_id in present:
            present.discard(player_id)
            return False
        present.add(player_id)
        return True

    def set_attendance(self, home_present: Iterable[str], away_present: Iterable[str]) -> None:
        self.home_team_present_players = set(home_present)
        self.away_team_present_players = set(away_present)

    def set_score(self, home_score: int, away_score: int) -> None:
        """
        Record the final or running score.

        Raises:
            ValueError: If either score is negative
        """
        if home_score < 0 or away_score < 0:
            raise ValueError("Scores cannot be negative")
        self.home_score = int(home_score)
        self.away_score = int(away_score)

    def clear_score(self) -> None:
        self.home_score = None
        self.away_score = None

    def to_dict(self) -> Dict[str, Any]:
        """
        Convert match to dictionary for JSON serialization.

        Present-player sets are written as sorted lists so the same match
        always serializes to the same document.
        """
        return {
            "id": self.id,
            "homeTeamId": self.home_team_id,
            "awayTeamId": self.away_team_id,
            "scheduledTime": format_iso(self.scheduled_time),
            "field": self.field,
            "status": self.status.value,
            "homeScore": self.home_score,
            "awayScore": self.away_score,
            "homeTeamPresent": self.home_team_present,
            "awayTeamPresent": self.away_team_present,
            "homeTeamPresentPlayers": sorted(self.home_team_present_players),
            "awayTeamPresentPlayers": sorted(self.away_team_present_players),
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Match":
        """
        Create match from dictionary for JSON deserialization.

        The present counts on the wire are ignored and re-derived from the
        player sets. A lone score without its partner is discarded.
        """
        home_score = data.get("homeScore", data.get("homeTeamScore"))
        away_score = data.get("awayScore", data.get("awayTeamScore"))
        if (home_score is None) != (away_score is None):
            logger.warning("Match %s carries a partial score, ignoring it", data.get("id"))
            home_score = away_score = None

        return cls(
            id=str(data["id"]),
            home_team_id=str(data["homeTeamId"]),
            away_team_id=str(data["awayTeamId"]),
            scheduled_time=parse_iso(data["scheduledTime"]),
            field=data.get("field") or "",
            status=MatchStatus.parse(data.get("status")),
            home_score=int(home_score) if home_score is not None else None,
            away_score=int(away_score) if away_score is not None else None,
            home_team_present_players=set(data.get("homeTeamPresentPlayers") or []),
            away_team_present_players=set(data.get("awayTeamPresentPlayers") or []),
        )
