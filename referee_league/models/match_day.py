"""
MatchDay model for the referee league sync application.

A MatchDay groups the Matches played on one calendar date and owns them
exclusively.
"""
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Dict, List, Optional

from .match import Match
from .player import new_id
from ..utils import ensure_utc, format_iso, next_timestamp, now_ts, parse_iso


@dataclass
class MatchDay:
    """
    Represents one match day.

    Attributes:
        date: Calendar date (and time) of the match day
        name: Display name, e.g. "Week 1 - League Games"
        notes: Free-text notes
        matches: Ordered list of owned matches
        id: Stable identifier
        last_modified: Epoch seconds of the last change to the day or a match
    """
    date: datetime
    name: str
    notes: str = ""
    matches: List[Match] = field(default_factory=list)
    id: str = field(default_factory=new_id)
    last_modified: float = field(default_factory=now_ts)

    def __post_init__(self):
        self.date = ensure_utc(self.date)

    def touch(self) -> None:
        """Record a modification."""
        self.last_modified = next_timestamp(self.last_modified)

    def find_match(self, match_id: str) -> Optional[Match]:
        return next((m for m in self.matches if m.id == match_id), None)

    def add_match(self, match: Match) -> None:
        self.matches.append(match)
        self.touch()

    def remove_match(self, match_id: str) -> bool:
        match = self.find_match(match_id)
        if match is None:
            return False
        self.matches.remove(match)
        self.touch()
        return True

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "date": format_iso(self.date),
            "name": self.name,
            "notes": self.notes,
            "matches": [m.to_dict() for m in self.matches],
            "lastModified": self.last_modified,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "MatchDay":
        return cls(
            id=str(data["id"]),
            date=parse_iso(data["date"]),
            name=data.get("name", ""),
            notes=data.get("notes") or "",
            matches=[Match.from_dict(m) for m in data.get("matches") or []],
            last_modified=float(data.get("lastModified") or now_ts()),
        )
