"""
Team model for the referee league sync application.

A Team exclusively owns its ordered roster of Players. Every mutation of the
team or one of its players bumps ``last_modified``.
"""
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

from .player import Player, new_id
from ..utils import DEFAULT_TEAM_COLOR, next_timestamp, now_ts


@dataclass
class Team:
    """
    Represents a team and its roster.

    Attributes:
        name: Team name
        color: Display color, serialized as a ``#RRGGBB`` string
        league_id: Weak reference to a League; may be None or dangling
        players: Ordered roster
        id: Stable identifier
        last_modified: Epoch seconds of the last change to the team or a player
    """
    name: str
    color: str = DEFAULT_TEAM_COLOR
    league_id: Optional[str] = None
    players: List[Player] = field(default_factory=list)
    id: str = field(default_factory=new_id)
    last_modified: float = field(default_factory=now_ts)

    def touch(self) -> None:
        """Record a modification."""
        self.last_modified = next_timestamp(self.last_modified)

    def find_player(self, player_id: str) -> Optional[Player]:
        return next((p for p in self.players if p.id == player_id), None)

    def player_ids(self) -> List[str]:
        return [p.id for p in self.players]

    def jersey_taken(self, jersey_number: int, exclude_player_id: Optional[str] = None) -> bool:
        """Check whether another player on this team already wears the number."""
        return any(
            p.jersey_number == jersey_number and p.id != exclude_player_id
            for p in self.players
        )

    def add_player(self, player: Player) -> None:
        """
        Append a player to the roster.

        Raises:
            ValueError: If the jersey number is already used on this team
        """
        if self.jersey_taken(player.jersey_number):
            raise ValueError(f"Jersey number {player.jersey_number} is already taken")
        self.players.append(player)
        self.touch()

    def remove_player(self, player_id: str) -> bool:
        """Remove a player; returns False if the id is not on the roster."""
        player = self.find_player(player_id)
        if player is None:
            return False
        self.players.remove(player)
        self.touch()
        return True

    def update_player(
        self,
        player_id: str,
        *,
        name: Optional[str] = None,
        jersey_number: Optional[int] = None,
        photo: Optional[bytes] = None,
        clear_photo: bool = False,
    ) -> bool:
        """
        Update a player's details in place.

        Raises:
            ValueError: If the new jersey number collides with a teammate
        """
        player = self.find_player(player_id)
        if player is None:
            return False
        if jersey_number is not None and self.jersey_taken(jersey_number, exclude_player_id=player_id):
            raise ValueError(f"Jersey number {jersey_number} is already taken")
        if name is not None:
            player.name = name
        if jersey_number is not None:
            player.jersey_number = jersey_number
        if clear_photo:
            player.photo = None
        elif photo is not None:
            player.photo = photo
        self.touch()
        return True

    def toggle_player_presence(self, player_id: str) -> bool:
        """Flip the legacy team-level attendance flag for one player."""
        player = self.find_player(player_id)
        if player is None:
            return False
        player.is_present = not player.is_present
        self.touch()
        return True

    def reset_all_presence(self) -> None:
        for player in self.players:
            player.is_present = False
        self.touch()

    def to_dict(self) -> Dict[str, Any]:
        """Convert team to dictionary for JSON serialization."""
        return {
            "id": self.id,
            "name": self.name,
            "color": self.color,
            "leagueId": self.league_id,
            "players": [p.to_dict() for p in self.players],
            "lastModified": self.last_modified,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Team":
        """
        Create team from dictionary for JSON deserialization.

        Accepts the ``colorData`` key written by older clients.
        """
        color = data.get("color") or data.get("colorData")
        if not isinstance(color, str) or not color:
            color = DEFAULT_TEAM_COLOR
        return cls(
            id=str(data["id"]),
            name=data.get("name", ""),
            color=color,
            league_id=data.get("leagueId") or None,
            players=[Player.from_dict(p) for p in data.get("players") or []],
            last_modified=float(data.get("lastModified") or now_ts()),
        )
