"""
Player model for the referee league sync application.

This module contains the Player dataclass. Players have no lifecycle of their
own: a Team owns its roster and every change to a Player goes through it.
"""
import base64
import binascii
import logging
import uuid
from dataclasses import dataclass, field
from typing import Any, Dict, Optional

logger = logging.getLogger(__name__)


def new_id() -> str:
    """Generate an opaque identifier for a new entity."""
    return str(uuid.uuid4()).upper()


@dataclass
class Player:
    """
    A rostered player.

    Attributes:
        name: Player's display name
        jersey_number: Jersey number, unique within the owning team only
        is_present: Legacy team-level attendance flag; per-match attendance
            lives on Match and the two are toggled independently
        photo: Optional raw image bytes
        id: Stable identifier
    """
    name: str
    jersey_number: int
    is_present: bool = False
    photo: Optional[bytes] = None
    id: str = field(default_factory=new_id)

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary for JSON serialization."""
        return {
            "id": self.id,
            "name": self.name,
            "jerseyNumber": self.jersey_number,
            "isPresent": self.is_present,
            "photo": base64.b64encode(self.photo).decode("ascii") if self.photo else None,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Player":
        """
        Create player from dictionary for JSON deserialization.

        Args:
            data: Dictionary representation of player

        Returns:
            Player instance
        """
        photo = None
        encoded = data.get("photo", data.get("photoData"))
        if encoded:
            try:
                photo = base64.b64decode(encoded, validate=True)
            except (binascii.Error, ValueError, TypeError):
                logger.warning("Player %s has an unreadable photo, dropping it", data.get("id"))

        return cls(
            id=str(data["id"]),
            name=data.get("name", ""),
            jersey_number=int(data.get("jerseyNumber", 0)),
            is_present=bool(data.get("isPresent", False)),
            photo=photo,
        )
