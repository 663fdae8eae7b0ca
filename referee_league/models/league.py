"""League model: a label that teams may reference by id."""
from dataclasses import dataclass, field
from typing import Any, Dict

from .player import new_id
from ..utils import next_timestamp, now_ts


@dataclass
class League:
    """
    A named grouping of teams (e.g. "Over 30").

    Teams hold a weak ``league_id``; nothing checks that it resolves.
    """
    name: str
    id: str = field(default_factory=new_id)
    last_modified: float = field(default_factory=now_ts)

    def rename(self, name: str) -> None:
        self.name = name
        self.last_modified = next_timestamp(self.last_modified)

    def to_dict(self) -> Dict[str, Any]:
        return {"id": self.id, "name": self.name, "lastModified": self.last_modified}

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "League":
        return cls(
            id=str(data["id"]),
            name=data.get("name", ""),
            last_modified=float(data.get("lastModified") or now_ts()),
        )
