"""
LeagueSnapshot: the client's view of both synchronized documents.

A snapshot is never edited once built. Changes produce a new snapshot (see
``copy``) which the client context swaps in as a whole.
"""
import copy
from dataclasses import dataclass
from typing import Any, Dict, List, Sequence, Set, Tuple

from .match_day import MatchDay
from .team import Team


@dataclass(frozen=True)
class LeagueSnapshot:
    """Immutable pair of the ``teams`` and ``matchdays`` documents."""
    teams: Tuple[Team, ...] = ()
    match_days: Tuple[MatchDay, ...] = ()

    @classmethod
    def build(cls, teams: Sequence[Team], match_days: Sequence[MatchDay]) -> "LeagueSnapshot":
        return cls(teams=tuple(teams), match_days=tuple(match_days))

    def team_ids(self) -> Set[str]:
        return {team.id for team in self.teams}

    def copy(self) -> Tuple[List[Team], List[MatchDay]]:
        """Deep-copied, mutable lists to build the next snapshot from."""
        return copy.deepcopy(list(self.teams)), copy.deepcopy(list(self.match_days))

    def teams_document(self) -> List[Dict[str, Any]]:
        return [team.to_dict() for team in self.teams]

    def match_days_document(self) -> List[Dict[str, Any]]:
        return [match_day.to_dict() for match_day in self.match_days]

    def to_documents(self) -> Dict[str, List[Dict[str, Any]]]:
        """Serialize in the shape of the combined ``/sync`` payload."""
        return {"teams": self.teams_document(), "matchDays": self.match_days_document()}

    @classmethod
    def from_documents(
        cls,
        teams: Sequence[Dict[str, Any]],
        match_days: Sequence[Dict[str, Any]],
    ) -> "LeagueSnapshot":
        return cls.build(
            [Team.from_dict(t) for t in teams],
            [MatchDay.from_dict(md) for md in match_days],
        )
