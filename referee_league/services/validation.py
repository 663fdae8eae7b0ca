"""
Validation rules for local edits to the league data.

Validation failures are reported synchronously to the caller by raising one
of the exceptions below; nothing is changed when a check fails.
"""
from typing import Collection, List, Optional

from ..models import Match, Team
from ..utils.constants import MAX_JERSEY_NUMBER, MIN_JERSEY_NUMBER


class LeagueValidationError(Exception):
    """Base class for rejected edits."""
    pass


class MatchValidationError(LeagueValidationError):
    """A match would break a team reference or pit a team against itself."""
    pass


class PlayerValidationError(LeagueValidationError):
    """A roster edit is invalid (e.g. duplicate jersey number)."""
    pass


class EntityNotFoundError(LeagueValidationError):
    """The edit targets an id that is not in the current snapshot."""
    pass


class LeagueValidator:
    """
    Stateless checks used before the sync service applies an edit.

    Each ``*_errors`` method returns a list of messages (empty if valid);
    the ``require_*`` methods raise instead.
    """

    def match_errors(self, match: Match, team_ids: Collection[str]) -> List[str]:
        """
        Check the two team references of a match.

        Args:
            match: Match about to be added or edited
            team_ids: Ids of the teams currently known

        Returns:
            List of validation error messages (empty if valid)
        """
        errors = []
        if match.home_team_id == match.away_team_id:
            errors.append("Home and away teams must be different")
        if match.home_team_id not in team_ids:
            errors.append(f"Home team {match.home_team_id} not found")
        if match.away_team_id not in team_ids:
            errors.append(f"Away team {match.away_team_id} not found")
        return errors

    def require_valid_match(self, match: Match, team_ids: Collection[str]) -> None:
        errors = self.match_errors(match, team_ids)
        if errors:
            raise MatchValidationError(f"Invalid match: {'; '.join(errors)}")

    def player_errors(
        self,
        team: Team,
        name: Optional[str],
        jersey_number: Optional[int],
        player_id: Optional[str] = None,
    ) -> List[str]:
        """
        Check a new or edited roster entry.

        ``None`` for name or jersey number means "unchanged" and skips that check.
        """
        errors = []
        if name is not None and not name.strip():
            errors.append("Player name is required")
        if jersey_number is not None:
            if isinstance(jersey_number, bool) or not isinstance(jersey_number, int):
                errors.append("Jersey number must be an integer")
            elif not MIN_JERSEY_NUMBER <= jersey_number <= MAX_JERSEY_NUMBER:
                errors.append(
                    f"Jersey number must be between {MIN_JERSEY_NUMBER} and {MAX_JERSEY_NUMBER}"
                )
            elif team.jersey_taken(jersey_number, exclude_player_id=player_id):
                errors.append(f"Jersey number {jersey_number} is already taken on {team.name}")
        return errors

    def require_valid_player(
        self,
        team: Team,
        name: Optional[str],
        jersey_number: Optional[int],
        player_id: Optional[str] = None,
    ) -> None:
        errors = self.player_errors(team, name, jersey_number, player_id)
        if errors:
            raise PlayerValidationError(f"Player validation failed: {'; '.join(errors)}")

    def require_name(self, name: str, what: str) -> None:
        if not name or not name.strip():
            raise LeagueValidationError(f"{what} name is required")
