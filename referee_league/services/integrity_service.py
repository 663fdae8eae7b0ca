"""
Referential integrity and staleness rules shared by every sync path.

Matches point at Teams by id across two independently written documents, so
a Team deleted by one client can leave dangling Matches behind for the next.
The functions here detect and drop those Matches. None of them mutate their
arguments: each returns freshly built match days.
"""
import dataclasses
import logging
from dataclasses import dataclass, field
from typing import Collection, Iterable, List, Sequence, TypeVar, Union

from ..models import MatchDay, Team

logger = logging.getLogger(__name__)

Entity = TypeVar("Entity", Team, MatchDay)


@dataclass
class IntegrityReport:
    """Outcome of an integrity pass over the match days."""
    match_days: List[MatchDay] = field(default_factory=list)
    removed_matches: int = 0
    removed_match_days: int = 0

    @property
    def changed(self) -> bool:
        return self.removed_matches > 0 or self.removed_match_days > 0


def _without_matches(match_day: MatchDay, keep) -> MatchDay:
    kept = [m for m in match_day.matches if keep(m)]
    updated = dataclasses.replace(match_day, matches=kept)
    if len(kept) != len(match_day.matches):
        updated.touch()
    return updated


def remove_invalid_matches(match_days: Sequence[MatchDay], team_ids: Collection[str]) -> IntegrityReport:
    """
    Reference Validation.

    Drops every Match whose home or away team id is not in ``team_ids``, then
    drops every MatchDay left without Matches. A dangling Match is never
    repaired; there is no way to tell which team was meant.

    Args:
        match_days: Match days to check
        team_ids: Ids of the teams currently known

    Returns:
        IntegrityReport with the cleaned match days and removal counts
    """
    report = IntegrityReport()
    for match_day in match_days:
        def keep(match) -> bool:
            valid = match.home_team_id in team_ids and match.away_team_id in team_ids
            if not valid:
                logger.warning(
                    "Removing match %s on '%s': unknown team reference (home=%s, away=%s)",
                    match.id, match_day.name, match.home_team_id, match.away_team_id,
                )
            return valid

        cleaned = _without_matches(match_day, keep)
        report.removed_matches += len(match_day.matches) - len(cleaned.matches)
        if cleaned.matches:
            report.match_days.append(cleaned)
        else:
            logger.info("Removing empty match day '%s'", match_day.name)
            report.removed_match_days += 1
    return report


def remove_matches_referencing(match_days: Sequence[MatchDay], team_id: str) -> IntegrityReport:
    """
    Cascade step of a team deletion.

    Drops exactly the Matches that reference ``team_id`` and any MatchDay
    emptied by that removal. Match days that were already empty are kept.
    """
    report = IntegrityReport()
    for match_day in match_days:
        cleaned = _without_matches(match_day, lambda m: not m.references(team_id))
        removed = len(match_day.matches) - len(cleaned.matches)
        report.removed_matches += removed
        if removed and not cleaned.matches:
            logger.info("Cascade delete: removing emptied match day '%s'", match_day.name)
            report.removed_match_days += 1
            continue
        report.match_days.append(cleaned)
    if report.removed_matches:
        logger.info("Cascade delete: removed %d matches referencing team %s", report.removed_matches, team_id)
    return report


def child_count(entity: Union[Team, MatchDay]) -> int:
    if isinstance(entity, Team):
        return len(entity.players)
    return len(entity.matches)


def is_entity_stale(local: Union[Team, MatchDay], fetched: Union[Team, MatchDay]) -> bool:
    """
    Decide whether a cached entity must be replaced by the fetched one.

    Two values are the same for refresh purposes iff id, ``last_modified`` and
    child count all match. Any difference means full replacement.
    """
    return (
        local.id != fetched.id
        or local.last_modified != fetched.last_modified
        or child_count(local) != child_count(fetched)
    )


def count_stale(local: Iterable[Entity], fetched: Iterable[Entity]) -> int:
    """
    Count the entities a refresh would change.

    New, stale, and vanished entities each count once.
    """
    local_by_id = {e.id: e for e in local}
    fetched_list = list(fetched)
    changed = 0
    for entity in fetched_list:
        cached = local_by_id.pop(entity.id, None)
        if cached is None or is_entity_stale(cached, entity):
            changed += 1
    return changed + len(local_by_id)


def dedupe_by_id(entities: Iterable[Entity]) -> List[Entity]:
    """Keep the first occurrence of each id."""
    seen = set()
    unique = []
    for entity in entities:
        if entity.id in seen:
            logger.warning("Dropping duplicate %s %s", type(entity).__name__, entity.id)
            continue
        seen.add(entity.id)
        unique.append(entity)
    return unique
