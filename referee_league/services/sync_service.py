"""
Sync service for the referee league sync application.

This module reconciles a client's in-memory copy of the league with the
server's two documents and keeps every Match pointing at existing Teams.

Transfers are whole-document and unconditional: Download replaces local data
with the server's, Upload overwrites the server with local data, and the last
writer wins. ``lastModified`` values only decide whether a refresh changed
anything; they never pick a winner between two clients.
"""
import copy
import logging
import threading
from contextlib import contextmanager
from dataclasses import dataclass
from datetime import datetime
from typing import Callable, Iterable, List, Optional, Tuple

from ..models import (
    League, LeagueSnapshot, Match, MatchDay, MatchStatus, Player, Team, TeamSide, queries
)
from ..utils import DEFAULT_LEAGUES, MATCHDAYS_DOCUMENT, TEAMS_DOCUMENT, utc_now
from .integrity_service import (
    count_stale, dedupe_by_id, remove_invalid_matches, remove_matches_referencing
)
from .server_client import (
    CancellationToken, DocumentPair, LeagueServerClient, ServerUnavailableError,
    SyncCancelledError, TransferStrategy, UploadOutcome,
    default_download_strategies, default_upload_strategies
)
from .validation import (
    EntityNotFoundError, LeagueValidationError, LeagueValidator, MatchValidationError
)

logger = logging.getLogger(__name__)

OFFLINE_MESSAGE = "Server not available - working offline"

_UNSET = object()


@dataclass
class SyncResult:
    """
    Outcome of a sync operation or a persisted edit.

    Attributes:
        success: Whether the operation reached the server as intended
        message: Human-readable status, also stored on the context
        skipped: True if another sync was still running
        data_changed: True if a download changed local data
        removed_matches: Matches dropped by Reference Validation or a cascade
        removed_match_days: Match days dropped for being left empty
        upload: Per-document outcome of the upload, if one ran
    """
    success: bool
    message: str
    skipped: bool = False
    data_changed: bool = False
    removed_matches: int = 0
    removed_match_days: int = 0
    upload: Optional[UploadOutcome] = None


class LeagueContext:
    """
    Client-side state holder.

    The current snapshot is only ever replaced as a whole through
    ``install``; readers always see either the old or the new pair.
    """

    def __init__(self, snapshot: Optional[LeagueSnapshot] = None, leagues: Optional[List[League]] = None):
        self._snapshot = snapshot or LeagueSnapshot()
        self._state_lock = threading.Lock()
        self._listeners: List[Callable[[LeagueSnapshot], None]] = []
        # Held for the whole of a sync or an edit; re-entrant so an edit can re-sync.
        self.sync_lock = threading.RLock()
        self.leagues: List[League] = (
            leagues if leagues is not None
            else [League(id=league_id, name=name) for league_id, name in DEFAULT_LEAGUES]
        )
        self.status = ""
        self.last_sync_date: Optional[datetime] = None
        # False until the server's documents have been received or fully replaced.
        self.loaded = False

    @property
    def snapshot(self) -> LeagueSnapshot:
        with self._state_lock:
            return self._snapshot

    def install(self, snapshot: LeagueSnapshot, notify: bool = True) -> None:
        """Swap in a new snapshot and tell subscribers."""
        with self._state_lock:
            self._snapshot = snapshot
        if notify:
            for listener in list(self._listeners):
                listener(snapshot)

    def subscribe(self, listener: Callable[[LeagueSnapshot], None]) -> None:
        self._listeners.append(listener)

    def set_status(self, message: str) -> None:
        self.status = message
        logger.info("Sync status: %s", message)


class _Draft:
    """Mutable working copy of a snapshot during one edit."""

    def __init__(self, teams: List[Team], match_days: List[MatchDay]):
        self.teams = teams
        self.match_days = match_days

    def team(self, team_id: str) -> Team:
        team = queries.find_team(self.teams, team_id)
        if team is None:
            raise EntityNotFoundError(f"Team {team_id} not found")
        return team

    def match_day(self, match_day_id: str) -> MatchDay:
        match_day = next((md for md in self.match_days if md.id == match_day_id), None)
        if match_day is None:
            raise EntityNotFoundError(f"Match day {match_day_id} not found")
        return match_day

    def match(self, match_id: str) -> Tuple[MatchDay, Match]:
        found = queries.find_match(self.match_days, match_id)
        if found is None:
            raise EntityNotFoundError(f"Match {match_id} not found")
        return found

    def to_snapshot(self) -> LeagueSnapshot:
        return LeagueSnapshot.build(self.teams, sorted(self.match_days, key=lambda md: md.date))


class LeagueSyncService:
    """
    Sync/consistency engine.

    Three sync modes (``download``, ``upload``, ``smart_sync``) plus the local
    edits that keep the Match to Team references valid. Network failures are
    reported in the returned SyncResult and never retried here; validation
    failures raise ``LeagueValidationError`` subclasses before anything changes.
    """

    def __init__(
        self,
        context: LeagueContext,
        client: LeagueServerClient,
        download_strategies: Optional[List[TransferStrategy]] = None,
        upload_strategies: Optional[List[TransferStrategy]] = None,
        validator: Optional[LeagueValidator] = None,
    ):
        self.context = context
        self.client = client
        self.download_strategies = download_strategies or default_download_strategies()
        self.upload_strategies = upload_strategies or default_upload_strategies()
        self.validator = validator or LeagueValidator()

    # ------------------------------------------------------------------
    # Read access
    # ------------------------------------------------------------------
    @property
    def teams(self) -> Tuple[Team, ...]:
        return self.context.snapshot.teams

    @property
    def match_days(self) -> Tuple[MatchDay, ...]:
        return self.context.snapshot.match_days

    def get_team(self, team_id: str) -> Optional[Team]:
        return queries.find_team(self.teams, team_id)

    def upcoming_match_days(self, now: Optional[datetime] = None) -> List[MatchDay]:
        return queries.upcoming(self.match_days, now or utc_now())

    def past_match_days(self, now: Optional[datetime] = None) -> List[MatchDay]:
        return queries.past(self.match_days, now or utc_now())

    # ------------------------------------------------------------------
    # Sync modes
    # ------------------------------------------------------------------
    @contextmanager
    def _exclusive(self):
        acquired = self.context.sync_lock.acquire(blocking=False)
        try:
            yield acquired
        finally:
            if acquired:
                self.context.sync_lock.release()

    def _skipped(self) -> SyncResult:
        logger.info("Sync already in progress, skipping")
        return SyncResult(success=False, message="Sync already in progress", skipped=True)

    def download(self, cancel_token: Optional[CancellationToken] = None) -> SyncResult:
        """
        Replace local data with the server's documents.

        Teams are fetched before match days. Only a fully received pair is
        installed; on failure or cancellation local data stays as it was.
        Reference Validation runs on the fetched match days, and if it had
        to drop anything the corrected document is written back.
        """
        with self._exclusive() as acquired:
            if not acquired:
                return self._skipped()
            return self._download(cancel_token or CancellationToken())

    def upload(self) -> SyncResult:
        """
        Overwrite the server's documents with local data.

        Succeeds if at least one of the two documents was written.
        """
        with self._exclusive() as acquired:
            if not acquired:
                return self._skipped()
            return self._upload()

    def smart_sync(self, cancel_token: Optional[CancellationToken] = None) -> SyncResult:
        """
        Upload, then download.

        Local edits reach the server before the server's copy is accepted.
        If the upload fails entirely no download is attempted.

        A client that has never received the server's documents downloads
        only; uploading its empty or partial copy would overwrite the league.
        """
        with self._exclusive() as acquired:
            if not acquired:
                return self._skipped()
            self.context.set_status("Starting sync...")
            if not self.context.loaded:
                return self._initial_sync(cancel_token or CancellationToken())

            uploaded = self._upload()
            if not uploaded.success:
                self.context.set_status(OFFLINE_MESSAGE)
                return SyncResult(success=False, message=OFFLINE_MESSAGE, upload=uploaded.upload)

            downloaded = self._download(cancel_token or CancellationToken())
            if downloaded.success:
                downloaded.message = "Sync complete: Data synchronized with server"
                self.context.set_status(downloaded.message)
            downloaded.upload = uploaded.upload
            return downloaded

    def _initial_sync(self, cancel_token: CancellationToken) -> SyncResult:
        logger.info("No server data received yet, downloading before any upload")
        downloaded = self._download(cancel_token)
        if downloaded.success:
            downloaded.message = "Sync complete: Data synchronized with server"
            self.context.set_status(downloaded.message)
        elif not cancel_token.cancelled:
            downloaded.message = OFFLINE_MESSAGE
            self.context.set_status(OFFLINE_MESSAGE)
        return downloaded

    def _fetch_pair(self, cancel_token: CancellationToken) -> Optional[DocumentPair]:
        for strategy in self.download_strategies:
            try:
                pair = strategy.download(self.client, cancel_token)
                logger.info("Downloaded documents via %s", strategy.name)
                return pair
            except ServerUnavailableError as e:
                logger.warning("Download via %s failed: %s", strategy.name, e)
        return None

    def _download(self, cancel_token: CancellationToken) -> SyncResult:
        self.context.set_status("Downloading from server...")
        try:
            pair = self._fetch_pair(cancel_token)
        except SyncCancelledError:
            return self._fail("Download cancelled")
        if pair is None:
            return self._fail("Failed to download data from server")

        try:
            fetched = LeagueSnapshot.from_documents(pair.teams, pair.match_days)
        except (AttributeError, KeyError, TypeError, ValueError) as e:
            logger.error("Server returned unreadable documents: %s", e)
            return self._fail("Server returned invalid data")

        teams = dedupe_by_id(fetched.teams)
        match_days = sorted(dedupe_by_id(fetched.match_days), key=lambda md: md.date)
        report = remove_invalid_matches(match_days, {t.id for t in teams})

        if cancel_token.cancelled:
            return self._fail("Download cancelled")

        current = self.context.snapshot
        changed = count_stale(current.teams, teams) + count_stale(current.match_days, report.match_days)
        snapshot = LeagueSnapshot.build(teams, report.match_days)
        self.context.install(snapshot, notify=changed > 0)

        if report.changed:
            logger.info(
                "Fixed invalid team references (%d matches, %d match days), saving corrected data to server",
                report.removed_matches, report.removed_match_days,
            )
            if not self.client.upload_document(MATCHDAYS_DOCUMENT, snapshot.match_days_document()):
                logger.warning("Could not write corrected match days back to server")

        self.context.last_sync_date = utc_now()
        self.context.loaded = True
        message = f"Download complete - {len(teams)} teams, {len(report.match_days)} match days received"
        self.context.set_status(message)
        return SyncResult(
            success=True,
            message=message,
            data_changed=changed > 0,
            removed_matches=report.removed_matches,
            removed_match_days=report.removed_match_days,
        )

    def _upload(self) -> SyncResult:
        snapshot = self.context.snapshot
        teams_doc = snapshot.teams_document()
        match_days_doc = snapshot.match_days_document()

        outcome = UploadOutcome(teams_ok=False, match_days_ok=False)
        for strategy in self.upload_strategies:
            outcome = strategy.upload(self.client, teams_doc, match_days_doc)
            if outcome.any_succeeded:
                logger.info(
                    "Uploaded via %s (teams=%s, matchdays=%s)",
                    strategy.name, outcome.teams_ok, outcome.match_days_ok,
                )
                break
            logger.warning("Upload via %s failed", strategy.name)

        if not outcome.any_succeeded:
            return self._fail("Failed to upload data to server", upload=outcome)

        self.context.last_sync_date = utc_now()
        if outcome.all_succeeded:
            self.context.loaded = True
        message = "Upload complete: Data sent to server"
        if not outcome.all_succeeded:
            message = "Upload partially complete: " + ("teams" if outcome.teams_ok else "match days") + " sent"
        self.context.set_status(message)
        return SyncResult(success=True, message=message, upload=outcome)

    def _fail(self, message: str, **kwargs) -> SyncResult:
        self.context.set_status(message)
        return SyncResult(success=False, message=message, **kwargs)

    def validate_references(self) -> SyncResult:
        """
        Run Reference Validation on the current local data.

        Dropped matches and emptied match days are written back to the server.
        """
        with self.context.sync_lock:
            snapshot = self.context.snapshot
            report = remove_invalid_matches(snapshot.match_days, snapshot.team_ids())
            if not report.changed:
                return SyncResult(success=True, message="All match references are valid")
            self.context.install(LeagueSnapshot.build(snapshot.teams, report.match_days))
            result = self._persist(match_days=True, message="Invalid matches removed")
            result.removed_matches = report.removed_matches
            result.removed_match_days = report.removed_match_days
            return result

    # ------------------------------------------------------------------
    # Edits
    # ------------------------------------------------------------------
    @contextmanager
    def _draft(self):
        with self.context.sync_lock:
            draft = _Draft(*self.context.snapshot.copy())
            yield draft
            self.context.install(draft.to_snapshot())

    def _persist(self, *, teams: bool = False, match_days: bool = False, message: str) -> SyncResult:
        """Upload the touched document(s); the local change stands either way."""
        snapshot = self.context.snapshot
        teams_ok = match_days_ok = True
        if teams:
            teams_ok = self.client.upload_document(TEAMS_DOCUMENT, snapshot.teams_document())
        if match_days:
            match_days_ok = self.client.upload_document(MATCHDAYS_DOCUMENT, snapshot.match_days_document())
        outcome = UploadOutcome(teams_ok=teams_ok, match_days_ok=match_days_ok)

        if outcome.all_succeeded:
            self.context.last_sync_date = utc_now()
            self.context.set_status(f"{message} and saved to server")
            return SyncResult(success=True, message=self.context.status, upload=outcome)
        return self._fail(f"{message} locally but failed to save to server", upload=outcome)

    # Teams and players

    def add_team(self, team: Team) -> SyncResult:
        self.validator.require_name(team.name, "Team")
        team = copy.deepcopy(team)
        with self._draft() as draft:
            if queries.find_team(draft.teams, team.id) is not None:
                raise LeagueValidationError(f"Team {team.id} already exists")
            draft.teams.append(team)
        return self._persist(teams=True, message="Team added")

    def update_team(self, team_id: str, *, name: Optional[str] = None, color: Optional[str] = None,
                    league_id=_UNSET) -> SyncResult:
        """Change team details; pass ``league_id=None`` to unassign the league."""
        if name is not None:
            self.validator.require_name(name, "Team")
        with self._draft() as draft:
            team = draft.team(team_id)
            if name is not None:
                team.name = name.strip()
            if color is not None:
                team.color = color
            if league_id is not _UNSET:
                team.league_id = league_id
            team.touch()
        return self._persist(teams=True, message="Team updated")

    def delete_team(self, team_id: str) -> SyncResult:
        """
        Delete a team and cascade to every match that references it.

        Both documents are written. If either write fails the deletion is
        reported as failed and local data is re-synced from the server so a
        client-only state is not presented as durable.
        """
        with self.context.sync_lock:
            with self._draft() as draft:
                team = draft.team(team_id)
                report = remove_matches_referencing(draft.match_days, team_id)
                draft.match_days = report.match_days
                draft.teams.remove(team)
            logger.info("Deleted team '%s' (%d matches removed)", team.name, report.removed_matches)

            result = self._persist(teams=True, match_days=True, message="Team and related matches deleted")
            result.removed_matches = report.removed_matches
            result.removed_match_days = report.removed_match_days
            if not result.success:
                message = "Failed to delete team completely"
                logger.error("%s; re-syncing from server", message)
                self._download(CancellationToken())
                self.context.set_status(message)
                result.message = message
            return result

    def add_player(self, team_id: str, player: Player) -> SyncResult:
        with self._draft() as draft:
            team = draft.team(team_id)
            self.validator.require_valid_player(team, player.name, player.jersey_number)
            player = copy.deepcopy(player)
            player.name = player.name.strip()
            team.add_player(player)
        return self._persist(teams=True, message="Player added")

    def update_player(self, team_id: str, player_id: str, *, name: Optional[str] = None,
                      jersey_number: Optional[int] = None, photo: Optional[bytes] = None,
                      clear_photo: bool = False) -> SyncResult:
        with self._draft() as draft:
            team = draft.team(team_id)
            if team.find_player(player_id) is None:
                raise EntityNotFoundError(f"Player {player_id} not found on {team.name}")
            self.validator.require_valid_player(team, name, jersey_number, player_id=player_id)
            team.update_player(
                player_id,
                name=name.strip() if name is not None else None,
                jersey_number=jersey_number,
                photo=photo,
                clear_photo=clear_photo,
            )
        return self._persist(teams=True, message="Player updated")

    def remove_player(self, team_id: str, player_id: str) -> SyncResult:
        with self._draft() as draft:
            if not draft.team(team_id).remove_player(player_id):
                raise EntityNotFoundError(f"Player {player_id} not found")
        return self._persist(teams=True, message="Player removed")

    def toggle_player_presence(self, team_id: str, player_id: str) -> SyncResult:
        """Flip the legacy team-level presence flag."""
        with self._draft() as draft:
            if not draft.team(team_id).toggle_player_presence(player_id):
                raise EntityNotFoundError(f"Player {player_id} not found")
        return self._persist(teams=True, message="Player presence updated")

    def reset_team_presence(self, team_id: str) -> SyncResult:
        with self._draft() as draft:
            draft.team(team_id).reset_all_presence()
        return self._persist(teams=True, message="Team presence reset")

    # Match days and matches

    def add_match_day(self, match_day: MatchDay) -> SyncResult:
        self.validator.require_name(match_day.name, "Match day")
        match_day = copy.deepcopy(match_day)
        with self._draft() as draft:
            team_ids = {t.id for t in draft.teams}
            for match in match_day.matches:
                self.validator.require_valid_match(match, team_ids)
            draft.match_days.append(match_day)
        return self._persist(match_days=True, message="Match day added")

    def update_match_day(self, match_day: MatchDay) -> SyncResult:
        """Replace a match day by id; every match in it must reference known teams."""
        with self._draft() as draft:
            existing = draft.match_day(match_day.id)
            team_ids = {t.id for t in draft.teams}
            match_day = copy.deepcopy(match_day)
            for match in match_day.matches:
                self.validator.require_valid_match(match, team_ids)
            match_day.last_modified = existing.last_modified
            match_day.touch()
            draft.match_days[draft.match_days.index(existing)] = match_day
        return self._persist(match_days=True, message="Match day updated")

    def remove_match_day(self, match_day_id: str) -> SyncResult:
        with self._draft() as draft:
            draft.match_days.remove(draft.match_day(match_day_id))
        return self._persist(match_days=True, message="Match day deleted")

    def add_match(self, match_day_id: str, match: Match) -> SyncResult:
        """
        Match Creation Guard.

        Raises:
            MatchValidationError: If the teams are equal or either is unknown
            EntityNotFoundError: If the match day does not exist
        """
        with self._draft() as draft:
            match_day = draft.match_day(match_day_id)
            self.validator.require_valid_match(match, {t.id for t in draft.teams})
            match_day.add_match(copy.deepcopy(match))
        return self._persist(match_days=True, message="Match added")

    def delete_match(self, match_id: str) -> SyncResult:
        with self._draft() as draft:
            match_day, _ = draft.match(match_id)
            match_day.remove_match(match_id)
        return self._persist(match_days=True, message="Match deleted")

    def toggle_match_attendance(self, match_id: str, side: TeamSide, player_id: str) -> SyncResult:
        """
        Flip one player's presence for a single match.

        Raises:
            EntityNotFoundError: If the match is unknown or the player is not
                on that side's roster
        """
        with self._draft() as draft:
            match_day, match = draft.match(match_id)
            team = draft.team(match.team_id_for(side))
            if team.find_player(player_id) is None:
                raise EntityNotFoundError(f"Player {player_id} is not on {team.name}")
            match.toggle_attendance(side, player_id)
            match_day.touch()
        return self._persist(match_days=True, message="Match attendance updated")

    def set_match_attendance(self, match_id: str, home_present: Iterable[str],
                             away_present: Iterable[str]) -> SyncResult:
        home_present, away_present = set(home_present), set(away_present)
        with self._draft() as draft:
            match_day, match = draft.match(match_id)
            for side, present in ((TeamSide.HOME, home_present), (TeamSide.AWAY, away_present)):
                roster = set(draft.team(match.team_id_for(side)).player_ids())
                unknown = present - roster
                if unknown:
                    raise EntityNotFoundError(f"Players not on {side.value} roster: {', '.join(sorted(unknown))}")
            match.set_attendance(home_present, away_present)
            match_day.touch()
        return self._persist(match_days=True, message="Match attendance updated")

    def update_match_score(self, match_id: str, home_score: int, away_score: int) -> SyncResult:
        """Record a score; a match in progress is marked completed."""
        with self._draft() as draft:
            match_day, match = draft.match(match_id)
            try:
                match.set_score(home_score, away_score)
            except ValueError as e:
                raise MatchValidationError(str(e)) from e
            if match.status is MatchStatus.IN_PROGRESS:
                match.status = MatchStatus.COMPLETED
            match_day.touch()
        return self._persist(match_days=True, message="Score saved")

    def update_match_status(self, match_id: str, status: MatchStatus) -> SyncResult:
        with self._draft() as draft:
            match_day, match = draft.match(match_id)
            match.status = status
            match_day.touch()
        return self._persist(match_days=True, message="Match status updated")

    # Leagues (kept on the client; teams reference them by id)

    def add_league(self, league: League) -> None:
        self.validator.require_name(league.name, "League")
        self.context.leagues.append(league)

    def update_league(self, league_id: str, name: str) -> None:
        self.validator.require_name(name, "League")
        league = next((lg for lg in self.context.leagues if lg.id == league_id), None)
        if league is None:
            raise EntityNotFoundError(f"League {league_id} not found")
        league.rename(name.strip())

    def remove_league(self, league_id: str) -> SyncResult:
        """Drop a league and unassign its teams; the teams document is re-uploaded."""
        league = next((lg for lg in self.context.leagues if lg.id == league_id), None)
        if league is None:
            raise EntityNotFoundError(f"League {league_id} not found")
        self.context.leagues.remove(league)
        with self._draft() as draft:
            for team in draft.teams:
                if team.league_id == league_id:
                    team.league_id = None
                    team.touch()
        return self._persist(teams=True, message=f"League '{league.name}' removed")
