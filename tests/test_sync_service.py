"""
Tests for the sync service.

Every client here is a LeagueSyncService with its own context, talking to the
same Flask gateway and document store through FlaskTestSession.
"""
import threading
import unittest
from unittest.mock import MagicMock

import pytest

from referee_league.api import create_app
from referee_league.models import League, LeagueSnapshot, MatchStatus, Player, TeamSide
from referee_league.services import (
    CancellationToken, EntityNotFoundError, JsonDocumentStore, LeagueValidationError,
    MatchValidationError, PeriodicRefreshService, PlayerValidationError
)
from referee_league.services.sync_service import OFFLINE_MESSAGE
from referee_league.utils import DEFAULT_LEAGUES

from factories import FlaskTestSession, make_match, make_match_day, make_sync_service, make_team


def _seed(service, *teams):
    for team in teams:
        assert service.add_team(team).success
    return teams


def test_round_trip_between_two_clients(session, store):
    first = make_sync_service(session)
    lions, tigers = _seed(first, make_team("Lions", players=3), make_team("Tigers", players=2))
    first.add_match_day(make_match_day("Week 1", make_match(lions, tigers)))
    assert first.smart_sync().success

    second = make_sync_service(session)
    result = second.download()

    assert result.success and result.data_changed
    assert second.context.snapshot.to_documents() == first.context.snapshot.to_documents()
    assert store.read_document("teams") == first.context.snapshot.teams_document()
    assert store.read_document("matchdays") == first.context.snapshot.match_days_document()


def test_download_is_quiet_when_nothing_changed(session):
    first = make_sync_service(session)
    _seed(first, make_team("Lions"))
    second = make_sync_service(session)
    listener = MagicMock()
    second.context.subscribe(listener)

    assert second.download().data_changed
    assert listener.call_count == 1

    result = second.download()
    assert result.success and not result.data_changed
    assert listener.call_count == 1


def test_download_removes_dangling_matches_and_writes_back(session, store):
    lions, tigers, ghosts = make_team("Lions"), make_team("Tigers"), make_team("Ghosts")
    good = make_match_day("Week 1", make_match(lions, tigers))
    bad = make_match_day("Week 2", make_match(lions, ghosts), days=7)
    store.write_document("teams", [lions.to_dict(), tigers.to_dict()])
    store.write_document("matchdays", [good.to_dict(), bad.to_dict()])

    service = make_sync_service(session)
    result = service.download()

    assert result.removed_matches == 1
    assert result.removed_match_days == 1
    assert [md.name for md in service.match_days] == ["Week 1"]
    assert [md["name"] for md in store.read_document("matchdays")] == ["Week 1"]


def test_download_collapses_duplicate_ids_and_sorts_days(session, store):
    lions, tigers = make_team("Lions"), make_team("Tigers")
    later = make_match_day("Later", make_match(lions, tigers), days=7)
    earlier = make_match_day("Earlier", make_match(tigers, lions))
    store.write_document("teams", [lions.to_dict(), lions.to_dict(), tigers.to_dict()])
    store.write_document("matchdays", [later.to_dict(), earlier.to_dict()])

    service = make_sync_service(session)
    service.download()

    assert [t.name for t in service.teams] == ["Lions", "Tigers"]
    assert [md.name for md in service.match_days] == ["Earlier", "Later"]


def test_download_falls_back_to_separate_documents(session):
    _seed(make_sync_service(session), make_team("Lions"))
    session.client.application.view_functions["get_sync"] = lambda: ("{}", 500)

    service = make_sync_service(session)
    assert service.download().success
    assert [t.name for t in service.teams] == ["Lions"]
    assert ("GET", "/api/teams") in session.requests


def test_cancelled_download_keeps_local_state(session):
    _seed(make_sync_service(session), make_team("Lions"))
    service = make_sync_service(session)
    before = service.context.snapshot
    token = CancellationToken()
    token.cancel()

    result = service.download(token)

    assert not result.success
    assert service.context.snapshot is before


def test_smart_sync_offline_skips_download(session):
    service = make_sync_service(session)
    assert service.download().success
    session.offline = True
    session.requests.clear()

    result = service.smart_sync()

    assert not result.success
    assert result.message == OFFLINE_MESSAGE
    assert service.context.status == OFFLINE_MESSAGE
    assert all(method == "POST" for method, _ in session.requests)


def test_fresh_client_smart_sync_keeps_server_data(session, store):
    first = make_sync_service(session)
    lions, tigers = _seed(first, make_team("Lions", players=2), make_team("Tigers"))
    first.add_match_day(make_match_day("Week 1", make_match(lions, tigers)))
    teams_before = store.read_document("teams")
    match_days_before = store.read_document("matchdays")

    fresh = make_sync_service(session)
    session.requests.clear()
    result = PeriodicRefreshService(fresh).run_now()

    assert result.success
    assert session.requests == [("GET", "/api/sync")]
    assert store.read_document("teams") == teams_before
    assert store.read_document("matchdays") == match_days_before
    assert [t.name for t in fresh.teams] == ["Lions", "Tigers"]
    assert len(fresh.match_days) == 1

    # Once loaded, later syncs upload again
    session.requests.clear()
    assert fresh.smart_sync().success
    assert session.requests[0] == ("POST", "/api/teams")
    assert store.read_document("teams") == teams_before


def test_fresh_client_offline_first_sync_uploads_nothing(session, store):
    first = make_sync_service(session)
    _seed(first, make_team("Lions"))
    fresh = make_sync_service(session)
    session.offline = True
    session.requests.clear()

    result = fresh.smart_sync()

    assert not result.success
    assert fresh.context.status == OFFLINE_MESSAGE
    assert all(method == "GET" for method, _ in session.requests)
    assert [t["name"] for t in store.read_document("teams")] == ["Lions"]


def test_malformed_server_documents_fail_cleanly(session, store):
    service = make_sync_service(session)
    store.write_document("teams", [{"id": "T1", "name": "Lions", "players": ["oops"]}])

    result = service.download()

    assert not result.success
    assert result.message == "Server returned invalid data"
    assert service.teams == ()
    assert not service.context.loaded


def test_upload_succeeds_if_one_document_is_written(session, store):
    service = make_sync_service(session)
    _seed(service, make_team("Lions"))
    session.failing_posts.add("/api/matchdays")

    result = service.upload()

    assert result.success
    assert result.upload.teams_ok and not result.upload.match_days_ok


def test_upload_fails_if_nothing_is_written(session):
    service = make_sync_service(session)
    session.failing_posts.update({"/api/teams", "/api/matchdays"})
    assert not service.upload().success


def test_overlapping_sync_is_skipped(session):
    service = make_sync_service(session)
    holding, release = threading.Event(), threading.Event()

    def hold_lock():
        with service.context.sync_lock:
            holding.set()
            release.wait(5)

    worker = threading.Thread(target=hold_lock)
    worker.start()
    holding.wait(5)
    try:
        result = service.smart_sync()
    finally:
        release.set()
        worker.join()

    assert result.skipped
    assert session.requests == []


def test_last_writer_wins_without_merge(session, store):
    a = make_sync_service(session)
    t1, t2 = _seed(a, make_team("T1"), make_team("T2"))
    b = make_sync_service(session)
    b.download()

    a.delete_team(t2.id)
    assert [t["name"] for t in store.read_document("teams")] == ["T1"]

    assert b.upload().success
    assert [t["name"] for t in store.read_document("teams")] == ["T1", "T2"]


class TestTeamDeletionCascade(unittest.TestCase):
    """Deleting a team removes its matches everywhere."""

    def setUp(self) -> None:
        import tempfile
        self.temp_dir = tempfile.TemporaryDirectory()
        self.store = JsonDocumentStore(self.temp_dir.name)
        self.session = FlaskTestSession(create_app(store=self.store))
        self.service = make_sync_service(self.session)
        self.t1, self.t2, self.t3 = _seed(self.service, make_team("T1"), make_team("T2"), make_team("T3"))

    def tearDown(self) -> None:
        self.temp_dir.cleanup()

    def test_delete_removes_match_and_emptied_day(self) -> None:
        self.service.add_match_day(make_match_day("M", make_match(self.t1, self.t2)))

        result = self.service.delete_team(self.t2.id)

        self.assertTrue(result.success)
        self.assertEqual([t.name for t in self.service.teams], ["T1", "T3"])
        self.assertEqual(self.service.match_days, ())
        self.assertEqual(self.store.read_document("matchdays"), [])
        self.assertEqual(len(self.store.read_document("teams")), 2)

    def test_delete_keeps_other_matches(self) -> None:
        keep = make_match(self.t1, self.t3, offset_minutes=60)
        self.service.add_match_day(make_match_day("M", make_match(self.t1, self.t2), keep))

        result = self.service.delete_team(self.t2.id)

        self.assertEqual(result.removed_matches, 1)
        self.assertEqual([m.id for m in self.service.match_days[0].matches], [keep.id])

    def test_partial_failure_reports_failure_and_resyncs(self) -> None:
        self.service.add_match_day(make_match_day("M", make_match(self.t1, self.t2)))
        self.session.failing_posts.add("/api/matchdays")

        result = self.service.delete_team(self.t2.id)

        self.assertFalse(result.success)
        self.assertEqual(result.message, "Failed to delete team completely")
        self.assertIn(("GET", "/api/sync"), self.session.requests)
        # Local state now mirrors the server teams, and dangling matches are gone
        self.assertEqual(
            [t.id for t in self.service.teams],
            [t["id"] for t in self.store.read_document("teams")],
        )
        self.assertEqual(self.service.match_days, ())

    def test_unknown_team(self) -> None:
        with self.assertRaises(EntityNotFoundError):
            self.service.delete_team("missing")


class TestMatchEdits(unittest.TestCase):
    """Creation guard, attendance and score edits."""

    def setUp(self) -> None:
        import tempfile
        self.temp_dir = tempfile.TemporaryDirectory()
        self.session = FlaskTestSession(create_app(data_dir=self.temp_dir.name))
        self.service = make_sync_service(self.session)
        self.home, self.away = _seed(self.service, make_team("Home", players=3), make_team("Away", players=3))
        self.match = make_match(self.home, self.away)
        self.day = make_match_day("Week 1", self.match)
        self.service.add_match_day(self.day)

    def tearDown(self) -> None:
        self.temp_dir.cleanup()

    def test_same_team_on_both_sides_rejected(self) -> None:
        before = self.service.context.snapshot
        with self.assertRaises(MatchValidationError):
            self.service.add_match(self.day.id, make_match(self.home, self.home))
        self.assertIs(self.service.context.snapshot, before)

    def test_unknown_team_rejected(self) -> None:
        before = self.service.context.snapshot
        with self.assertRaises(MatchValidationError):
            self.service.add_match(self.day.id, make_match(self.home, make_team("Ghosts")))
        self.assertIs(self.service.context.snapshot, before)

    def test_add_match_to_unknown_day(self) -> None:
        with self.assertRaises(EntityNotFoundError):
            self.service.add_match("missing", make_match(self.home, self.away))

    def test_add_valid_match(self) -> None:
        result = self.service.add_match(self.day.id, make_match(self.away, self.home, offset_minutes=90))
        self.assertTrue(result.success)
        self.assertEqual(len(self.service.match_days[0].matches), 2)

    def test_update_match_day_revalidates_matches(self) -> None:
        edited = make_match_day("Week 1 (moved)", make_match(self.home, make_team("Ghosts")))
        edited.id = self.day.id
        with self.assertRaises(MatchValidationError):
            self.service.update_match_day(edited)

        edited.matches = [make_match(self.away, self.home)]
        self.assertTrue(self.service.update_match_day(edited).success)
        self.assertEqual(self.service.match_days[0].name, "Week 1 (moved)")

    def test_attendance_counts_match_sets(self) -> None:
        home_ids = [p.id for p in self.home.players]
        for player_id in home_ids[:2]:
            self.service.toggle_match_attendance(self.match.id, TeamSide.HOME, player_id)
        self.service.toggle_match_attendance(self.match.id, TeamSide.HOME, home_ids[0])

        match = self.service.match_days[0].matches[0]
        self.assertEqual(match.home_team_present_players, {home_ids[1]})
        self.assertEqual(match.home_team_present, 1)
        self.assertEqual(match.to_dict()["homeTeamPresent"], 1)

    def test_attendance_rejects_player_from_other_roster(self) -> None:
        with self.assertRaises(EntityNotFoundError):
            self.service.toggle_match_attendance(self.match.id, TeamSide.HOME, self.away.players[0].id)
        with self.assertRaises(EntityNotFoundError):
            self.service.set_match_attendance(self.match.id, [self.away.players[0].id], [])

    def test_set_attendance(self) -> None:
        self.service.set_match_attendance(self.match.id, [self.home.players[0].id], [p.id for p in self.away.players])
        match = self.service.match_days[0].matches[0]
        self.assertEqual((match.home_team_present, match.away_team_present), (1, 3))

    def test_score_completes_match_in_progress(self) -> None:
        self.service.update_match_status(self.match.id, MatchStatus.IN_PROGRESS)
        self.service.update_match_score(self.match.id, 2, 1)

        match = self.service.match_days[0].matches[0]
        self.assertEqual(match.score_display, "2 - 1")
        self.assertIs(match.status, MatchStatus.COMPLETED)

    def test_negative_score_rejected(self) -> None:
        with self.assertRaises(MatchValidationError):
            self.service.update_match_score(self.match.id, -1, 0)

    def test_delete_match_and_day(self) -> None:
        self.service.delete_match(self.match.id)
        self.assertEqual(self.service.match_days[0].matches, [])
        self.service.remove_match_day(self.day.id)
        self.assertEqual(self.service.match_days, ())


class TestRosterEdits(unittest.TestCase):

    def setUp(self) -> None:
        import tempfile
        self.temp_dir = tempfile.TemporaryDirectory()
        self.session = FlaskTestSession(create_app(data_dir=self.temp_dir.name))
        self.service = make_sync_service(self.session)
        (self.team,) = _seed(self.service, make_team("Lions", players=2))

    def tearDown(self) -> None:
        self.temp_dir.cleanup()

    def test_add_player_validates_jersey(self) -> None:
        with self.assertRaises(PlayerValidationError):
            self.service.add_player(self.team.id, Player(name="Dup", jersey_number=1))
        with self.assertRaises(PlayerValidationError):
            self.service.add_player(self.team.id, Player(name="Big", jersey_number=100))
        with self.assertRaises(PlayerValidationError):
            self.service.add_player(self.team.id, Player(name="  ", jersey_number=9))

        self.assertTrue(self.service.add_player(self.team.id, Player(name=" Zoe ", jersey_number=9)).success)
        self.assertEqual(self.service.get_team(self.team.id).players[-1].name, "Zoe")

    def test_update_and_remove_player(self) -> None:
        first, second = self.team.players
        with self.assertRaises(PlayerValidationError):
            self.service.update_player(self.team.id, first.id, jersey_number=second.jersey_number)

        self.service.update_player(self.team.id, first.id, name="Captain", jersey_number=10)
        updated = self.service.get_team(self.team.id).find_player(first.id)
        self.assertEqual((updated.name, updated.jersey_number), ("Captain", 10))

        self.service.remove_player(self.team.id, second.id)
        self.assertEqual(len(self.service.get_team(self.team.id).players), 1)
        with self.assertRaises(EntityNotFoundError):
            self.service.remove_player(self.team.id, second.id)

    def test_presence_toggle_and_reset(self) -> None:
        player_id = self.team.players[0].id
        self.service.toggle_player_presence(self.team.id, player_id)
        self.assertTrue(self.service.get_team(self.team.id).find_player(player_id).is_present)

        self.service.reset_team_presence(self.team.id)
        self.assertFalse(any(p.is_present for p in self.service.get_team(self.team.id).players))

    def test_update_team_league(self) -> None:
        league_id = DEFAULT_LEAGUES[0][0]
        self.service.update_team(self.team.id, name="Lions FC", league_id=league_id)
        self.assertEqual(self.service.get_team(self.team.id).league_id, league_id)

        self.service.update_team(self.team.id, league_id=None)
        team = self.service.get_team(self.team.id)
        self.assertEqual(team.name, "Lions FC")
        self.assertIsNone(team.league_id)

    def test_duplicate_team_id_rejected(self) -> None:
        with self.assertRaises(LeagueValidationError):
            self.service.add_team(self.team)

    def test_offline_edit_is_kept_and_reported(self) -> None:
        self.session.offline = True
        result = self.service.add_team(make_team("Tigers"))
        self.assertFalse(result.success)
        self.assertIn("failed to save", result.message)
        self.assertEqual(len(self.service.teams), 2)


def test_default_leagues_seeded_and_removal_unassigns(session):
    service = make_sync_service(session)
    assert [lg.name for lg in service.context.leagues] == ["Over 30", "Over 40"]

    over_30 = service.context.leagues[0].id
    team = make_team("Veterans", league_id=over_30)
    _seed(service, team)

    result = service.remove_league(over_30)

    assert result.success
    assert service.get_team(team.id).league_id is None
    assert [lg.name for lg in service.context.leagues] == ["Over 40"]


def test_league_edits_validate_names(session):
    service = make_sync_service(session)
    with pytest.raises(LeagueValidationError):
        service.add_league(League(name=" "))
    service.add_league(League(name="Over 50"))
    league = service.context.leagues[-1]
    service.update_league(league.id, "Over 55")
    assert league.name == "Over 55"
    with pytest.raises(EntityNotFoundError):
        service.update_league("missing", "x")


def test_validate_references_heals_local_data(session, store):
    service = make_sync_service(session)
    lions, tigers = _seed(service, make_team("Lions"), make_team("Tigers"))
    service.add_match_day(make_match_day("Week 1", make_match(lions, tigers)))
    # A team vanished without its cascade
    service.context.install(LeagueSnapshot.build(service.teams[:1], service.match_days))

    result = service.validate_references()

    assert result.success and result.removed_matches == 1
    assert service.match_days == ()
    assert store.read_document("matchdays") == []
    assert service.validate_references().message == "All match references are valid"
