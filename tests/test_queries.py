from datetime import datetime, timedelta, timezone

from referee_league.models import Match, MatchDay, Player, Team, queries

NOW = datetime(2025, 3, 10, 12, 0, tzinfo=timezone.utc)


def _day(name: str, days: int) -> MatchDay:
    return MatchDay(date=NOW + timedelta(days=days), name=name)


def test_present_and_total_count():
    team = Team(name="Lions", players=[
        Player("Ana", 1, is_present=True),
        Player("Ben", 2),
        Player("Cleo", 3, is_present=True),
    ])
    assert queries.present_count(team) == 2
    assert queries.total_count(team) == 3


def test_upcoming_and_past_partition_by_now():
    yesterday, today, next_week, last_month = _day("y", -1), _day("t", 0), _day("n", 7), _day("l", -30)
    days = [next_week, last_month, today, yesterday]

    assert queries.upcoming(days, NOW) == [today, next_week]
    assert queries.past(days, NOW) == [yesterday, last_month]


def test_league_membership_sorted_case_insensitive():
    teams = [
        Team(name="zebras", league_id="L1"),
        Team(name="Antelopes", league_id="L1"),
        Team(name="bears", league_id="L1"),
        Team(name="Orphans"),
        Team(name="Others", league_id="L2"),
    ]
    assert [t.name for t in queries.teams_in_league(teams, "L1")] == ["Antelopes", "bears", "zebras"]
    assert [t.name for t in queries.teams_without_league(teams)] == ["Orphans"]


def test_find_match_returns_owner():
    match = Match(home_team_id="H", away_team_id="A", scheduled_time=NOW)
    day = _day("Week 1", 0)
    day.matches.append(match)

    assert queries.find_match([_day("empty", 1), day], match.id) == (day, match)
    assert queries.find_match([day], "missing") is None


def test_totals():
    teams = [Team(name="A", players=[Player("x", 1)]), Team(name="B", players=[Player("y", 1), Player("z", 2)])]
    day = _day("Week 1", 0)
    day.matches.append(Match(home_team_id="A", away_team_id="B", scheduled_time=NOW))
    assert queries.total_players(teams) == 3
    assert queries.total_matches([day, _day("Week 2", 7)]) == 1


def test_sort_matches_by_time_then_field_number():
    early_field_10 = Match(home_team_id="A", away_team_id="B", scheduled_time=NOW, field="Field 10")
    early_field_2 = Match(home_team_id="C", away_team_id="D", scheduled_time=NOW, field="Field 2")
    late = Match(home_team_id="E", away_team_id="F", scheduled_time=NOW + timedelta(hours=1), field="Field 1")

    assert queries.sort_matches([late, early_field_10, early_field_2]) == [early_field_2, early_field_10, late]


def test_naive_now_is_read_as_utc():
    before, after = _day("before", -1), _day("after", 1)
    naive_now = NOW.replace(tzinfo=None)

    assert queries.upcoming([before, after], naive_now) == [after]
    assert queries.past([before, after], naive_now) == [before]
