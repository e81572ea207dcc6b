import random

import pytest

from conftest import make_players, only_format
from turnier.manager import TournamentManager
from turnier.models import Tournament, TournamentHistory


def _score_round(manager, rnd, score_a=1, score_b=0):
    for game in rnd.games:
        assert manager.update_game_score(game.id, score_a, score_b)


class TestRoundGeneration:

    def test_start_places_every_player_once(self, manager):
        assert manager.start_tournament()

        t = manager.tournament
        assert t.started
        assert t.status == "active"
        assert t.current_round == 1
        assert len(t.rounds) == 1
        games = t.rounds[0].games
        assert len(games) == 2
        assert all(g.round == 1 for g in games)
        assert all(not g.substitutes_a and not g.substitutes_b for g in games)
        placed = [p.id for g in games for p in g.team_a + g.team_b]
        assert sorted(placed) == sorted(p.id for p in t.players)

    def test_end_to_end_scores(self, manager):
        manager.start_tournament()
        game1, game2 = manager.tournament.rounds[0].games

        manager.update_game_score(game1.id, 2, 0)
        manager.update_game_score(game2.id, 1, 1)

        players = {p.id: p for p in manager.tournament.players}
        for snap in game1.team_a:
            assert players[snap.id].points == 7
        for snap in game1.team_b:
            assert players[snap.id].points == 0
        for snap in game2.team_a + game2.team_b:
            assert players[snap.id].points == 3
        assert all(p.games_played["total"] == 1 for p in players.values())

    def test_start_without_formats_is_refused(self, manager):
        only_format(manager.tournament, "2vs2", 0)

        assert not manager.start_tournament()
        assert not manager.tournament.started
        assert manager.tournament.rounds == []

    def test_start_twice_is_refused(self, manager):
        manager.start_tournament()

        assert not manager.start_tournament()
        assert len(manager.tournament.rounds) == 1

    def test_inactive_players_are_left_out(self, rng):
        players = make_players(10)
        players[0].active = False
        players[5].active = False
        tournament = Tournament(players=players, fair_roll=False)
        only_format(tournament, "2vs2", 2)
        m = TournamentManager(tournament, rng=rng)

        m.start_tournament()

        placed = {p.id for g in m.tournament.rounds[0].games for p in g.team_a + g.team_b}
        assert "p1" not in placed and "p6" not in placed
        assert len(placed) == 8

    def test_formats_consume_players_exclusively(self, rng):
        tournament = Tournament(players=make_players(14), fair_roll=True)
        for config in tournament.format_configs:
            config.games_count = {"2vs2": 1, "3vs3": 1, "4+1vs4+1": 0}[config.format]
        m = TournamentManager(tournament, rng=rng)

        m.start_tournament()

        games = m.tournament.rounds[0].games
        assert [g.format for g in games] == ["2vs2", "3vs3"]
        two = {p.id for p in games[0].team_a + games[0].team_b}
        three = {p.id for p in games[1].team_a + games[1].team_b}
        assert two == {"p1", "p2", "p3", "p4"}
        assert three == {"p5", "p6", "p7", "p8", "p9", "p10"}

    def test_format_skipped_when_too_few_players_remain(self, rng):
        tournament = Tournament(players=make_players(13))
        m = TournamentManager(tournament, rng=rng)

        m.start_tournament()

        games = m.tournament.rounds[0].games
        assert [g.format for g in games] == ["2vs2", "2vs2"]

    def test_partial_last_format(self, rng):
        tournament = Tournament(players=make_players(7))
        only_format(tournament, "3vs3", 2)
        m = TournamentManager(tournament, rng=rng)

        m.start_tournament()

        games = m.tournament.rounds[0].games
        assert len(games) == 2
        assert sum(len(g.team_a) + len(g.team_b) for g in games) == 7

    def test_next_round_numbering(self, manager):
        manager.start_tournament()
        _score_round(manager, manager.tournament.rounds[0])

        assert manager.generate_next_round()
        assert manager.generate_next_round()

        t = manager.tournament
        assert [r.round_number for r in t.rounds] == [1, 2, 3]
        assert t.current_round == 3
        assert all(g.round == 3 for g in t.rounds[2].games)

    def test_next_round_requires_start(self, manager):
        assert not manager.generate_next_round()
        assert manager.tournament.rounds == []

    def test_fair_roll_uses_current_points(self):
        tournament = Tournament(players=make_players(4), fair_roll=True)
        only_format(tournament, "2vs2", 1)
        m = TournamentManager(tournament, rng=random.Random(5))
        m.start_tournament()
        game = m.tournament.rounds[0].games[0]
        m.update_game_score(game.id, 4, 0)
        winners = {p.id for p in game.team_a}

        m.generate_next_round()

        second = m.tournament.rounds[1].games[0]
        assert {second.team_a[0].id, second.team_b[0].id} == winners


class TestScores:

    def test_unknown_game_is_ignored(self, manager):
        manager.start_tournament()
        before = [p.points for p in manager.tournament.players]

        assert not manager.update_game_score("missing", 3, 0)
        assert [p.points for p in manager.tournament.players] == before

    def test_score_correction(self, manager):
        manager.start_tournament()
        game1, game2 = manager.tournament.rounds[0].games
        manager.update_game_score(game2.id, 0, 0)
        manager.update_game_score(game1.id, 3, 0)

        manager.update_game_score(game1.id, 0, 3)

        players = {p.id: p for p in manager.tournament.players}
        assert all(players[s.id].points == 0 for s in game1.team_a)
        assert all(players[s.id].points == 8 for s in game1.team_b)

    def test_completed_round_survives_later_updates(self, manager):
        manager.start_tournament()
        first = manager.tournament.rounds[0]
        _score_round(manager, first, 2, 1)
        manager.generate_next_round()
        later = manager.tournament.rounds[1].games[0]

        manager.update_game_score(later.id, 0, 5)

        assert first.completed
        assert not manager.tournament.rounds[1].completed


class TestRoster:

    def test_add_player_defaults(self):
        m = TournamentManager()

        player = m.add_player("Zoe", 21)

        assert player.skill_rating == 3
        assert player.active
        assert player.points == 0
        assert player.games_played["total"] == 0
        assert m.tournament.players == [player]

    def test_skill_rating_is_clamped(self):
        m = TournamentManager()
        player = m.add_player("Zoe", 21, skill_rating=9)
        assert player.skill_rating == 5

        m.update_skill_rating(player.id, -2)
        assert player.skill_rating == 1

    def test_roster_locked_after_start(self, manager):
        manager.start_tournament()
        pid = manager.tournament.players[0].id

        assert manager.add_player("Late", 99) is None
        assert not manager.remove_player(pid)
        assert not manager.toggle_active(pid)
        assert not manager.update_skill_rating(pid, 5)
        assert not manager.update_format_config("3vs3", 3)
        assert len(manager.tournament.players) == 8

    def test_rename_before_start(self, manager):
        pid = manager.tournament.players[0].id

        assert manager.rename_player(pid, "  Nico ")
        assert manager.tournament.get_player(pid).name == "Nico"
        assert not manager.rename_player(pid, "   ")
        assert not manager.rename_player("missing", "Nico")

    def test_rename_locked_after_start(self, manager):
        manager.start_tournament()
        player = manager.tournament.players[0]
        old_name = player.name

        assert not manager.rename_player(player.id, "Nico")
        assert player.name == old_name

    def test_toggle_and_remove(self, manager):
        assert manager.toggle_active("p1")
        assert not manager.tournament.get_player("p1").active
        assert manager.remove_player("p2")
        assert manager.tournament.get_player("p2") is None
        assert not manager.remove_player("p2")

    @pytest.mark.parametrize("requested, stored", [(-1, 0), (4, 4), (11, 10)])
    def test_games_count_is_clamped(self, requested, stored):
        m = TournamentManager()

        assert m.update_format_config("3vs3", requested)

        config = m.tournament.get_format_config("3vs3")
        assert config.games_count == stored
        assert config.players_per_team == 3

    def test_unknown_format(self):
        assert not TournamentManager().update_format_config("5vs5", 2)

    def test_rename_tournament(self):
        m = TournamentManager()
        assert m.rename_tournament(" Sommer ")
        assert m.tournament.name == "Sommer"
        assert not m.rename_tournament("")


class TestLifecycle:

    def test_reset_before_scores(self, manager):
        manager.start_tournament()
        game = manager.tournament.rounds[0].games[0]
        manager.update_game_score(game.id, 1, 0)

        assert manager.reset_tournament()

        t = manager.tournament
        assert t.rounds == []
        assert t.current_round == 0
        assert not t.started
        assert t.status == "draft"
        assert len(t.players) == 8

    def test_reset_refused_after_completed_round(self, manager):
        manager.start_tournament()
        _score_round(manager, manager.tournament.rounds[0])

        assert not manager.reset_tournament()
        assert manager.tournament.started
        assert len(manager.tournament.rounds) == 1

    def test_end_archives_and_starts_fresh_draft(self, manager):
        manager.set_fair_roll(True)
        manager.start_tournament()
        _score_round(manager, manager.tournament.rounds[0], 2, 0)
        old_id = manager.tournament.id

        assert manager.end_tournament()

        archived = manager.history.tournaments[-1]
        assert archived.id == old_id
        assert archived.status == "completed"
        assert archived.ended_at is not None
        assert sum(p.points for p in archived.players) == 4 * 7

        fresh = manager.tournament
        assert fresh.id != old_id
        assert fresh.status == "draft"
        assert not fresh.started
        assert fresh.rounds == []
        assert [p.id for p in fresh.players] == [p.id for p in archived.players]
        assert all(p.points == 0 and p.games_played["total"] == 0 for p in fresh.players)
        assert [(c.format, c.games_count) for c in fresh.format_configs] == [
            ("2vs2", 2), ("3vs3", 2), ("4+1vs4+1", 1),
        ]

    def test_end_requires_start(self, manager):
        assert not manager.end_tournament()
        assert manager.history.tournaments == []


class TestHistoricalStats:

    def test_merges_live_and_archived(self, manager):
        manager.start_tournament()
        game1, game2 = manager.tournament.rounds[0].games
        manager.update_game_score(game1.id, 2, 0)
        manager.update_game_score(game2.id, 1, 1)
        manager.end_tournament()

        only_format(manager.tournament, "2vs2", 2)
        manager.start_tournament()
        for game in manager.tournament.rounds[0].games:
            manager.update_game_score(game.id, 0, 0)

        stats = {s.player_id: s for s in manager.historical_stats()}

        assert len(stats) == 8
        for snap in game1.team_a:
            entry = stats[snap.id]
            assert entry.total_points == 7 + 2
            assert entry.total_games == 2
            assert entry.games_played_by_format["2vs2"] == 2
            assert entry.tournaments_participated == 2
            assert entry.average_points_per_game == pytest.approx(4.5)
            assert entry.average_points_per_tournament == pytest.approx(4.5)

    def test_player_without_games(self):
        m = TournamentManager(Tournament(players=make_players(1)), TournamentHistory())

        (entry,) = m.historical_stats()

        assert entry.total_games == 0
        assert entry.average_points_per_game == 0
        assert entry.tournaments_participated == 1

    def test_filters_read_activity_from_live_roster(self, manager):
        archived = Tournament(players=make_players(2, start=20))
        archived.players[0].points = 30
        manager.history.tournaments.append(archived)
        manager.tournament.players[0].points = 5
        manager.tournament.players[1].active = False

        active = manager.historical_stats(active=True)
        assert [s.player_id for s in active][0] == "p1"
        assert "p2" not in {s.player_id for s in active}
        assert "p20" not in {s.player_id for s in active}

        inactive = manager.historical_stats(active=False)
        assert [s.player_id for s in inactive] == ["p20", "p2", "p21"]

    def test_stats_sorted_by_name(self, manager):
        manager.tournament.players[0].name = "zora"

        stats = manager.historical_stats(sort_by="name", search="o")

        assert [s.player_name for s in stats] == ["zora"]
        assert manager.historical_stats(sort_by="games_played", direction="asc")[0].total_games == 0
