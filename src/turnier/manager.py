import copy
import logging
import random
from typing import List, Optional

from turnier.functions import (
    calculate_points, generate_games, has_completed_rounds, historical_stats,
    qualifying_configs, select_historical_stats, zeroed_roster,
)
from turnier.models import (
    MAX_GAMES_COUNT, MAX_SKILL_RATING, MIN_GAMES_COUNT, MIN_SKILL_RATING,
    STATUS_ACTIVE, STATUS_COMPLETED, STATUS_DRAFT, Game, Player, PlayerStats,
    Round, Tournament, TournamentHistory, clamp, default_format_configs,
    generate_id, utcnow,
)

logger = logging.getLogger(__name__)


class TournamentManager:
    """Owner of one live tournament and its archive.

    Every transition mutates the aggregate in place and reports whether it
    was applied. A refused transition leaves state untouched.
    """

    def __init__(
        self,
        tournament: Optional[Tournament] = None,
        history: Optional[TournamentHistory] = None,
        rng: Optional[random.Random] = None,
    ):
        self.tournament = tournament or Tournament()
        self.history = history or TournamentHistory()
        self.rng = rng or random.Random()

    # -- Roster ---------------------------------------------------------------

    def _roster_locked(self, action: str) -> bool:
        if self.tournament.started:
            logger.warning("Refused %s: tournament %s already started", action, self.tournament.id)
            return True
        return False

    def add_player(self, name: str, number: int, skill_rating: int = 3) -> Optional[Player]:
        if self._roster_locked("add_player"):
            return None
        player = Player(
            id=generate_id(),
            name=name,
            number=number,
            skill_rating=clamp(skill_rating, MIN_SKILL_RATING, MAX_SKILL_RATING),
        )
        self.tournament.players.append(player)
        logger.info("Added player %s (#%s)", player.name, player.number)
        return player

    def remove_player(self, pid: str) -> bool:
        if self._roster_locked("remove_player"):
            return False
        player = self.tournament.get_player(pid)
        if player is None:
            return False
        self.tournament.players.remove(player)
        logger.info("Removed player %s", pid)
        return True

    def toggle_active(self, pid: str) -> bool:
        if self._roster_locked("toggle_active"):
            return False
        player = self.tournament.get_player(pid)
        if player is None:
            return False
        player.active = not player.active
        return True

    def update_skill_rating(self, pid: str, rating: int) -> bool:
        if self._roster_locked("update_skill_rating"):
            return False
        player = self.tournament.get_player(pid)
        if player is None:
            return False
        player.skill_rating = clamp(rating, MIN_SKILL_RATING, MAX_SKILL_RATING)
        return True

    def rename_player(self, pid: str, name: str) -> bool:
        if self._roster_locked("rename_player"):
            return False
        player = self.tournament.get_player(pid)
        name = name.strip()
        if player is None or not name:
            return False
        player.name = name
        return True

    # -- Configuration --------------------------------------------------------

    def update_format_config(self, fmt: str, games_count: int) -> bool:
        if self._roster_locked("update_format_config"):
            return False
        config = self.tournament.get_format_config(fmt)
        if config is None:
            return False
        config.games_count = clamp(games_count, MIN_GAMES_COUNT, MAX_GAMES_COUNT)
        return True

    def set_fair_roll(self, fair_roll: bool):
        self.tournament.fair_roll = fair_roll

    def rename_tournament(self, name: str) -> bool:
        name = name.strip()
        if not name:
            return False
        self.tournament.name = name
        return True

    # -- Rounds ---------------------------------------------------------------

    def _build_round(self, round_number: int) -> Optional[Round]:
        configs = qualifying_configs(self.tournament)
        if not configs:
            logger.warning("No format has games configured")
            return None

        available = list(self.tournament.active_players)
        games: List[Game] = []
        for config in configs:
            if len(available) < config.players_per_team * 2:
                logger.info("Skipping %s in round %d: %d players left", config.format, round_number, len(available))
                continue
            pool = available[:config.players_needed]
            format_games = generate_games(
                pool, config.players_per_team, config.games_count,
                config.format, self.tournament.fair_roll, self.rng,
            )
            used = set()
            for game in format_games:
                game.round = round_number
                used.update(p.id for p in game.team_a + game.team_b)
            games.extend(format_games)
            available = [p for p in available if p.id not in used]

        if not games:
            logger.warning("No format could be filled for round %d", round_number)
            return None
        return Round(round_number=round_number, games=games)

    def _append_round(self, rnd: Round):
        self.tournament.rounds.append(rnd)
        self.tournament.current_round = len(self.tournament.rounds)
        logger.info(
            "Generated round %d of tournament %s with %d games",
            rnd.round_number, self.tournament.id, len(rnd.games),
        )

    def start_tournament(self) -> bool:
        if self.tournament.started:
            logger.warning("Refused start: tournament %s already started", self.tournament.id)
            return False
        rnd = self._build_round(1)
        if rnd is None:
            return False
        self.tournament.rounds = []
        self.tournament.started = True
        self.tournament.status = STATUS_ACTIVE
        self._append_round(rnd)
        return True

    def generate_next_round(self) -> bool:
        if not self.tournament.started:
            logger.warning("Refused next round: tournament %s not started", self.tournament.id)
            return False
        rnd = self._build_round(len(self.tournament.rounds) + 1)
        if rnd is None:
            return False
        self._append_round(rnd)
        return True

    # -- Scores ---------------------------------------------------------------

    def update_game_score(self, game_id: str, score_a: int, score_b: int) -> bool:
        game = self.tournament.find_game(game_id)
        if game is None:
            logger.warning("Score for unknown game %s ignored", game_id)
            return False
        game.score_a = score_a
        game.score_b = score_b
        self.recalculate()
        logger.info("Recorded %d:%d for game %s", score_a, score_b, game_id)
        return True

    def recalculate(self):
        calculate_points(self.tournament)

    # -- Lifecycle ------------------------------------------------------------

    def reset_tournament(self) -> bool:
        if has_completed_rounds(self.tournament):
            logger.warning("Refused reset: tournament %s has completed rounds", self.tournament.id)
            return False
        t = self.tournament
        t.rounds = []
        t.current_round = 0
        t.started = False
        t.status = STATUS_DRAFT
        for player in t.players:
            player.reset_stats()
        logger.info("Reset tournament %s", t.id)
        return True

    def end_tournament(self) -> bool:
        if not self.tournament.started:
            logger.warning("Refused end: tournament %s not started", self.tournament.id)
            return False
        archived = copy.deepcopy(self.tournament)
        archived.status = STATUS_COMPLETED
        archived.ended_at = utcnow()
        self.history.tournaments.append(archived)

        self.tournament = Tournament(
            players=zeroed_roster(archived.players),
            format_configs=default_format_configs(),
        )
        logger.info("Archived tournament %s, %d in history", archived.id, len(self.history.tournaments))
        return True

    # -- Queries --------------------------------------------------------------

    def historical_stats(self, **filters) -> List[PlayerStats]:
        """Merged stats; keyword filters as in `select_historical_stats`."""
        if filters:
            return select_historical_stats(self.tournament, self.history, **filters)
        return historical_stats(self.tournament, self.history)
