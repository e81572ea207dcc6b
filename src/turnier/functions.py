import math
import random
from itertools import zip_longest
from typing import Dict, List, Optional, Sequence

from turnier.models import (
    FORMATS, FormatConfig, Game, Player, PlayerSnapshot, PlayerStats, Tournament,
    TournamentHistory, empty_games_played, generate_id,
)

WIN_BONUS = 5
DRAW_BONUS = 2


# -- Pairing ------------------------------------------------------------------

def fair_order(pool: Sequence[Player], rng=None) -> List[Player]:
    """Order players so that rating tiers are spread across team slots.

    Players sharing a combined rating form one group; groups are taken in
    descending rating, shuffled internally, then interleaved round-robin.
    """
    rng = rng or random
    groups: Dict[int, List[Player]] = {}
    for player in pool:
        groups.setdefault(player.combined_rating, []).append(player)

    ordered_groups = []
    for rating in sorted(groups, reverse=True):
        group = list(groups[rating])
        rng.shuffle(group)
        ordered_groups.append(group)

    return [p for tier in zip_longest(*ordered_groups) for p in tier if p is not None]


def random_order(pool: Sequence[Player], rng=None) -> List[Player]:
    rng = rng or random
    shuffled = list(pool)
    rng.shuffle(shuffled)
    return shuffled


def generate_games(
    pool: Sequence[Player],
    players_per_team: int,
    games_count: int,
    format: str,
    fair: bool,
    rng=None,
) -> List[Game]:
    """Split an already-filtered pool into `games_count` games of the given format.

    Teams are filled block by block in pool order after ordering; a short pool
    leaves later teams partial. Players beyond the full requirement become
    substitutes, the larger half on side A. Round numbers are left at 0 for
    the caller to stamp.
    """
    ordered = fair_order(pool, rng) if fair else random_order(pool, rng)
    snapshots = [PlayerSnapshot.of(p) for p in ordered]

    block = players_per_team * 2
    needed = block * games_count
    remaining = snapshots[needed:]
    half = math.ceil(len(remaining) / 2)

    games = []
    for game_index in range(games_count):
        start = game_index * block
        games.append(Game(
            id=generate_id(),
            round=0,
            format=format,
            team_a=snapshots[start:start + players_per_team],
            team_b=snapshots[start + players_per_team:start + block],
            substitutes_a=list(remaining[:half]),
            substitutes_b=list(remaining[half:]),
        ))
    return games


# -- Scoring ------------------------------------------------------------------

def game_points(score_for: int, score_against: int) -> int:
    """Points a single player earns from one completed game."""
    if score_for > score_against:
        return score_for + WIN_BONUS
    if score_for == score_against:
        return score_for + DRAW_BONUS
    return score_for


def calculate_points(tournament: Tournament):
    """Recompute every player's points and games played from completed rounds.

    Statistics are all-or-nothing per round: scored games inside a round that
    still has open games do not count. Only canonical roster entries are
    updated; snapshots of removed players are skipped.
    """
    players_map = {p.id: p for p in tournament.players}
    for player in tournament.players:
        player.reset_stats()

    for rnd in tournament.rounds:
        if not rnd.completed:
            continue
        for game in rnd.games:
            if not game.completed:
                continue
            _apply_side(players_map, game.side_a, game.format, game_points(game.score_a, game.score_b))
            _apply_side(players_map, game.side_b, game.format, game_points(game.score_b, game.score_a))


def _apply_side(players_map: Dict[str, Player], side: List[PlayerSnapshot], fmt: str, points: int):
    for snapshot in side:
        player = players_map.get(snapshot.id)
        if player is None:
            continue
        player.points += points
        if fmt in player.games_played:
            player.games_played[fmt] += 1
        player.games_played["total"] += 1


# -- Queries ------------------------------------------------------------------

def qualifying_configs(tournament: Tournament) -> List[FormatConfig]:
    return [c for c in tournament.format_configs if c.games_count > 0]


def min_players_required(format_configs: Sequence[FormatConfig]) -> int:
    """Largest single-format requirement among configured formats."""
    return max((c.players_needed for c in format_configs if c.games_count > 0), default=0)


def can_start_tournament(tournament: Tournament) -> bool:
    if not qualifying_configs(tournament):
        return False
    return len(tournament.active_players) >= min_players_required(tournament.format_configs)


def has_games_in_progress(tournament: Tournament) -> bool:
    return any(
        g.score_a is not None or g.score_b is not None
        for rnd in tournament.rounds for g in rnd.games
    )


def has_completed_rounds(tournament: Tournament) -> bool:
    return any(rnd.completed for rnd in tournament.rounds)


def current_round_completed(tournament: Tournament) -> bool:
    return bool(tournament.rounds) and tournament.rounds[-1].completed


SORT_KEYS = ("points", "games_played", "name", "number", "skill_rating")

# Counters read best high-to-low, identity fields low-to-high
DEFAULT_DIRECTION = {
    "points": "desc",
    "games_played": "desc",
    "skill_rating": "desc",
    "name": "asc",
    "number": "asc",
}


def _row_matches(row: dict, search: Optional[str], skill_rating: Optional[int], active: Optional[bool]) -> bool:
    if search and search.strip():
        needle = search.strip().lower()
        if needle not in row["name"].lower() and needle not in str(row["number"]):
            return False
    if skill_rating is not None and row["skill_rating"] != skill_rating:
        return False
    if active is not None and row["active"] != active:
        return False
    return True


def _rank_and_sort(rows: List[dict], sort_by: str, direction: Optional[str]) -> List[dict]:
    """Rank rows by points, then reorder them for display.

    Ranks are computed over the filtered rows only, so an active-only view
    gets its own ranking.
    """
    if sort_by not in SORT_KEYS:
        raise ValueError(f"Unknown sort key {sort_by!r}")
    direction = direction or DEFAULT_DIRECTION[sort_by]
    if direction not in ("asc", "desc"):
        raise ValueError(f"Unknown sort direction {direction!r}")

    rows.sort(key=lambda x: (-x["points"], -x["games_played"], x["number"]))
    for i, s in enumerate(rows):
        # equal points share a rank, the next rank skips ahead
        if i and s["points"] == rows[i - 1]["points"]:
            s["rank"] = rows[i - 1]["rank"]
        else:
            s["rank"] = i + 1

    if sort_by == "name":
        key = lambda x: x["name"].lower()  # noqa: E731
    else:
        key = lambda x: x[sort_by]  # noqa: E731
    # stable sort keeps the points order among equal keys
    rows.sort(key=key, reverse=direction == "desc")
    return rows


def calculate_standings(
    tournament: Tournament,
    search: Optional[str] = None,
    skill_rating: Optional[int] = None,
    active: Optional[bool] = None,
    sort_by: str = "points",
    direction: Optional[str] = None,
) -> List[dict]:
    standings = []
    for player in tournament.players:
        row = {
            "id": player.id,
            "name": player.name,
            "number": player.number,
            "skill_rating": player.skill_rating,
            "active": player.active,
            "points": player.points,
            "games_played": player.games_played["total"],
        }
        if _row_matches(row, search, skill_rating, active):
            standings.append(row)
    return _rank_and_sort(standings, sort_by, direction)


def historical_stats(current: Tournament, history: TournamentHistory) -> List[PlayerStats]:
    """Merge the live tournament with every archived one, keyed by player id.

    Identity fields come from the most recent tournament the player appears
    in; the live roster wins over the archive.
    """
    stats: Dict[str, PlayerStats] = {}
    tournaments = [current] + list(reversed(history.tournaments))
    for tournament in tournaments:
        for player in tournament.players:
            entry = stats.get(player.id)
            if entry is None:
                entry = stats[player.id] = PlayerStats(
                    player_id=player.id,
                    player_name=player.name,
                    player_number=player.number,
                    skill_rating=player.skill_rating,
                )
            entry.total_points += player.points
            entry.total_games += player.games_played.get("total", 0)
            for fmt in FORMATS:
                entry.games_played_by_format[fmt] += player.games_played.get(fmt, 0)
            entry.tournaments_participated += 1

    return sorted(stats.values(), key=lambda s: (-s.total_points, -s.total_games, s.player_number))


def select_historical_stats(
    current: Tournament,
    history: TournamentHistory,
    search: Optional[str] = None,
    skill_rating: Optional[int] = None,
    active: Optional[bool] = None,
    sort_by: str = "points",
    direction: Optional[str] = None,
) -> List[PlayerStats]:
    """Filter and order merged stats; activity is read from the live roster."""
    live = {p.id: p.active for p in current.players}
    rows = []
    for entry in historical_stats(current, history):
        row = {
            "name": entry.player_name,
            "number": entry.player_number,
            "skill_rating": entry.skill_rating,
            "active": live.get(entry.player_id, False),
            "points": entry.total_points,
            "games_played": entry.total_games,
            "entry": entry,
        }
        if _row_matches(row, search, skill_rating, active):
            rows.append(row)
    return [row["entry"] for row in _rank_and_sort(rows, sort_by, direction)]


def zeroed_roster(players: Sequence[Player]) -> List[Player]:
    """Copy a roster with derived stats cleared."""
    return [
        Player(
            id=p.id, name=p.name, number=p.number,
            skill_rating=p.skill_rating,
            active=p.active,
            points=0, games_played=empty_games_played(),
        )
        for p in players
    ]
