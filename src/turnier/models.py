import logging
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

logger = logging.getLogger(__name__)

FORMATS = ("2vs2", "3vs3", "4+1vs4+1")

# "+1" is naming only, the fifth player is a regular team member
PLAYERS_PER_TEAM = {"2vs2": 2, "3vs3": 3, "4+1vs4+1": 5}

DEFAULT_GAMES_COUNT = {"2vs2": 2, "3vs3": 2, "4+1vs4+1": 1}

DEFAULT_PLAYER_NAMES = [
    "Alex", "Ben", "Charlie", "David", "Emil", "Felix", "Georg",
    "Hans", "Ivan", "Jakob", "Klaus", "Leon", "Max",
]

DEFAULT_TOURNAMENT_NAME = "Holland-Turnier"

MIN_SKILL_RATING, MAX_SKILL_RATING = 1, 5
MIN_GAMES_COUNT, MAX_GAMES_COUNT = 0, 10

STATUS_DRAFT = "draft"
STATUS_ACTIVE = "active"
STATUS_COMPLETED = "completed"
STATUSES = (STATUS_DRAFT, STATUS_ACTIVE, STATUS_COMPLETED)


def generate_id():
    import uuid
    return str(uuid.uuid4())[:8]


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def clamp(value: int, low: int, high: int) -> int:
    return max(low, min(high, value))


def empty_games_played() -> Dict[str, int]:
    counts = {fmt: 0 for fmt in FORMATS}
    counts["total"] = 0
    return counts


# -- Lenient readers for persisted data ---------------------------------------

def _int(value: Any, default: int) -> int:
    if isinstance(value, bool):
        return default
    if isinstance(value, int):
        return value
    if isinstance(value, float) and value.is_integer():
        return int(value)
    if isinstance(value, str):
        try:
            return int(value.strip())
        except ValueError:
            return default
    return default


def _optional_int(value: Any) -> Optional[int]:
    if value is None:
        return None
    parsed = _int(value, -1)
    return parsed if parsed >= 0 else None


def _bool(value: Any, default: bool) -> bool:
    return value if isinstance(value, bool) else default


def _str(value: Any, default: str) -> str:
    if isinstance(value, str):
        return value
    if isinstance(value, (int, float)) and not isinstance(value, bool):
        return str(value)
    return default


def _list(value: Any) -> list:
    return value if isinstance(value, list) else []


def _datetime(value: Any) -> Optional[datetime]:
    if not isinstance(value, str) or not value:
        return None
    try:
        parsed = datetime.fromisoformat(value.replace("Z", "+00:00"))
    except ValueError:
        return None
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


def _iso(value: Optional[datetime]) -> Optional[str]:
    return value.isoformat() if value else None


def _games_played(value: Any) -> Dict[str, int]:
    counts = empty_games_played()
    if isinstance(value, dict):
        for key in counts:
            counts[key] = max(0, _int(value.get(key), 0))
    return counts


# -- Models -------------------------------------------------------------------

@dataclass
class Player:
    id: str
    name: str
    number: int
    skill_rating: int = 3
    active: bool = True
    points: int = 0
    games_played: Dict[str, int] = field(default_factory=empty_games_played)

    @property
    def combined_rating(self) -> int:
        return self.points + self.skill_rating * 2

    def reset_stats(self):
        self.points = 0
        self.games_played = empty_games_played()

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "name": self.name,
            "number": self.number,
            "skillRating": self.skill_rating,
            "active": self.active,
            "points": self.points,
            "gamesPlayed": dict(self.games_played),
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Player":
        return cls(
            id=_str(data.get("id"), "") or generate_id(),
            name=_str(data.get("name"), ""),
            number=_int(data.get("number"), 0),
            skill_rating=clamp(_int(data.get("skillRating"), 3), MIN_SKILL_RATING, MAX_SKILL_RATING),
            active=_bool(data.get("active"), True),
            points=_int(data.get("points"), 0),
            games_played=_games_played(data.get("gamesPlayed")),
        )


@dataclass(frozen=True)
class PlayerSnapshot:
    """Display copy of a player taken at pairing time."""
    id: str
    name: str
    number: int

    @classmethod
    def of(cls, player: Player) -> "PlayerSnapshot":
        return cls(id=player.id, name=player.name, number=player.number)

    def to_dict(self) -> Dict[str, Any]:
        return {"id": self.id, "name": self.name, "number": self.number}

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "PlayerSnapshot":
        return cls(
            id=_str(data.get("id"), ""),
            name=_str(data.get("name"), ""),
            number=_int(data.get("number"), 0),
        )


@dataclass
class FormatConfig:
    format: str
    games_count: int
    players_per_team: int

    @property
    def players_needed(self) -> int:
        return self.players_per_team * 2 * self.games_count

    def to_dict(self) -> Dict[str, Any]:
        return {
            "format": self.format,
            "gamesCount": self.games_count,
            "playersPerTeam": self.players_per_team,
        }


def default_format_configs() -> List[FormatConfig]:
    return [
        FormatConfig(format=fmt, games_count=DEFAULT_GAMES_COUNT[fmt], players_per_team=PLAYERS_PER_TEAM[fmt])
        for fmt in FORMATS
    ]


def _format_configs(value: Any) -> List[FormatConfig]:
    """Rebuild the config list in canonical order; playersPerTeam is never trusted from storage."""
    stored = {}
    for item in _list(value):
        if isinstance(item, dict) and isinstance(item.get("format"), str) and item["format"] in PLAYERS_PER_TEAM:
            stored[item["format"]] = item
    configs = default_format_configs()
    for config in configs:
        if config.format in stored:
            config.games_count = clamp(
                _int(stored[config.format].get("gamesCount"), config.games_count),
                MIN_GAMES_COUNT, MAX_GAMES_COUNT,
            )
    return configs


def _snapshots(value: Any) -> List[PlayerSnapshot]:
    return [PlayerSnapshot.from_dict(p) for p in _list(value) if isinstance(p, dict)]


@dataclass
class Game:
    id: str
    round: int
    format: str
    team_a: List[PlayerSnapshot] = field(default_factory=list)
    team_b: List[PlayerSnapshot] = field(default_factory=list)
    substitutes_a: List[PlayerSnapshot] = field(default_factory=list)
    substitutes_b: List[PlayerSnapshot] = field(default_factory=list)
    score_a: Optional[int] = None
    score_b: Optional[int] = None

    @property
    def completed(self) -> bool:
        return self.score_a is not None and self.score_b is not None

    @property
    def side_a(self) -> List[PlayerSnapshot]:
        return self.team_a + self.substitutes_a

    @property
    def side_b(self) -> List[PlayerSnapshot]:
        return self.team_b + self.substitutes_b

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "round": self.round,
            "format": self.format,
            "teamA": [p.to_dict() for p in self.team_a],
            "teamB": [p.to_dict() for p in self.team_b],
            "substitutesA": [p.to_dict() for p in self.substitutes_a],
            "substitutesB": [p.to_dict() for p in self.substitutes_b],
            "scoreA": self.score_a,
            "scoreB": self.score_b,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Game":
        score_a = _optional_int(data.get("scoreA"))
        score_b = _optional_int(data.get("scoreB"))
        if score_a is None or score_b is None:
            score_a = score_b = None
        return cls(
            id=_str(data.get("id"), "") or generate_id(),
            round=_int(data.get("round"), 0),
            format=_str(data.get("format"), FORMATS[0]),
            team_a=_snapshots(data.get("teamA")),
            team_b=_snapshots(data.get("teamB")),
            substitutes_a=_snapshots(data.get("substitutesA")),
            substitutes_b=_snapshots(data.get("substitutesB")),
            score_a=score_a,
            score_b=score_b,
        )


@dataclass
class Round:
    round_number: int
    games: List[Game] = field(default_factory=list)

    @property
    def completed(self) -> bool:
        return bool(self.games) and all(g.completed for g in self.games)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "roundNumber": self.round_number,
            "games": [g.to_dict() for g in self.games],
            "completed": self.completed,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Round":
        return cls(
            round_number=_int(data.get("roundNumber"), 0),
            games=[Game.from_dict(g) for g in _list(data.get("games")) if isinstance(g, dict)],
        )


def default_players() -> List[Player]:
    return [
        Player(id=str(i), name=name, number=i)
        for i, name in enumerate(DEFAULT_PLAYER_NAMES, start=1)
    ]


@dataclass
class Tournament:
    id: str = field(default_factory=generate_id)
    name: str = DEFAULT_TOURNAMENT_NAME
    players: List[Player] = field(default_factory=list)
    format_configs: List[FormatConfig] = field(default_factory=default_format_configs)
    rounds: List[Round] = field(default_factory=list)
    current_round: int = 0
    started: bool = False
    fair_roll: bool = True
    created_at: datetime = field(default_factory=utcnow)
    ended_at: Optional[datetime] = None
    status: str = STATUS_DRAFT

    def get_player(self, pid: str) -> Optional[Player]:
        return next((p for p in self.players if p.id == pid), None)

    def get_format_config(self, fmt: str) -> Optional[FormatConfig]:
        return next((c for c in self.format_configs if c.format == fmt), None)

    def find_game(self, game_id: str) -> Optional[Game]:
        return next((g for rnd in self.rounds for g in rnd.games if g.id == game_id), None)

    @property
    def active_players(self) -> List[Player]:
        return [p for p in self.players if p.active]

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "name": self.name,
            "players": [p.to_dict() for p in self.players],
            "formatConfigs": [c.to_dict() for c in self.format_configs],
            "rounds": [r.to_dict() for r in self.rounds],
            "currentRound": self.current_round,
            "started": self.started,
            "fairRoll": self.fair_roll,
            "createdAt": _iso(self.created_at),
            "endedAt": _iso(self.ended_at),
            "status": self.status,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Tournament":
        """Deserialize a stored tournament, defaulting fields older records lack."""
        rounds = sorted(
            (Round.from_dict(r) for r in _list(data.get("rounds")) if isinstance(r, dict)),
            key=lambda r: r.round_number,
        )
        status = data.get("status")
        started = _bool(data.get("started"), bool(rounds))
        if status not in STATUSES:
            status = STATUS_ACTIVE if started else STATUS_DRAFT
        return cls(
            id=_str(data.get("id"), "") or generate_id(),
            name=_str(data.get("name"), DEFAULT_TOURNAMENT_NAME),
            players=[Player.from_dict(p) for p in _list(data.get("players")) if isinstance(p, dict)],
            format_configs=_format_configs(data.get("formatConfigs")),
            rounds=rounds,
            current_round=len(rounds),
            started=started,
            fair_roll=_bool(data.get("fairRoll"), True),
            created_at=_datetime(data.get("createdAt")) or utcnow(),
            ended_at=_datetime(data.get("endedAt")),
            status=status,
        )


def default_tournament() -> Tournament:
    return Tournament(players=default_players())


@dataclass
class TournamentHistory:
    tournaments: List[Tournament] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        return {"tournaments": [t.to_dict() for t in self.tournaments]}

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "TournamentHistory":
        tournaments = []
        for item in _list(data.get("tournaments")):
            if not isinstance(item, dict):
                logger.warning("Skipping unreadable archived tournament entry")
                continue
            tournaments.append(Tournament.from_dict(item))
        return cls(tournaments=tournaments)


@dataclass
class PlayerStats:
    player_id: str
    player_name: str
    player_number: int
    skill_rating: int
    total_points: int = 0
    total_games: int = 0
    games_played_by_format: Dict[str, int] = field(default_factory=lambda: {fmt: 0 for fmt in FORMATS})
    tournaments_participated: int = 0

    @property
    def average_points_per_game(self) -> float:
        return self.total_points / self.total_games if self.total_games else 0.0

    @property
    def average_points_per_tournament(self) -> float:
        if not self.tournaments_participated:
            return 0.0
        return self.total_points / self.tournaments_participated

    def to_dict(self) -> Dict[str, Any]:
        return {
            "playerId": self.player_id,
            "playerName": self.player_name,
            "playerNumber": self.player_number,
            "skillRating": self.skill_rating,
            "totalPoints": self.total_points,
            "totalGames": self.total_games,
            "gamesPlayedByFormat": dict(self.games_played_by_format),
            "tournamentsParticipated": self.tournaments_participated,
            "averagePointsPerGame": self.average_points_per_game,
            "averagePointsPerTournament": self.average_points_per_tournament,
        }
