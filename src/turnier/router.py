import random
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Query
from sqlalchemy.ext.asyncio import AsyncSession

from database import get_session
from settings import TURNIER_SEED
from turnier.functions import (
    calculate_standings, can_start_tournament, current_round_completed,
    has_completed_rounds, has_games_in_progress, min_players_required,
)
from turnier.manager import TournamentManager
from turnier.schemas import (
    Direction, FairRollUpdate, FormatConfigUpdate, PlayerCreate, PlayerRename,
    ScoreUpdate, SkillRatingUpdate, SortKey, TournamentRename,
)
from turnier.storage import load_state, save_state

router = APIRouter(prefix='/tournament', tags=['Turnier'])

# -- Helpers -------------------------------------------------------------------

# One generator per process, so a fixed seed still varies between rounds
_rng = random.Random(TURNIER_SEED)


def get_rng() -> random.Random:
    return _rng


def leaderboard_filters(
    search: Optional[str] = None,
    skill_rating: Optional[int] = Query(None, ge=1, le=5),
    active: Optional[bool] = None,
    sort_by: SortKey = "points",
    direction: Optional[Direction] = None,
) -> dict:
    return {
        "search": search,
        "skill_rating": skill_rating,
        "active": active,
        "sort_by": sort_by,
        "direction": direction,
    }


async def _get_manager(session: AsyncSession, rng: Optional[random.Random] = None) -> TournamentManager:
    tournament, history = await load_state(session)
    return TournamentManager(tournament, history, rng=rng)


async def _commit(session: AsyncSession, manager: TournamentManager) -> dict:
    await save_state(session, manager.tournament, manager.history)
    return _tournament_view(manager)


def _tournament_view(manager: TournamentManager) -> dict:
    t = manager.tournament
    data = t.to_dict()
    data["minPlayersRequired"] = min_players_required(t.format_configs)
    data["canStart"] = not t.started and can_start_tournament(t)
    data["hasGamesInProgress"] = has_games_in_progress(t)
    data["hasCompletedRounds"] = has_completed_rounds(t)
    return data


def _not_found(what: str):
    raise HTTPException(status_code=404, detail=f"{what} not found")


def _refused(reason: str):
    raise HTTPException(status_code=409, detail=reason)


# Queries

@router.get("/")
async def get_tournament(session: AsyncSession = Depends(get_session)):
    manager = await _get_manager(session)
    return _tournament_view(manager)


@router.get("/history")
async def get_history(session: AsyncSession = Depends(get_session)):
    manager = await _get_manager(session)
    return manager.history.to_dict()


@router.get("/stats")
async def get_historical_stats(
    filters: dict = Depends(leaderboard_filters),
    session: AsyncSession = Depends(get_session),
):
    manager = await _get_manager(session)
    return [s.to_dict() for s in manager.historical_stats(**filters)]


@router.get("/standings")
async def get_standings(
    filters: dict = Depends(leaderboard_filters),
    session: AsyncSession = Depends(get_session),
):
    manager = await _get_manager(session)
    return calculate_standings(manager.tournament, **filters)


# Roster

@router.post("/players")
async def add_player(
    body: PlayerCreate,
    session: AsyncSession = Depends(get_session),
):
    manager = await _get_manager(session)
    player = manager.add_player(body.name, body.number, body.skill_rating)
    if player is None:
        _refused("Tournament already started")
    return await _commit(session, manager)


@router.delete("/players/{pid}")
async def remove_player(pid: str, session: AsyncSession = Depends(get_session)):
    manager = await _get_manager(session)
    if manager.tournament.started:
        _refused("Tournament already started")
    if not manager.remove_player(pid):
        _not_found("Player")
    return await _commit(session, manager)


@router.post("/players/{pid}/toggle-active")
async def toggle_active(pid: str, session: AsyncSession = Depends(get_session)):
    manager = await _get_manager(session)
    if manager.tournament.started:
        _refused("Tournament already started")
    if not manager.toggle_active(pid):
        _not_found("Player")
    return await _commit(session, manager)


@router.put("/players/{pid}/skill-rating")
async def update_skill_rating(
    pid: str,
    body: SkillRatingUpdate,
    session: AsyncSession = Depends(get_session),
):
    manager = await _get_manager(session)
    if manager.tournament.started:
        _refused("Tournament already started")
    if not manager.update_skill_rating(pid, body.skill_rating):
        _not_found("Player")
    return await _commit(session, manager)


@router.put("/players/{pid}/name")
async def rename_player(
    pid: str,
    body: PlayerRename,
    session: AsyncSession = Depends(get_session),
):
    manager = await _get_manager(session)
    if manager.tournament.started:
        _refused("Tournament already started")
    if not manager.rename_player(pid, body.name):
        _not_found("Player")
    return await _commit(session, manager)


# Configuration

@router.put("/formats")
async def update_format_config(
    body: FormatConfigUpdate,
    session: AsyncSession = Depends(get_session),
):
    manager = await _get_manager(session)
    if not manager.update_format_config(body.format, body.games_count):
        _refused("Tournament already started")
    return await _commit(session, manager)


@router.put("/fair-roll")
async def set_fair_roll(
    body: FairRollUpdate,
    session: AsyncSession = Depends(get_session),
):
    manager = await _get_manager(session)
    manager.set_fair_roll(body.fair_roll)
    return await _commit(session, manager)


@router.put("/name")
async def rename_tournament(
    body: TournamentRename,
    session: AsyncSession = Depends(get_session),
):
    manager = await _get_manager(session)
    if not manager.rename_tournament(body.name):
        raise HTTPException(status_code=400, detail="Name must not be blank")
    return await _commit(session, manager)


# Rounds and scores

@router.post("/start")
async def start_tournament(session: AsyncSession = Depends(get_session), rng: random.Random = Depends(get_rng)):
    manager = await _get_manager(session, rng)
    t = manager.tournament
    if t.started:
        _refused("Tournament already started")
    if not can_start_tournament(t):
        _refused(
            f"Need at least {min_players_required(t.format_configs)} active players "
            f"and one configured format, have {len(t.active_players)} players"
        )
    if not manager.start_tournament():
        _refused("No format could be filled")
    return await _commit(session, manager)


@router.post("/next-round")
async def next_round(session: AsyncSession = Depends(get_session), rng: random.Random = Depends(get_rng)):
    manager = await _get_manager(session, rng)
    t = manager.tournament
    if not t.started:
        _refused("Tournament not started")
    # Check all games in current round completed
    if not current_round_completed(t):
        _refused("Current round is not completed")
    if not manager.generate_next_round():
        _refused("No format could be filled")
    return await _commit(session, manager)


@router.post("/games/{game_id}/score")
async def update_game_score(
    game_id: str,
    body: ScoreUpdate,
    session: AsyncSession = Depends(get_session),
):
    manager = await _get_manager(session)
    if not manager.update_game_score(game_id, body.score_a, body.score_b):
        _not_found("Game")
    return await _commit(session, manager)


# Lifecycle

@router.post("/reset")
async def reset_tournament(session: AsyncSession = Depends(get_session)):
    manager = await _get_manager(session)
    if not manager.reset_tournament():
        _refused("Tournament has completed rounds")
    return await _commit(session, manager)


@router.post("/end")
async def end_tournament(session: AsyncSession = Depends(get_session)):
    manager = await _get_manager(session)
    if not manager.end_tournament():
        _refused("Tournament not started")
    return await _commit(session, manager)
