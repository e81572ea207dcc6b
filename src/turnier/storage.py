import logging
from typing import Any, Optional, Tuple

from sqlalchemy.ext.asyncio import AsyncSession

from database import StateORM
from turnier.models import Tournament, TournamentHistory, default_tournament

logger = logging.getLogger(__name__)

TOURNAMENT_KEY = "tournament"
HISTORY_KEY = "tournament-history"


def tournament_from_payload(payload: Any) -> Tournament:
    """Rebuild the live tournament, falling back to a fresh one for unreadable records."""
    if payload is None:
        return default_tournament()
    if not isinstance(payload, dict):
        logger.warning("Discarding malformed tournament record")
        return default_tournament()
    try:
        return Tournament.from_dict(payload)
    except (TypeError, ValueError, AttributeError, KeyError) as exc:
        logger.warning("Discarding unreadable tournament record: %s", exc)
        return default_tournament()


def history_from_payload(payload: Any) -> TournamentHistory:
    if payload is None:
        return TournamentHistory()
    if not isinstance(payload, dict):
        logger.warning("Discarding malformed tournament history record")
        return TournamentHistory()
    try:
        return TournamentHistory.from_dict(payload)
    except (TypeError, ValueError, AttributeError, KeyError) as exc:
        logger.warning("Discarding unreadable tournament history record: %s", exc)
        return TournamentHistory()


async def _get_payload(session: AsyncSession, key: str) -> Optional[Any]:
    row = await session.get(StateORM, key)
    return row.payload if row else None


async def _put_payload(session: AsyncSession, key: str, payload: dict):
    row = await session.get(StateORM, key)
    if row is None:
        session.add(StateORM(key=key, payload=payload))
    else:
        row.payload = payload


async def load_state(session: AsyncSession) -> Tuple[Tournament, TournamentHistory]:
    tournament = tournament_from_payload(await _get_payload(session, TOURNAMENT_KEY))
    history = history_from_payload(await _get_payload(session, HISTORY_KEY))
    return tournament, history


async def save_state(session: AsyncSession, tournament: Tournament, history: TournamentHistory):
    await _put_payload(session, TOURNAMENT_KEY, tournament.to_dict())
    await _put_payload(session, HISTORY_KEY, history.to_dict())
    await session.commit()
