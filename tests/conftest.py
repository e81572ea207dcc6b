import os
import random
import tempfile

import pytest

_db_dir = tempfile.mkdtemp(prefix="turnier-tests-")
os.environ["DATABASE_URL"] = f"sqlite+aiosqlite:///{os.path.join(_db_dir, 'test.db')}"

from fastapi.testclient import TestClient  # noqa: E402

from database import reset_models  # noqa: E402
from main import app  # noqa: E402
from turnier.manager import TournamentManager  # noqa: E402
from turnier.models import Player, Tournament  # noqa: E402


def make_players(count, skill_rating=3, start=1):
    return [
        Player(id=f"p{i}", name=f"Player {i}", number=i, skill_rating=skill_rating)
        for i in range(start, start + count)
    ]


def only_format(tournament, fmt, games_count):
    for config in tournament.format_configs:
        config.games_count = games_count if config.format == fmt else 0


@pytest.fixture
def rng():
    return random.Random(1234)


@pytest.fixture
def manager(rng):
    """Eight active players, 2vs2 with two games, fair roll off."""
    tournament = Tournament(players=make_players(8), fair_roll=False)
    only_format(tournament, "2vs2", 2)
    return TournamentManager(tournament, rng=rng)


@pytest.fixture
def client():
    with TestClient(app) as test_client:
        test_client.portal.call(reset_models)
        yield test_client
