"""Pytest configuration and fixtures for Courtside tests."""

import pytest

from courtside.domain.definitions import Strategy, Trigger
from courtside.domain.game import GameSnapshot, GameStatus, HistoricalGame, QuarterScores
from courtside.services.game_state import GameStateReducer
from courtside.services.signal_registry import SignalRegistry
from courtside.services.state_store import InMemoryStateStore, KeyedLocks


@pytest.fixture
def live_snapshot():
    """Q3 game with the home side up by five."""
    return GameSnapshot(
        game_id="g1",
        league="NBA 2K",
        home_team="Lakers",
        away_team="Celtics",
        home_score=75,
        away_score=70,
        quarter=3,
        time_remaining="5:30",
        status=GameStatus.LIVE,
        quarter_scores=QuarterScores(q1_home=25, q1_away=22, q2_home=24, q2_away=26),
        spread=-4.5,
        moneyline_home=-180,
        moneyline_away=150,
        total=210.5,
    )


@pytest.fixture
def home_leading_trigger():
    """Entry trigger: third quarter with the home side in front."""
    return Trigger(
        id="t-entry",
        name="Home leads in Q3",
        conditions=[
            {"field": "quarter", "operator": "equals", "value": 3},
            {"field": "homeLeading", "operator": "equals", "value": True},
        ],
        order=1,
    )


@pytest.fixture
def big_lead_trigger():
    """Same conditions plus a lead of more than ten."""
    return Trigger(
        id="t-big-lead",
        name="Home leads big in Q3",
        conditions=[
            {"field": "quarter", "operator": "equals", "value": 3},
            {"field": "homeLeading", "operator": "equals", "value": True},
            {"field": "currentLead", "operator": "greater_than", "value": 10},
        ],
        order=1,
    )


@pytest.fixture
def blowout_strategy():
    """Backs the leader once the lead reaches ten in Q3."""
    return Strategy(
        id="s-blowout",
        name="Q3 blowout",
        triggers=[
            {
                "id": "t-q3-lead",
                "conditions": [
                    {"field": "quarter", "operator": "equals", "value": 3},
                    {
                        "field": "absScoreDifferential",
                        "operator": "greater_than_or_equal",
                        "value": 10,
                    },
                ],
                "order": 1,
                "entryOrClose": "entry",
            }
        ],
    )


@pytest.fixture
def historical_blowout():
    """Home side leads by 12 after three quarters and wins by 15."""
    return HistoricalGame(
        id="h1",
        home_team="Lakers",
        away_team="Celtics",
        home_score=110,
        away_score=95,
        quarter_scores=QuarterScores(
            q1_home=28, q1_away=25,
            q2_home=27, q2_away=24,
            q3_home=30, q3_away=24,
            q4_home=25, q4_away=22,
        ),
        spread=-6.5,
        total=215.5,
    )


@pytest.fixture
def historical_close_game():
    """Never more than a four point game."""
    return HistoricalGame(
        id="h2",
        home_team="Bulls",
        away_team="Knicks",
        home_score=101,
        away_score=99,
        quarter_scores=QuarterScores(
            q1_home=25, q1_away=24,
            q2_home=26, q2_away=25,
            q3_home=24, q3_away=26,
            q4_home=26, q4_away=24,
        ),
        spread=-2.0,
        total=205.0,
    )


@pytest.fixture
def store():
    return InMemoryStateStore()


@pytest.fixture
def locks():
    return KeyedLocks()


@pytest.fixture
def reducer(store, locks):
    return GameStateReducer(store, locks)


@pytest.fixture
def registry(store, locks):
    return SignalRegistry(store, locks)
