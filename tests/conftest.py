import mongomock
import pytest
from fastapi.testclient import TestClient

from app import create_app
from scorekeeper.announcer import Announcer
from scorekeeper.cache import QueryCache
from scorekeeper.config import Settings
from scorekeeper.database import DatabaseService
from scorekeeper.store import DocumentStore


@pytest.fixture
def settings(tmp_path):
    return Settings(
        _env_file=None,
        environment="test",
        cosmos_db_uri="mongodb://scorekeeper-test.mongo.cosmos.azure.com:10255/",
        cosmos_db_key="test-key",
        tts_enabled=False,
        google_application_credentials=None,
        tts_audio_dir=str(tmp_path / "audio"),
        anthropic_api_key=None,
        deployment_timestamp=None,
    )


@pytest.fixture
def store():
    return DocumentStore(mongomock.MongoClient(), "hockey-scorekeeper-test")


class FakeClock:
    def __init__(self):
        self.now = 1000.0

    def __call__(self):
        return self.now

    def advance(self, seconds):
        self.now += seconds


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def cache(clock):
    return QueryCache(clock=clock)


@pytest.fixture
def db(store, cache):
    return DatabaseService(store, cache)


@pytest.fixture
def app(settings, store, cache):
    return create_app(settings=settings, store=store, cache=cache, announcer=Announcer(settings))


@pytest.fixture
def client(app):
    return TestClient(app)


def game_doc(**overrides):
    doc = {
        "id": "g1",
        "homeTeam": "Bar",
        "awayTeam": "Foo",
        "gameDate": "2025-10-05",
        "gameTime": "18:30",
        "division": "Gold",
        "season": "Fall",
        "year": 2025,
        "status": "scheduled",
        "homeTeamGoals": 0,
        "awayTeamGoals": 0,
    }
    doc.update(overrides)
    return doc


def roster_doc(team, **overrides):
    doc = {
        "id": f"{team.lower()}_Fall_2025",
        "teamName": team,
        "division": "Gold",
        "season": "Fall",
        "year": 2025,
        "players": [
            {"name": "Alex Stone", "firstName": "Alex", "lastName": "Stone", "jerseyNumber": "9", "position": "Forward"},
            {"name": "Sam Reed", "firstName": "Sam", "lastName": "Reed", "jerseyNumber": "30", "position": "Goalie"},
        ],
    }
    doc.update(overrides)
    return doc


@pytest.fixture
def make_game(store):
    def _make(**overrides):
        return store.create("games", game_doc(**overrides))

    return _make


@pytest.fixture
def make_roster(store):
    def _make(team, **overrides):
        return store.create("rosters", roster_doc(team, **overrides))

    return _make
