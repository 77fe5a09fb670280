import os
import threading
import unittest
from datetime import datetime, timedelta, timezone

from fastapi.testclient import TestClient

os.environ.setdefault("JWT_SECRET", "test-secret")

from rondo.core.deps import game_registry_dep
from rondo.core.security import Identity, issue_session_token
from rondo.main import app
from rondo.services.game_service import GameFullError, GameRegistry, GameStartedError


def _iso(dt: datetime) -> str:
    return dt.astimezone(timezone.utc).strftime("%Y-%m-%dT%H:%M:%SZ")


class GameApiTests(unittest.TestCase):
    def setUp(self):
        self.registry = GameRegistry()
        app.dependency_overrides[game_registry_dep] = lambda: self.registry
        self.client = TestClient(app)
        token = issue_session_token(
            Identity(user_id="user-1", phone="+15551234567", first_name="Ada", last_name="Lovelace")
        )
        self.headers = {"Authorization": f"Bearer {token}"}

    def tearDown(self):
        self.client.close()
        app.dependency_overrides.clear()

    def _payload(self, **overrides) -> dict:
        start = datetime.now(timezone.utc) + timedelta(days=1)
        payload = {
            "event_name": "Sunday five-a-side",
            "start_time": _iso(start),
            "end_time": _iso(start + timedelta(hours=2)),
            "location": "Riverside pitch",
            "cost_per_person": 7.5,
            "player_requirement": 2,
        }
        payload.update(overrides)
        return payload

    def test_create_and_fetch_game(self):
        created = self.client.post("/games/create", json=self._payload(), headers=self.headers)
        self.assertEqual(created.status_code, 201)
        game = created.json()
        self.assertEqual(game["creator_id"], "user-1")
        self.assertEqual(game["current_participants"], 0)

        fetched = self.client.get(f"/games/{game['id']}", headers=self.headers)
        self.assertEqual(fetched.status_code, 200)
        self.assertEqual(fetched.json()["event_name"], "Sunday five-a-side")

        listed = self.client.get("/games/list", headers=self.headers)
        self.assertEqual([g["id"] for g in listed.json()["games"]], [game["id"]])

    def test_games_require_token(self):
        self.assertEqual(self.client.get("/games/list").status_code, 401)
        self.assertEqual(self.client.post("/games/create", json=self._payload()).status_code, 401)

    def test_invalid_time_formats(self):
        response = self.client.post("/games/create", json=self._payload(start_time="tomorrow"), headers=self.headers)
        self.assertEqual(response.status_code, 400)
        self.assertEqual(response.json()["error"], "Invalid start time format. Use YYYY-MM-DDThh:mm:ssZ")

        response = self.client.post(
            "/games/create", json=self._payload(end_time="2030-01-01 10:00"), headers=self.headers
        )
        self.assertEqual(response.status_code, 400)
        self.assertEqual(response.json()["error"], "Invalid end time format. Use YYYY-MM-DDThh:mm:ssZ")

    def test_time_ordering_rules(self):
        past = datetime.now(timezone.utc) - timedelta(hours=1)
        response = self.client.post(
            "/games/create",
            json=self._payload(start_time=_iso(past), end_time=_iso(past + timedelta(hours=3))),
            headers=self.headers,
        )
        self.assertEqual(response.json()["error"], "Start time cannot be in the past")

        start = datetime.now(timezone.utc) + timedelta(days=1)
        response = self.client.post(
            "/games/create",
            json=self._payload(start_time=_iso(start), end_time=_iso(start - timedelta(hours=1))),
            headers=self.headers,
        )
        self.assertEqual(response.status_code, 400)
        self.assertEqual(response.json()["error"], "End time must be after start time")

    def test_player_requirement_must_be_positive(self):
        response = self.client.post("/games/create", json=self._payload(player_requirement=0), headers=self.headers)
        self.assertEqual(response.status_code, 400)

    def test_join_until_full(self):
        game_id = self.client.post("/games/create", json=self._payload(), headers=self.headers).json()["id"]
        for expected in (1, 2):
            joined = self.client.post("/games/join", json={"game_id": game_id}, headers=self.headers)
            self.assertEqual(joined.status_code, 200)
            self.assertEqual(joined.json()["message"], "Successfully joined the game")
            self.assertEqual(joined.json()["game"]["current_participants"], expected)

        full = self.client.post("/games/join", json={"game_id": game_id}, headers=self.headers)
        self.assertEqual(full.status_code, 400)
        self.assertEqual(full.json()["error"], "Game is already full")
        self.assertEqual(self.registry.get_game(game_id).current_participants, 2)

    def test_join_unknown_game(self):
        response = self.client.post("/games/join", json={"game_id": "missing"}, headers=self.headers)
        self.assertEqual(response.status_code, 404)
        self.assertEqual(response.json()["error"], "Game not found")
        self.assertEqual(self.client.get("/games/missing", headers=self.headers).status_code, 404)

    def test_public_list_shows_only_upcoming_games(self):
        self.client.post("/games/create", json=self._payload(event_name="later"), headers=self.headers)
        response = self.client.get("/public/games")
        self.assertEqual(response.status_code, 200)
        self.assertEqual([g["event_name"] for g in response.json()["games"]], ["later"])


class GameRegistryTests(unittest.TestCase):
    def setUp(self):
        self.now = datetime(2030, 6, 1, 12, 0, tzinfo=timezone.utc)
        self.registry = GameRegistry(clock=lambda: self.now)

    def _create(self, players: int = 3):
        return self.registry.create_game(
            event_name="game",
            start_time="2030-06-02T18:00:00Z",
            end_time="2030-06-02T20:00:00+00:00",
            location="park",
            cost_per_person=0,
            player_requirement=players,
            creator_id="user-1",
        )

    def test_join_after_start_is_rejected(self):
        game = self._create()
        self.now = datetime(2030, 6, 2, 18, 30, tzinfo=timezone.utc)
        with self.assertRaises(GameStartedError):
            self.registry.join_game(game.id)
        self.assertEqual(self.registry.list_upcoming_games(), [])

    def test_concurrent_joins_never_exceed_requirement(self):
        game = self._create(players=5)
        outcomes: list[str] = []
        lock = threading.Lock()

        def worker():
            try:
                self.registry.join_game(game.id)
                result = "joined"
            except GameFullError:
                result = "full"
            with lock:
                outcomes.append(result)

        threads = [threading.Thread(target=worker) for _ in range(20)]
        for t in threads:
            t.start()
        for t in threads:
            t.join()
        self.assertEqual(outcomes.count("joined"), 5)
        self.assertEqual(self.registry.get_game(game.id).current_participants, 5)
