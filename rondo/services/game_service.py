from __future__ import annotations

import uuid
from dataclasses import dataclass, replace
from datetime import datetime, timezone
from threading import Lock
from typing import Callable


class GameError(Exception):
    pass


class GameValidationError(GameError):
    pass


class GameNotFoundError(GameError):
    pass


class GameFullError(GameError):
    pass


class GameStartedError(GameError):
    pass


@dataclass(frozen=True)
class Game:
    id: str
    event_name: str
    start_time: datetime
    end_time: datetime
    location: str
    cost_per_person: float
    player_requirement: int
    current_participants: int
    creator_id: str
    created_at: datetime
    updated_at: datetime


def _now_utc() -> datetime:
    return datetime.now(timezone.utc)


def parse_rfc3339(raw: str | None) -> datetime | None:
    value = str(raw or "").strip()
    if not value:
        return None
    if value.endswith(("Z", "z")):
        value = value[:-1] + "+00:00"
    try:
        parsed = datetime.fromisoformat(value)
    except ValueError:
        return None
    if parsed.tzinfo is None:
        return None
    return parsed.astimezone(timezone.utc)


class GameRegistry:
    def __init__(self, clock: Callable[[], datetime] = _now_utc):
        self._games: dict[str, Game] = {}
        self._lock = Lock()
        self._clock = clock

    def create_game(
        self,
        *,
        event_name: str,
        start_time: str,
        end_time: str,
        location: str,
        cost_per_person: float,
        player_requirement: int,
        creator_id: str,
    ) -> Game:
        start = parse_rfc3339(start_time)
        if start is None:
            raise GameValidationError("Invalid start time format. Use YYYY-MM-DDThh:mm:ssZ")
        end = parse_rfc3339(end_time)
        if end is None:
            raise GameValidationError("Invalid end time format. Use YYYY-MM-DDThh:mm:ssZ")

        now = self._clock()
        if start < now:
            raise GameValidationError("Start time cannot be in the past")
        if end < start:
            raise GameValidationError("End time must be after start time")

        game = Game(
            id=str(uuid.uuid4()),
            event_name=event_name,
            start_time=start,
            end_time=end,
            location=location,
            cost_per_person=float(cost_per_person),
            player_requirement=int(player_requirement),
            current_participants=0,
            creator_id=creator_id,
            created_at=now,
            updated_at=now,
        )
        with self._lock:
            self._games[game.id] = game
        return game

    def get_game(self, game_id: str) -> Game:
        with self._lock:
            game = self._games.get(game_id)
        if game is None:
            raise GameNotFoundError("Game not found")
        return game

    def list_games(self) -> list[Game]:
        with self._lock:
            games = list(self._games.values())
        return sorted(games, key=lambda g: (g.start_time, g.created_at))

    def list_upcoming_games(self) -> list[Game]:
        now = self._clock()
        return [g for g in self.list_games() if g.start_time > now]

    def join_game(self, game_id: str) -> Game:
        with self._lock:
            game = self._games.get(game_id)
            if game is None:
                raise GameNotFoundError("Game not found")
            if game.current_participants >= game.player_requirement:
                raise GameFullError("Game is already full")
            now = self._clock()
            if game.start_time < now:
                raise GameStartedError("Game has already started")
            game = replace(game, current_participants=game.current_participants + 1, updated_at=now)
            self._games[game_id] = game
        return game


_registry: GameRegistry | None = None


def get_game_registry() -> GameRegistry:
    global _registry
    if _registry is None:
        _registry = GameRegistry()
    return _registry


def reset_game_registry_for_tests() -> None:
    global _registry
    _registry = None
