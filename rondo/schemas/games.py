from datetime import datetime
from typing import List

from pydantic import BaseModel, Field


class GameCreateIn(BaseModel):
    event_name: str = Field(min_length=1)
    start_time: str  # RFC3339, e.g. 2030-05-01T18:00:00Z
    end_time: str
    location: str = Field(min_length=1)
    cost_per_person: float = Field(ge=0)
    player_requirement: int = Field(gt=0)


class GameJoinIn(BaseModel):
    game_id: str = Field(min_length=1)


class GameOut(BaseModel):
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


class GameListOut(BaseModel):
    games: List[GameOut]


class GameJoinOut(BaseModel):
    message: str
    game: GameOut
