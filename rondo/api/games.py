from fastapi import APIRouter, Depends, HTTPException

from rondo.core.deps import game_registry_dep, get_current_session
from rondo.core.security import SessionClaims
from rondo.schemas.games import GameCreateIn, GameJoinIn, GameJoinOut, GameListOut, GameOut
from rondo.services.game_service import (
    Game,
    GameFullError,
    GameNotFoundError,
    GameRegistry,
    GameStartedError,
    GameValidationError,
)

router = APIRouter(dependencies=[Depends(get_current_session)])
public_router = APIRouter()


def game_out(game: Game) -> GameOut:
    return GameOut(
        id=game.id,
        event_name=game.event_name,
        start_time=game.start_time,
        end_time=game.end_time,
        location=game.location,
        cost_per_person=game.cost_per_person,
        player_requirement=game.player_requirement,
        current_participants=game.current_participants,
        creator_id=game.creator_id,
        created_at=game.created_at,
    )


@router.post("/create", response_model=GameOut, status_code=201)
def create_game(
    payload: GameCreateIn,
    session: SessionClaims = Depends(get_current_session),
    registry: GameRegistry = Depends(game_registry_dep),
):
    try:
        game = registry.create_game(
            event_name=payload.event_name,
            start_time=payload.start_time,
            end_time=payload.end_time,
            location=payload.location,
            cost_per_person=payload.cost_per_person,
            player_requirement=payload.player_requirement,
            creator_id=session.user_id,
        )
    except GameValidationError as exc:
        raise HTTPException(status_code=400, detail=str(exc)) from exc
    return game_out(game)


@router.get("/list", response_model=GameListOut)
def list_games(registry: GameRegistry = Depends(game_registry_dep)):
    return {"games": [game_out(g) for g in registry.list_games()]}


@router.post("/join", response_model=GameJoinOut)
def join_game(payload: GameJoinIn, registry: GameRegistry = Depends(game_registry_dep)):
    try:
        game = registry.join_game(payload.game_id)
    except GameNotFoundError as exc:
        raise HTTPException(status_code=404, detail=str(exc)) from exc
    except (GameFullError, GameStartedError) as exc:
        raise HTTPException(status_code=400, detail=str(exc)) from exc
    return {"message": "Successfully joined the game", "game": game_out(game)}


@router.get("/{game_id}", response_model=GameOut)
def get_game(game_id: str, registry: GameRegistry = Depends(game_registry_dep)):
    try:
        return game_out(registry.get_game(game_id))
    except GameNotFoundError as exc:
        raise HTTPException(status_code=404, detail=str(exc)) from exc


@public_router.get("/games", response_model=GameListOut)
def public_list_games(registry: GameRegistry = Depends(game_registry_dep)):
    return {"games": [game_out(g) for g in registry.list_upcoming_games()]}
