from fastapi import APIRouter
from rondo.api import auth, games, users

router = APIRouter()
router.include_router(auth.router, prefix="/auth", tags=["Auth"])
router.include_router(users.router, prefix="/users", tags=["Users"])
router.include_router(games.router, prefix="/games", tags=["Games"])
router.include_router(games.public_router, prefix="/public", tags=["Public"])
