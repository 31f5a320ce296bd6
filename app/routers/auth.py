from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy.ext.asyncio import AsyncSession

from app.database import get_db
from app.dependencies import get_current_player
from app.models.player import Player
from app.schemas.auth import PlayerLogin, PlayerRegister, PlayerResponse, TokenResponse
from app.services.auth_service import authenticate_player, create_access_token, register_player

router = APIRouter(prefix="/auth", tags=["auth"])


@router.post("/register", response_model=PlayerResponse, status_code=status.HTTP_201_CREATED)
async def register(body: PlayerRegister, db: AsyncSession = Depends(get_db)):
    try:
        return await register_player(db, email=body.email, username=body.username, password=body.password)
    except ValueError as e:
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail=str(e))


@router.post("/login", response_model=TokenResponse)
async def login(body: PlayerLogin, db: AsyncSession = Depends(get_db)):
    player = await authenticate_player(db, email=body.email, password=body.password)
    if player is None:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid email or password",
        )
    return TokenResponse(access_token=create_access_token(player.id))


@router.get("/me", response_model=PlayerResponse)
async def me(current_player: Player = Depends(get_current_player)):
    return current_player
