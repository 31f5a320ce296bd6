from datetime import datetime

from pydantic import BaseModel, EmailStr, Field

from app.models.player import Nation


class PlayerRegister(BaseModel):
    email: EmailStr
    username: str = Field(min_length=3, max_length=100)
    password: str = Field(min_length=8)


class PlayerLogin(BaseModel):
    email: EmailStr
    password: str


class TokenResponse(BaseModel):
    access_token: str
    token_type: str = "bearer"


class PlayerResponse(BaseModel):
    id: int
    email: str
    username: str
    nation: Nation | None
    is_ai: bool
    is_admin: bool
    created_at: datetime

    model_config = {"from_attributes": True}
