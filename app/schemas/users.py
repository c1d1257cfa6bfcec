# app/schemas/users.py
from __future__ import annotations

from datetime import datetime

from pydantic import BaseModel, ConfigDict, Field

from app.models.enums import UserType


class UserCreate(BaseModel):
    model_config = ConfigDict(extra="forbid")

    name: str = Field(..., min_length=1, max_length=255)
    email: str = Field(..., min_length=3, max_length=255, pattern=r"^[^@\s]+@[^@\s]+$")
    password: str = Field(..., min_length=8)
    user_type: UserType
    is_active: bool = True


class UserResponse(BaseModel):
    id: str
    name: str
    email: str
    userType: str
    isActive: bool
    createdAtIso: str
