"""
Pydantic schemas for user-related request/response validation.
"""

from datetime import datetime
from typing import Optional

from pydantic import EmailStr, Field

from eventflow.schemas.common import APIModel, Envelope


class UserCreate(APIModel):
    name: str = Field(..., min_length=1, max_length=100)
    email: EmailStr
    password: str = Field(..., min_length=8, max_length=128)


class UserLogin(APIModel):
    email: EmailStr
    password: str


class UserResponse(APIModel):
    id: int
    name: str
    email: str
    role: str
    created_at: Optional[datetime] = None


class AuthEnvelope(Envelope):
    user: UserResponse
    token: Optional[str] = None
