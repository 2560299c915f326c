from pydantic import BaseModel, EmailStr, Field, field_validator
from enum import Enum
from typing import Optional
from datetime import datetime
from uuid import UUID


class Role(str, Enum):
    user = "user"
    admin = "admin"


class UserBase(BaseModel):
    email: EmailStr
    name: str = Field(..., min_length=1, max_length=120, example="Maria Santos")

    @field_validator("name")
    @classmethod
    def strip_name(cls, v):
        v = v.strip()
        if not v:
            raise ValueError("name must not be blank")
        return v


class UserCreate(UserBase):
    """Public sign-up; every new account starts as a regular user."""

    password: str = Field(..., min_length=8)


class UserOut(UserBase):
    id: UUID
    role: Role
    status: str
    is_active: bool
    avatar_url: Optional[str] = None
    phone: Optional[str] = None
    last_login_at: Optional[datetime] = None
    created_at: datetime

    class Config:
        from_attributes = True


class UserUpdate(BaseModel):
    email: Optional[EmailStr] = None
    name: Optional[str] = Field(None, min_length=1, max_length=120)
    phone: Optional[str] = Field(None, max_length=32, example="+63 917 555 0123")
    avatar_url: Optional[str] = None
    password: Optional[str] = Field(None, min_length=8)


class AdminUserUpdate(UserUpdate):
    role: Optional[Role] = None
    is_active: Optional[bool] = None


class UserLogin(BaseModel):
    email: EmailStr
    password: str = Field(..., min_length=8)


class LoginResponse(BaseModel):
    access_token: str
    refresh_token: str
    token_type: str
    user: UserOut


class RefreshTokenRequest(BaseModel):
    refresh_token: str


class RefreshTokenResponse(BaseModel):
    access_token: str
    refresh_token: str
    token_type: str


class LogoutRequest(BaseModel):
    refresh_token: Optional[str] = Field(None, description="Also revoked when given")


class LogoutResponse(BaseModel):
    message: str
