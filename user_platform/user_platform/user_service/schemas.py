from datetime import datetime
from pydantic import BaseModel, BeforeValidator, ConfigDict, EmailStr, Field, field_validator

from typing import Annotated, List, Literal, Optional


def _lower(value):
    return value.strip().lower() if isinstance(value, str) else value


NormalizedEmail = Annotated[EmailStr, BeforeValidator(_lower)]


class AuthRegister(BaseModel):
    email: NormalizedEmail
    password: str = Field(min_length=6)
    name: str = Field(min_length=1)
    last_name: str = Field(min_length=1)


class AuthEmailLogin(BaseModel):
    email: NormalizedEmail
    password: str


class AuthConfirmEmail(BaseModel):
    hash: str


class AuthForgotPassword(BaseModel):
    email: NormalizedEmail


class AuthResetPassword(BaseModel):
    hash: str
    password: str = Field(min_length=6)


class AuthUpdate(BaseModel):
    name: Optional[str] = Field(default=None, min_length=1)
    last_name: Optional[str] = Field(default=None, min_length=1)
    bio: Optional[str] = None
    email: Optional[NormalizedEmail] = None
    password: Optional[str] = Field(default=None, min_length=6)
    old_password: Optional[str] = None


class LoginUser(BaseModel):
    name: Optional[str] = None
    last_name: Optional[str] = None
    email: str
    image: Optional[str] = None


class RefreshResponse(BaseModel):
    access_token: str
    refresh_token: str
    expires_in: int


class LoginResponse(RefreshResponse):
    user: LoginUser


class UserResponse(BaseModel):
    id: int
    email: str
    email_verified: Optional[datetime] = None
    name: Optional[str] = None
    last_name: Optional[str] = None
    bio: Optional[str] = None
    image: Optional[str] = None
    roles: List[str] = []
    created_at: datetime

    model_config = ConfigDict(from_attributes=True)

    @field_validator("roles", mode="before")
    @classmethod
    def _role_names(cls, value):
        return [getattr(role, "name", role) for role in value or []]


# Admin user management
class UserCreate(BaseModel):
    email: NormalizedEmail
    password: str = Field(min_length=6)
    name: Optional[str] = None
    last_name: Optional[str] = None
    bio: Optional[str] = None
    roles: List[Literal["admin", "user"]] = ["user"]


class UserUpdate(BaseModel):
    email: Optional[NormalizedEmail] = None
    password: Optional[str] = Field(default=None, min_length=6)
    name: Optional[str] = None
    last_name: Optional[str] = None
    bio: Optional[str] = None


class PhotoUrlResponse(BaseModel):
    url: str
