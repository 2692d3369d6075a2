from pydantic import BaseModel, ConfigDict, EmailStr, Field
from typing import Optional, Literal

Role = Literal["admin", "dispatcher", "driver"]


class UserCreate(BaseModel):
    email: EmailStr
    password: str = Field(min_length=6)
    full_name: str = Field(min_length=1, max_length=200)
    role: Role = "driver"
    phone: Optional[str] = None


class SignupIn(BaseModel):
    email: EmailStr
    password: str = Field(min_length=6)
    full_name: str = Field(min_length=1, max_length=200)
    phone: Optional[str] = None


class LoginIn(BaseModel):
    email: EmailStr
    password: str


class UserUpdate(BaseModel):
    model_config = ConfigDict(extra="forbid")

    full_name: Optional[str] = Field(default=None, min_length=1, max_length=200)
    phone: Optional[str] = None
    role: Optional[Role] = None
