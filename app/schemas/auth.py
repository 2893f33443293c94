"""Pydantic schemas for authentication endpoints."""

from pydantic import BaseModel, ConfigDict
from pydantic.alias_generators import to_camel


class CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class UserPublic(CamelModel):
    """Public projection of a user. Never carries the password hash or reset fields."""

    id: str
    first_name: str
    last_name: str
    email: str

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, from_attributes=True)


class LoginRequest(CamelModel):
    email: str
    password: str


class RegisterRequest(CamelModel):
    first_name: str
    last_name: str
    email: str
    password: str


class AuthResponse(CamelModel):
    user: UserPublic
    token: str


class VerifyResponse(CamelModel):
    valid: bool
    user_id: str
    email: str


class ForgotPasswordRequest(CamelModel):
    email: str


class ResetPasswordRequest(CamelModel):
    token: str
    password: str


class MessageResponse(BaseModel):
    message: str
