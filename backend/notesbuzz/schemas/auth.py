"""Auth request/response schemas.

Fields default to empty strings; the credential store validates them so
that every failing field is reported in one 400 response.
"""
from pydantic import BaseModel


class SignupRequest(BaseModel):
    username: str = ""
    email: str = ""
    password: str = ""


class LoginRequest(BaseModel):
    username: str = ""
    password: str = ""


class MessageResponse(BaseModel):
    message: str
