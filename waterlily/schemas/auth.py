from datetime import datetime
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator


class SignUpRequest(BaseModel):
    """Body of POST /api/auth/signup."""

    model_config = ConfigDict(populate_by_name=True)

    email: str
    password: str = Field(..., min_length=6)
    display_name: Optional[str] = Field(default=None, alias="displayName")

    @field_validator("email")
    @classmethod
    def check_email(cls, v: str) -> str:
        v = v.strip()
        local, _, domain = v.partition("@")
        if not local or not domain:
            raise ValueError("email must contain '@'")
        return v

    @field_validator("password")
    @classmethod
    def check_password_length(cls, v: str) -> str:
        # bcrypt ignores anything past 72 bytes
        if len(v.encode("utf-8")) > 72:
            raise ValueError("password must be at most 72 bytes")
        return v


class SignInRequest(BaseModel):
    """Body of POST /api/auth/signin."""

    email: str
    password: str


class Token(BaseModel):
    """Issued ID token."""

    model_config = ConfigDict(populate_by_name=True)

    access_token: str
    token_type: str = "bearer"  # always "bearer"
    expires_at: datetime
    uid: str
    email: str
    display_name: Optional[str] = Field(default=None, alias="displayName")


class UserOut(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    uid: str
    email: str
    display_name: Optional[str] = Field(default=None, alias="displayName")
