from datetime import datetime

from pydantic import BaseModel, Field


class TokenRecord(BaseModel):
    token: str
    created_at: datetime
    expires_at: datetime
    used: bool = False
    expired: bool = False
    gist_url: str | None = None
    used_at: datetime | None = None
    file_count: int | None = None
    file_names: list[str] | None = None
    contains_folders: bool | None = None


class TokenResponse(BaseModel):
    token: str
    expires_at: datetime
    upload_url: str


class ValidateResponse(BaseModel):
    valid: bool


class AuthRequest(BaseModel):
    password: str


class AuthResponse(BaseModel):
    authenticated: bool


class UploadResponse(BaseModel):
    success: bool
    gist_url: str = Field(serialization_alias="gistUrl")
