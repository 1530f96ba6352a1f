from pydantic import BaseModel, Field
from typing import Optional


class StartSessionRequest(BaseModel):
    owner_id: str = Field(min_length=1)


class EndSessionRequest(BaseModel):
    owner_id: str
    session_id: str


class RegisterRequestBody(BaseModel):
    session_id: str
    description: str = ""


class CaptureRequest(BaseModel):
    enabled: bool


class SessionStatus(BaseModel):
    active: bool
    owner_id: Optional[str] = None
    session_id: Optional[str] = None
    capture_enabled: bool = True
