from pydantic import BaseModel, Field
from typing import Optional, Literal


class ResolveRequest(BaseModel):
    text: str


class ResolveResponse(BaseModel):
    labels: list[str]
    outcome: Literal["cache", "classified", "fallback"]
    reason: Optional[str] = None


class MatchRequest(BaseModel):
    labels: list[str]
    top_k: int = Field(default=3, ge=1, le=50)


class SelectRequest(BaseModel):
    text: str


class MoodUpdate(BaseModel):
    mood: Literal["happy", "normal", "poor_condition", "ill"]
