from .cache import CacheEntry, CacheStatusResponse
from .emotions import ResolveRequest, ResolveResponse, MatchRequest, SelectRequest, MoodUpdate
from .sessions import (
    StartSessionRequest,
    EndSessionRequest,
    RegisterRequestBody,
    CaptureRequest,
    SessionStatus,
)

__all__ = [
    "CacheEntry",
    "CacheStatusResponse",
    "ResolveRequest",
    "ResolveResponse",
    "MatchRequest",
    "SelectRequest",
    "MoodUpdate",
    "StartSessionRequest",
    "EndSessionRequest",
    "RegisterRequestBody",
    "CaptureRequest",
    "SessionStatus",
]
