from .connector import ClassifierConnector, ConnectorError, OpenAIConnector
from .display_coordinator import DisplayCoordinator, Selection
from .emotion_resolver import EmotionResolver, RateGate, Resolution
from .mood import Mood, MoodState
from .result_cache import ResultCache
from .semantic_matcher import SemanticMatcher
from .session_broker import (
    SessionBroker,
    InvalidSessionState,
    AlreadyActive,
    NoActiveSession,
    SessionMismatch,
)

__all__ = [
    "ClassifierConnector",
    "ConnectorError",
    "OpenAIConnector",
    "DisplayCoordinator",
    "Selection",
    "EmotionResolver",
    "RateGate",
    "Resolution",
    "Mood",
    "MoodState",
    "ResultCache",
    "SemanticMatcher",
    "SessionBroker",
    "InvalidSessionState",
    "AlreadyActive",
    "NoActiveSession",
    "SessionMismatch",
]
