import enum
import logging
import threading
from typing import Protocol

logger = logging.getLogger(__name__)


class Mood(str, enum.Enum):
    HAPPY = "happy"
    NORMAL = "normal"
    POOR_CONDITION = "poor_condition"
    ILL = "ill"


DEFAULT_FALLBACK = ["calm"]

FALLBACK_LABELS: dict[Mood, list[str]] = {
    Mood.HAPPY: ["happy", "excited"],
    Mood.NORMAL: ["calm", "normal"],
    Mood.POOR_CONDITION: ["tired", "frustrated"],
    Mood.ILL: ["sick", "uncomfortable"],
}

# label-store tags that name a mood category rather than an emotion
MOOD_CATEGORY_TAGS: dict[str, Mood] = {
    "happy": Mood.HAPPY,
    "normal": Mood.NORMAL,
    "poor": Mood.POOR_CONDITION,
    "ill": Mood.ILL,
}


class MoodSource(Protocol):
    def current_mood(self) -> Mood: ...


class MoodState:
    """Settable mood holder, updated by the host through the API."""

    def __init__(self, mood: Mood = Mood.NORMAL):
        self._lock = threading.Lock()
        self._mood = mood

    def current_mood(self) -> Mood:
        with self._lock:
            return self._mood

    def set(self, mood: Mood | str):
        with self._lock:
            self._mood = Mood(mood)
        logger.info("Mood set to %s", self._mood.value)


def fallback_labels(source: MoodSource | None) -> list[str]:
    """Fixed labels for the current mood. Never raises."""
    if source is None:
        return list(DEFAULT_FALLBACK)
    try:
        mood = source.current_mood()
    except Exception as e:
        logger.warning("Mood source failed, using default fallback: %s", e)
        return list(DEFAULT_FALLBACK)
    return list(FALLBACK_LABELS.get(mood, DEFAULT_FALLBACK))
