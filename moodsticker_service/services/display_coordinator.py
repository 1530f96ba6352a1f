import logging
import random
from dataclasses import dataclass, field
from typing import Optional

from .emotion_resolver import EmotionResolver
from .label_store import images_for_mood
from .mood import MoodSource
from .semantic_matcher import SemanticMatcher
from .session_broker import SessionBroker

logger = logging.getLogger(__name__)


@dataclass
class Selection:
    image_id: Optional[str]
    labels: list[str]
    outcome: str
    reason: Optional[str] = None
    candidates: list[str] = field(default_factory=list)
    used_mood_fallback: bool = False


class DisplayCoordinator:
    """Entry point for display producers.

    Wraps the session broker (exclusive sessions toggle incidental capture
    off and back on) and runs the text -> labels -> image pipeline. The
    actual rendering stays with the caller.
    """

    def __init__(self, broker: SessionBroker, resolver: EmotionResolver,
                 matcher: SemanticMatcher, mood_source: Optional[MoodSource] = None,
                 top_k: int = 3, rng: Optional[random.Random] = None):
        self.broker = broker
        self.resolver = resolver
        self.matcher = matcher
        self.mood_source = mood_source
        self.top_k = top_k
        self._rng = rng or random.Random()

    # ---- exclusive sessions ----

    def start_exclusive_session(self, owner_id: str) -> str:
        session_id = self.broker.start_session(owner_id)
        self.broker.disable_capture()
        logger.info("Exclusive session %s started for %s", session_id, owner_id)
        return session_id

    def end_exclusive_session(self, owner_id: str, session_id: str) -> bool:
        ended = self.broker.end_session(owner_id, session_id)
        if ended:
            self.broker.enable_capture()
            logger.info("Exclusive session %s ended", session_id)
        else:
            logger.warning("Failed to end exclusive session %s for %s", session_id, owner_id)
        return ended

    def register_display(self, session_id: str, description: str) -> str:
        return self.broker.register_request(session_id, description)

    def complete_display(self, request_id: str):
        self.broker.mark_complete(request_id)

    def should_capture(self) -> bool:
        """True when incidental display triggers may run."""
        return not self.broker.is_active() or self.broker.is_capture_enabled()

    # ---- selection ----

    def _mood_pick(self) -> Optional[str]:
        library = self.matcher.library
        if not library:
            return None
        pool = []
        if self.mood_source is not None:
            try:
                pool = images_for_mood(library, self.mood_source.current_mood())
            except Exception as e:
                logger.warning("Mood source failed during selection: %s", e)
        if not pool:
            pool = list(library)
        return self._rng.choice(pool)

    async def select_image(self, text: str) -> Selection:
        resolution = await self.resolver.resolve(text)
        candidates = await self.matcher.find_matches(resolution.labels, top_k=self.top_k)

        if candidates:
            image_id = self._rng.choice(candidates)
            used_mood_fallback = False
        else:
            image_id = self._mood_pick()
            used_mood_fallback = image_id is not None

        logger.info("Selected %s for %s (%s)", image_id, resolution.labels, resolution.outcome)
        return Selection(
            image_id=image_id,
            labels=resolution.labels,
            outcome=resolution.outcome,
            reason=resolution.reason,
            candidates=candidates,
            used_mood_fallback=used_mood_fallback,
        )
