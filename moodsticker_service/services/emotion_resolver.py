import logging
import re
import threading
from dataclasses import dataclass
from datetime import datetime
from typing import Optional

from ..clock import Clock, elapsed_ms, utcnow
from .connector import ClassifierConnector, ConnectorError
from .mood import MoodSource, fallback_labels
from .result_cache import ResultCache

logger = logging.getLogger(__name__)

MAX_LABELS = 3

# ASCII and CJK list separators
_LABEL_SPLIT = re.compile(r"[,;\n，、；]")

OUTCOME_CACHE = "cache"
OUTCOME_CLASSIFIED = "classified"
OUTCOME_FALLBACK = "fallback"

REASON_RATE_LIMITED = "rate_limited"
REASON_CONNECTOR_ERROR = "connector_error"
REASON_EMPTY_RESPONSE = "empty_response"
REASON_NO_CONNECTOR = "no_connector"


@dataclass(frozen=True)
class Resolution:
    labels: list[str]
    outcome: str
    reason: Optional[str] = None

    @property
    def used_fallback(self) -> bool:
        return self.outcome == OUTCOME_FALLBACK


class RateGate:
    """Minimum interval between classifier calls.

    Only the most recent call matters; bursts are not smoothed. The
    check and the timestamp update happen under one lock, so two
    concurrent resolutions cannot both pass inside one interval.
    """

    def __init__(self, min_interval_ms: int, clock: Clock = utcnow):
        self.min_interval_ms = min_interval_ms
        self._clock = clock
        self._lock = threading.Lock()
        self._last_call: Optional[datetime] = None

    def try_acquire(self) -> bool:
        with self._lock:
            now = self._clock()
            if self._last_call is not None and elapsed_ms(self._last_call, now) < self.min_interval_ms:
                return False
            self._last_call = now
            return True

    def ms_until_open(self) -> float:
        with self._lock:
            if self._last_call is None:
                return 0.0
            return max(0.0, self.min_interval_ms - elapsed_ms(self._last_call, self._clock()))


def parse_labels(response: Optional[str], limit: int = MAX_LABELS) -> list[str]:
    """Split a classifier reply into at most ``limit`` trimmed labels."""
    if not response or not response.strip():
        return []
    labels = []
    for part in _LABEL_SPLIT.split(response):
        part = part.strip().strip(".。!！\"'")
        if part:
            labels.append(part)
        if len(labels) == limit:
            break
    return labels


def build_prompt(text: str, allowed_labels: Optional[list[str]] = None) -> str:
    if not allowed_labels:
        return text
    return (
        "Choose 1-3 labels from the list below that best match the emotional tone of "
        "the text. Use only labels from the list, separated by commas, and return "
        "nothing else.\n\n"
        f"Available labels: {', '.join(allowed_labels)}\n\n"
        f"Text: {text}"
    )


class EmotionResolver:
    """Turns free text into 1-3 emotion labels.

    cache -> rate gate -> classifier -> parse, with the mood fallback on
    every failure path. Only classifier results are cached; fallback labels
    never are, so the text gets classified for real on a later call.
    """

    def __init__(self, cache: ResultCache, connector: Optional[ClassifierConnector],
                 mood_source: Optional[MoodSource], settings,
                 allowed_labels: Optional[list[str]] = None, clock: Clock = utcnow):
        self.cache = cache
        self.connector = connector
        self.mood_source = mood_source
        self.settings = settings
        self.allowed_labels = allowed_labels or []
        self.gate = RateGate(settings.min_request_interval_ms, clock=clock)

    def _fallback(self, reason: str) -> Resolution:
        labels = fallback_labels(self.mood_source)
        logger.info("Using fallback labels %s (%s)", labels, reason)
        return Resolution(labels=labels, outcome=OUTCOME_FALLBACK, reason=reason)

    def _filter_allowed(self, labels: list[str]) -> list[str]:
        if not (self.settings.strict_label_matching and self.allowed_labels):
            return labels
        allowed = {label.casefold(): label for label in self.allowed_labels}
        kept = []
        for label in labels:
            canonical = allowed.get(label.casefold())
            if canonical is None:
                logger.debug("Label %r is not in the allowed list, ignored", label)
            elif canonical not in kept:
                kept.append(canonical)
        return kept

    async def resolve(self, text: str) -> Resolution:
        if not isinstance(text, str):
            raise TypeError(f"text must be a str, got {type(text).__name__}")

        self.cache.check_version_and_clear_if_needed(self.settings.labels_version)

        cached, found = self.cache.get(text)
        if found:
            return Resolution(labels=cached, outcome=OUTCOME_CACHE)

        if self.connector is None:
            return self._fallback(REASON_NO_CONNECTOR)

        if not self.gate.try_acquire():
            logger.debug("Rate limited, %.0fms until next classifier call", self.gate.ms_until_open())
            return self._fallback(REASON_RATE_LIMITED)

        prompt = build_prompt(text.strip(), self.allowed_labels)
        logger.debug("Classifier prompt (%d chars): %s", len(prompt), prompt)
        try:
            response = await self.connector.classify(prompt, self.allowed_labels or None)
        except ConnectorError as e:
            logger.warning("Classifier call failed: %s", e)
            return self._fallback(REASON_CONNECTOR_ERROR)

        labels = self._filter_allowed(parse_labels(response))
        if not labels:
            return self._fallback(REASON_EMPTY_RESPONSE)

        self.cache.put(text, labels)
        logger.info("Resolved %r -> %s", text, labels)
        return Resolution(labels=labels, outcome=OUTCOME_CLASSIFIED)
