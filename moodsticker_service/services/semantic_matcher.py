import logging
import math
from typing import Optional

from .connector import ClassifierConnector, ConnectorError
from .label_store import parse_label_store

logger = logging.getLogger(__name__)


def cosine_similarity(a: list[float], b: list[float]) -> float:
    """Cosine of the angle between a and b; 0.0 for zero vectors or mismatched lengths."""
    if len(a) != len(b) or not a:
        return 0.0
    dot = 0.0
    norm_a = 0.0
    norm_b = 0.0
    for x, y in zip(a, b):
        dot += x * y
        norm_a += x * x
        norm_b += y * y
    if norm_a == 0.0 or norm_b == 0.0:
        return 0.0
    return dot / (math.sqrt(norm_a) * math.sqrt(norm_b))


class SemanticMatcher:
    """Ranks labeled images against emotion labels by embedding similarity.

    Each distinct label is embedded once through the connector and kept for
    the lifetime of the matcher. An image scores the best cosine similarity
    between any of its labels and any query label, so one strong tag is not
    diluted by weak ones.
    """

    def __init__(self, connector: Optional[ClassifierConnector]):
        self.connector = connector
        self._library: dict[str, list[str]] = {}
        self._embeddings: dict[str, list[float]] = {}
        self._failed: set[str] = set()

    @property
    def library(self) -> dict[str, list[str]]:
        return self._library

    @property
    def embedding_count(self) -> int:
        return len(self._embeddings)

    def load_library(self, descriptors: dict[str, list[str]]):
        """Replace the image library. Labels are normalized, empty images dropped."""
        self._library = parse_label_store(descriptors)
        logger.info("Image library loaded: %d images", len(self._library))

    async def _embedding(self, label: str, retry_failed: bool = True) -> Optional[list[float]]:
        cached = self._embeddings.get(label)
        if cached is not None:
            return cached
        if self.connector is None or (not retry_failed and label in self._failed):
            return None
        try:
            vector = await self.connector.embed(label)
        except ConnectorError as e:
            logger.warning("Failed to compute embedding for %r: %s", label, e)
            self._failed.add(label)
            return None
        self._failed.discard(label)
        self._embeddings[label] = vector
        return vector

    async def precompute_embeddings(self) -> int:
        """Embed every distinct library label not embedded yet. Returns the number added."""
        labels = list(dict.fromkeys(
            label for image_labels in self._library.values() for label in image_labels
        ))
        before = len(self._embeddings)
        logger.info("Precomputing embeddings for %d unique labels", len(labels))
        for label in labels:
            await self._embedding(label)
        added = len(self._embeddings) - before
        logger.info("Precomputed %d label embeddings (%d total)", added, len(self._embeddings))
        return added

    async def match_scores(self, labels: list[str]) -> list[tuple[str, float]]:
        """All library images with their score, best first."""
        if not self._library:
            logger.debug("No image library loaded")
            return []

        query_vectors = []
        for label in dict.fromkeys(l.strip().lower() for l in labels if l and l.strip()):
            vector = await self._embedding(label)
            if vector is not None:
                query_vectors.append(vector)
        if not query_vectors:
            return []

        scores = []
        embedded_any = False
        for image_id, image_labels in self._library.items():
            best = 0.0
            for label in image_labels:
                # library labels that failed before are only retried by precompute
                label_vector = await self._embedding(label, retry_failed=False)
                if label_vector is None:
                    continue
                embedded_any = True
                for query_vector in query_vectors:
                    best = max(best, cosine_similarity(label_vector, query_vector))
            scores.append((image_id, best))

        if not embedded_any:
            logger.warning("No library label embeddings available, no semantic match")
            return []

        # sorted() is stable, so equal scores keep library order
        return sorted(scores, key=lambda item: item[1], reverse=True)

    async def find_matches(self, labels: list[str], top_k: int = 3) -> list[str]:
        ranked = await self.match_scores(labels)
        matches = [image_id for image_id, _ in ranked[:top_k]]
        logger.debug("Found %d matching images for %s", len(matches), labels)
        return matches
