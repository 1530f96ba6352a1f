import json
import logging
from pathlib import Path
from typing import Optional

from .mood import MOOD_CATEGORY_TAGS, Mood

logger = logging.getLogger(__name__)

GENERAL_CATEGORY = "general"


def _clean_labels(labels) -> list[str]:
    cleaned = []
    for label in labels or []:
        if not isinstance(label, str):
            continue
        label = label.strip().lower()
        if label and label not in cleaned:
            cleaned.append(label)
    return cleaned


def parse_label_store(data) -> dict[str, list[str]]:
    """Normalize label store JSON into ``image_id -> labels``.

    Two layouts are accepted:
      {"images": [{"filename": "a.png", "labels": ["happy", "cat"]}, ...]}
      {"happy/a.png": ["happy", "cat"], ...}
    Images without any usable label are skipped.
    """
    library: dict[str, list[str]] = {}
    if isinstance(data, dict) and isinstance(data.get("images"), list):
        items = [
            (item.get("filename"), item.get("labels"))
            for item in data["images"]
            if isinstance(item, dict)
        ]
    elif isinstance(data, dict):
        items = list(data.items())
    else:
        return library

    for image_id, labels in items:
        if not isinstance(image_id, str) or not image_id.strip():
            continue
        cleaned = _clean_labels(labels)
        if cleaned:
            library[image_id] = cleaned
    return library


def load_label_store(path: Optional[str]) -> dict[str, list[str]]:
    if not path:
        return {}
    label_path = Path(path)
    if not label_path.exists():
        logger.warning("Label store not found: %s", path)
        return {}
    try:
        data = json.loads(label_path.read_text(encoding="utf-8"))
    except (OSError, ValueError) as e:
        logger.error("Error loading label store %s: %s", path, e)
        return {}
    library = parse_label_store(data)
    logger.info("Loaded %d labeled images from %s", len(library), path)
    return library


def load_allowed_labels(path: Optional[str]) -> list[str]:
    """Read an emotion label vocabulary file.

    Format: {"categories": {"joy": ["happy", ...], "people": {"family": [...]}}}
    where a category maps either to a list or to sub-categories of lists.
    """
    if not path:
        return []
    try:
        data = json.loads(Path(path).read_text(encoding="utf-8"))
    except (OSError, ValueError) as e:
        logger.error("Error loading emotion labels %s: %s", path, e)
        return []

    labels: list[str] = []
    categories = data.get("categories", {}) if isinstance(data, dict) else {}
    for value in categories.values():
        groups = value.values() if isinstance(value, dict) else [value]
        for group in groups:
            if isinstance(group, list):
                labels.extend(label.strip() for label in group if isinstance(label, str) and label.strip())
    logger.info("Loaded %d emotion labels from %s", len(labels), path)
    return list(dict.fromkeys(labels))


def collect_allowed_labels(library: dict[str, list[str]]) -> list[str]:
    """Sorted distinct image tags, excluding mood-category tags."""
    tags = {
        label
        for labels in library.values()
        for label in labels
        if label not in MOOD_CATEGORY_TAGS and label != GENERAL_CATEGORY
    }
    return sorted(tags)


def mood_category(labels: list[str]) -> str:
    for label in labels:
        if label.lower() in MOOD_CATEGORY_TAGS:
            return label.lower()
    return GENERAL_CATEGORY


def images_for_mood(library: dict[str, list[str]], mood: Mood) -> list[str]:
    """Image ids tagged with the category for ``mood``, in library order."""
    wanted = {tag for tag, m in MOOD_CATEGORY_TAGS.items() if m == mood}
    return [image_id for image_id, labels in library.items() if mood_category(labels) in wanted]
