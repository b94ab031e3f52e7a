"""
Custom vocabulary: recognition hints from a JSON file.

Format:
    {"description": "...", "usage": "...",
     "categories": {"sales": {"description": "...", "words": ["quote", "upsell"]}}}

A missing, unreadable or invalid file means "no hints": both loaders return [] and log why.
"""
from __future__ import annotations

import logging
from pathlib import Path

from pydantic import BaseModel, ValidationError

from callscribe.config import get_settings

logger = logging.getLogger(__name__)


class VocabularyCategory(BaseModel):
    description: str | None = None
    words: list[str]


class VocabularyFile(BaseModel):
    description: str | None = None
    usage: str | None = None
    categories: dict[str, VocabularyCategory]


def _read(path: str | None) -> VocabularyFile | None:
    path = path or get_settings().VOCABULARY_PATH
    try:
        raw = Path(path).read_text(encoding="utf-8")
    except (OSError, UnicodeDecodeError) as e:
        logger.info("Vocabulary file not available (%s): %s", path, e)
        return None
    try:
        return VocabularyFile.model_validate_json(raw)
    except ValidationError as e:
        logger.warning("Vocabulary file %s is invalid: %s", path, e.errors()[:3])
        return None


def load_all(path: str | None = None) -> list[str]:
    """Words of every category, in file order."""
    file = _read(path)
    if file is None:
        return []
    return [word for category in file.categories.values() for word in category.words]


def load(category: str, path: str | None = None) -> list[str]:
    """Words of one category; [] when the category does not exist."""
    file = _read(path)
    if file is None:
        return []
    found = file.categories.get(category)
    if found is None:
        logger.debug("Vocabulary category %r not found", category)
        return []
    return list(found.words)


def load_hints(path: str | None = None, category: str | None = None) -> list[str]:
    """Hints for a session: VOCABULARY_CATEGORY when set, else all categories."""
    category = category if category is not None else get_settings().VOCABULARY_CATEGORY
    return load(category, path) if category else load_all(path)


def list_categories(path: str | None = None) -> list[str]:
    file = _read(path)
    return list(file.categories) if file is not None else []
