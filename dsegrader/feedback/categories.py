"""Closed feedback category taxonomy and label normalization."""

from __future__ import annotations

from enum import Enum


class Category(str, Enum):
    GRAMMAR = "Grammar"
    SPELLING = "Spelling"
    WORD_CHOICE = "Word Choice"
    SENTENCE_FLOW = "Sentence Flow"
    CLARITY = "Clarity"
    STYLE = "Style"
    CONTENT_REQUIREMENT = "Content Requirement"
    RELEVANCE = "Relevance"
    IDEA_DEVELOPMENT = "Idea Development"
    ORGANIZATION = "Organization"
    OTHER = "Other"


class HighlightBucket(str, Enum):
    LANGUAGE = "language"
    ORGANIZATION = "organization"
    CONTENT = "content"


# Substring matching walks this list in order; the first hit wins.
PRIORITY_ORDER: tuple[Category, ...] = (
    Category.GRAMMAR,
    Category.SPELLING,
    Category.WORD_CHOICE,
    Category.SENTENCE_FLOW,
    Category.CLARITY,
    Category.STYLE,
    Category.CONTENT_REQUIREMENT,
    Category.RELEVANCE,
    Category.IDEA_DEVELOPMENT,
    Category.ORGANIZATION,
)

_LANGUAGE_CATEGORIES = {Category.GRAMMAR, Category.SPELLING, Category.WORD_CHOICE, Category.STYLE}
_ORGANIZATION_CATEGORIES = {Category.SENTENCE_FLOW, Category.ORGANIZATION, Category.CLARITY}


def _exact_keys(category: Category) -> set[str]:
    label = category.value.lower()
    return {label, label.replace(" ", ""), category.name.lower()}


_EXACT_LOOKUP: dict[str, Category] = {key: category for category in Category for key in _exact_keys(category)}


def normalize_category(raw_label: object) -> Category:
    """Map an arbitrary label onto the closed category set.

    Never raises: unknown, blank or non-string labels normalize to ``Other``.
    """
    if isinstance(raw_label, Category):
        return raw_label
    if not isinstance(raw_label, str):
        return Category.OTHER

    label = raw_label.strip().lower()
    if not label:
        return Category.OTHER

    exact = _EXACT_LOOKUP.get(label)
    if exact is not None:
        return exact

    for category in PRIORITY_ORDER:
        known = category.value.lower()
        if label in known or known in label:
            return category
    return Category.OTHER


def highlight_bucket(category: Category) -> HighlightBucket:
    if category in _LANGUAGE_CATEGORIES:
        return HighlightBucket.LANGUAGE
    if category in _ORGANIZATION_CATEGORIES:
        return HighlightBucket.ORGANIZATION
    return HighlightBucket.CONTENT
