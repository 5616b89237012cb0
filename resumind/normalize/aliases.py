"""Ordered accessor tables for pulling logical fields out of model replies.

Every logical field maps to a tuple of accessors tried in priority order; the
first one that yields a value other than ``None`` wins. Accessors are plain
callables ``(source) -> value | None`` so each table can be tested on its own.
"""

from __future__ import annotations

from collections.abc import Mapping
from typing import Any, Callable, Iterable

Accessor = Callable[[Any], Any]


def key(*path: str) -> Accessor:
    """Accessor that walks nested mappings along ``path``."""

    def _get(source: Any) -> Any:
        current = source
        for part in path:
            if not isinstance(current, Mapping):
                return None
            current = current.get(part)
            if current is None:
                return None
        return current

    _get.__name__ = "key_" + "_".join(path)
    return _get


def keys(*names: str) -> tuple[Accessor, ...]:
    return tuple(key(name) for name in names)


def first_defined(source: Any, accessors: Iterable[Accessor]) -> Any:
    for accessor in accessors:
        try:
            value = accessor(source)
        except Exception:  # noqa: BLE001 - a broken accessor counts as a miss
            continue
        if value is not None:
            return value
    return None


CATEGORY_CONTAINERS = ("categories", "sections", "feedback", "scores")


def _category(*names: str) -> tuple[Accessor, ...]:
    direct = keys(*names)
    nested = tuple(key(container, name) for container in CATEGORY_CONTAINERS for name in names)
    return direct + nested


CATEGORY_ALIASES: dict[str, tuple[Accessor, ...]] = {
    "toneAndStyle": _category(
        "toneAndStyle",
        "tone_and_style",
        "toneStyle",
        "tone_style",
        "tone",
        "style",
        "writingStyle",
        "writing_style",
    ),
    "content": _category("content", "contentQuality", "content_quality"),
    "structure": _category("structure", "format", "formatting", "layout"),
    "skills": _category("skills", "skill", "skillsMatch", "skills_match"),
}

SCORE_ALIASES: tuple[Accessor, ...] = keys(
    "score",
    "rating",
    "value",
    "points",
    "outOf100",
    "out_of_100",
    "scoreOutOf100",
    "score_out_of_100",
)

TIPS_ALIASES: tuple[Accessor, ...] = keys("tips", "suggestions", "feedback", "items")

TIP_TEXT_ALIASES: tuple[Accessor, ...] = keys("tip", "text", "title", "suggestion", "message")
TIP_KIND_ALIASES: tuple[Accessor, ...] = keys("kind", "type", "status")
TIP_EXPLANATION_ALIASES: tuple[Accessor, ...] = keys(
    "explanation", "details", "detail", "reason", "description"
)

OVERALL_ALIASES: tuple[Accessor, ...] = keys(
    "overallRating",
    "overall_rating",
    "overallScore",
    "overall_score",
    "overall",
    "score",
) + (key("summary", "score"), key("summary", "overall_rating"))

ATS_SCORE_ALIASES: tuple[Accessor, ...] = (
    key("ats", "score"),
    key("ats", "rating"),
    key("ATS", "score"),
    key("ats_compatibility"),
    key("atsCompatibility"),
    key("atsScore"),
    key("ats_score"),
)

ATS_SUGGESTION_ALIASES: tuple[Accessor, ...] = (
    key("ats", "suggestions"),
    key("ats", "tips"),
    key("ATS", "suggestions"),
    key("ATS", "tips"),
    key("ats_suggestions"),
    key("atsSuggestions"),
    key("ats_issues"),
    key("atsIssues"),
)

MISSING_KEYWORD_ALIASES: tuple[Accessor, ...] = (
    key("ats", "missing_keywords"),
    key("ats", "missingKeywords"),
    key("missing_keywords"),
    key("missingKeywords"),
)

STRENGTH_ALIASES: tuple[Accessor, ...] = keys("strengths")
WEAKNESS_ALIASES: tuple[Accessor, ...] = keys("weaknesses")
IMPROVEMENT_ALIASES: tuple[Accessor, ...] = keys(
    "specific_improvements", "specificImprovements", "recommendations"
)
