from __future__ import annotations

import json
import logging
import math
import re
from collections.abc import Mapping
from typing import Any, Callable, Iterable, TypeVar

from pydantic import BaseModel

from resumind.normalize import aliases
from resumind.normalize.aliases import Accessor, first_defined
from resumind.schemas.feedback import ATSFeedback, CategoryFeedback, Feedback, Tip

logger = logging.getLogger(__name__)

T = TypeVar("T")

_OUT_OF_100_RE = re.compile(r"^\s*(-?\d+(?:\.\d+)?)\s*/\s*100\s*$")


def extract_json_from_text(text: str) -> Any | None:
    first = text.find("{")
    last = text.rfind("}")
    if first == -1 or last == -1 or last <= first:
        return None
    try:
        return json.loads(text[first : last + 1])
    except (ValueError, RecursionError):
        return None


def recover_object(raw: Any) -> Any | None:
    """Turn raw model output into a structured object, or ``None`` if there is nothing."""
    if raw is None:
        return None
    if isinstance(raw, BaseModel):
        return raw.model_dump(mode="json", by_alias=True, exclude_none=True)
    if isinstance(raw, (bytes, bytearray)):
        raw = bytes(raw).decode("utf-8", errors="replace")
    if not isinstance(raw, str):
        return raw
    if not raw.strip():
        return None
    try:
        return json.loads(raw)
    except (ValueError, RecursionError):
        pass
    embedded = extract_json_from_text(raw)
    if embedded is not None:
        return embedded
    return {"rawText": raw}


def coerce_score(value: Any) -> float | None:
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, int):
        # huge JSON integers overflow float(); anything past the range clamps the same way
        number = float(max(-1000, min(1000, value)))
    elif isinstance(value, float):
        number = value
    elif isinstance(value, str):
        text = value.strip()
        match = _OUT_OF_100_RE.match(text)
        if match:
            text = match.group(1)
        elif text.endswith("%"):
            text = text[:-1].strip()
        try:
            number = float(text)
        except ValueError:
            return None
    else:
        return None
    if not math.isfinite(number):
        return None
    return number


def clamp_score(value: float) -> float:
    return max(0.0, min(100.0, value))


def _first_score(source: Any, accessors: Iterable[Accessor]) -> float | None:
    for accessor in accessors:
        score = coerce_score(first_defined(source, (accessor,)))
        if score is not None:
            return clamp_score(score)
    return None


def _clean_text(value: Any) -> str:
    if value is None or isinstance(value, (Mapping, list, tuple)):
        return ""
    return str(value).strip()


def _first_text(source: Any, accessors: Iterable[Accessor]) -> str:
    for accessor in accessors:
        text = _clean_text(first_defined(source, (accessor,)))
        if text:
            return text
    return ""


def _to_tip(entry: Any, default_kind: str = "improve") -> Tip | None:
    if isinstance(entry, Mapping):
        text = _first_text(entry, aliases.TIP_TEXT_ALIASES)
        kind_raw = _clean_text(first_defined(entry, aliases.TIP_KIND_ALIASES)).lower()
        if kind_raw:
            kind = "good" if kind_raw == "good" else "improve"
        else:
            kind = default_kind
        explanation = _first_text(entry, aliases.TIP_EXPLANATION_ALIASES) or None
    else:
        text = _clean_text(entry)
        kind = default_kind
        explanation = None
    if not text:
        return None
    return Tip(kind=kind, text=text, explanation=explanation)


def _to_tips(entries: Any, default_kind: str = "improve") -> list[Tip]:
    if entries is None:
        return []
    if isinstance(entries, (str, Mapping)):
        entries = [entries]
    if not isinstance(entries, (list, tuple)):
        return []
    tips: list[Tip] = []
    for entry in entries:
        tip = _to_tip(entry, default_kind)
        if tip is not None:
            tips.append(tip)
    return tips


def _category(raw: Mapping[str, Any], name: str) -> CategoryFeedback:
    source = first_defined(raw, aliases.CATEGORY_ALIASES[name])
    if source is None:
        return CategoryFeedback()
    if isinstance(source, (list, tuple)):
        return CategoryFeedback(tips=_to_tips(source))
    if not isinstance(source, Mapping):
        score = coerce_score(source)
        return CategoryFeedback(score=clamp_score(score) if score is not None else 0.0)
    score = _first_score(source, aliases.SCORE_ALIASES)
    tips = _to_tips(first_defined(source, aliases.TIPS_ALIASES))
    return CategoryFeedback(score=score if score is not None else 0.0, tips=tips)


def _fallback_content_tips(raw: Mapping[str, Any]) -> list[Tip]:
    tips = _to_tips(first_defined(raw, aliases.STRENGTH_ALIASES), default_kind="good")
    tips += _to_tips(first_defined(raw, aliases.WEAKNESS_ALIASES))
    tips += _to_tips(first_defined(raw, aliases.IMPROVEMENT_ALIASES))
    return tips


def _ats(raw: Mapping[str, Any]) -> ATSFeedback:
    score = _first_score(raw, aliases.ATS_SCORE_ALIASES)
    suggestions = _to_tips(first_defined(raw, aliases.ATS_SUGGESTION_ALIASES))
    missing = first_defined(raw, aliases.MISSING_KEYWORD_ALIASES)
    if isinstance(missing, (list, tuple)):
        for keyword in missing:
            text = _clean_text(keyword)
            if text:
                suggestions.append(Tip(kind="improve", text=f"Add keyword: {text}"))
    return ATSFeedback(score=score if score is not None else 0.0, suggestions=suggestions)


def mean_rating(scores: Iterable[float]) -> float:
    values = list(scores)
    if not values:
        return 0.0
    mean = sum(values) / len(values)
    return math.floor(mean * 10 + 0.5) / 10


def _guarded(field: str, build: Callable[[], T], default: Callable[[], T]) -> T:
    try:
        return build()
    except Exception as exc:  # noqa: BLE001 - one bad field falls back alone
        logger.warning("feedback_field_degraded field=%s: %s", field, exc)
        return default()


def normalize_feedback(raw: Any) -> Feedback | None:
    """Reconstruct canonical feedback from whatever the model returned.

    Returns ``None`` only when ``raw`` carries no content at all. Every other
    input, however malformed, yields a fully defaulted ``Feedback`` with all
    scores clamped to [0, 100] and blank tips removed. A field that cannot be
    read falls back to its default without disturbing its siblings.
    """
    try:
        recovered = recover_object(raw)
        if recovered is None:
            return None
        if not isinstance(recovered, Mapping):
            recovered = {}

        categories = {
            name: _guarded(name, lambda name=name: _category(recovered, name), CategoryFeedback)
            for name in aliases.CATEGORY_ALIASES
        }
        if not categories["content"].tips:
            categories["content"].tips = _guarded("content.tips", lambda: _fallback_content_tips(recovered), list)

        overall = _guarded("overallRating", lambda: _first_score(recovered, aliases.OVERALL_ALIASES), lambda: None)
        if overall is None:
            overall = mean_rating(category.score for category in categories.values())

        return Feedback(
            overall_rating=clamp_score(overall),
            ats=_guarded("ats", lambda: _ats(recovered), ATSFeedback),
            tone_and_style=categories["toneAndStyle"],
            content=categories["content"],
            structure=categories["structure"],
            skills=categories["skills"],
        )
    except Exception as exc:  # noqa: BLE001 - degrade to defaults, never raise to callers
        logger.warning("feedback_normalize_degraded: %s", exc)
        return Feedback(overall_rating=0.0)


def feedback_to_payload(feedback: Feedback) -> dict[str, Any]:
    return feedback.model_dump(mode="json", by_alias=True, exclude_none=True)
