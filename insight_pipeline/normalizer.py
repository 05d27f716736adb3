"""
Result normalizer.

Guarantees the AnalysisResult invariant whatever the origin of the result:
every recommendation has a unique non-empty id, every item carries `provider`
and `ai_model`, and every insight has a confidence score. Only missing values
are filled, so normalizing an already-normalized result changes nothing.
"""

import logging
import time
import uuid
from typing import Any, Dict, Iterable, List

from pydantic import ValidationError

from .schemas import AnalysisResult, Insight, Recommendation

logger = logging.getLogger(__name__)


def synthesize_id(provider: str) -> str:
    return f"{provider}-{int(time.time() * 1000)}-{uuid.uuid4().hex[:9]}"


# Identity is stamped by the adapter; a reply cannot set it for itself.
_IDENTITY_KEYS = frozenset({"provider", "ai_model", "aiModel"})


def _strip_identity(item: Any) -> Any:
    if not isinstance(item, dict):
        return item
    item = {k: v for k, v in item.items() if k not in _IDENTITY_KEYS}
    metadata = item.get("metadata")
    if isinstance(metadata, dict) and "fallback" in metadata:
        item["metadata"] = {k: v for k, v in metadata.items() if k != "fallback"}
    return item


def _validate_items(model, items: Iterable[Dict[str, Any]], kind: str) -> list:
    out = []
    dropped = 0
    for item in items:
        try:
            out.append(model.model_validate(_strip_identity(item)))
        except ValidationError:
            dropped += 1
    if dropped:
        logger.warning("normalize.items_dropped kind=%s dropped=%d kept=%d", kind, dropped, len(out))
    if not out:
        raise ValueError(f"No valid {kind} in provider reply")
    return out


def coerce_insights(items: Iterable[Dict[str, Any]]) -> List[Insight]:
    return _validate_items(Insight, items, "insights")


def coerce_recommendations(items: Iterable[Dict[str, Any]]) -> List[Recommendation]:
    return _validate_items(Recommendation, items, "recommendations")


def normalize(
    result: AnalysisResult,
    *,
    provider: str,
    ai_model: str,
    default_confidence: float,
) -> AnalysisResult:
    insights = []
    for insight in result.insights:
        update: Dict[str, Any] = {}
        if not insight.provider:
            update["provider"] = provider
        if not insight.ai_model:
            update["ai_model"] = ai_model
        if insight.confidence_score is None:
            update["confidence_score"] = default_confidence
        insights.append(insight.model_copy(update=update) if update else insight)

    recommendations = []
    seen_ids = set()
    for rec in result.recommendations:
        update = {}
        rec_id = rec.id or synthesize_id(provider)
        if rec_id in seen_ids:
            suffix = 2
            while f"{rec_id}-{suffix}" in seen_ids:
                suffix += 1
            rec_id = f"{rec_id}-{suffix}"
        seen_ids.add(rec_id)
        if rec_id != rec.id:
            update["id"] = rec_id
        if not rec.provider:
            update["provider"] = provider
        if not rec.ai_model:
            update["ai_model"] = ai_model
        recommendations.append(rec.model_copy(update=update) if update else rec)

    return AnalysisResult(
        summary=result.summary,
        insights=insights,
        recommendations=recommendations,
    )
