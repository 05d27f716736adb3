"""
Pydantic request/response models.

Rationale:
- One explicit contract (AnalysisResult) shared by every provider adapter and the fallback path.
- Snake_case fields, but camelCase keys are accepted on input because providers answer in either.
- Request- and result-side models are frozen: built once per request, never mutated.
"""

from typing import Any, Dict, List, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic.alias_generators import to_camel


_FROZEN = ConfigDict(
    frozen=True,
    alias_generator=to_camel,
    populate_by_name=True,
    extra="ignore",
)

Level = Literal["High", "Medium", "Low"]

# Insight types the prompts ask for. Anything else a provider invents is kept as-is.
INSIGHT_TYPES = ("summary", "trend", "anomaly", "correlation", "prediction", "recommendation", "quality")


class DatasetSummary(BaseModel):
    """Row/column statistics produced by the file parser (the `fileData` input)."""

    model_config = _FROZEN

    row_count: int = 0
    column_count: int = 0
    columns: List[str] = Field(default_factory=list)
    column_types: Dict[str, str] = Field(default_factory=dict)
    numeric_columns: List[str] = Field(default_factory=list)
    categorical_columns: List[str] = Field(default_factory=list)
    missing_values: Dict[str, int] = Field(default_factory=dict)
    sample_rows: List[Dict[str, Any]] = Field(default_factory=list)
    summary_statistics: Dict[str, Any] = Field(default_factory=dict)
    data_quality: Optional[float] = None
    patterns: List[str] = Field(default_factory=list)


class UserContext(BaseModel):
    model_config = _FROZEN

    industry: Optional[str] = None
    role: Optional[str] = None
    plan_type: Optional[str] = None


class AnalysisRequest(BaseModel):
    model_config = _FROZEN

    file_data: DatasetSummary
    file_name: str
    user_context: UserContext = Field(default_factory=UserContext)


class ParsedSections(BaseModel):
    """Raw text of each section marker; a missing marker leaves its field as None."""

    model_config = _FROZEN

    summary_text: Optional[str] = None
    insights_json_text: Optional[str] = None
    recommendations_json_text: Optional[str] = None


def _coerce_confidence(value: Any) -> Optional[float]:
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, str):
        value = value.strip().rstrip("%")
        try:
            value = float(value)
        except ValueError:
            return None
    if not isinstance(value, (int, float)):
        return None
    value = float(value)
    if value != value:  # NaN
        return None
    if 1.0 < value <= 100.0:
        value = value / 100.0
    if value < 0.0 or value > 1.0:
        return None
    return value


def _coerce_level(value: Any) -> str:
    if isinstance(value, str):
        v = value.strip().lower()
        for level in ("High", "Medium", "Low"):
            if v == level.lower():
                return level
    return "Medium"


class Insight(BaseModel):
    model_config = _FROZEN

    type: str = "general"
    title: str = "Analysis Insight"
    content: str = "No content available"
    confidence_score: Optional[float] = None
    metadata: Dict[str, Any] = Field(default_factory=dict)
    ai_model: Optional[str] = None
    provider: Optional[str] = None

    @field_validator("type", "title", "content", mode="before")
    @classmethod
    def _text_or_default(cls, value: Any, info):
        if value is None or (isinstance(value, str) and not value.strip()):
            return cls.model_fields[info.field_name].default
        return value if isinstance(value, str) else str(value)

    @field_validator("confidence_score", mode="before")
    @classmethod
    def _confidence(cls, value: Any):
        return _coerce_confidence(value)

    @field_validator("metadata", mode="before")
    @classmethod
    def _metadata(cls, value: Any):
        if value is None:
            return {}
        if isinstance(value, dict):
            return value
        return {"value": value}


class Recommendation(BaseModel):
    model_config = _FROZEN

    id: Optional[str] = None
    title: str = "Recommendation"
    description: str = ""
    impact: Level = "Medium"
    effort: Level = "Medium"
    category: str = "general"
    details: Optional[str] = None
    action_steps: Optional[List[str]] = None
    ai_model: Optional[str] = None
    provider: Optional[str] = None

    @field_validator("id", mode="before")
    @classmethod
    def _id(cls, value: Any):
        if value is None or isinstance(value, bool):
            return None
        value = str(value).strip()
        return value or None

    @field_validator("title", "description", "category", mode="before")
    @classmethod
    def _text_or_default(cls, value: Any, info):
        if value is None or (isinstance(value, str) and not value.strip()):
            return cls.model_fields[info.field_name].default
        return value if isinstance(value, str) else str(value)

    @field_validator("impact", "effort", mode="before")
    @classmethod
    def _level(cls, value: Any):
        return _coerce_level(value)

    @field_validator("action_steps", mode="before")
    @classmethod
    def _steps(cls, value: Any):
        if value is None:
            return None
        if isinstance(value, str):
            return [value] if value.strip() else None
        if isinstance(value, (list, tuple)):
            return [str(s) for s in value if s is not None]
        return None


class AnalysisResult(BaseModel):
    """The single contract every adapter and the fallback path produce."""

    model_config = _FROZEN

    summary: str
    insights: List[Insight] = Field(default_factory=list)
    recommendations: List[Recommendation] = Field(default_factory=list)

    @property
    def is_fallback(self) -> bool:
        """True when every insight and recommendation came from the fallback generator."""
        items = [i.metadata.get("fallback") is True for i in self.insights]
        items += [r.ai_model == "fallback" for r in self.recommendations]
        return bool(items) and all(items)


class AnalysisResponse(BaseModel):
    file_name: Optional[str] = None
    summary: str
    insights: List[Insight]
    recommendations: List[Recommendation]
    provider: str
    ai_model: Optional[str] = None
    fallback: bool = False
    processing_time_ms: Optional[int] = None
