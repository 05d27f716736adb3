"""
Context builder: turns dataset statistics and user context into the
provider-agnostic text block every prompt embeds.

Pure string construction. Missing user context falls back to explicit
defaults and missing statistics render as "N/A", so a provider always
receives a well-formed prompt.
"""

import json
from typing import Any, Dict, Iterable, Optional, Union

from .schemas import AnalysisRequest, DatasetSummary, UserContext


DEFAULT_INDUSTRY = "general"
DEFAULT_ROLE = "business_analyst"
DEFAULT_PLAN = "basic"
NOT_AVAILABLE = "N/A"

MAX_SAMPLE_ROWS = 3
MAX_SCHEMA_COLUMNS = 40


def _text(value: Optional[str], default: str) -> str:
    if value is None:
        return default
    value = str(value).strip()
    return value or default


def resolve_user_context(user_context: Union[UserContext, Dict[str, Any], None]) -> UserContext:
    """Return a UserContext whose industry/role/plan_type are always filled in."""
    if user_context is None:
        user_context = UserContext()
    elif isinstance(user_context, dict):
        user_context = UserContext.model_validate(user_context)
    return UserContext(
        industry=_text(user_context.industry, DEFAULT_INDUSTRY),
        role=_text(user_context.role, DEFAULT_ROLE),
        plan_type=_text(user_context.plan_type, DEFAULT_PLAN),
    )


def _count(value: int) -> str:
    return str(value) if value else NOT_AVAILABLE


def _names(values: Iterable[str], limit: int) -> str:
    values = list(values)
    if not values:
        return NOT_AVAILABLE
    shown = values[:limit] if limit > 0 else values
    text = ", ".join(shown)
    if len(values) > len(shown):
        text += f" (+{len(values) - len(shown)} more)"
    return text


def _as_json(value: Any) -> str:
    if not value:
        return NOT_AVAILABLE
    return json.dumps(value, indent=2, sort_keys=True, default=str, ensure_ascii=False)


def _column_lines(file_data: DatasetSummary, limit: int) -> str:
    columns = file_data.columns or list(file_data.column_types)
    if not columns:
        return f"  - {NOT_AVAILABLE}"
    shown = columns[:limit] if limit > 0 else columns
    lines = []
    for col in shown:
        dtype = file_data.column_types.get(col, "unknown")
        missing = file_data.missing_values.get(col)
        if missing is None:
            lines.append(f"  - {col} ({dtype})")
        else:
            lines.append(f"  - {col} ({dtype}): {missing} missing")
    omitted = len(columns) - len(shown)
    if omitted:
        lines.append(f"  - ... ({omitted} more columns omitted)")
    return "\n".join(lines)


def build_context(
    file_data: DatasetSummary,
    file_name: str,
    user_context: Union[UserContext, Dict[str, Any], None] = None,
    *,
    max_sample_rows: int = MAX_SAMPLE_ROWS,
    max_columns: int = MAX_SCHEMA_COLUMNS,
) -> str:
    ctx = resolve_user_context(user_context)

    quality = file_data.data_quality
    quality_text = f"{quality:g}%" if quality else NOT_AVAILABLE
    samples = file_data.sample_rows[:max_sample_rows] if max_sample_rows > 0 else []

    return (
        f"File: {_text(file_name, 'dataset')}\n"
        f"Industry: {ctx.industry}\n"
        f"User Role: {ctx.role}\n"
        f"Plan: {ctx.plan_type}\n"
        "\n"
        "Data Overview:\n"
        f"- Records: {_count(file_data.row_count)}\n"
        f"- Columns: {_count(file_data.column_count)}\n"
        f"- Numeric Columns: {_names(file_data.numeric_columns, max_columns)}\n"
        f"- Categorical Columns: {_names(file_data.categorical_columns, max_columns)}\n"
        f"- Data Quality: {quality_text}\n"
        f"- Key Patterns: {_names(file_data.patterns, max_columns)}\n"
        "\n"
        f"Column Details:\n{_column_lines(file_data, max_columns)}\n"
        "\n"
        f"Sample Data (first {max_sample_rows} rows):\n{_as_json(samples)}\n"
        "\n"
        f"Statistics:\n{_as_json(file_data.summary_statistics)}\n"
    )


def build_request(
    file_data: Union[DatasetSummary, Dict[str, Any]],
    file_name: str,
    user_context: Union[UserContext, Dict[str, Any], None] = None,
) -> AnalysisRequest:
    """Validate caller input into an immutable AnalysisRequest. Malformed file_data raises ValidationError."""
    if not isinstance(file_data, DatasetSummary):
        file_data = DatasetSummary.model_validate(file_data)
    return AnalysisRequest(
        file_data=file_data,
        file_name=file_name,
        user_context=resolve_user_context(user_context),
    )
