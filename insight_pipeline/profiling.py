"""
DataFrame profiling: produces the DatasetSummary (`fileData`) the pipeline consumes.
"""

import logging
import math
from typing import Any, Dict, List

import pandas as pd

from .schemas import DatasetSummary

logger = logging.getLogger(__name__)

MAX_STAT_COLUMNS = 5
MAX_CATEGORY_COLUMNS = 3
MAX_SAMPLE_ROWS = 10


def _safe_serialize(obj: Any) -> Any:
    """Convert pandas/numpy types to native Python types for JSON serialization."""
    if obj is pd.NaT:
        return None
    if isinstance(obj, float):
        return None if math.isnan(obj) or math.isinf(obj) else obj
    if isinstance(obj, (int, str, bool)) or obj is None:
        return obj
    try:
        import numpy as np
        if isinstance(obj, (np.integer, np.floating, np.bool_)):
            return _safe_serialize(obj.item())
    except Exception:
        pass
    if isinstance(obj, dict):
        return {str(_safe_serialize(k)): _safe_serialize(v) for k, v in obj.items()}
    if isinstance(obj, (list, tuple)):
        return [_safe_serialize(x) for x in obj]
    return str(obj)


def _patterns(completeness: float, numeric: List[str], categorical: List[str]) -> List[str]:
    patterns = []
    if completeness > 95:
        patterns.append("Excellent data completeness")
    elif completeness > 80:
        patterns.append("Good data quality")
    else:
        patterns.append("Data quality needs improvement")

    if len(numeric) > len(categorical):
        patterns.append("Predominantly numerical data")
    else:
        patterns.append("Rich categorical data")
    return patterns


def summarize_dataframe(df: pd.DataFrame, *, sample_rows: int = MAX_SAMPLE_ROWS) -> DatasetSummary:
    num_rows, num_cols = df.shape
    columns = [str(c) for c in df.columns]
    if num_rows == 0 or num_cols == 0:
        return DatasetSummary(row_count=num_rows, column_count=num_cols, columns=columns)

    numeric_cols = [str(c) for c in df.select_dtypes(include="number").columns]
    categorical_cols = [c for c in columns if c not in numeric_cols]
    missing = {str(c): int(n) for c, n in df.isna().sum().items()}

    total_cells = num_rows * num_cols
    completeness = 100.0 * (total_cells - sum(missing.values())) / total_cells

    stats: Dict[str, Any] = {
        "total_rows": num_rows,
        "total_columns": num_cols,
        "numeric_columns": len(numeric_cols),
        "categorical_columns": len(categorical_cols),
    }
    numeric_stats = {}
    for col in numeric_cols[:MAX_STAT_COLUMNS]:
        series = df[col].dropna()
        if series.empty:
            continue
        numeric_stats[col] = {
            "min": round(float(series.min()), 4),
            "max": round(float(series.max()), 4),
            "mean": round(float(series.mean()), 4),
        }
    if numeric_stats:
        stats["numeric"] = numeric_stats

    top_values = {}
    for col in categorical_cols[:MAX_CATEGORY_COLUMNS]:
        try:
            counts = df[col].value_counts().head(5)
            top_values[col] = {str(v): int(c) for v, c in zip(counts.index, counts.values)}
        except Exception:
            logger.debug("profile.top_values_failed column=%s", col, exc_info=True)
    if top_values:
        stats["top_values"] = top_values

    sample = _safe_serialize(df.head(sample_rows).to_dict(orient="records"))

    summary = DatasetSummary(
        row_count=num_rows,
        column_count=num_cols,
        columns=columns,
        column_types={str(c): str(t) for c, t in df.dtypes.items()},
        numeric_columns=numeric_cols,
        categorical_columns=categorical_cols,
        missing_values=missing,
        sample_rows=sample,
        summary_statistics=_safe_serialize(stats),
        data_quality=round(completeness, 1),
        patterns=_patterns(completeness, numeric_cols, categorical_cols),
    )
    logger.info(
        "profile.done rows=%d cols=%d numeric=%d quality=%.1f",
        num_rows,
        num_cols,
        len(numeric_cols),
        completeness,
    )
    return summary
