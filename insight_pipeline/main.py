"""
FastAPI entrypoint.

Consolidates all input handling for one analysis:
- Loads the CSV from an upload or a URL (row-limited)
- Profiles it into a DatasetSummary
- Picks one provider (explicit, DEFAULT_PROVIDER, or by plan tier)
- Runs the orchestrator with caller-side retries and returns the normalized result
"""

import os
import logging
import time
from dotenv import load_dotenv, find_dotenv

# Load environment variables from .env file (optional).
# Some editors save .env as UTF-16; support both UTF-8 and UTF-16.
_dotenv_path = find_dotenv(usecwd=True) or None
if _dotenv_path:
    try:
        load_dotenv(_dotenv_path)
    except UnicodeError:
        load_dotenv(_dotenv_path, encoding="utf-16")
else:
    load_dotenv()

LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO").upper()
logging.basicConfig(
    level=getattr(logging, LOG_LEVEL, logging.INFO),
    format='%(asctime)s - %(name)s - %(levelname)s - %(message)s',
    datefmt='%Y-%m-%d %H:%M:%S'
)
logger = logging.getLogger(__name__)
logger.info("Insight pipeline starting with LOG_LEVEL=%s", LOG_LEVEL)

from fastapi import FastAPI, UploadFile, File, Form, HTTPException
from fastapi import Request
from typing import Optional
import httpx
import io
import pandas as pd

from .analyzer import AnalysisOrchestrator, analyze_with_retries
from .config import PipelineSettings
from .profiling import summarize_dataframe
from .providers import ADAPTERS, build_adapter, providers_for_plan, select_provider
from .schemas import AnalysisResponse, UserContext

SETTINGS = PipelineSettings.from_env()
URL_FETCH_TIMEOUT = float(os.getenv("URL_FETCH_TIMEOUT", "30"))

app = FastAPI(title="Insight Pipeline")


@app.get("/")
def root():
    return {"ok": True, "service": "insight_pipeline"}


@app.get("/healthz")
def healthz():
    return {"ok": True}


@app.get("/providers")
def list_providers(plan_type: Optional[str] = None):
    return {
        "configured": [name for name in ADAPTERS if name in SETTINGS.providers and SETTINGS.provider(name).configured],
        "plan_order": list(providers_for_plan(plan_type)),
        "selected": select_provider(plan_type, SETTINGS),
    }


def _read_csv(data: bytes) -> pd.DataFrame:
    """Parse CSV bytes into a DataFrame with row limit."""
    df = pd.read_csv(io.BytesIO(data))
    if len(df) > SETTINGS.row_limit:
        df = df.head(SETTINGS.row_limit)
    return df


async def _load_csv_from_url(url: str) -> pd.DataFrame:
    async with httpx.AsyncClient(timeout=URL_FETCH_TIMEOUT) as client:
        response = await client.get(url)
        response.raise_for_status()
        return _read_csv(response.content)


def _extract_filename_from_url(url: str) -> str:
    filename = url.split("/")[-1].split("?")[0]
    return filename or "dataset.csv"


@app.post("/analyze", response_model=AnalysisResponse, response_model_by_alias=False)
async def analyze_endpoint(
    request: Request,
    file: Optional[UploadFile] = File(None),
    file_url: Optional[str] = Form(None),
    industry: Optional[str] = Form(None),
    role: Optional[str] = Form(None),
    plan_type: Optional[str] = Form(None),
    provider: Optional[str] = Form(None),
):
    session_id = request.headers.get("x-session-id")
    logger.info(
        "analyze.request session_id=%s has_file=%s has_url=%s plan=%s provider=%s",
        session_id,
        file is not None,
        bool(file_url),
        plan_type,
        provider,
    )

    if file is None and not file_url:
        raise HTTPException(status_code=400, detail="A CSV file must be uploaded or a file_url provided.")

    if file is not None:
        file_name = getattr(file, "filename", None) or "uploaded.csv"
        try:
            df = _read_csv(await file.read())
        except Exception as e:
            raise HTTPException(status_code=400, detail=f"Error reading uploaded CSV file: {e}")
    else:
        file_name = _extract_filename_from_url(file_url)
        try:
            df = await _load_csv_from_url(file_url)
        except Exception as e:
            raise HTTPException(status_code=400, detail=f"Error loading CSV from URL: {e}")

    try:
        provider_name = select_provider(plan_type, SETTINGS, requested=provider)
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))

    file_data = summarize_dataframe(df, sample_rows=SETTINGS.max_sample_rows)
    user_context = UserContext(industry=industry, role=role, plan_type=plan_type)
    orchestrator = AnalysisOrchestrator(build_adapter(provider_name, SETTINGS.provider(provider_name)))

    t0 = time.monotonic()
    try:
        outcome = await analyze_with_retries(
            orchestrator,
            file_data,
            file_name,
            user_context,
            max_retries=SETTINGS.max_retries,
        )
    except Exception as e:
        logger.error("analyze.unexpected_error session_id=%s", session_id, exc_info=True)
        raise HTTPException(status_code=500, detail=str(e))
    elapsed_ms = int((time.monotonic() - t0) * 1000)

    result = outcome.result
    logger.info(
        "analyze.response session_id=%s provider=%s fallback=%s degraded=%s elapsed_ms=%d",
        session_id,
        outcome.provider,
        outcome.used_fallback,
        ",".join(outcome.degraded_fields) or "-",
        elapsed_ms,
    )

    return AnalysisResponse(
        file_name=file_name,
        summary=result.summary,
        insights=result.insights,
        recommendations=result.recommendations,
        provider=outcome.provider,
        ai_model=outcome.ai_model,
        fallback=outcome.used_fallback,
        processing_time_ms=elapsed_ms,
    )
