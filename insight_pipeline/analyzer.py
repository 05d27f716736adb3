"""
Core orchestration / pipeline.

Flow (one request, one provider, one call):
1. IDLE -> REQUESTING: build the request and call the chosen adapter.
2. REQUESTING -> FAILED: the call raised ProviderError; go straight to the fallback result.
   REQUESTING -> PARSING: any reply, whatever its shape.
3. PARSING: sections degrade independently; when both insights and
   recommendations are unusable the fallback result is used instead.
4. NORMALIZING -> DONE: ids, provider/model tags and confidence defaults.

`analyze()` never raises for provider or parse failures. Cancellation is not
caught, so an abandoned request emits nothing. Retries are not done here;
`analyze_with_retries` is the helper callers use for that.
"""

import asyncio
import enum
import logging
import random
import time
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Tuple, Union

from .context import build_request
from .fallback import fallback
from .llm_client import ProviderAdapter, ProviderError
from .schemas import AnalysisResult, DatasetSummary, UserContext

logger = logging.getLogger(__name__)


class PipelineState(str, enum.Enum):
    IDLE = "idle"
    REQUESTING = "requesting"
    PARSING = "parsing"
    FAILED = "failed"
    NORMALIZING = "normalizing"
    DONE = "done"


@dataclass
class AnalysisOutcome:
    result: AnalysisResult
    provider: str
    ai_model: str
    states: List[PipelineState] = field(default_factory=list)
    error: Optional[ProviderError] = None
    degraded_fields: Tuple[str, ...] = ()

    @property
    def used_fallback(self) -> bool:
        return self.error is not None or self.result.is_fallback


class AnalysisOrchestrator:
    def __init__(self, adapter: ProviderAdapter, *, timeout: Optional[float] = None):
        if timeout is not None and timeout <= 0:
            raise ValueError(f"timeout must be positive, got {timeout}")
        self.adapter = adapter
        self.timeout = timeout

    async def run(
        self,
        file_data: Union[DatasetSummary, Dict[str, Any]],
        file_name: str,
        user_context: Union[UserContext, Dict[str, Any], None] = None,
        *,
        timeout: Optional[float] = None,
    ) -> AnalysisOutcome:
        adapter = self.adapter
        states = [PipelineState.IDLE]
        request = build_request(file_data, file_name, user_context)
        effective_timeout = timeout if timeout is not None else self.timeout

        states.append(PipelineState.REQUESTING)
        t0 = time.monotonic()
        try:
            raw_text = await adapter.fetch(request, timeout=effective_timeout)
        except ProviderError as e:
            states.append(PipelineState.FAILED)
            logger.warning(
                "analyze.provider_failed provider=%s error_class=%s transient=%s",
                adapter.name,
                e.error_class,
                e.transient,
            )
            result = fallback(request.file_data, adapter.name)
            error: Optional[ProviderError] = e
            degraded: Tuple[str, ...] = ("summary", "insights", "recommendations")
        else:
            states.append(PipelineState.PARSING)
            parsed = adapter.parse_reply(raw_text, request)
            error = None
            degraded = parsed.failed_fields
            if parsed.lists_failed:
                logger.warning("analyze.unparseable_reply provider=%s", adapter.name)
                kept_summary = None if "summary" in degraded else parsed.result.summary
                result = fallback(request.file_data, adapter.name, summary=kept_summary)
            else:
                result = parsed.result

        states.append(PipelineState.NORMALIZING)
        result = adapter.tag(result)
        states.append(PipelineState.DONE)

        logger.info(
            "analyze.done provider=%s model=%s insights=%d recommendations=%d degraded=%s elapsed_ms=%d",
            adapter.name,
            adapter.model,
            len(result.insights),
            len(result.recommendations),
            ",".join(degraded) or "-",
            int((time.monotonic() - t0) * 1000),
        )
        return AnalysisOutcome(
            result=result,
            provider=adapter.name,
            ai_model=adapter.model,
            states=states,
            error=error,
            degraded_fields=degraded,
        )

    async def analyze(
        self,
        file_data: Union[DatasetSummary, Dict[str, Any]],
        file_name: str,
        user_context: Union[UserContext, Dict[str, Any], None] = None,
        *,
        timeout: Optional[float] = None,
    ) -> AnalysisResult:
        outcome = await self.run(file_data, file_name, user_context, timeout=timeout)
        return outcome.result


async def analyze_with_retries(
    orchestrator: AnalysisOrchestrator,
    file_data: Union[DatasetSummary, Dict[str, Any]],
    file_name: str,
    user_context: Union[UserContext, Dict[str, Any], None] = None,
    *,
    max_retries: int = 0,
    timeout: Optional[float] = None,
) -> AnalysisOutcome:
    """Re-run the orchestrator while the outcome carries a transient provider error."""
    attempts = max(1, 1 + max(0, int(max_retries)))
    outcome = None

    for attempt in range(attempts):
        outcome = await orchestrator.run(file_data, file_name, user_context, timeout=timeout)
        if outcome.error is None or not outcome.error.transient or attempt >= attempts - 1:
            return outcome

        # Exponential backoff + jitter
        sleep_s = min(5.0, (0.6 * (2 ** attempt)) + random.random() * 0.25)
        logger.warning(
            "analyze.retry provider=%s attempt=%d/%d sleep=%.2fs error_class=%s",
            outcome.provider,
            attempt + 1,
            attempts,
            sleep_s,
            outcome.error.error_class,
        )
        await asyncio.sleep(sleep_s)

    return outcome
