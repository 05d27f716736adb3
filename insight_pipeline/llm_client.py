"""
Provider adapter base class and the single error type adapters raise.

Rationale:
- One interface, `analyze(file_data, file_name, user_context) -> AnalysisResult`,
  shared by every provider and by the orchestrator.
- Subclasses only supply prompts, client construction and the raw call;
  extraction, per-field degradation and tagging live here once.
- One call per invocation. No retries here; retry policy belongs to the caller.
"""

import asyncio
import logging
import time
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Any, Dict, Optional, Tuple, Union

from .config import ProviderSettings
from .context import build_context, build_request
from .extractor import extract, parse_items
from .fallback import fallback_insights, fallback_recommendations, fallback_summary
from .normalizer import coerce_insights, coerce_recommendations, normalize
from .schemas import AnalysisRequest, AnalysisResult, DatasetSummary, UserContext

logger = logging.getLogger(__name__)


_TRANSIENT_STATUS = {408, 409, 429}
_TRANSIENT_NAME_MARKERS = ("timeout", "ratelimit", "connection", "internalserver", "overloaded", "unavailable")
_TRANSIENT_MESSAGE_MARKERS = (
    "429", "rate limit", "rate_limit", "quota", "timeout", "timed out",
    "temporar", "unavailable", "overloaded", "503", "502", "500",
)


class ProviderError(RuntimeError):
    """
    Normalized provider failure. The message names the provider and the error
    class only; prompt and reply text never end up in it.
    """

    def __init__(self, provider: str, message: str, *, error_class: str = "ProviderError", transient: bool = False):
        super().__init__(message)
        self.provider = provider
        self.error_class = error_class
        self.transient = transient


def is_transient_error(exc: BaseException) -> bool:
    """Best-effort detection of failures worth retrying (rate limits, timeouts, 5xx)."""
    if isinstance(exc, (TimeoutError, asyncio.TimeoutError, ConnectionError)):
        return True
    for attr in ("status_code", "code", "status"):
        status = getattr(exc, attr, None)
        if isinstance(status, int) and not isinstance(status, bool):
            return status in _TRANSIENT_STATUS or status >= 500
    name = type(exc).__name__.lower()
    if any(m in name for m in _TRANSIENT_NAME_MARKERS):
        return True
    msg = str(exc).lower()
    return any(m in msg for m in _TRANSIENT_MESSAGE_MARKERS)


@dataclass(frozen=True)
class ParsedReply:
    """Un-normalized result of parsing one reply, plus the sections that degraded."""

    result: AnalysisResult
    failed_fields: Tuple[str, ...] = ()

    @property
    def lists_failed(self) -> bool:
        return "insights" in self.failed_fields and "recommendations" in self.failed_fields


class ProviderAdapter(ABC):
    name: str = ""
    default_confidence: float = 0.8

    def __init__(self, settings: ProviderSettings, client: Any = None):
        self.settings = settings
        self._client = client

    @property
    def model(self) -> str:
        return self.settings.model

    @property
    def client(self) -> Any:
        """SDK client; built lazily from settings unless one was injected."""
        if self._client is None:
            if not self.settings.api_key:
                raise ProviderError(
                    self.name,
                    f"{self.name} API key is not configured",
                    error_class="ConfigurationError",
                )
            self._client = self._build_client()
        return self._client

    @abstractmethod
    def _build_client(self) -> Any:
        ...

    @abstractmethod
    async def _complete(self, system_prompt: str, user_prompt: str) -> str:
        """One raw provider call. Returns the reply text."""
        ...

    @abstractmethod
    def system_prompt(self, ctx: UserContext) -> str:
        ...

    @abstractmethod
    def user_prompt(self, ctx: UserContext, data_context: str) -> str:
        ...

    def build_prompts(self, request: AnalysisRequest) -> Tuple[str, str]:
        data_context = build_context(request.file_data, request.file_name, request.user_context)
        ctx = request.user_context
        return self.system_prompt(ctx), self.user_prompt(ctx, data_context)

    async def fetch(self, request: AnalysisRequest, *, timeout: Optional[float] = None) -> str:
        """Invoke the provider once, bounded by `timeout` seconds. Provider failures raise ProviderError."""
        system_prompt, user_prompt = self.build_prompts(request)
        effective_timeout = timeout if timeout is not None else self.settings.timeout_seconds
        if effective_timeout <= 0:
            raise ValueError(f"Provider timeout must be positive, got {effective_timeout}")

        t0 = time.monotonic()
        try:
            text = await asyncio.wait_for(self._complete(system_prompt, user_prompt), timeout=effective_timeout)
        except ProviderError:
            raise
        except asyncio.TimeoutError as e:
            raise ProviderError(
                self.name,
                f"{self.name} call timed out after {effective_timeout}s",
                error_class="TimeoutError",
                transient=True,
            ) from e
        except Exception as e:
            raise ProviderError(
                self.name,
                f"{self.name} API error ({type(e).__name__})",
                error_class=type(e).__name__,
                transient=is_transient_error(e),
            ) from e

        text = text or ""
        logger.info(
            "provider.reply provider=%s model=%s chars=%d elapsed_ms=%d",
            self.name,
            self.model,
            len(text),
            int((time.monotonic() - t0) * 1000),
        )
        return text

    def enrich(self, result: AnalysisResult, request: AnalysisRequest) -> AnalysisResult:
        """Provider-specific touches on a parsed result. Default: none."""
        return result

    def parse_reply(self, raw_text: str, request: AnalysisRequest) -> ParsedReply:
        """
        Turn raw reply text into a result. Each section degrades on its own:
        a missing or malformed section is replaced by its fallback content and
        the siblings that parsed are kept.
        """
        sections = extract(raw_text)
        file_data = request.file_data
        failed = []

        summary = sections.summary_text
        if not summary:
            failed.append("summary")
            summary = fallback_summary(file_data, self.name)

        try:
            insights = coerce_insights(parse_items(sections.insights_json_text, "insights"))
        except ValueError as e:
            failed.append("insights")
            insights = fallback_insights(file_data, self.name)
            logger.warning("provider.parse_failed provider=%s section=insights err=%s", self.name, type(e).__name__)

        try:
            recommendations = coerce_recommendations(
                parse_items(sections.recommendations_json_text, "recommendations")
            )
        except ValueError as e:
            failed.append("recommendations")
            recommendations = fallback_recommendations(self.name)
            logger.warning(
                "provider.parse_failed provider=%s section=recommendations err=%s", self.name, type(e).__name__
            )

        result = AnalysisResult(summary=summary, insights=insights, recommendations=recommendations)
        return ParsedReply(result=self.enrich(result, request), failed_fields=tuple(failed))

    def tag(self, result: AnalysisResult) -> AnalysisResult:
        return normalize(
            result,
            provider=self.name,
            ai_model=self.model,
            default_confidence=self.default_confidence,
        )

    async def analyze(
        self,
        file_data: Union[DatasetSummary, Dict[str, Any]],
        file_name: str,
        user_context: Union[UserContext, Dict[str, Any], None] = None,
        *,
        timeout: Optional[float] = None,
    ) -> AnalysisResult:
        request = build_request(file_data, file_name, user_context)
        raw_text = await self.fetch(request, timeout=timeout)
        return self.tag(self.parse_reply(raw_text, request).result)
