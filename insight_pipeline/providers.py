"""
Concrete provider adapters and provider selection.

Each adapter owns its prompt wording, its SDK client and the raw call; the
shared parsing/degradation path lives in ProviderAdapter. Clients are built
from the ProviderSettings passed in (or injected directly in tests), never at
import time.
"""

import logging
from typing import Any, Dict, Optional, Tuple

from anthropic import AsyncAnthropic
from groq import AsyncGroq
from openai import AsyncOpenAI

try:
    from google import genai
    from google.genai import types
except Exception as e:  # pragma: no cover
    raise RuntimeError(
        "Missing dependency for Gemini client. Install 'google-genai' and remove 'google-generativeai'. "
        "Original import error: " + str(e)
    )

from . import prompts
from .config import PipelineSettings, ProviderSettings
from .fallback import FALLBACK_MODEL
from .llm_client import ProviderAdapter
from .schemas import AnalysisRequest, AnalysisResult, UserContext

logger = logging.getLogger(__name__)


class OpenAIAdapter(ProviderAdapter):
    name = "openai"
    default_confidence = 0.85

    def _build_client(self) -> Any:
        return AsyncOpenAI(api_key=self.settings.api_key)

    def system_prompt(self, ctx: UserContext) -> str:
        return prompts.openai_system_prompt(ctx)

    def user_prompt(self, ctx: UserContext, data_context: str) -> str:
        return prompts.openai_user_prompt(ctx, data_context)

    async def _complete(self, system_prompt: str, user_prompt: str) -> str:
        resp = await self.client.chat.completions.create(
            model=self.model,
            messages=[
                {"role": "system", "content": system_prompt},
                {"role": "user", "content": user_prompt},
            ],
            max_tokens=self.settings.max_tokens,
            temperature=self.settings.temperature,
        )
        if not resp.choices:
            return ""
        return resp.choices[0].message.content or ""


class GroqAdapter(OpenAIAdapter):
    """Groq serves an OpenAI-style chat completions API; only the client and prompts differ."""

    name = "groq"
    default_confidence = 0.8

    def _build_client(self) -> Any:
        return AsyncGroq(api_key=self.settings.api_key)

    def system_prompt(self, ctx: UserContext) -> str:
        return prompts.groq_system_prompt(ctx)

    def user_prompt(self, ctx: UserContext, data_context: str) -> str:
        return prompts.groq_user_prompt(ctx, data_context)


_DEFAULT_ACTION_STEPS = (
    "Conduct detailed feasibility analysis",
    "Develop implementation roadmap",
    "Identify key stakeholders and resources",
    "Execute with regular progress monitoring",
)


class ClaudeAdapter(ProviderAdapter):
    name = "claude"
    default_confidence = 0.9

    def _build_client(self) -> Any:
        return AsyncAnthropic(api_key=self.settings.api_key)

    def system_prompt(self, ctx: UserContext) -> str:
        return prompts.claude_system_prompt(ctx)

    def user_prompt(self, ctx: UserContext, data_context: str) -> str:
        return prompts.claude_user_prompt(ctx, data_context)

    async def _complete(self, system_prompt: str, user_prompt: str) -> str:
        message = await self.client.messages.create(
            model=self.model,
            max_tokens=self.settings.max_tokens,
            temperature=self.settings.temperature,
            system=system_prompt,
            messages=[{"role": "user", "content": user_prompt}],
        )
        parts = [
            getattr(block, "text", "")
            for block in (message.content or [])
            if getattr(block, "type", None) == "text"
        ]
        return "".join(parts)

    def enrich(self, result: AnalysisResult, request: AnalysisRequest) -> AnalysisResult:
        """Fill missing recommendation details and action steps on provider-authored items."""
        industry = request.user_context.industry or "general"
        if industry == "general":
            industry = "your business"
        recommendations = []
        for rec in result.recommendations:
            update: Dict[str, Any] = {}
            if rec.ai_model != FALLBACK_MODEL:
                if not rec.details:
                    update["details"] = f"Strategic recommendation developed from the dataset analysis for {industry}."
                if not rec.action_steps:
                    update["action_steps"] = list(_DEFAULT_ACTION_STEPS)
            recommendations.append(rec.model_copy(update=update) if update else rec)
        return result.model_copy(update={"recommendations": recommendations})


class GeminiAdapter(ProviderAdapter):
    name = "gemini"
    default_confidence = 0.85

    def _build_client(self) -> Any:
        return genai.Client(api_key=self.settings.api_key)

    def system_prompt(self, ctx: UserContext) -> str:
        return prompts.gemini_system_prompt(ctx)

    def user_prompt(self, ctx: UserContext, data_context: str) -> str:
        return prompts.gemini_user_prompt(ctx, data_context)

    async def _complete(self, system_prompt: str, user_prompt: str) -> str:
        response = await self.client.aio.models.generate_content(
            model=self.model,
            contents=user_prompt,
            config=types.GenerateContentConfig(
                system_instruction=system_prompt,
                temperature=self.settings.temperature,
                max_output_tokens=self.settings.max_tokens,
            ),
        )

        # Prefer the SDK's convenience property
        result = getattr(response, "text", None)
        if result:
            return result

        # Fallback: attempt to extract from candidates (SDK shape can vary across versions)
        candidates = getattr(response, "candidates", None) or []
        if not candidates:
            raise RuntimeError("Gemini returned no candidates.")

        content = getattr(candidates[0], "content", None)
        parts = getattr(content, "parts", None) if content else None
        if parts:
            text0 = getattr(parts[0], "text", None)
            if text0:
                return text0

        raise RuntimeError("Gemini returned empty response")


ADAPTERS = {
    "openai": OpenAIAdapter,
    "claude": ClaudeAdapter,
    "groq": GroqAdapter,
    "gemini": GeminiAdapter,
}

# Preference order per subscription tier.
PLAN_PROVIDERS: Dict[str, Tuple[str, ...]] = {
    "enterprise": ("claude", "openai", "gemini", "groq"),
    "pro": ("openai", "claude", "gemini", "groq"),
    "team": ("openai", "claude", "gemini", "groq"),
}
_BASIC_PROVIDERS = ("groq", "gemini")


def providers_for_plan(plan_type: Optional[str]) -> Tuple[str, ...]:
    return PLAN_PROVIDERS.get((plan_type or "").strip().lower(), _BASIC_PROVIDERS)


def select_provider(
    plan_type: Optional[str],
    settings: PipelineSettings,
    requested: Optional[str] = None,
) -> str:
    """
    Pick the one provider a request will use. An explicit request wins, then
    DEFAULT_PROVIDER, then the first configured provider in plan order. When
    nothing is configured the plan's first choice is returned; its adapter
    then fails fast and the request degrades to the fallback result.
    """
    for name in (requested, settings.default_provider):
        if name:
            name = name.strip().lower()
            if name not in ADAPTERS:
                raise ValueError(f"Unknown provider: {name}")
            return name

    order = providers_for_plan(plan_type)
    for name in order:
        provider_settings = settings.providers.get(name)
        if provider_settings is not None and provider_settings.configured:
            return name

    logger.warning("provider.none_configured plan=%s using=%s", plan_type, order[0])
    return order[0]


def build_adapter(name: str, settings: ProviderSettings, client: Any = None) -> ProviderAdapter:
    adapter_cls = ADAPTERS.get(name)
    if adapter_cls is None:
        raise ValueError(f"Unknown provider: {name}")
    return adapter_cls(settings, client=client)
