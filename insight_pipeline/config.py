"""
Provider and pipeline configuration.

Settings are plain dataclasses built explicitly (usually via `from_env()`) and
handed to the adapters; nothing here constructs an API client.
"""

import os
from dataclasses import dataclass, field
from typing import Dict, Optional


PROVIDER_NAMES = ("openai", "claude", "groq", "gemini")

_DEFAULT_MODELS = {
    "openai": "gpt-4o",
    "claude": "claude-3-5-sonnet-20241022",
    "groq": "llama-3.1-8b-instant",
    "gemini": "gemini-2.5-flash",
}

# First non-empty variable wins.
_API_KEY_VARS = {
    "openai": ("OPENAI_API_KEY",),
    "claude": ("CLAUDE_API_KEY", "ANTHROPIC_API_KEY"),
    "groq": ("GROQ_API_KEY",),
    "gemini": ("GEMINI_API_KEY", "LLM_API_KEY"),
}


def _first_env(*names: str) -> Optional[str]:
    for name in names:
        value = os.getenv(name)
        if value:
            return value
    return None


@dataclass(frozen=True)
class ProviderSettings:
    name: str
    api_key: Optional[str] = None
    model: str = ""
    temperature: float = 0.7
    max_tokens: int = 2000
    timeout_seconds: float = 60.0

    def __post_init__(self):
        if self.timeout_seconds <= 0:
            raise ValueError(f"timeout_seconds must be positive for {self.name}, got {self.timeout_seconds}")

    @property
    def configured(self) -> bool:
        return bool(self.api_key)

    @classmethod
    def from_env(cls, name: str) -> "ProviderSettings":
        if name not in PROVIDER_NAMES:
            raise ValueError(f"Unknown provider: {name}")
        return cls(
            name=name,
            api_key=_first_env(*_API_KEY_VARS[name]),
            model=os.getenv(f"{name.upper()}_MODEL", _DEFAULT_MODELS[name]),
            temperature=float(os.getenv("LLM_TEMPERATURE", "0.7")),
            max_tokens=int(os.getenv("MAX_LLM_TOKENS", "2000")),
            timeout_seconds=float(os.getenv("LLM_TIMEOUT_SECONDS", "60")),
        )


@dataclass(frozen=True)
class PipelineSettings:
    providers: Dict[str, ProviderSettings] = field(default_factory=dict)
    default_provider: Optional[str] = None
    max_retries: int = 0  # retries on transient provider errors, applied by the caller
    row_limit: int = 5000
    max_sample_rows: int = 3

    def provider(self, name: str) -> ProviderSettings:
        settings = self.providers.get(name)
        if settings is None:
            raise ValueError(f"Unknown provider: {name}")
        return settings

    @classmethod
    def from_env(cls) -> "PipelineSettings":
        default_provider = (os.getenv("DEFAULT_PROVIDER") or "").strip().lower() or None
        return cls(
            providers={name: ProviderSettings.from_env(name) for name in PROVIDER_NAMES},
            default_provider=default_provider,
            max_retries=int(os.getenv("LLM_MAX_RETRIES", "0")),
            row_limit=int(os.getenv("ROW_LIMIT", "5000")),
            max_sample_rows=int(os.getenv("MAX_SAMPLE_ROWS", "3")),
        )
