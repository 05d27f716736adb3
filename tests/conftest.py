import asyncio
from types import SimpleNamespace

import pytest

from insight_pipeline.config import ProviderSettings
from insight_pipeline.schemas import DatasetSummary


SCENARIO_REPLY = (
    'SUMMARY: ok\n'
    'INSIGHTS: [{"type":"trend","title":"T","content":"C","confidence_score":0.9}]\n'
    'RECOMMENDATIONS: [{"title":"R","description":"D","impact":"High","effort":"Low","category":"x"}]'
)


@pytest.fixture
def scenario_reply():
    return SCENARIO_REPLY


@pytest.fixture
def file_data():
    return DatasetSummary(
        row_count=120,
        column_count=3,
        columns=["date", "sales", "region"],
        column_types={"date": "object", "sales": "int64", "region": "object"},
        numeric_columns=["sales"],
        categorical_columns=["date", "region"],
        missing_values={"date": 0, "sales": 2, "region": 0},
        sample_rows=[{"date": "2025-01-01", "sales": 10, "region": "A"}],
        summary_statistics={"numeric": {"sales": {"min": 1, "max": 90, "mean": 33.5}}},
        data_quality=97.5,
        patterns=["Excellent data completeness"],
    )


@pytest.fixture
def make_settings():
    def _make(name="openai", api_key="test-key", model="test-model", timeout_seconds=5.0):
        return ProviderSettings(name=name, api_key=api_key, model=model, timeout_seconds=timeout_seconds)
    return _make


def _behave(calls, kwargs, replies, error):
    calls.append(kwargs)
    if error is not None:
        err = error(len(calls)) if callable(error) and not isinstance(error, BaseException) else error
        if err is not None:
            raise err
    return replies[min(len(calls), len(replies)) - 1]


@pytest.fixture
def fake_chat_client():
    """OpenAI/Groq-shaped client: client.chat.completions.create(**kwargs)."""

    def _make(*replies, error=None, delay=0.0):
        calls = []
        replies = replies or ("",)

        async def create(**kwargs):
            if delay:
                await asyncio.sleep(delay)
            text = _behave(calls, kwargs, replies, error)
            return SimpleNamespace(choices=[SimpleNamespace(message=SimpleNamespace(content=text))])

        return SimpleNamespace(chat=SimpleNamespace(completions=SimpleNamespace(create=create)), calls=calls)

    return _make


@pytest.fixture
def fake_anthropic_client():
    """Anthropic-shaped client: client.messages.create(**kwargs) -> content blocks."""

    def _make(*replies, error=None):
        calls = []
        replies = replies or ("",)

        async def create(**kwargs):
            text = _behave(calls, kwargs, replies, error)
            return SimpleNamespace(content=[SimpleNamespace(type="text", text=text)])

        return SimpleNamespace(messages=SimpleNamespace(create=create), calls=calls)

    return _make


@pytest.fixture
def fake_gemini_client():
    """google-genai-shaped client: client.aio.models.generate_content(**kwargs)."""

    def _make(*replies, error=None):
        calls = []
        replies = replies or ("",)

        async def generate_content(**kwargs):
            text = _behave(calls, kwargs, replies, error)
            return SimpleNamespace(text=text, candidates=[])

        return SimpleNamespace(
            aio=SimpleNamespace(models=SimpleNamespace(generate_content=generate_content)),
            calls=calls,
        )

    return _make
