import asyncio

import pytest

from insight_pipeline import providers as providers_mod
from insight_pipeline.config import PipelineSettings, ProviderSettings
from insight_pipeline.llm_client import ProviderError, is_transient_error
from insight_pipeline.schemas import UserContext


class RateLimitError(Exception):
    status_code = 429


class BadRequestError(Exception):
    status_code = 400


def _run(coro):
    return asyncio.run(coro)


def test_openai_adapter_parses_reply(fake_chat_client, make_settings, file_data, scenario_reply):
    client = fake_chat_client(scenario_reply)
    adapter = providers_mod.OpenAIAdapter(make_settings("openai", model="gpt-test"), client=client)

    result = _run(adapter.analyze(file_data, "sales.csv", {"industry": "retail"}))

    assert result.summary == "ok"
    assert len(result.insights) == 1
    assert result.insights[0].confidence_score == 0.9
    assert result.insights[0].ai_model == "gpt-test"
    assert result.recommendations[0].id.startswith("openai-")

    call = client.calls[0]
    assert call["model"] == "gpt-test"
    system, user = call["messages"]
    assert system["role"] == "system" and "SUMMARY:" in system["content"]
    assert "Industry: retail" in user["content"]


def test_groq_adapter_uses_chat_completions(fake_chat_client, make_settings, file_data, scenario_reply):
    client = fake_chat_client(scenario_reply)
    adapter = providers_mod.GroqAdapter(make_settings("groq"), client=client)

    result = _run(adapter.analyze(file_data, "sales.csv"))

    assert result.recommendations[0].provider == "groq"
    assert len(client.calls) == 1


def test_claude_adapter_enriches_recommendations(fake_anthropic_client, make_settings, file_data, scenario_reply):
    client = fake_anthropic_client(scenario_reply)
    adapter = providers_mod.ClaudeAdapter(make_settings("claude"), client=client)

    result = _run(adapter.analyze(file_data, "sales.csv", UserContext(industry="retail")))

    rec = result.recommendations[0]
    assert "retail" in rec.details
    assert len(rec.action_steps) == 4
    assert client.calls[0]["system"]
    assert client.calls[0]["messages"][0]["role"] == "user"


def test_claude_enrichment_leaves_fallback_items_alone(fake_anthropic_client, make_settings, file_data):
    client = fake_anthropic_client('SUMMARY: ok\nINSIGHTS: [{"title": "T"}]')
    adapter = providers_mod.ClaudeAdapter(make_settings("claude"), client=client)

    result = _run(adapter.analyze(file_data, "sales.csv"))

    assert [r.id for r in result.recommendations] == ["claude-fallback-1", "claude-fallback-2"]
    assert result.recommendations[0].details.startswith("Define quality rules")


def test_gemini_adapter_passes_system_instruction(fake_gemini_client, make_settings, file_data, scenario_reply):
    client = fake_gemini_client(scenario_reply)
    adapter = providers_mod.GeminiAdapter(make_settings("gemini", model="gemini-test"), client=client)

    result = _run(adapter.analyze(file_data, "sales.csv"))

    assert result.summary == "ok"
    call = client.calls[0]
    assert call["model"] == "gemini-test"
    assert "SUMMARY:" in call["config"].system_instruction


def test_missing_api_key_raises_configuration_error(make_settings, file_data):
    adapter = providers_mod.OpenAIAdapter(make_settings("openai", api_key=None))

    with pytest.raises(ProviderError) as exc:
        _run(adapter.analyze(file_data, "sales.csv"))

    assert exc.value.error_class == "ConfigurationError"
    assert exc.value.provider == "openai"
    assert not exc.value.transient


def test_sdk_errors_become_provider_errors(fake_chat_client, make_settings, file_data):
    adapter = providers_mod.OpenAIAdapter(make_settings(), client=fake_chat_client(error=RateLimitError("slow down")))

    with pytest.raises(ProviderError) as exc:
        _run(adapter.analyze(file_data, "sales.csv"))

    assert exc.value.error_class == "RateLimitError"
    assert exc.value.transient
    assert "slow down" not in str(exc.value)


def test_slow_provider_times_out(fake_chat_client, make_settings, file_data, scenario_reply):
    adapter = providers_mod.OpenAIAdapter(make_settings(), client=fake_chat_client(scenario_reply, delay=1.0))

    with pytest.raises(ProviderError) as exc:
        _run(adapter.analyze(file_data, "sales.csv", timeout=0.05))

    assert exc.value.error_class == "TimeoutError"
    assert exc.value.transient


def test_is_transient_error():
    assert is_transient_error(TimeoutError())
    assert is_transient_error(ConnectionError("reset"))
    assert is_transient_error(RateLimitError())
    assert not is_transient_error(BadRequestError("overloaded"))
    assert is_transient_error(RuntimeError("503 Service Unavailable"))
    assert not is_transient_error(ValueError("bad prompt"))


def test_providers_for_plan():
    assert providers_mod.providers_for_plan("enterprise")[0] == "claude"
    assert providers_mod.providers_for_plan("Pro")[0] == "openai"
    assert providers_mod.providers_for_plan("team") == providers_mod.providers_for_plan("pro")
    assert providers_mod.providers_for_plan(None) == ("groq", "gemini")
    assert providers_mod.providers_for_plan("basic") == ("groq", "gemini")


def _pipeline_settings(configured, default_provider=None):
    return PipelineSettings(
        providers={
            name: ProviderSettings(name=name, api_key="k" if name in configured else None)
            for name in providers_mod.ADAPTERS
        },
        default_provider=default_provider,
    )


def test_select_provider_prefers_configured_in_plan_order():
    settings = _pipeline_settings({"openai", "gemini"})

    assert providers_mod.select_provider("enterprise", settings) == "openai"
    assert providers_mod.select_provider("basic", settings) == "gemini"


def test_select_provider_explicit_and_default():
    settings = _pipeline_settings({"openai"}, default_provider="groq")

    assert providers_mod.select_provider("pro", settings, requested="Claude") == "claude"
    assert providers_mod.select_provider("pro", settings) == "groq"
    with pytest.raises(ValueError):
        providers_mod.select_provider("pro", settings, requested="mistral")


def test_select_provider_without_configured_providers():
    assert providers_mod.select_provider("pro", _pipeline_settings(set())) == "openai"


def test_build_adapter():
    adapter = providers_mod.build_adapter("claude", ProviderSettings(name="claude", model="m"), client=object())

    assert isinstance(adapter, providers_mod.ClaudeAdapter)
    assert adapter.model == "m"
    with pytest.raises(ValueError):
        providers_mod.build_adapter("mistral", ProviderSettings(name="mistral"))


def test_claude_enriches_items_claiming_to_be_fallback(fake_anthropic_client, make_settings, file_data):
    raw = 'SUMMARY: ok\nINSIGHTS: [{"title": "T"}]\nRECOMMENDATIONS: [{"title": "R", "aiModel": "fallback"}]'
    adapter = providers_mod.ClaudeAdapter(make_settings("claude", model="claude-test"), client=fake_anthropic_client(raw))

    rec = _run(adapter.analyze(file_data, "sales.csv")).recommendations[0]

    assert rec.ai_model == "claude-test"
    assert len(rec.action_steps) == 4


def test_non_positive_timeout_is_rejected(fake_chat_client, make_settings, file_data, scenario_reply):
    adapter = providers_mod.OpenAIAdapter(make_settings(), client=fake_chat_client(scenario_reply))

    with pytest.raises(ValueError):
        _run(adapter.analyze(file_data, "sales.csv", timeout=0))
    with pytest.raises(ValueError):
        make_settings(timeout_seconds=0)


def test_zero_timeout_in_environment_fails_fast(monkeypatch):
    monkeypatch.setenv("LLM_TIMEOUT_SECONDS", "0")

    with pytest.raises(ValueError):
        ProviderSettings.from_env("openai")
