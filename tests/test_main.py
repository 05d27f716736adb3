import pandas as pd
from fastapi.testclient import TestClient

from insight_pipeline import main as main_mod
from insight_pipeline import providers
from insight_pipeline.config import PROVIDER_NAMES, PipelineSettings, ProviderSettings


CSV = b"date,sales,region\n2025-01-01,10,A\n2025-01-02,20,B\n"


def _settings(configured=("openai",)):
    return PipelineSettings(
        providers={
            name: ProviderSettings(name=name, api_key="k" if name in configured else None, model=f"{name}-test")
            for name in PROVIDER_NAMES
        },
    )


def _patch(monkeypatch, client, configured=("openai",)):
    monkeypatch.setattr(main_mod, "SETTINGS", _settings(configured))
    monkeypatch.setattr(
        main_mod,
        "build_adapter",
        lambda name, settings: providers.build_adapter(name, settings, client=client),
    )
    return TestClient(main_mod.app)


def test_analyze_upload(monkeypatch, fake_chat_client, scenario_reply):
    client = fake_chat_client(scenario_reply)
    api = _patch(monkeypatch, client)

    resp = api.post(
        "/analyze",
        files={"file": ("sales.csv", CSV, "text/csv")},
        data={"plan_type": "pro", "industry": "retail"},
    )

    assert resp.status_code == 200
    body = resp.json()
    assert body["file_name"] == "sales.csv"
    assert body["provider"] == "openai"
    assert body["ai_model"] == "openai-test"
    assert body["fallback"] is False
    assert body["summary"] == "ok"
    assert body["insights"][0]["confidence_score"] == 0.9
    assert body["recommendations"][0]["id"].startswith("openai-")
    assert "Industry: retail" in client.calls[0]["messages"][1]["content"]


def test_analyze_reports_fallback(monkeypatch, fake_chat_client):
    api = _patch(monkeypatch, fake_chat_client(error=RuntimeError("boom")))

    resp = api.post("/analyze", files={"file": ("sales.csv", CSV, "text/csv")}, data={"plan_type": "pro"})

    assert resp.status_code == 200
    body = resp.json()
    assert body["provider"] == "openai"
    assert body["fallback"] is True
    assert [r["id"] for r in body["recommendations"]] == ["openai-fallback-1", "openai-fallback-2"]


def test_basic_plan_without_configured_provider_degrades(monkeypatch):
    # Only openai has a key; the basic plan order is groq then gemini.
    monkeypatch.setattr(main_mod, "SETTINGS", _settings(("openai",)))
    api = TestClient(main_mod.app)

    resp = api.post("/analyze", files={"file": ("sales.csv", CSV, "text/csv")})

    assert resp.status_code == 200
    body = resp.json()
    assert body["provider"] == "groq"
    assert body["fallback"] is True
    assert [r["id"] for r in body["recommendations"]] == ["groq-fallback-1", "groq-fallback-2"]


def test_analyze_from_url(monkeypatch, fake_chat_client, scenario_reply):
    api = _patch(monkeypatch, fake_chat_client(scenario_reply), configured=("groq",))

    async def fake_load(url):
        assert url.startswith("https://example.com/")
        return pd.DataFrame({"a": [1, 2]})

    monkeypatch.setattr(main_mod, "_load_csv_from_url", fake_load)

    resp = api.post("/analyze", data={"file_url": "https://example.com/files/data.csv?sig=1"})

    assert resp.status_code == 200
    assert resp.json()["file_name"] == "data.csv"
    assert resp.json()["provider"] == "groq"


def test_analyze_requires_input(monkeypatch, fake_chat_client):
    api = _patch(monkeypatch, fake_chat_client())

    resp = api.post("/analyze", data={"industry": "retail"})

    assert resp.status_code == 400


def test_analyze_rejects_bad_csv_and_unknown_provider(monkeypatch, fake_chat_client):
    api = _patch(monkeypatch, fake_chat_client())

    assert api.post("/analyze", files={"file": ("empty.csv", b"", "text/csv")}).status_code == 400
    resp = api.post("/analyze", files={"file": ("sales.csv", CSV, "text/csv")}, data={"provider": "mistral"})
    assert resp.status_code == 400


def test_providers_endpoint(monkeypatch, fake_chat_client):
    api = _patch(monkeypatch, fake_chat_client(), configured=("openai", "gemini"))

    body = api.get("/providers", params={"plan_type": "enterprise"}).json()

    assert body["configured"] == ["openai", "gemini"]
    assert body["plan_order"] == ["claude", "openai", "gemini", "groq"]
    assert body["selected"] == "openai"


def test_healthz():
    assert TestClient(main_mod.app).get("/healthz").json() == {"ok": True}
