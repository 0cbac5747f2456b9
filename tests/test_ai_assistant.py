"""
Description assistant tests: prompt building, the local stub provider,
gateway retry / error classification and the templated fallback.
"""

from unittest.mock import MagicMock, patch

import pytest

from warisin.ai.description_assistant import DescriptionAssistant
from warisin.ai.gateway import LLMError, LLMGateway, LocalStubProvider, classify_provider_error


class _FailingProvider:
    def __init__(self, error):
        self.error = error
        self.calls = 0

    def chat(self, messages, model, **kwargs):
        self.calls += 1
        raise self.error


class _StatusError(Exception):
    def __init__(self, message, status_code):
        super().__init__(message)
        self.status_code = status_code


class TestPrompt:
    def test_build_messages(self):
        messages = DescriptionAssistant.build_messages(
            "  Kelas batik untuk pemula  ", title="Batik Tulis", category="Batik",
        )
        assert messages[0]["role"] == "system"
        user = messages[1]["content"]
        assert "Program title: Batik Tulis" in user
        assert "Category: Batik" in user
        assert "Duration: To be determined" in user
        assert "Artisan input: Kelas batik untuk pemula" in user
        assert "same language" in user

    def test_fallback_uses_details(self):
        text = DescriptionAssistant.fallback_description(
            "Belajar menenun", category="Tenun", duration="3 bulan", location="Lombok",
        )
        assert "This Tenun program" in text
        assert "Belajar menenun" in text
        assert "Duration: 3 bulan" in text
        assert "Location: Lombok" in text


class TestGateway:
    def test_falls_back_to_local_stub_without_key(self, app):
        gateway = LLMGateway(app=app)
        result = gateway.chat(
            [{"role": "user", "content": "Program title: Ukir Jepara\nsomething"}],
            purpose="test",
        )
        assert result["provider"] == "local"
        assert result["content"].startswith("Ukir Jepara invites you")

    def test_retries_then_raises(self, app):
        gateway = LLMGateway(app=app)
        failing = _FailingProvider(_StatusError("overloaded", 503))
        gateway._providers["local"] = failing
        with patch("warisin.ai.gateway.threading") as threading_mock:
            with pytest.raises(LLMError) as exc:
                gateway.chat([{"role": "user", "content": "x"}], max_retries=3)
        assert failing.calls == 3
        assert threading_mock.Event.return_value.wait.call_count == 2
        assert exc.value.status_code == 503

    def test_auth_errors_are_not_retried(self, app):
        gateway = LLMGateway(app=app)
        failing = _FailingProvider(_StatusError("bad key", 401))
        gateway._providers["local"] = failing
        with pytest.raises(LLMError):
            gateway.chat([{"role": "user", "content": "x"}], max_retries=3)
        assert failing.calls == 1

    def test_stub_without_title(self):
        result = LocalStubProvider().chat([{"role": "user", "content": "no title here"}])
        assert result["model"] == "local-stub"
        assert result["content"].startswith("this apprenticeship invites you")

    def test_classify_provider_error(self):
        assert classify_provider_error(_StatusError("x", 429)) == 429
        assert classify_provider_error(RuntimeError("boom")) == 502


class TestDescriptionAssistant:
    def test_uses_llm_output(self):
        gateway = MagicMock()
        gateway.chat.return_value = {"content": "  Deskripsi program.  ", "provider": "gemini"}
        result = DescriptionAssistant(gateway).generate("Batik", title="Batik Tulis")
        assert result == {"description": "Deskripsi program.", "fallback": False, "provider": "gemini"}
        kwargs = gateway.chat.call_args.kwargs
        assert kwargs["purpose"] == "program_description"
        assert kwargs["temperature"] == 0.7

    def test_falls_back_on_llm_error(self):
        gateway = MagicMock()
        gateway.chat.side_effect = LLMError("down")
        result = DescriptionAssistant(gateway).generate("Belajar menganyam", category="Anyaman")
        assert result["fallback"] is True
        assert result["provider"] is None
        assert "This Anyaman program" in result["description"]

    def test_falls_back_on_empty_output(self):
        gateway = MagicMock()
        gateway.chat.return_value = {"content": "   ", "provider": "gemini"}
        assert DescriptionAssistant(gateway).generate("x")["fallback"] is True


class TestAssistantEndpoint:
    def test_requires_session(self, client):
        assert client.post("/api/ai-assistant", json={"prompt": "x"}).status_code == 401

    def test_empty_prompt(self, client, artisan, login_as):
        login_as(artisan)
        res = client.post("/api/ai-assistant", json={"prompt": "   "})
        assert res.status_code == 400

    def test_generates_with_stub(self, client, artisan, login_as):
        login_as(artisan)
        res = client.post("/api/ai-assistant", json={
            "prompt": "Kelas membatik dua minggu", "programTitle": "Batik Pesisir",
        })
        assert res.status_code == 200
        body = res.get_json()
        assert body["success"] is True
        assert body["fallback"] is False
        assert body["description"].startswith("Batik Pesisir invites you")

    def test_fallback_when_provider_fails(self, app, client, artisan, login_as):
        login_as(artisan)
        failing = MagicMock()
        failing.chat.side_effect = LLMError("quota exceeded", status_code=429)
        app.extensions["warisin_llm_gateway"] = failing
        try:
            res = client.post("/api/ai-assistant", json={
                "prompt": "Kelas membatik", "category": "Batik",
            })
        finally:
            app.extensions.pop("warisin_llm_gateway", None)
        assert res.status_code == 200
        body = res.get_json()
        assert body["fallback"] is True
        assert "Kelas membatik" in body["description"]
