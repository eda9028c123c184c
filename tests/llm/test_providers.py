"""Tests for the Gemini and Ollama HTTP transports."""

from __future__ import annotations

import json
import socket
from http.client import IncompleteRead, RemoteDisconnected
from typing import Any, Dict
from urllib.error import HTTPError, URLError

import pytest

from metricmind.config import AIConfig, GeminiConfig, OllamaConfig
from metricmind.llm.errors import LLMError, LLMErrorKind
from metricmind.llm.providers import GeminiTransport, OllamaTransport, create_transport


class FakeResponse:
    def __init__(self, payload: Any) -> None:
        self._payload = payload

    def read(self) -> bytes:
        if isinstance(self._payload, bytes):
            return self._payload
        return json.dumps(self._payload).encode("utf-8")

    def __enter__(self) -> "FakeResponse":
        return self

    def __exit__(self, exc_type, exc, tb) -> bool:  # type: ignore[no-untyped-def]
        return False


def _capture_urlopen(monkeypatch: pytest.MonkeyPatch, payload: Any) -> Dict[str, Any]:
    captured: Dict[str, Any] = {}

    def fake_urlopen(request, timeout=None):  # type: ignore[no-untyped-def]
        captured["url"] = request.full_url
        captured["headers"] = {k.lower(): v for k, v in request.header_items()}
        captured["payload"] = json.loads(request.data.decode("utf-8"))
        captured["timeout"] = timeout
        return FakeResponse(payload)

    monkeypatch.setattr("metricmind.llm.providers.urlopen", fake_urlopen)
    return captured


def _raising_urlopen(monkeypatch: pytest.MonkeyPatch, error: BaseException) -> None:
    def fake_urlopen(request, timeout=None):  # type: ignore[no-untyped-def]
        raise error

    monkeypatch.setattr("metricmind.llm.providers.urlopen", fake_urlopen)


def test_gemini_posts_generate_content(monkeypatch: pytest.MonkeyPatch) -> None:
    captured = _capture_urlopen(
        monkeypatch,
        {"candidates": [{"content": {"parts": [{"text": "CATEGORY: BILLING\n"}]}}]},
    )
    transport = GeminiTransport(GeminiConfig(api_key="secret", model="gemini-test", temperature=0.2))

    text = transport.send("categorize this", timeout=15.0)

    assert text == "CATEGORY: BILLING"
    assert captured["url"] == (
        "https://generativelanguage.googleapis.com/v1beta/models/gemini-test:generateContent?key=secret"
    )
    assert captured["headers"]["content-type"] == "application/json"
    assert captured["payload"] == {
        "contents": [{"parts": [{"text": "categorize this"}], "role": "user"}],
        "generationConfig": {"temperature": 0.2, "maxOutputTokens": 1024},
    }
    assert captured["timeout"] == 15.0


def test_ollama_posts_generate(monkeypatch: pytest.MonkeyPatch) -> None:
    captured = _capture_urlopen(monkeypatch, {"response": "  CATEGORY: INFRA  "})
    transport = OllamaTransport(OllamaConfig(url="http://localhost:11434/", model="llama2", temperature=0.1))

    text = transport.send("categorize this", timeout=30.0)

    assert text == "CATEGORY: INFRA"
    assert captured["url"] == "http://localhost:11434/api/generate"
    assert captured["payload"] == {
        "model": "llama2",
        "prompt": "categorize this",
        "stream": False,
        "options": {"temperature": 0.1, "num_predict": 1024},
    }


def test_empty_reply_is_transport_error(monkeypatch: pytest.MonkeyPatch) -> None:
    _capture_urlopen(monkeypatch, {"candidates": []})

    with pytest.raises(LLMError) as excinfo:
        GeminiTransport(GeminiConfig(api_key="k")).send("p", timeout=1.0)

    assert excinfo.value.kind is LLMErrorKind.TRANSPORT


def test_invalid_json_is_transport_error(monkeypatch: pytest.MonkeyPatch) -> None:
    _capture_urlopen(monkeypatch, b"<html>bad gateway</html>")

    with pytest.raises(LLMError) as excinfo:
        OllamaTransport(OllamaConfig()).send("p", timeout=1.0)

    assert excinfo.value.kind is LLMErrorKind.TRANSPORT


@pytest.mark.parametrize(
    ("error", "kind"),
    [
        (socket.timeout("timed out"), LLMErrorKind.TIMEOUT),
        (URLError(socket.timeout("timed out")), LLMErrorKind.TIMEOUT),
        (URLError("connection refused"), LLMErrorKind.TRANSPORT),
        (ConnectionResetError("reset"), LLMErrorKind.TRANSPORT),
    ],
)
def test_network_failures_map_to_kinds(
    monkeypatch: pytest.MonkeyPatch, error: BaseException, kind: LLMErrorKind
) -> None:
    _raising_urlopen(monkeypatch, error)

    with pytest.raises(LLMError) as excinfo:
        OllamaTransport(OllamaConfig()).send("p", timeout=1.0)

    assert excinfo.value.kind is kind
    assert excinfo.value.context["provider"] == "ollama"


def test_http_error_status_is_transport_error(monkeypatch: pytest.MonkeyPatch) -> None:
    error = HTTPError("http://localhost:11434/api/generate", 503, "Service Unavailable", {}, None)  # type: ignore[arg-type]
    _raising_urlopen(monkeypatch, error)

    with pytest.raises(LLMError) as excinfo:
        OllamaTransport(OllamaConfig()).send("p", timeout=1.0)

    assert excinfo.value.kind is LLMErrorKind.TRANSPORT
    assert excinfo.value.context["status"] == 503


def test_create_transport_selects_provider() -> None:
    gemini = create_transport(AIConfig(provider="gemini", gemini=GeminiConfig(api_key="k")))
    ollama = create_transport(AIConfig(provider="ollama", ollama=OllamaConfig()))

    assert isinstance(gemini, GeminiTransport)
    assert isinstance(ollama, OllamaTransport)


@pytest.mark.parametrize(
    "ai",
    [
        AIConfig(provider=None),
        AIConfig(provider="openai"),
        AIConfig(provider="gemini", gemini=GeminiConfig(api_key="")),
        AIConfig(provider="ollama", ollama=OllamaConfig(), timeout=0),
        AIConfig(provider="ollama", ollama=OllamaConfig(), retries=-1),
    ],
)
def test_create_transport_rejects_invalid_configuration(ai: AIConfig) -> None:
    with pytest.raises(LLMError) as excinfo:
        create_transport(ai)

    assert excinfo.value.kind is LLMErrorKind.CONFIGURATION


class TruncatedResponse(FakeResponse):
    def read(self) -> bytes:
        raise IncompleteRead(b"partial", 64)


def test_truncated_body_is_transport_error(monkeypatch: pytest.MonkeyPatch) -> None:
    def fake_urlopen(request, timeout=None):  # type: ignore[no-untyped-def]
        return TruncatedResponse(None)

    monkeypatch.setattr("metricmind.llm.providers.urlopen", fake_urlopen)

    with pytest.raises(LLMError) as excinfo:
        OllamaTransport(OllamaConfig()).send("p", timeout=1.0)

    assert excinfo.value.kind is LLMErrorKind.TRANSPORT
    assert "IncompleteRead" in excinfo.value.message


def test_dropped_connection_is_transport_error(monkeypatch: pytest.MonkeyPatch) -> None:
    _raising_urlopen(monkeypatch, RemoteDisconnected("Remote end closed connection without response"))

    with pytest.raises(LLMError) as excinfo:
        GeminiTransport(GeminiConfig(api_key="k")).send("p", timeout=1.0)

    assert excinfo.value.kind is LLMErrorKind.TRANSPORT


def test_create_transport_without_provider_settings_is_configuration_error(
    monkeypatch: pytest.MonkeyPatch,
) -> None:
    monkeypatch.setattr("metricmind.llm.providers.validate_ai_config", lambda ai: [])

    with pytest.raises(LLMError) as excinfo:
        create_transport(AIConfig(provider="ollama", ollama=None))

    assert excinfo.value.kind is LLMErrorKind.CONFIGURATION
