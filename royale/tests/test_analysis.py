"""
Tests for screenshot analysis parsing and the vision call, with a stubbed client.
"""
from __future__ import annotations

import json
from types import SimpleNamespace
from unittest.mock import MagicMock

import httpx
import openai
import pytest

from royale.analysis import analyze_screenshot, parse_analysis
from royale.analysis import llm as llm_module
from royale.errors import ExternalServiceError


def _client_returning(content: str | None) -> MagicMock:
    client = MagicMock()
    message = SimpleNamespace(content=content)
    client.chat.completions.create.return_value = SimpleNamespace(choices=[SimpleNamespace(message=message)])
    return client


def test_parse_full_result():
    result = parse_analysis(json.dumps({
        "placement": 2,
        "kills": 7,
        "players": [{"name": " Ace ", "kills": 4, "damage": 512}, {"name": None, "kills": 1, "damage": 5}],
    }))
    assert result.placement == 2
    assert result.kills == 7
    assert result.is_complete
    assert result.player_lines() == [("Ace", 4, 512)]


def test_parse_nulls_are_incomplete():
    result = parse_analysis('{"placement": null, "kills": 3, "players": null}')
    assert not result.is_complete
    assert result.player_lines() == []


@pytest.mark.parametrize("content", [None, "", "not json", "[1, 2]", '{"placement": "first"}'])
def test_parse_bad_content(content):
    with pytest.raises(ExternalServiceError):
        parse_analysis(content)


def test_analyze_sends_image_and_schema():
    client = _client_returning('{"placement": 1, "kills": 9, "players": []}')
    result = analyze_screenshot("https://files.test/shot.png", client=client)
    assert result.placement == 1 and result.kills == 9

    kwargs = client.chat.completions.create.call_args.kwargs
    assert kwargs["temperature"] == 0
    assert kwargs["response_format"]["type"] == "json_schema"
    content = kwargs["messages"][0]["content"]
    assert {"type": "image_url", "image_url": {"url": "https://files.test/shot.png"}} in content


def test_transport_error_becomes_external_service_error():
    client = MagicMock()
    request = httpx.Request("POST", "https://api.openai.com/v1/chat/completions")
    client.chat.completions.create.side_effect = openai.APIConnectionError(request=request)
    with pytest.raises(ExternalServiceError):
        analyze_screenshot("https://files.test/shot.png", client=client)


def test_missing_api_key(monkeypatch):
    monkeypatch.setattr(llm_module, "OPENAI_API_KEY", "")
    with pytest.raises(ExternalServiceError, match="OPENAI_API_KEY"):
        analyze_screenshot("https://files.test/shot.png")
