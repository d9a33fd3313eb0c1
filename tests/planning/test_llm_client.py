"""Tests for plan providers and response parsing."""

from __future__ import annotations

import json
import logging
import threading
from unittest.mock import MagicMock, patch

import pytest

from replay_director.planning.llm_client import (
    LocalModelProvider,
    OpenAIPlanProvider,
    PlanProviderError,
    build_provider,
    extract_json,
    parse_plan_response,
)
from replay_director.planning.models import EventSummary
from replay_director.settings import DirectorSettings
from replay_director.telemetry.models import CameraGroup

# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------

_PLAN_JSON = json.dumps(
    {
        "cameraActions": [
            {"frame": 2000, "cameraName": "Chase", "duration": 8, "reason": "battle"},
            {"frame": 1000, "cameraName": "TV1", "duration": 5, "reason": "opening"},
        ]
    }
)


def _summary() -> EventSummary:
    return EventSummary(
        track_name="Monza",
        session_type="Race",
        start_frame=1000,
        end_frame=7000,
        duration_minutes=100 / 60,
        cameras=[CameraGroup(1, "TV1"), CameraGroup(2, "Chase")],
    )


def _make_openai_response(content: str, prompt_tokens: int = 100, completion_tokens: int = 50):
    mock = MagicMock()
    mock.choices[0].message.content = content
    mock.usage.prompt_tokens = prompt_tokens
    mock.usage.completion_tokens = completion_tokens
    mock.usage.total_tokens = prompt_tokens + completion_tokens
    return mock


# ---------------------------------------------------------------------------
# Response parsing
# ---------------------------------------------------------------------------


def test_extract_json_strips_code_fences():
    assert extract_json('```json\n{"a": 1}\n```') == '{"a": 1}'
    assert extract_json('```\n{"a": 1}\n```') == '{"a": 1}'


def test_extract_json_cuts_surrounding_text():
    assert extract_json('Here you go: {"a": {"b": 2}} enjoy') == '{"a": {"b": 2}}'


def test_parse_plan_response_valid():
    actions = parse_plan_response(_PLAN_JSON)
    assert [(a.frame, a.camera_name, a.duration_s, a.reason) for a in actions] == [
        (2000, "Chase", 8, "battle"),
        (1000, "TV1", 5, "opening"),
    ]
    assert all(a.car_number is None for a in actions)


def test_parse_plan_response_keeps_legacy_driver_number():
    raw = json.dumps({"cameraActions": [{"frame": 10, "cameraName": "TV1", "driverNumber": 44}]})
    assert parse_plan_response(raw)[0].car_number == 44


def test_parse_plan_response_ignores_unknown_fields():
    raw = json.dumps({"cameraActions": [{"frame": 10, "cameraName": "TV1", "mood": "tense"}], "notes": "x"})
    assert len(parse_plan_response(raw)) == 1


def test_parse_plan_response_missing_actions_is_empty():
    assert parse_plan_response("{}") == []


@pytest.mark.parametrize(
    "raw",
    [
        "",
        "   ",
        "not json at all",
        '{"cameraActions": [{"cameraName": "TV1"}]}',
        '{"cameraActions": "nope"}',
    ],
)
def test_parse_plan_response_invalid(raw):
    with pytest.raises(PlanProviderError):
        parse_plan_response(raw)


# ---------------------------------------------------------------------------
# OpenAIPlanProvider (mocked)
# ---------------------------------------------------------------------------


def test_generate_plan_success():
    with patch("replay_director.planning.llm_client.OpenAI") as MockOpenAI:
        mock_client = MagicMock()
        MockOpenAI.return_value = mock_client
        mock_client.chat.completions.create.return_value = _make_openai_response(_PLAN_JSON)

        provider = OpenAIPlanProvider(api_key="test-key", model="gpt-4o")
        plan = provider.generate_plan(_summary())

    assert plan.generated_by == "OpenAI (gpt-4o)"
    assert plan.total_duration_frames == 6000
    assert [a.frame for a in plan.actions] == [2000, 1000]
    assert provider.last_error == ""

    kwargs = mock_client.chat.completions.create.call_args.kwargs
    assert kwargs["model"] == "gpt-4o"
    assert kwargs["response_format"] == {"type": "json_object"}
    assert kwargs["messages"][0]["role"] == "system"
    assert "Monza" in kwargs["messages"][1]["content"]
    MockOpenAI.assert_called_once_with(api_key="test-key", base_url=OpenAIPlanProvider.BASE_URL, timeout=120.0)


def test_generate_plan_logs_usage(caplog):
    with patch("replay_director.planning.llm_client.OpenAI") as MockOpenAI:
        mock_client = MagicMock()
        MockOpenAI.return_value = mock_client
        mock_client.chat.completions.create.return_value = _make_openai_response(
            _PLAN_JSON, prompt_tokens=321, completion_tokens=54
        )

        with caplog.at_level(logging.INFO, logger="replay_director.planning.llm_client"):
            OpenAIPlanProvider(api_key="test-key").generate_plan(_summary())

    assert any("321" in r.message and "54" in r.message and "375" in r.message for r in caplog.records)


def test_generate_plan_api_error_raises():
    with patch("replay_director.planning.llm_client.OpenAI") as MockOpenAI:
        from openai import OpenAIError

        mock_client = MagicMock()
        MockOpenAI.return_value = mock_client
        mock_client.chat.completions.create.side_effect = OpenAIError("timeout")

        provider = OpenAIPlanProvider(api_key="test-key")
        with pytest.raises(PlanProviderError, match="timeout"):
            provider.generate_plan(_summary())

    assert "timeout" in provider.last_error


def test_generate_plan_unparseable_reply_raises():
    with patch("replay_director.planning.llm_client.OpenAI") as MockOpenAI:
        mock_client = MagicMock()
        MockOpenAI.return_value = mock_client
        mock_client.chat.completions.create.return_value = _make_openai_response("I cannot help")

        provider = OpenAIPlanProvider(api_key="test-key")
        with pytest.raises(PlanProviderError):
            provider.generate_plan(_summary())

    assert provider.last_error


def test_generate_plan_without_key_raises():
    provider = OpenAIPlanProvider(api_key="  ")
    assert provider.is_configured is False
    with pytest.raises(PlanProviderError, match="not configured"):
        provider.generate_plan(_summary())


def test_generate_plan_cancelled_makes_no_request():
    with patch("replay_director.planning.llm_client.OpenAI") as MockOpenAI:
        cancel = threading.Event()
        cancel.set()
        plan = OpenAIPlanProvider(api_key="test-key").generate_plan(_summary(), cancel)

    assert plan.actions == []
    MockOpenAI.assert_not_called()


def test_test_connection():
    with patch("replay_director.planning.llm_client.OpenAI") as MockOpenAI:
        from openai import OpenAIError

        mock_client = MagicMock()
        MockOpenAI.return_value = mock_client
        provider = OpenAIPlanProvider(api_key="test-key")
        assert provider.test_connection() is True

        mock_client.chat.completions.create.side_effect = OpenAIError("refused")
        assert provider.test_connection() is False
        assert "refused" in provider.last_error


# ---------------------------------------------------------------------------
# LocalModelProvider and selection
# ---------------------------------------------------------------------------


def test_local_provider_needs_no_key():
    with patch("replay_director.planning.llm_client.OpenAI") as MockOpenAI:
        mock_client = MagicMock()
        MockOpenAI.return_value = mock_client
        mock_client.chat.completions.create.return_value = _make_openai_response(_PLAN_JSON)

        provider = LocalModelProvider(endpoint="http://localhost:1234/v1", model="mistral")
        plan = provider.generate_plan(_summary())

    assert plan.generated_by == "Local Model (mistral)"
    assert len(plan.actions) == 2
    assert "response_format" not in mock_client.chat.completions.create.call_args.kwargs
    assert MockOpenAI.call_args.kwargs["base_url"] == "http://localhost:1234/v1"


def test_build_provider():
    openai_provider = build_provider(DirectorSettings(openai_api_key="k", openai_model="gpt-4o-mini"))
    assert isinstance(openai_provider, OpenAIPlanProvider)
    assert openai_provider.model_name == "gpt-4o-mini"

    local = build_provider(DirectorSettings(provider=" Local ", local_model="qwen"))
    assert isinstance(local, LocalModelProvider)
    assert local.model_name == "qwen"


def test_build_provider_unknown():
    with pytest.raises(ValueError, match="Unknown plan provider"):
        build_provider(DirectorSettings(provider="carrier-pigeon"))


@pytest.mark.parametrize("choices", [[], [MagicMock(message=None)]])
def test_generate_plan_without_choices_raises(choices):
    with patch("replay_director.planning.llm_client.OpenAI") as MockOpenAI:
        mock_client = MagicMock()
        MockOpenAI.return_value = mock_client
        response = _make_openai_response("")
        response.choices = choices
        mock_client.chat.completions.create.return_value = response

        provider = OpenAIPlanProvider(api_key="test-key")
        with pytest.raises(PlanProviderError, match="Empty response"):
            provider.generate_plan(_summary())

    assert provider.last_error == "Empty response from model"
