"""OpenAI-compatible camera-plan providers.

Both providers talk through the ``openai`` SDK: :class:`OpenAIPlanProvider`
against the hosted API, :class:`LocalModelProvider` against any
OpenAI-compatible server (Ollama, LM Studio, llama.cpp) that needs no key.
"""

from __future__ import annotations

import json
import logging
import threading
from datetime import datetime
from typing import Protocol

from openai import APIError, OpenAI, OpenAIError
from pydantic import BaseModel, ConfigDict, Field, ValidationError

from replay_director.planning.models import CameraAction, CameraPlan, EventSummary
from replay_director.planning.prompt import PromptBuilder
from replay_director.settings import DirectorSettings

_logger = logging.getLogger(__name__)


class PlanProviderError(Exception):
    """A remote provider failed to return a usable camera plan."""


# ---------------------------------------------------------------------------
# Response schema
# ---------------------------------------------------------------------------


class _ActionPayload(BaseModel):
    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    frame: int
    camera_name: str = Field(alias="cameraName")
    duration: int = 0
    reason: str = ""
    driver_number: int | None = Field(default=None, alias="driverNumber")


class _PlanPayload(BaseModel):
    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    camera_actions: list[_ActionPayload] = Field(default_factory=list, alias="cameraActions")


# ---------------------------------------------------------------------------
# Module-level helpers
# ---------------------------------------------------------------------------


def extract_json(content: str) -> str:
    """Strip Markdown code fences and cut *content* to its outermost ``{...}``."""
    text = content.strip()
    if text.startswith("```json"):
        text = text[7:]
    elif text.startswith("```"):
        text = text[3:]
    if text.endswith("```"):
        text = text[:-3]
    text = text.strip()

    start, end = text.find("{"), text.rfind("}")
    if start >= 0 and end > start:
        text = text[start : end + 1]
    return text


def _response_text(response) -> str:
    """Return the first choice's message content, or "" when there is none."""
    if not response.choices:
        return ""
    message = response.choices[0].message
    if message is None:
        return ""
    return message.content or ""


def parse_plan_response(raw: str) -> list[CameraAction]:
    """Parse a model response into camera actions.

    Raises:
        PlanProviderError: *raw* is empty or not a valid ``cameraActions`` document.
    """
    if not raw or not raw.strip():
        raise PlanProviderError("Empty response from model")
    try:
        payload = _PlanPayload.model_validate(json.loads(extract_json(raw)))
    except (json.JSONDecodeError, ValidationError, TypeError) as exc:
        raise PlanProviderError(f"Could not parse camera plan: {exc}") from exc

    return [
        CameraAction(
            frame=a.frame,
            camera_name=a.camera_name,
            car_number=a.driver_number,
            duration_s=a.duration,
            reason=a.reason,
        )
        for a in payload.camera_actions
    ]


# ---------------------------------------------------------------------------
# Providers
# ---------------------------------------------------------------------------


class PlanProvider(Protocol):
    name: str
    last_error: str

    @property
    def model_name(self) -> str: ...

    @property
    def is_configured(self) -> bool: ...

    def generate_plan(
        self, summary: EventSummary, cancel: threading.Event | None = None
    ) -> CameraPlan: ...

    def test_connection(self, cancel: threading.Event | None = None) -> bool: ...


class _ChatPlanProvider:
    """Shared chat-completion plumbing for OpenAI-compatible providers."""

    name = "Chat"
    supports_json_mode = False
    temperature = 0.7
    max_tokens = 4096

    def __init__(self, model: str, timeout: float = 120.0, builder: PromptBuilder | None = None) -> None:
        self._model = model
        self._timeout = timeout
        self._builder = builder or PromptBuilder()
        self._client: OpenAI | None = None
        self.last_error = ""

    @property
    def model_name(self) -> str:
        return self._model

    @property
    def is_configured(self) -> bool:
        raise NotImplementedError

    def _make_client(self) -> OpenAI:
        raise NotImplementedError

    @property
    def client(self) -> OpenAI:
        if self._client is None:
            self._client = self._make_client()
        return self._client

    def generate_plan(self, summary: EventSummary, cancel: threading.Event | None = None) -> CameraPlan:
        """Request a camera plan for *summary*.

        Returns an empty plan when *cancel* is already set.  Token usage is
        logged at ``INFO`` level.

        Raises:
            PlanProviderError: not configured, API failure, or unparseable reply.
        """
        plan = CameraPlan(
            generated_by=f"{self.name} ({self.model_name})",
            generated_at=datetime.now(),
            total_duration_frames=summary.total_frames,
        )
        if not self.is_configured:
            raise PlanProviderError(f"{self.name} is not configured")
        if cancel is not None and cancel.is_set():
            return plan

        system_prompt, user_prompt = self._builder.build_messages(summary)
        kwargs: dict = {
            "model": self._model,
            "messages": [
                {"role": "system", "content": system_prompt},
                {"role": "user", "content": user_prompt},
            ],
            "temperature": self.temperature,
            "max_tokens": self.max_tokens,
        }
        if self.supports_json_mode:
            kwargs["response_format"] = {"type": "json_object"}

        try:
            response = self.client.chat.completions.create(**kwargs)
        except (OpenAIError, APIError) as exc:
            self.last_error = str(exc)
            _logger.warning("%s API call failed: %s", self.name, exc)
            raise PlanProviderError(f"{self.name} request failed: {exc}") from exc

        if response.usage is not None:
            _logger.info(
                "%s API usage — prompt: %d, completion: %d, total: %d tokens",
                self.name,
                response.usage.prompt_tokens,
                response.usage.completion_tokens,
                response.usage.total_tokens,
            )

        try:
            plan.actions = parse_plan_response(_response_text(response))
        except PlanProviderError as exc:
            self.last_error = str(exc)
            raise
        self.last_error = ""
        return plan

    def test_connection(self, cancel: threading.Event | None = None) -> bool:
        """Send a tiny prompt; return True when the server answers."""
        if not self.is_configured or (cancel is not None and cancel.is_set()):
            return False
        try:
            self.client.chat.completions.create(
                model=self._model,
                messages=[{"role": "user", "content": "Say 'OK' if you can read this."}],
                temperature=0,
                max_tokens=10,
            )
        except (OpenAIError, APIError) as exc:
            self.last_error = str(exc)
            _logger.warning("%s connection test failed: %s", self.name, exc)
            return False
        self.last_error = ""
        return True


class OpenAIPlanProvider(_ChatPlanProvider):
    """Hosted OpenAI chat completions.

    Args:
        api_key: OpenAI API key; the provider is unconfigured without one.
        model: Model identifier (e.g. ``"gpt-4o"``).
        timeout: Request timeout in seconds.
    """

    name = "OpenAI"
    supports_json_mode = True
    BASE_URL = "https://api.openai.com/v1"

    def __init__(self, api_key: str, model: str = "gpt-4o", timeout: float = 120.0, **kwargs) -> None:
        super().__init__(model=model, timeout=timeout, **kwargs)
        self._api_key = api_key

    @property
    def is_configured(self) -> bool:
        return bool(self._api_key and self._api_key.strip())

    def _make_client(self) -> OpenAI:
        return OpenAI(api_key=self._api_key, base_url=self.BASE_URL, timeout=self._timeout)


class LocalModelProvider(_ChatPlanProvider):
    """A local OpenAI-compatible server; no API key required.

    Args:
        endpoint: Base URL of the server's OpenAI-compatible API.
        model: Model name as known to the server.
    """

    name = "Local Model"
    _PLACEHOLDER_KEY = "not-needed"

    def __init__(
        self,
        endpoint: str = "http://localhost:11434/v1",
        model: str = "llama3",
        timeout: float = 300.0,
        **kwargs,
    ) -> None:
        super().__init__(model=model, timeout=timeout, **kwargs)
        self._endpoint = endpoint

    @property
    def is_configured(self) -> bool:
        return bool(self._endpoint.strip() and self._model.strip())

    def _make_client(self) -> OpenAI:
        return OpenAI(api_key=self._PLACEHOLDER_KEY, base_url=self._endpoint, timeout=self._timeout)


def build_provider(settings: DirectorSettings) -> PlanProvider:
    """Return the provider selected by ``settings.provider``.

    Raises:
        ValueError: unknown provider name.
    """
    kind = settings.provider.strip().lower()
    if kind == "openai":
        return OpenAIPlanProvider(api_key=settings.openai_api_key, model=settings.openai_model)
    if kind == "local":
        return LocalModelProvider(endpoint=settings.local_endpoint, model=settings.local_model)
    raise ValueError(f"Unknown plan provider: {settings.provider!r}")
