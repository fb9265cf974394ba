"""Text generation — the callable the orchestration engine uses to reach a model.

Every generator matches the protocol:

    async def __call__(self, request: TextRequest) -> str: ...

`request` carries the model id, an optional system prompt, a prompt and/or a
chat message list, sampling settings, and engine trace metadata. Responses are
opaque strings.

Implementations:

    OpenRouterGenerator — live HTTP client for the OpenRouter chat API.
    FixtureAdapter      — record/replay wrapper (see chambr.fixtures).

resolve_generator() picks what to use: an injected generator wins; otherwise a
live client is built from the resolved API key.
"""

from __future__ import annotations

import logging
from collections.abc import Awaitable, Callable
from pathlib import Path
from typing import Any, Literal, Protocol, TypedDict

import httpx
from pydantic import BaseModel

from .config import resolve_api_key
from .constants import API_KEY_ENV
from .errors import AuthConfigError, ProviderError

logger = logging.getLogger(__name__)

OPENROUTER_URL = "https://openrouter.ai/api/v1"

GeneratorSource = Literal["injected", "openrouter"]


class ChatMessage(TypedDict):
    role: str
    content: str


class TextRequest(TypedDict, total=False):
    model: str
    system: str
    prompt: str
    messages: list[ChatMessage]
    temperature: float
    reasoningEffort: str
    # Volatile engine metadata; never part of a fixture key.
    trace: dict[str, Any]
    metadata: dict[str, Any]


class TextGenerator(Protocol):
    async def __call__(self, request: TextRequest) -> str: ...


class ResolvedGenerator(BaseModel):
    generator: Callable[..., Awaitable[str]]
    source: GeneratorSource


# ---------------------------------------------------------------------------
# OpenRouterGenerator
# ---------------------------------------------------------------------------

class OpenRouterGenerator:
    """Async client for OpenRouter's OpenAI-compatible chat completions API.

    POST {base_url}/chat/completions
        {"model": ..., "messages": [...], "temperature": ..., "reasoning": {"effort": ...}}
    Response: {"choices": [{"message": {"content": "..."}}]}

    Args:
        api_key:  OpenRouter API key, sent as a bearer token.
        base_url: API root. Defaults to the public OpenRouter endpoint.
        timeout:  HTTP timeout in seconds. Defaults to 120.
        verbose:  Emit per-call debug logging. Off by default.
    """

    def __init__(
        self,
        api_key: str,
        base_url: str = OPENROUTER_URL,
        timeout: float = 120.0,
        verbose: bool = False,
    ) -> None:
        self._api_key = api_key
        self._base_url = base_url.rstrip("/")
        self._timeout = timeout
        self._verbose = verbose

    def _headers(self) -> dict[str, str]:
        return {
            "Content-Type": "application/json",
            "Authorization": f"Bearer {self._api_key}",
        }

    def _build_body(self, request: TextRequest) -> dict[str, Any]:
        messages: list[dict[str, Any]] = []
        if request.get("system"):
            messages.append({"role": "system", "content": request["system"]})
        messages.extend(request.get("messages") or [])
        if request.get("prompt"):
            messages.append({"role": "user", "content": request["prompt"]})

        body: dict[str, Any] = {"model": request.get("model"), "messages": messages}
        if request.get("temperature") is not None:
            body["temperature"] = request["temperature"]
        effort = request.get("reasoningEffort")
        if effort and effort != "auto":
            body["reasoning"] = {"effort": effort}
        return body

    def _parse_response(self, data: Any) -> str:
        try:
            content = data["choices"][0]["message"]["content"]
        except (KeyError, IndexError, TypeError):
            content = None
        if not isinstance(content, str):
            raise ProviderError(
                "Unexpected response format from OpenRouter", code="PROVIDER_BAD_RESPONSE"
            )
        return content

    async def __call__(self, request: TextRequest) -> str:
        url = f"{self._base_url}/chat/completions"
        body = self._build_body(request)
        if self._verbose:
            logger.debug("openrouter call model=%s messages=%d", body["model"], len(body["messages"]))

        try:
            async with httpx.AsyncClient(timeout=self._timeout) as client:
                resp = await client.post(url, json=body, headers=self._headers())
                resp.raise_for_status()
        except httpx.ConnectError as e:
            raise ProviderError(
                f"Cannot connect to OpenRouter at {self._base_url}", code="PROVIDER_UNREACHABLE"
            ) from e
        except httpx.HTTPStatusError as e:
            raise ProviderError(
                f"OpenRouter returned HTTP {e.response.status_code}", code="PROVIDER_HTTP_ERROR"
            ) from e
        except httpx.TimeoutException as e:
            raise ProviderError(
                f"OpenRouter timed out after {self._timeout}s", code="PROVIDER_TIMEOUT"
            ) from e
        except httpx.TransportError as e:
            raise ProviderError(f"OpenRouter request failed: {e}", code="PROVIDER_TRANSPORT") from e

        try:
            data = resp.json()
        except ValueError as e:
            raise ProviderError(
                "OpenRouter returned a non-JSON response", code="PROVIDER_BAD_RESPONSE"
            ) from e
        text = self._parse_response(data)
        if self._verbose:
            logger.debug("openrouter response model=%s len=%d", body["model"], len(text))
        return text


# ---------------------------------------------------------------------------
# Resolution
# ---------------------------------------------------------------------------

def resolve_generator(
    generator: TextGenerator | None = None,
    base_dir: Path | str | None = None,
) -> ResolvedGenerator:
    """Pick the generator for a run. Raises AuthConfigError if no API key is available."""
    if generator is not None:
        return ResolvedGenerator(generator=generator, source="injected")

    api_key = resolve_api_key(base_dir)
    if not api_key:
        raise AuthConfigError(
            f"No OpenRouter API key found. Set {API_KEY_ENV} or log in to store a key.",
            code="OPENROUTER_KEY_MISSING",
        )
    return ResolvedGenerator(generator=OpenRouterGenerator(api_key), source="openrouter")
