"""OpenAI-compatible client used for layout and image generation.

Both calls go through one tenacity retry loop. Only transport-level failures
are retried: connection errors, timeouts, rate limits and API errors.
Anything else surfaces on the first attempt.
"""

from __future__ import annotations

import inspect
import json
import logging
from dataclasses import dataclass
from typing import Any, Awaitable, Callable, Dict, Iterable, List, Mapping, TypeVar

import httpx
from openai import APIConnectionError, APIError, APIStatusError, AsyncOpenAI, RateLimitError
from openai.types.chat import ChatCompletionMessageParam
from tenacity import AsyncRetrying, retry_if_exception_type, stop_after_attempt, wait_exponential

LOGGER = logging.getLogger(__name__)

T = TypeVar("T")

_TRANSIENT_ERRORS: tuple[type[BaseException], ...] = (
    APIError,
    APIStatusError,
    APIConnectionError,
    RateLimitError,
    httpx.TimeoutException,
)


@dataclass(slots=True)
class ClientSettings:
    """Connection and retry options for :class:`AIClient`."""

    base_url: str
    api_key: str
    model: str
    image_model: str = "gpt-image-1"
    image_size: str = "1024x1024"
    organization: str | None = None
    request_timeout: float | None = 90.0
    max_retries: int = 3
    retry_min_seconds: float = 0.5
    retry_max_seconds: float = 6.0
    default_headers: Mapping[str, str] | None = None
    debug_logging: bool = False


@dataclass(slots=True)
class GeneratedImage:
    """One generated image, either inline base64 or a hosted URL."""

    b64_data: str | None = None
    url: str | None = None
    mime_type: str = "image/png"

    def as_reference(self) -> str | None:
        """Return a data URI when inline data exists, else the URL."""

        if self.b64_data:
            return f"data:{self.mime_type};base64,{self.b64_data}"
        return self.url or None


class AIClient:
    """Thin async wrapper over ``AsyncOpenAI`` chat completions and images."""

    def __init__(self, settings: ClientSettings, *, client: AsyncOpenAI | None = None) -> None:
        self._settings = settings
        self._client = client if client is not None else _open_client(settings)

    @property
    def settings(self) -> ClientSettings:
        return self._settings

    async def complete_json(
        self,
        messages: Iterable[Mapping[str, Any] | ChatCompletionMessageParam],
        *,
        response_format: Mapping[str, Any] | None = None,
        temperature: float | None = 0.7,
        max_tokens: int | None = None,
        **extra_params: Any,
    ) -> str | None:
        """Send ``messages`` as one non-streamed completion; return the reply text."""

        chat: List[ChatCompletionMessageParam] = [dict(message) for message in messages]  # type: ignore[misc]
        if not chat:
            raise ValueError("complete_json needs at least one message")

        request: Dict[str, Any] = {"model": self._settings.model, "messages": chat}
        optional = {
            "response_format": dict(response_format) if response_format is not None else None,
            "temperature": temperature,
            "max_tokens": max_tokens,
        }
        request.update({key: value for key, value in optional.items() if value is not None})
        request.update(extra_params)

        LOGGER.debug("Chat completion: model=%s, messages=%d", request["model"], len(chat))
        if self._settings.debug_logging:
            _dump_request(request)

        response = await self._with_retries(
            "chat completion",
            lambda: self._client.chat.completions.create(**request),
        )
        choices = getattr(response, "choices", None) or []
        if not choices:
            LOGGER.debug("Chat completion came back without choices")
            return None
        return getattr(getattr(choices[0], "message", None), "content", None) or None

    async def generate_image(self, prompt: str, *, size: str | None = None) -> GeneratedImage | None:
        """Ask for a single image; ``None`` when the reply carries no image."""

        request: Dict[str, Any] = {
            "model": self._settings.image_model,
            "prompt": prompt,
            "size": size or self._settings.image_size,
            "n": 1,
        }
        # dall-e models answer with hosted URLs unless told otherwise.
        if request["model"].startswith("dall-e"):
            request["response_format"] = "b64_json"
        LOGGER.debug("Image request: model=%s, size=%s", request["model"], request["size"])

        response = await self._with_retries(
            "image generation",
            lambda: self._client.images.generate(**request),
        )
        mime_type = f"image/{getattr(response, 'output_format', None) or 'png'}"
        for item in getattr(response, "data", None) or []:
            image = GeneratedImage(
                b64_data=getattr(item, "b64_json", None),
                url=getattr(item, "url", None),
                mime_type=mime_type,
            )
            if image.as_reference():
                return image
        return None

    async def aclose(self) -> None:
        """Release the HTTP connection pool held by the OpenAI client."""

        closer = getattr(self._client, "close", None)
        if closer is None:
            return
        try:
            pending = closer()
        except Exception as exc:  # pragma: no cover
            LOGGER.debug("Closing the AI client failed: %s", exc)
            return
        if inspect.isawaitable(pending):
            await pending

    async def _with_retries(self, label: str, call: Callable[[], Awaitable[T]]) -> T:
        retrying = AsyncRetrying(
            reraise=True,
            stop=stop_after_attempt(max(1, self._settings.max_retries)),
            wait=wait_exponential(
                multiplier=self._settings.retry_min_seconds,
                max=self._settings.retry_max_seconds,
            ),
            retry=retry_if_exception_type(_TRANSIENT_ERRORS),
        )
        async for attempt in retrying:
            with attempt:
                if attempt.retry_state.attempt_number > 1:
                    LOGGER.debug("Retrying %s (attempt %d)", label, attempt.retry_state.attempt_number)
                return await call()
        raise AssertionError("unreachable")  # pragma: no cover


def _open_client(settings: ClientSettings) -> AsyncOpenAI:
    return AsyncOpenAI(
        api_key=settings.api_key or None,
        base_url=settings.base_url,
        organization=settings.organization,
        timeout=settings.request_timeout,
        default_headers=dict(settings.default_headers) if settings.default_headers else None,
    )


def _dump_request(request: Mapping[str, Any]) -> None:
    try:
        LOGGER.debug("Chat request body:\n%s", json.dumps(request, ensure_ascii=False, indent=2))
    except (TypeError, ValueError):
        LOGGER.debug("Chat request body (not JSON-serializable): %r", request)


__all__ = ["AIClient", "ClientSettings", "GeneratedImage"]
