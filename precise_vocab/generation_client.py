"""Text generation collaborators and their error types."""

from typing import Any, Optional, Protocol

import httpx
from tenacity import AsyncRetrying, retry_if_exception_type, stop_after_attempt, wait_exponential

import config
from precise_vocab.logger import get_logger
from precise_vocab.models import GenerationOptions


class GenerationError(Exception):
    """Base class for text generation failures."""

    pass


class TransportError(GenerationError):
    """Raised when the generator cannot be reached or answers with an error."""

    pass


class EmptyResponseError(GenerationError):
    """Raised when the generator's answer carries no text."""

    pass


class GenerationCancelledError(GenerationError):
    """Raised when a caller cancels a run in hard-stop mode."""

    pass


class ConfigurationError(GenerationError):
    """Raised when no usable generator is configured."""

    pass


class TextGenerator(Protocol):
    """Anything that turns a prompt into text."""

    async def generate_text(self, prompt: str, options: GenerationOptions) -> str:
        ...


# Places where common providers put the generated text, tried in order.
TEXT_PATHS = [
    ("candidates", 0, "content", "parts", 0, "text"),
    ("candidates", 0, "text"),
    ("choices", 0, "message", "content"),
    ("choices", 0, "text"),
    ("content", 0, "text"),
    ("content", "parts", 0, "text"),
    ("content", "text"),
    ("response", "text"),
    ("message", "content"),
    ("message", "text"),
    ("data", "text"),
    ("result",),
    ("text",),
    ("content",),
    ("response",),
    ("output",),
    ("data",),
]


ENVELOPE_KEYS = {path[0] for path in TEXT_PATHS} | {"error"}


def is_envelope(body: Any) -> bool:
    """True for a decoded provider response object, as opposed to a raw answer."""
    return isinstance(body, dict) and bool(ENVELOPE_KEYS & body.keys())


def _follow(data: Any, path: tuple) -> Any:
    for step in path:
        if isinstance(step, int):
            if not isinstance(data, list) or len(data) <= step:
                return None
        elif not isinstance(data, dict):
            return None
        data = data[step] if isinstance(step, int) else data.get(step)
        if data is None:
            return None
    return data


def extract_response_text(payload: Any) -> str:
    """
    Find the generated text in a provider response body.

    Args:
        payload: Decoded JSON body, or a plain string

    Returns:
        The generated text

    Raises:
        TransportError: If the body is an error object with no text
        EmptyResponseError: If no text is present
    """
    if isinstance(payload, str):
        if payload.strip():
            return payload
        raise EmptyResponseError("Generator returned an empty body")

    for path in TEXT_PATHS:
        value = _follow(payload, path)
        if isinstance(value, str) and value.strip():
            return value

    if _follow(payload, ("candidates", 0, "finishReason")) == "MAX_TOKENS":
        raise EmptyResponseError(
            "Response was truncated by the token limit before any text was produced"
        )
    if isinstance(payload, dict) and payload.get("error"):
        error = payload["error"]
        message = error.get("message", error) if isinstance(error, dict) else error
        raise TransportError(f"Generator error: {message}")
    raise EmptyResponseError("Generator response contains no text")


class HttpTextGenerator:
    """
    Calls a JSON text-generation endpoint over HTTP.

    The request body is a flat JSON object (model, prompt and sampling
    options) sent with bearer authentication. Timeouts are retried with
    exponential backoff; any other HTTP failure is reported as
    ``TransportError`` straight away.
    """

    def __init__(
        self,
        base_url: str = config.GENERATION_API_BASE_URL,
        api_key: str = config.GENERATION_API_KEY,
        model: str = config.GENERATION_MODEL,
        timeout: float = config.GENERATION_API_TIMEOUT,
        max_attempts: int = config.GENERATION_API_MAX_ATTEMPTS,
        client: Optional[httpx.AsyncClient] = None,
    ):
        self.base_url = base_url.strip()
        self.api_key = api_key.strip()
        self.model = model
        self.timeout = timeout
        self.max_attempts = max_attempts
        self._client = client
        self.logger = get_logger()

    def is_configured(self) -> bool:
        return bool(self.base_url) and bool(self.api_key)

    def build_payload(self, prompt: str, options: GenerationOptions) -> dict:
        return {
            "model": self.model,
            "prompt": prompt,
            "temperature": options.temperature,
            "max_output_tokens": options.max_output_tokens,
            "top_p": options.top_p,
            "top_k": options.top_k,
        }

    async def _post(self, client: httpx.AsyncClient, payload: dict) -> httpx.Response:
        async for attempt in AsyncRetrying(
            stop=stop_after_attempt(self.max_attempts),
            wait=wait_exponential(multiplier=1, min=1, max=10),
            retry=retry_if_exception_type(httpx.TimeoutException),
            reraise=True,
        ):
            with attempt:
                response = await client.post(
                    self.base_url,
                    json=payload,
                    headers={"Authorization": f"Bearer {self.api_key}"},
                    timeout=self.timeout,
                )
        return response

    async def generate_text(self, prompt: str, options: GenerationOptions) -> str:
        """
        Generate text for a prompt.

        Args:
            prompt: Prompt text
            options: Sampling options

        Returns:
            Generated text

        Raises:
            ConfigurationError: If base URL or API key is missing
            TransportError: On network failure, timeout or non-2xx status
            EmptyResponseError: If the response holds no text
        """
        if not self.is_configured():
            raise ConfigurationError("Generation API is not configured (base URL and API key required)")

        payload = self.build_payload(prompt, options)
        self.logger.debug(f"POST {self.base_url} model={self.model} prompt_chars={len(prompt)}")

        try:
            if self._client is not None:
                response = await self._post(self._client, payload)
            else:
                async with httpx.AsyncClient() as client:
                    response = await self._post(client, payload)
        except httpx.TimeoutException as e:
            raise TransportError(f"Generation request timed out after {self.max_attempts} attempts") from e
        except httpx.HTTPError as e:
            raise TransportError(f"Generation request failed: {e}") from e

        if response.is_error:
            raise TransportError(f"Generation API error {response.status_code}: {response.text[:500]}")

        try:
            body = response.json()
        except ValueError:
            body = None

        # Anything but a provider envelope is the model's own answer.
        if not is_envelope(body):
            return extract_response_text(response.text)
        return extract_response_text(body)
