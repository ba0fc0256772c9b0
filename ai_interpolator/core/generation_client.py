"""
Generation backend client.

The pipeline talks to the AI backend through the GenerationClient
capability only. HttpGenerationClient implements it against an
OpenAI-compatible HTTP API (chat completions, image generations, audio
transcriptions) with retry on transient failures.
"""

import json
import time
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Any, Dict, List, Optional

import httpx
from tenacity import (
    AsyncRetrying,
    retry_if_exception,
    stop_after_attempt,
    wait_exponential,
)

from ai_interpolator.core.exceptions import RequestError, ResponseError
from ai_interpolator.core.settings import get_settings
from ai_interpolator.utils.logger import get_logger
from ai_interpolator.utils import metrics

logger = get_logger(__name__)


# Parameters forwarded to chat completions when set
CHAT_PARAMETERS = (
    "temperature",
    "max_tokens",
    "top_p",
    "top_k",
    "frequency_penalty",
    "presence_penalty",
)

MODALITY_TEXT = "text"
MODALITY_IMAGE = "image"
MODALITY_TRANSCRIPTION = "transcription"


@dataclass
class Attachment:
    """Binary input for structured generation (audio, images...)."""
    filename: str
    mime_type: str
    data: bytes

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary (payload reduced to its size)."""
        return {
            "filename": self.filename,
            "mime_type": self.mime_type,
            "size": len(self.data),
        }


class GenerationClient(ABC):
    """Abstract generation capability."""

    @abstractmethod
    async def generate(self, prompt: str, params: Dict[str, Any]) -> str:
        """
        Generate text for a prompt.

        Raises:
            RequestError: The backend could not be reached or refused the call
            ResponseError: The backend answered with an unusable payload
        """

    @abstractmethod
    async def generate_structured(
        self,
        prompt: str,
        params: Dict[str, Any],
        attachments: Optional[List[Attachment]] = None,
    ) -> str:
        """
        Generate from a prompt plus binary attachments.

        ``params["modality"]`` selects the operation (``image`` returns a
        JSON list of ``{"value": url}`` objects, ``transcription`` returns
        the transcribed text).
        """

    async def close(self) -> None:
        """Release any held resources."""


def _is_transient(exc: BaseException) -> bool:
    if not isinstance(exc, RequestError):
        return False
    return exc.status_code is None or exc.status_code == 429 or exc.status_code >= 500


class HttpGenerationClient(GenerationClient):
    """
    OpenAI-compatible HTTP client.

    Features:
    - Automatic retry with exponential backoff on timeouts, 429 and 5xx
    - Chat completions for text rules
    - Image generations and audio transcriptions for media rules
    """

    def __init__(
        self,
        base_url: Optional[str] = None,
        api_key: Optional[str] = None,
        model: Optional[str] = None,
        timeout: Optional[float] = None,
        max_retries: Optional[int] = None,
        retry_delay: float = 1.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        """
        Initialize the client.

        Args:
            base_url: API base URL. Defaults to settings.
            api_key: Bearer token. Defaults to settings.
            model: Default chat model. Defaults to settings.
            timeout: Request timeout in seconds
            max_retries: Maximum attempts for transient failures
            retry_delay: Backoff multiplier between attempts
            transport: Optional httpx transport (tests)
        """
        settings = get_settings()
        self.base_url = (base_url or settings.generation_base_url).rstrip("/")
        self.api_key = api_key if api_key is not None else settings.generation_api_key
        self.model = model or settings.generation_model
        self.image_model = settings.generation_image_model
        self.transcription_model = settings.generation_transcription_model
        self.timeout = timeout or settings.generation_timeout
        self.max_retries = max_retries or settings.generation_max_retries
        self.retry_delay = retry_delay
        self._transport = transport
        self._client: Optional[httpx.AsyncClient] = None

    async def _get_client(self) -> httpx.AsyncClient:
        """Get or create HTTP client."""
        if self._client is None:
            self._client = httpx.AsyncClient(
                base_url=self.base_url,
                timeout=httpx.Timeout(self.timeout),
                headers={"Authorization": f"Bearer {self.api_key}"},
                transport=self._transport,
            )
        return self._client

    async def close(self) -> None:
        """Close the HTTP client."""
        if self._client:
            await self._client.aclose()
            self._client = None

    async def __aenter__(self) -> "HttpGenerationClient":
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        await self.close()

    # =========================================================================
    # CAPABILITY
    # =========================================================================

    async def generate(self, prompt: str, params: Dict[str, Any]) -> str:
        payload: Dict[str, Any] = {
            "model": params.get("model") or self.model,
            "messages": [{"role": "user", "content": prompt}],
        }
        for key in CHAT_PARAMETERS:
            if params.get(key) not in (None, ""):
                payload[key] = params[key]

        data = await self._post("chat_completion", "/chat/completions", json=payload)
        try:
            return data["choices"][0]["message"]["content"] or ""
        except (KeyError, IndexError, TypeError) as e:
            raise ResponseError(
                f"Unexpected chat completion payload: {e}",
                details={"keys": list(data) if isinstance(data, dict) else None},
            )

    async def generate_structured(
        self,
        prompt: str,
        params: Dict[str, Any],
        attachments: Optional[List[Attachment]] = None,
    ) -> str:
        modality = params.get("modality", MODALITY_TEXT)
        if modality == MODALITY_IMAGE:
            return await self._generate_images(prompt, params)
        if modality == MODALITY_TRANSCRIPTION:
            return await self._transcribe(params, attachments or [])
        return await self.generate(prompt, params)

    async def _generate_images(self, prompt: str, params: Dict[str, Any]) -> str:
        payload = {
            "model": params.get("model") or self.image_model,
            "prompt": prompt,
            "n": int(params.get("n", 1)),
            "size": params.get("size", "1024x1024"),
        }
        data = await self._post("image", "/images/generations", json=payload)
        try:
            urls = [item["url"] for item in data["data"]]
        except (KeyError, TypeError) as e:
            raise ResponseError(f"Unexpected image payload: {e}")
        return json.dumps([{"value": url} for url in urls])

    async def _transcribe(self, params: Dict[str, Any], attachments: List[Attachment]) -> str:
        if not attachments:
            raise RequestError("Transcription requires an audio attachment")
        attachment = attachments[0]
        data = await self._post(
            "transcription",
            "/audio/transcriptions",
            files={"file": (attachment.filename, attachment.data, attachment.mime_type)},
            data={
                "model": params.get("model") or self.transcription_model,
                "response_format": "json",
            },
        )
        if not isinstance(data, dict) or "text" not in data:
            raise ResponseError("Transcription payload has no text")
        return data["text"]

    # =========================================================================
    # TRANSPORT
    # =========================================================================

    async def _post(self, operation: str, path: str, **kwargs: Any) -> Any:
        """POST with retry on transient failures."""
        retrying = AsyncRetrying(
            stop=stop_after_attempt(self.max_retries),
            wait=wait_exponential(multiplier=self.retry_delay, min=0, max=10),
            retry=retry_if_exception(_is_transient),
            reraise=True,
        )
        async for attempt in retrying:
            with attempt:
                return await self._post_once(operation, path, **kwargs)

    async def _post_once(self, operation: str, path: str, **kwargs: Any) -> Any:
        client = await self._get_client()
        start = time.time()
        try:
            response = await client.post(path, **kwargs)
        except httpx.TimeoutException:
            metrics.generation_count.labels(operation=operation, status="timeout").inc()
            logger.warning("Generation request timed out", operation=operation, timeout=self.timeout)
            raise RequestError(f"Request timed out after {self.timeout}s")
        except httpx.HTTPError as e:
            metrics.generation_count.labels(operation=operation, status="error").inc()
            logger.warning("Generation request failed", operation=operation, error=str(e))
            raise RequestError(f"Request failed: {e}")
        finally:
            metrics.generation_duration.labels(operation=operation).observe(time.time() - start)

        if response.status_code >= 400:
            metrics.generation_count.labels(operation=operation, status="error").inc()
            logger.warning(
                "Generation backend returned an error",
                operation=operation,
                status_code=response.status_code,
            )
            raise RequestError(
                f"Backend returned {response.status_code}: {response.text[:200]}",
                status_code=response.status_code,
            )

        try:
            data = response.json()
        except ValueError as e:
            metrics.generation_count.labels(operation=operation, status="invalid").inc()
            raise ResponseError(f"Backend returned invalid JSON: {e}")

        metrics.generation_count.labels(operation=operation, status="success").inc()
        return data
