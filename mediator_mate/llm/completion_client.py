"""
Chat Completion Client
======================

Async HTTP client for an OpenAI-compatible chat completion API.
One POST per call: no retry, no streaming.
"""

import httpx
import logging
from typing import Optional, Dict, Any, List
from dataclasses import dataclass

logger = logging.getLogger(__name__)

DEFAULT_BASE_URL = "https://api.openai.com/v1"


@dataclass
class CompletionResult:
    """Result from a completion API call"""
    content: str
    model: str
    input_tokens: int = 0
    output_tokens: int = 0
    raw_response: Optional[Dict] = None
    success: bool = True
    error: Optional[str] = None
    status_code: Optional[int] = None


class CompletionClient:
    """
    Client for `<base_url>/chat/completions`.

    `timeout=None` keeps the httpx default. `transport` is passed to the
    underlying AsyncClient (tests use `httpx.MockTransport`).
    """

    def __init__(
        self,
        api_key: Optional[str],
        model: str,
        base_url: str = DEFAULT_BASE_URL,
        timeout: Optional[float] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.api_key = api_key
        self.model = model
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self.transport = transport
        self._client: Optional[httpx.AsyncClient] = None

    @property
    def url(self) -> str:
        return f"{self.base_url}/chat/completions"

    async def _get_client(self) -> httpx.AsyncClient:
        """Get or create async HTTP client"""
        if self._client is None:
            kwargs: Dict[str, Any] = {}
            if self.timeout is not None:
                kwargs["timeout"] = self.timeout
            if self.transport is not None:
                kwargs["transport"] = self.transport
            self._client = httpx.AsyncClient(**kwargs)
        return self._client

    async def close(self):
        """Close the HTTP client"""
        if self._client:
            await self._client.aclose()
            self._client = None

    def _failure(self, error: str, status_code: Optional[int] = None, raw: Optional[Dict] = None) -> CompletionResult:
        return CompletionResult(
            content="",
            model=self.model,
            success=False,
            error=error,
            status_code=status_code,
            raw_response=raw,
        )

    async def call(
        self,
        messages: List[Dict[str, str]],
        temperature: float = 0.7,
    ) -> CompletionResult:
        """
        Make one completion request.

        Args:
            messages: List of message dicts with role and content
            temperature: Sampling temperature

        Returns:
            CompletionResult with content or error
        """
        if not self.api_key:
            return self._failure("API key not configured")

        payload = {
            "model": self.model,
            "messages": messages,
            "temperature": temperature,
        }
        headers = {
            "Authorization": f"Bearer {self.api_key}",
            "Content-Type": "application/json",
        }

        try:
            client = await self._get_client()
            response = await client.post(self.url, json=payload, headers=headers)
        except httpx.HTTPError as e:
            logger.error(f"Completion request failed: {e!r}")
            return self._failure(f"Completion API unreachable: {e}")

        if not response.is_success:
            logger.error(f"Completion API error ({response.status_code}): {response.text}")
            return self._failure(
                f"Completion API request failed with status {response.status_code}",
                status_code=response.status_code,
            )

        try:
            data = response.json()
        except ValueError as e:
            logger.error(f"Completion API returned invalid JSON: {e}")
            return self._failure("Completion API returned invalid JSON", status_code=response.status_code)

        # Extract content
        try:
            content = data["choices"][0]["message"]["content"]
        except (KeyError, IndexError, TypeError) as e:
            logger.error(f"Completion response missing content: {e!r}; body={data}")
            return self._failure("Failed to extract content from completion response", response.status_code, data)

        if not content or not isinstance(content, str):
            logger.error(f"Completion response has empty content; body={data}")
            return self._failure("Failed to extract content from completion response", response.status_code, data)

        usage = data.get("usage") or {}

        return CompletionResult(
            content=content,
            model=self.model,
            input_tokens=usage.get("prompt_tokens", 0),
            output_tokens=usage.get("completion_tokens", 0),
            raw_response=data,
            success=True,
            status_code=response.status_code,
        )
