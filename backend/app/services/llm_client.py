"""
Chat-completion client for the OpenAI API.

A thin adapter: one call surface, normalized errors, and the token usage
needed for cost accounting. Recording that usage is the caller's job.
"""
import logging
from dataclasses import dataclass
from typing import Dict, List, Optional
import httpx
from app.core.config import settings
from app.core.exceptions import AuthError, RateLimitError, UpstreamError, UpstreamTimeoutError

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Completion:
    """Text of the first choice plus token usage."""
    text: str
    model: str
    prompt_tokens: int = 0
    completion_tokens: int = 0

    @property
    def total_tokens(self) -> int:
        return self.prompt_tokens + self.completion_tokens


class LanguageModelClient:
    """Async client for an OpenAI-compatible chat-completions endpoint."""

    def __init__(
        self,
        api_key: Optional[str] = None,
        api_url: Optional[str] = None,
        model: Optional[str] = None,
        timeout: Optional[float] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None
    ):
        self.api_key = (settings.OPENAI_API_KEY if api_key is None else api_key).strip()
        self.api_url = api_url or settings.OPENAI_API_URL
        self.model = model or settings.OPENAI_MODEL
        self.timeout = timeout or settings.OPENAI_TIMEOUT_SECONDS
        self._transport = transport

        if not self.api_key:
            logger.warning("OpenAI API key not configured. AI features are disabled.")

    def is_available(self) -> bool:
        """Whether a credential was present at construction."""
        return bool(self.api_key)

    async def complete(
        self,
        messages: List[Dict[str, str]],
        model: Optional[str] = None,
        temperature: float = 0.3,
        max_tokens: int = 500
    ) -> Completion:
        """
        Send role-tagged messages and return the first completion choice.

        Args:
            messages: Ordered list of {"role", "content"} dicts
            model: Model override (defaults to OPENAI_MODEL)
            temperature: Sampling randomness, 0..1
            max_tokens: Response token cap

        Raises:
            AuthError: No credential, or the provider rejected it
            RateLimitError: The provider throttled the request
            UpstreamTimeoutError: The request timed out
            UpstreamError: Any other non-2xx response or network failure
        """
        if not self.is_available():
            raise AuthError("OpenAI API key not configured")

        model_name = model or self.model
        payload = {
            "model": model_name,
            "messages": messages,
            "temperature": temperature,
            "max_tokens": max_tokens,
        }

        try:
            async with httpx.AsyncClient(timeout=self.timeout, transport=self._transport) as client:
                response = await client.post(
                    self.api_url,
                    headers={
                        "Authorization": f"Bearer {self.api_key}",
                        "Content-Type": "application/json"
                    },
                    json=payload
                )
        except httpx.TimeoutException as e:
            logger.error(f"OpenAI API request timed out after {self.timeout}s")
            raise UpstreamTimeoutError("Language model request timed out") from e
        except httpx.HTTPError as e:
            logger.error(f"OpenAI API network error: {e}")
            raise UpstreamError(f"Language model request failed: {e}") from e

        if response.status_code in (401, 403):
            logger.error(f"OpenAI API rejected credentials ({response.status_code})")
            raise AuthError("Language model credentials were rejected")
        if response.status_code == 429:
            retry_after = response.headers.get("retry-after")
            logger.warning("OpenAI API rate limit hit")
            raise RateLimitError(
                "Language model provider is throttling requests",
                retry_after=int(retry_after) if retry_after and retry_after.isdigit() else None
            )
        if response.status_code != 200:
            logger.error(f"OpenAI API error {response.status_code}: {response.text[:200]}")
            raise UpstreamError(f"Language model provider returned {response.status_code}")

        try:
            result = response.json()
            content = result["choices"][0]["message"]["content"] or ""
        except (ValueError, KeyError, IndexError, TypeError) as e:
            logger.error(f"Unexpected OpenAI API response body: {response.text[:200]}")
            raise UpstreamError("Language model response had no completion") from e

        usage = result.get("usage") or {}
        return Completion(
            text=content,
            model=result.get("model") or model_name,
            prompt_tokens=int(usage.get("prompt_tokens") or 0),
            completion_tokens=int(usage.get("completion_tokens") or 0)
        )


_default_client: Optional[LanguageModelClient] = None


def get_llm_client() -> LanguageModelClient:
    """Dependency returning the process-wide client (built on first use)."""
    global _default_client
    if _default_client is None:
        _default_client = LanguageModelClient()
    return _default_client
