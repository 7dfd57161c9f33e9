"""httpx client and retry policy shared by the LLM and embedding providers."""

from __future__ import annotations

import httpx
from tenacity import retry, retry_if_exception, stop_after_attempt, wait_exponential_jitter

from question_engine import __version__

USER_AGENT = f"question-engine/{__version__}"

# provider overload / rate limiting; anything else 4xx is a caller bug
RETRYABLE_STATUS = frozenset({429, 500, 502, 503, 504, 529})


def provider_timeout(read: float = 60.0) -> httpx.Timeout:
    # LLM completions can take most of a minute; embeddings are far quicker
    return httpx.Timeout(connect=10.0, read=read, write=20.0, pool=10.0)


class HttpClientFactory:
    """One long-lived AsyncClient per provider instance."""

    @staticmethod
    def client(
        base_url: str | None = None, headers: dict | None = None, *, read_timeout: float = 60.0
    ) -> httpx.AsyncClient:
        return httpx.AsyncClient(
            base_url=base_url or "",
            headers={"user-agent": USER_AGENT, **(headers or {})},
            timeout=provider_timeout(read_timeout),
            limits=httpx.Limits(max_connections=20, max_keepalive_connections=5),
        )


def is_transient(exc: BaseException) -> bool:
    if isinstance(exc, (httpx.TimeoutException, httpx.NetworkError, httpx.RemoteProtocolError)):
        return True
    return isinstance(exc, httpx.HTTPStatusError) and exc.response.status_code in RETRYABLE_STATUS


def transient_retry(attempts: int = 5):
    return retry(
        reraise=True,
        stop=stop_after_attempt(attempts),
        wait=wait_exponential_jitter(initial=0.5, max=10.0),
        retry=retry_if_exception(is_transient),
    )
