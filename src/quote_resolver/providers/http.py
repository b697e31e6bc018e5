"""First-success-wins HTTP racing across equivalent provider hosts."""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Callable, Mapping, Sequence
from typing import Any, TypeVar

import httpx
from aiolimiter import AsyncLimiter

from quote_resolver.core.exceptions import (
    NoData,
    ProviderError,
    ProviderMalformed,
    ProviderRateLimited,
    ProviderUnavailable,
)
from quote_resolver.providers.base import Empty, FetchResult, Ok, RateLimited

logger = logging.getLogger(__name__)

T = TypeVar("T")

_HTML_PREFIXES = ("<!doctype", "<html")


def read_text(
    response: httpx.Response,
    provider: str,
    rate_limit_markers: Sequence[Sequence[str]] = (),
) -> str:
    """Return the body of a usable response or raise the matching ProviderError.

    ``rate_limit_markers`` is a list of phrase groups; a body containing every
    phrase of any group (case-insensitive) is treated as a rate-limit notice
    even under HTTP 200.
    """
    try:
        url = str(response.request.url)
    except RuntimeError:
        url = ""
    context = {"provider": provider, "url": url, "status_code": response.status_code}

    if response.status_code == 429:
        raise ProviderRateLimited(f"{provider} returned HTTP 429", context=context)

    text = (response.text or "").strip()
    lower = text.lower()
    for group in rate_limit_markers:
        if group and all(marker in lower for marker in group):
            raise ProviderRateLimited(f"{provider} rate-limit marker in body", context=context)

    if response.status_code != 200:
        raise ProviderUnavailable(
            f"{provider} returned HTTP {response.status_code}", context=context
        )
    if not text:
        raise NoData(f"{provider} returned an empty body", context=context)
    if lower.startswith(_HTML_PREFIXES):
        raise ProviderMalformed(
            f"{provider} returned an HTML page", context={**context, "reason": "html"}
        )
    return text


class HostRacer:
    """Races one request across several equivalent hosts.

    Every host gets the same path; the first attempt whose parser returns
    a payload wins and all other in-flight attempts are cancelled. Each
    attempt is bounded by ``timeout`` seconds and paced by a shared
    per-provider token bucket.

    Parameters
    ----------
    client : httpx.AsyncClient
        Shared client; connection pooling is per process, not per provider.
    provider : str
        Provider name used in results and log lines.
    timeout : float
        Hard per-attempt deadline in seconds.
    rate_limit : int
        Maximum attempts per second for this provider.
    headers : Mapping[str, str] | None
        Extra headers sent with every attempt.
    """

    def __init__(
        self,
        client: httpx.AsyncClient,
        provider: str,
        timeout: float = 1.5,
        rate_limit: int = 20,
        headers: Mapping[str, str] | None = None,
    ) -> None:
        self._client = client
        self.provider = provider
        self._timeout = timeout
        self._limiter = AsyncLimiter(max_rate=rate_limit, time_period=1.0)
        self._headers = dict(headers or {})

    async def race(
        self,
        urls: Sequence[str],
        parse: Callable[[httpx.Response], T],
        params: Mapping[str, Any] | None = None,
    ) -> FetchResult[T]:
        """Return the first parsed payload, or RateLimited / Empty.

        ``RateLimited`` is returned only when no host produced data and at
        least one host signalled a rate limit.
        """
        if not urls:
            return Empty(self.provider, reason="no_hosts")

        tasks = [
            asyncio.create_task(self._attempt(url, parse, params)) for url in urls
        ]
        rate_limited = False
        reasons: list[str] = []
        try:
            for next_done in asyncio.as_completed(tasks):
                outcome = await next_done
                match outcome:
                    case Ok():
                        return outcome
                    case RateLimited():
                        rate_limited = True
                    case Empty(reason=reason):
                        reasons.append(reason)
        finally:
            for task in tasks:
                task.cancel()
            await asyncio.gather(*tasks, return_exceptions=True)

        if rate_limited:
            return RateLimited(self.provider)
        return Empty(self.provider, reason=reasons[0] if reasons else "no_data")

    async def _attempt(
        self,
        url: str,
        parse: Callable[[httpx.Response], T],
        params: Mapping[str, Any] | None,
    ) -> FetchResult[T]:
        try:
            await self._limiter.acquire()
            response = await asyncio.wait_for(
                self._client.get(url, params=params, headers=self._headers),
                timeout=self._timeout,
            )
            return Ok(parse(response))
        except ProviderRateLimited as e:
            logger.warning("%s rate limited at %s: %s", self.provider, url, e)
            return RateLimited(self.provider)
        except ProviderError as e:
            logger.debug("%s gave nothing at %s: %s", self.provider, url, e)
            return Empty(self.provider, reason=_reason_for(e))
        except (
            httpx.HTTPError,
            httpx.InvalidURL,
            httpx.StreamError,
            asyncio.TimeoutError,
        ) as e:
            logger.debug("%s unreachable at %s: %r", self.provider, url, e)
            return Empty(self.provider, reason="unavailable")
        except (ValueError, KeyError, TypeError, IndexError) as e:
            logger.debug("%s malformed payload at %s: %r", self.provider, url, e)
            return Empty(self.provider, reason="malformed")


def _reason_for(error: ProviderError) -> str:
    if isinstance(error, NoData):
        return "no_data"
    if isinstance(error, ProviderMalformed):
        return "malformed"
    return "unavailable"
