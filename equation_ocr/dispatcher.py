"""
Recognition dispatcher

Fans one normalized image out to every configured provider concurrently.

- Each provider runs in its own task with an individual timeout
- A failing or slow provider never blocks or fails its siblings
- Results come back in completion order (first finished, first returned)
- Cancelling the dispatch cancels every provider call still in flight
"""

import asyncio
import logging
import time
from typing import List, Sequence

from .config import DEFAULT_PROVIDER_TIMEOUT
from .errors import AllProvidersFailedError, ProviderTimeout
from .providers.interface import RecognitionProvider
from .types import ErrorKind, NormalizedImage, RawProviderResult

logger = logging.getLogger(__name__)


class RecognitionDispatcher:
    """Concurrent fan-out over recognition providers"""

    def __init__(self, providers: Sequence[RecognitionProvider],
                 timeout: float = DEFAULT_PROVIDER_TIMEOUT):
        """
        Args:
            providers: Providers to invoke (priority order, informational only)
            timeout: Per-provider timeout in seconds
        """
        self.providers = list(providers)
        self.timeout = timeout

    async def dispatch(self, image: NormalizedImage) -> List[RawProviderResult]:
        """
        Run every provider on the image

        Args:
            image: Normalized image

        Returns:
            One RawProviderResult per provider, in completion order

        Raises:
            AllProvidersFailedError: If no provider returned usable text
        """
        if not self.providers:
            raise AllProvidersFailedError([])

        logger.info("[Dispatcher] dispatching to %d provider(s): %s",
                    len(self.providers), ", ".join(p.provider_id for p in self.providers))

        tasks = [asyncio.ensure_future(self._invoke(p, image)) for p in self.providers]
        results: List[RawProviderResult] = []

        try:
            for next_done in asyncio.as_completed(tasks):
                results.append(await next_done)
        finally:
            pending = [t for t in tasks if not t.done()]
            for task in pending:
                task.cancel()
            if pending:
                await asyncio.gather(*pending, return_exceptions=True)
                logger.info("[Dispatcher] cancelled %d in-flight provider call(s)", len(pending))

        succeeded = [r for r in results if r.succeeded]
        logger.info("[Dispatcher] %d/%d provider(s) returned usable text",
                    len(succeeded), len(results))

        if not succeeded:
            raise AllProvidersFailedError(results)

        return results

    async def _invoke(self, provider: RecognitionProvider,
                      image: NormalizedImage) -> RawProviderResult:
        """Call one provider and convert every outcome into a RawProviderResult"""
        start = time.perf_counter()

        try:
            reading = await asyncio.wait_for(provider.recognize(image), timeout=self.timeout)
        except (asyncio.TimeoutError, ProviderTimeout):
            logger.warning("[Dispatcher] %s timed out after %.1fs",
                           provider.provider_id, self.timeout)
            return _failed(provider, ErrorKind.TIMEOUT, start)
        except Exception as e:
            logger.warning("[Dispatcher] %s failed: %s", provider.provider_id, e)
            return _failed(provider, ErrorKind.PROVIDER_ERROR, start)

        text = (reading.text or "").strip()
        if not text:
            logger.warning("[Dispatcher] %s returned empty text", provider.provider_id)
            return _failed(provider, ErrorKind.EMPTY_TEXT, start)

        confidence = reading.confidence
        if confidence is None:
            confidence = provider.default_confidence
        confidence = max(0.0, min(100.0, float(confidence)))

        return RawProviderResult(
            provider_id=provider.provider_id,
            raw_text=text,
            reported_confidence=confidence,
            latency_ms=_elapsed_ms(start),
            succeeded=True,
        )


def _elapsed_ms(start: float) -> int:
    return int((time.perf_counter() - start) * 1000)


def _failed(provider: RecognitionProvider, kind: ErrorKind, start: float) -> RawProviderResult:
    return RawProviderResult(
        provider_id=provider.provider_id,
        raw_text="",
        reported_confidence=0.0,
        latency_ms=_elapsed_ms(start),
        succeeded=False,
        error_kind=kind,
    )
