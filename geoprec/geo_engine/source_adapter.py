"""
Source Adapter - Concurrent fan-out over all configured geolocation providers

One asyncio task per provider, each bounded by its own timeout, the whole
fan-out bounded by an overall deadline. Every provider yields exactly one
SourceObservation; failures are recorded on the observation instead of raised.
"""

import asyncio
import logging
import time
from typing import List, Optional, Sequence

import aiohttp

from ..geo_core.config import EngineConfig
from ..geo_core.exceptions import ProviderError
from ..geo_core.models import SourceObservation
from .providers import GeoProvider, create_providers

logger = logging.getLogger(__name__)


class SourceAdapter:
    """Queries every provider for one IP and normalizes the answers"""

    def __init__(self, config: Optional[EngineConfig] = None,
                 providers: Optional[Sequence[GeoProvider]] = None):
        self.config = config or EngineConfig()
        self.providers = list(providers) if providers is not None else create_providers(self.config)

    @property
    def deadline(self) -> float:
        if self.config.overall_deadline is not None:
            return self.config.overall_deadline
        if self.providers:
            return max(provider.timeout for provider in self.providers)
        return self.config.provider_timeout

    async def collect(self, ip_address: str,
                      session: Optional[aiohttp.ClientSession] = None) -> List[SourceObservation]:
        """Return one observation per provider, in provider order"""
        if not self.providers:
            return []

        if session is not None:
            return await self._collect(session, ip_address)

        async with aiohttp.ClientSession(headers={'User-Agent': self.config.user_agent}) as own_session:
            return await self._collect(own_session, ip_address)

    async def _collect(self, session: aiohttp.ClientSession, ip_address: str) -> List[SourceObservation]:
        start_time = time.monotonic()
        tasks = [
            asyncio.ensure_future(self._query_provider(provider, session, ip_address, start_time))
            for provider in self.providers
        ]

        try:
            done, pending = await asyncio.wait(tasks, timeout=self.deadline)
        except asyncio.CancelledError:
            await self._cancel_all(tasks)
            raise

        if pending:
            logger.debug(f"Deadline of {self.deadline}s reached, cancelling {len(pending)} provider(s)")
            await self._cancel_all(pending)

        observations = []
        elapsed_ms = (time.monotonic() - start_time) * 1000
        for provider, task in zip(self.providers, tasks):
            if task not in done or task.cancelled():
                observations.append(SourceObservation.failure(provider.name, "deadline exceeded", elapsed_ms))
            elif task.exception() is not None:
                logger.warning(f"Unexpected error from {provider.name}: {task.exception()}")
                observations.append(SourceObservation.failure(
                    provider.name, f"Unexpected error: {task.exception()}", elapsed_ms
                ))
            else:
                observations.append(task.result())
        return observations

    @staticmethod
    async def _cancel_all(tasks) -> None:
        for task in tasks:
            task.cancel()
        await asyncio.gather(*tasks, return_exceptions=True)

    async def _query_provider(self, provider: GeoProvider, session: aiohttp.ClientSession,
                              ip_address: str, start_time: float) -> SourceObservation:
        """Query one provider; never raises except on cancellation"""
        try:
            observation = await asyncio.wait_for(provider.observe(session, ip_address), timeout=provider.timeout)
            logger.debug(f"{provider.name}: {observation.city or '?'} "
                         f"({observation.lat}, {observation.lon}) in {observation.response_ms:.0f}ms")
            return observation

        except asyncio.TimeoutError:
            error = f"timeout after {provider.timeout}s"
        except ProviderError as e:
            error = str(e)
        except aiohttp.ClientError as e:
            error = f"Request failed: {e}"
        except (ValueError, TypeError, KeyError) as e:
            error = f"Unparsable response: {e}"

        elapsed_ms = (time.monotonic() - start_time) * 1000
        logger.debug(f"{provider.name} failed for {ip_address}: {error}")
        return SourceObservation.failure(provider.name, error, elapsed_ms)


def create_source_adapter(config: Optional[EngineConfig] = None) -> SourceAdapter:
    """Create a SourceAdapter for the enabled providers of a configuration"""
    return SourceAdapter(config)
