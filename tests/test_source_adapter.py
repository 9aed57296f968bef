"""Tests for the concurrent provider fan-out"""

import asyncio
from unittest.mock import MagicMock

import pytest

from geoprec.geo_core.config import EngineConfig
from geoprec.geo_core.exceptions import ProviderUnavailableError
from geoprec.geo_engine.source_adapter import SourceAdapter

from factories import FakeProvider


@pytest.mark.asyncio
async def test_one_observation_per_provider_in_order():
    providers = [
        FakeProvider('slow-ok', delay=0.05),
        FakeProvider('broken', error=ProviderUnavailableError("HTTP 503", 'broken', status_code=503)),
        FakeProvider('fast-ok', delay=0.0),
    ]
    adapter = SourceAdapter(EngineConfig(), providers)
    observations = await adapter.collect('8.8.8.8', session=MagicMock())

    assert [o.source for o in observations] == ['slow-ok', 'broken', 'fast-ok']
    assert observations[0].usable and observations[2].usable
    assert not observations[1].fetch_succeeded
    assert observations[1].error == "HTTP 503"


@pytest.mark.asyncio
async def test_provider_timeout_does_not_block_siblings():
    providers = [FakeProvider('hangs', delay=5.0, timeout=0.05), FakeProvider('ok')]
    adapter = SourceAdapter(EngineConfig(overall_deadline=2.0), providers)

    observations = await asyncio.wait_for(adapter.collect('8.8.8.8', session=MagicMock()), timeout=1.0)

    assert not observations[0].fetch_succeeded
    assert observations[0].error.startswith('timeout after')
    assert observations[1].usable
    assert providers[0].cancelled


@pytest.mark.asyncio
async def test_overall_deadline_cancels_stragglers():
    providers = [FakeProvider('straggler', delay=5.0, timeout=10.0), FakeProvider('ok')]
    adapter = SourceAdapter(EngineConfig(overall_deadline=0.1), providers)

    observations = await adapter.collect('8.8.8.8', session=MagicMock())

    assert observations[0].error == 'deadline exceeded'
    assert providers[0].cancelled
    assert observations[1].usable


@pytest.mark.asyncio
async def test_caller_cancellation_cancels_all_providers():
    providers = [FakeProvider('a', delay=5.0, timeout=10.0), FakeProvider('b', delay=5.0, timeout=10.0)]
    adapter = SourceAdapter(EngineConfig(), providers)

    task = asyncio.ensure_future(adapter.collect('8.8.8.8', session=MagicMock()))
    await asyncio.sleep(0.05)
    assert all(p.started for p in providers)
    task.cancel()

    with pytest.raises(asyncio.CancelledError):
        await task
    assert all(p.cancelled for p in providers)


@pytest.mark.asyncio
async def test_unexpected_error_is_recorded():
    providers = [FakeProvider('buggy', error=RuntimeError('boom')), FakeProvider('ok')]
    adapter = SourceAdapter(EngineConfig(), providers)

    observations = await adapter.collect('8.8.8.8', session=MagicMock())

    assert observations[0].error == 'Unexpected error: boom'
    assert observations[1].usable


@pytest.mark.asyncio
async def test_no_providers():
    adapter = SourceAdapter(EngineConfig(), [])
    assert await adapter.collect('8.8.8.8') == []


def test_deadline_defaults_to_slowest_provider():
    providers = [FakeProvider('a', timeout=2.0), FakeProvider('b', timeout=6.0)]
    assert SourceAdapter(EngineConfig(), providers).deadline == 6.0
    assert SourceAdapter(EngineConfig(overall_deadline=1.5), providers).deadline == 1.5


def test_default_providers_from_config():
    adapter = SourceAdapter(EngineConfig(providers=['ip-api.com', 'ipwho.is']))
    assert [p.name for p in adapter.providers] == ['ip-api.com', 'ipwho.is']
