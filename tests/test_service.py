import asyncio

import pytest

from src.models.enums import DataSource, MatchResult
from tests.helpers import FakeFaceit, FakeHltv, make_service


def test_faceit_matches_are_cached():
    service = make_service()

    async def scenario():
        return await service.faceit_matches(), await service.faceit_matches()

    first, second = asyncio.run(scenario())

    assert first.cached is False
    assert second.cached is True
    assert service.faceit.calls["matches"] == 1
    assert first.total_count == 2
    assert first.summary.wins == 1
    assert first.summary.losses == 1
    assert first.source == DataSource.API


def test_concurrent_misses_fetch_once():
    service = make_service()

    async def scenario():
        return await asyncio.gather(service.faceit_matches(), service.faceit_matches())

    first, second = asyncio.run(scenario())

    assert service.faceit.calls["matches"] == 1
    assert sorted([first.cached, second.cached]) == [False, True]


def test_source_failure_returns_placeholder():
    service = make_service(faceit=FakeFaceit(fail=True))

    async def scenario():
        return await service.faceit_matches(), await service.faceit_matches()

    first, second = asyncio.run(scenario())

    assert first.fallback is True
    assert first.error == "FACEIT unavailable"
    assert len(first.matches) == 4
    # Failures are not cached
    assert service.faceit.calls["matches"] == 2
    assert second.cached is False


def test_faceit_stats_synthetic_rating():
    payload = asyncio.run(make_service().faceit_stats())

    assert payload.rating == pytest.approx(1140.0)
    assert payload.rating_is_estimate is True
    assert payload.skill_level == 8
    assert payload.team_info.name == "FORZE Reload"


def test_faceit_stats_fallback():
    payload = asyncio.run(make_service(faceit=FakeFaceit(fail=True)).faceit_stats())

    assert payload.fallback is True
    assert payload.lifetime.total_matches == 156
    assert payload.rating is None


def test_faceit_info_reports_error():
    info = asyncio.run(make_service(faceit=FakeFaceit(fail=True)).faceit_info())
    assert info.api_status == "Error"
    assert info.error == "FACEIT unavailable"


def test_map_records_are_grouped():
    payload = asyncio.run(make_service().faceit_map_matches())

    assert payload.total_count == 1
    series = payload.matches[0]
    assert series.total_maps == 3
    assert series.best_of == 3
    assert (series.our_score, series.opponent_score) == (2, 1)
    assert series.id == "1-abc"


def test_combined_payload():
    payload = asyncio.run(make_service().faceit_combined())

    assert payload.cached is False
    assert payload.stats.lifetime.wins == 6
    assert payload.matches.total_count == 2


def test_hltv_matches_grouped_into_series():
    payload = asyncio.run(make_service().hltv_matches())

    assert payload.source == DataSource.HTML
    assert payload.total_count == 1
    series = payload.matches[0]
    assert series.best_of == 3
    assert (series.our_score, series.opponent_score) == (1, 1)
    assert series.result == MatchResult.LOSS


def test_hltv_failure_has_no_placeholder_matches():
    service = make_service(hltv=FakeHltv(fail=True))

    async def scenario():
        return await service.hltv_matches(), await service.hltv_roster()

    matches, roster = asyncio.run(scenario())

    assert matches.fallback is True
    assert matches.matches == []
    assert roster.fallback is True
    assert roster.roster == []


def test_clear_cache_forces_refetch():
    service = make_service()

    async def scenario():
        await service.faceit_matches()
        service.clear_cache()
        return await service.faceit_matches()

    payload = asyncio.run(scenario())

    assert payload.cached is False
    assert service.faceit.calls["matches"] == 2
