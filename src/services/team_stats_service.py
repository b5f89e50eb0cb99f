import asyncio
from datetime import datetime, timezone
from typing import Any, Awaitable, Callable, Dict, List, Optional, Tuple

from loguru import logger

from src.calculation.aggregator import aggregate, estimate_skill_level, synthetic_rating
from src.models.aggregate import TeamLifetimeStats
from src.models.enums import CacheCategory, DataSource
from src.models.match import Match
from src.models.payloads import (
    CombinedPayload,
    MatchesPayload,
    RosterPayload,
    StatsPayload,
    UpcomingPayload,
)
from src.models.team import SourceInfo, TeamInfo
from src.normalization.dedupe import dedupe
from src.normalization.normalizer import Normalizer
from src.scrapers.base_scraper import ScraperError
from src.scrapers.faceit_client import FaceitClient
from src.scrapers.hltv_scraper import HltvScraper
from src.storage.ttl_cache import DEFAULT_KEY, TTLCache
from .fallback import PLACEHOLDER_LIFETIME, PLACEHOLDER_TEAM, placeholder_matches

MAPS_KEY = "maps"


class TeamStatsService:
    """Cache-aware orchestration between the sources and the HTTP layer.

    On a cache miss the data is fetched, normalized and cached. Concurrent
    misses for the same entry wait on one lock so only one fetch runs. When a
    source fails, a placeholder payload tagged fallback=True is returned.
    """

    def __init__(
        self,
        faceit: FaceitClient,
        hltv: HltvScraper,
        cache: TTLCache,
        normalizer: Optional[Normalizer] = None,
        clock: Optional[Callable[[], datetime]] = None,
    ):
        self.faceit = faceit
        self.hltv = hltv
        self.cache = cache
        self.clock = clock or (lambda: datetime.now(timezone.utc))
        self.normalizer = normalizer or Normalizer(team_id=faceit.team_id, clock=self.clock)
        self._locks: Dict[Tuple[CacheCategory, str], asyncio.Lock] = {}

    def _now(self) -> str:
        return self.clock().isoformat()

    async def _cached(
        self,
        category: CacheCategory,
        key: str,
        loader: Callable[[], Awaitable[Any]],
    ) -> Tuple[Any, bool]:
        value = self.cache.get(category, key)
        if value is not None:
            logger.info(f"Returning {category.value}/{key} from cache")
            return value, True

        lock = self._locks.setdefault((category, key), asyncio.Lock())
        async with lock:
            # Another request may have filled the entry while we waited
            value = self.cache.get(category, key)
            if value is not None:
                return value, True
            value = await loader()
            self.cache.set(category, key, value)
            return value, False

    # --- FACEIT ---

    async def _load_faceit_matches(self) -> List[Match]:
        raws = await self.faceit.fetch_raw_matches()
        return dedupe(self.normalizer.normalize_many(raws, DataSource.API))

    async def _load_faceit_map_matches(self) -> List[Match]:
        raws = await self.faceit.fetch_raw_map_records()
        matches = self.normalizer.normalize_many(raws, DataSource.API)
        return dedupe(self.normalizer.group_maps(matches))

    async def _load_faceit_stats(self) -> Tuple[TeamInfo, TeamLifetimeStats]:
        team_info = await self.faceit.get_team_info()
        lifetime = await self.faceit.get_team_stats()
        return team_info, lifetime

    def _matches_payload(
        self, matches: List[Match], source: DataSource, cached: bool
    ) -> MatchesPayload:
        stats = self.cache.get(CacheCategory.FACEIT_STATS)
        average_kd = stats[1].average_kd_ratio if stats and source == DataSource.API else None
        return MatchesPayload(
            matches=matches,
            summary=aggregate(matches, average_kd=average_kd or None),
            total_count=len(matches),
            source=source,
            cached=cached,
            fetched_at=self._now(),
        )

    def _matches_fallback(self, source: DataSource, error: ScraperError) -> MatchesPayload:
        logger.error(f"Falling back to placeholder {source.value} matches: {error}")
        matches = placeholder_matches(source)
        return MatchesPayload(
            matches=matches,
            summary=aggregate(matches),
            total_count=len(matches),
            source=source,
            fallback=True,
            error=str(error),
            fetched_at=self._now(),
        )

    async def faceit_matches(self) -> MatchesPayload:
        try:
            matches, cached = await self._cached(
                CacheCategory.FACEIT_MATCHES, DEFAULT_KEY, self._load_faceit_matches
            )
        except ScraperError as e:
            return self._matches_fallback(DataSource.API, e)
        return self._matches_payload(matches, DataSource.API, cached)

    async def faceit_map_matches(self) -> MatchesPayload:
        """Matches rebuilt from per-map records of the public stats endpoint."""
        try:
            matches, cached = await self._cached(
                CacheCategory.FACEIT_MATCHES, MAPS_KEY, self._load_faceit_map_matches
            )
        except ScraperError as e:
            return self._matches_fallback(DataSource.API, e)
        return self._matches_payload(matches, DataSource.API, cached)

    async def faceit_stats(self) -> StatsPayload:
        try:
            (team_info, lifetime), cached = await self._cached(
                CacheCategory.FACEIT_STATS, DEFAULT_KEY, self._load_faceit_stats
            )
        except ScraperError as e:
            logger.error(f"Falling back to placeholder FACEIT stats: {e}")
            return StatsPayload(
                team_info=PLACEHOLDER_TEAM,
                lifetime=PLACEHOLDER_LIFETIME,
                skill_level=PLACEHOLDER_TEAM.level,
                source=DataSource.API,
                fallback=True,
                error=str(e),
                fetched_at=self._now(),
            )

        rating = None
        skill_level = team_info.level
        if lifetime.total_matches:
            rating = round(synthetic_rating(lifetime.win_rate, lifetime.average_kd_ratio), 1)
            if skill_level is None:
                skill_level = estimate_skill_level(
                    lifetime.win_rate, lifetime.average_kd_ratio
                )
        return StatsPayload(
            team_info=team_info,
            lifetime=lifetime,
            rating=rating,
            skill_level=skill_level,
            source=DataSource.API,
            cached=cached,
            fetched_at=self._now(),
        )

    async def faceit_info(self) -> SourceInfo:
        try:
            info, _ = await self._cached(
                CacheCategory.FACEIT_INFO, DEFAULT_KEY, self.faceit.check_source
            )
            return info
        except ScraperError as e:
            logger.error(f"Error getting FACEIT info: {e}")
            return SourceInfo(api_status="Error", error=str(e), checked_at=self._now())

    async def faceit_combined(self) -> CombinedPayload:
        stats = await self.faceit_stats()
        matches = await self.faceit_matches()
        return CombinedPayload(
            stats=stats,
            matches=matches,
            cached=stats.cached and matches.cached,
            combined_at=self._now(),
        )

    # --- HLTV ---

    async def _load_hltv_matches(self) -> List[Match]:
        rows = await self.hltv.fetch_raw_matches()
        matches = self.normalizer.normalize_many(rows, DataSource.HTML)
        return dedupe(self.normalizer.group_maps(matches))

    async def hltv_matches(self) -> MatchesPayload:
        try:
            matches, cached = await self._cached(
                CacheCategory.HLTV_MATCHES, DEFAULT_KEY, self._load_hltv_matches
            )
        except ScraperError as e:
            return self._matches_fallback(DataSource.HTML, e)
        return self._matches_payload(matches, DataSource.HTML, cached)

    async def hltv_roster(self) -> RosterPayload:
        try:
            roster, cached = await self._cached(
                CacheCategory.HLTV_ROSTER, DEFAULT_KEY, self.hltv.fetch_roster
            )
        except ScraperError as e:
            logger.error(f"Error scraping roster: {e}")
            return RosterPayload(
                source=DataSource.HTML, fallback=True, error=str(e), fetched_at=self._now()
            )
        return RosterPayload(
            roster=roster, source=DataSource.HTML, cached=cached, fetched_at=self._now()
        )

    async def hltv_upcoming(self) -> UpcomingPayload:
        try:
            upcoming, cached = await self._cached(
                CacheCategory.HLTV_UPCOMING, DEFAULT_KEY, self.hltv.fetch_upcoming
            )
        except ScraperError as e:
            logger.error(f"Error scraping upcoming matches: {e}")
            return UpcomingPayload(
                source=DataSource.HTML, fallback=True, error=str(e), fetched_at=self._now()
            )
        return UpcomingPayload(
            upcoming=upcoming, source=DataSource.HTML, cached=cached, fetched_at=self._now()
        )

    def clear_cache(self) -> None:
        self.cache.clear_all()

    async def close(self) -> None:
        await self.faceit.close()
        await self.hltv.close()


def build_service() -> TeamStatsService:
    """Service wired from application settings."""
    from src.config.settings import settings

    return TeamStatsService(
        faceit=FaceitClient(),
        hltv=HltvScraper(),
        cache=TTLCache.from_settings(settings),
    )
