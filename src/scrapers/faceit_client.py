# src/scrapers/faceit_client.py

import asyncio
from datetime import datetime, timedelta, timezone
from typing import Any, Callable, Dict, List, Optional

from loguru import logger

from src.config.settings import settings
from src.models.aggregate import TeamLifetimeStats
from src.models.enums import DataSource
from src.models.team import SourceInfo, TeamInfo, TeamMember
from src.calculation.aggregator import parse_lifetime_stats
from src.normalization.normalizer import is_team_match
from src.utils.misc_utils import safe_float, safe_int
from .base_scraper import BaseScraper, ScraperError
from .pagination import Page, PaginationConfig, enrich_details, fetch_all


class FaceitClient(BaseScraper):
    """Client for the FACEIT Data API (v4) and the public stats endpoint."""

    source: DataSource = DataSource.API

    def __init__(
        self,
        *args,
        api_key: Optional[str] = None,
        client_key: Optional[str] = None,
        team_id: Optional[str] = None,
        pagination: Optional[PaginationConfig] = None,
        history_window_days: Optional[int] = None,
        clock: Optional[Callable[[], datetime]] = None,
        **kwargs,
    ):
        super().__init__(*args, **kwargs)
        self.api_key = api_key or settings.faceit_api_key
        self.client_key = client_key or settings.faceit_client_key
        self.team_id = team_id or settings.faceit_team_id
        self.base_url = settings.faceit_base_url.rstrip("/")
        self.stats_url = settings.faceit_stats_url.rstrip("/")
        self.game = settings.faceit_game
        self.pagination = pagination or PaginationConfig.from_settings(settings)
        self.history_window = timedelta(
            days=history_window_days or settings.history_window_days
        )
        self.clock = clock or (lambda: datetime.now(timezone.utc))

        if not self.api_key:
            logger.warning("FACEIT API key is not set; API requests will fail.")

    async def fetch_page(
        self,
        resource_path: str,
        query: Optional[Dict[str, Any]] = None,
        use_client_key: bool = False,
    ) -> Any:
        """GETs a Data API resource with bearer auth and returns the JSON body.

        Non-2xx responses raise SourceHTTPError carrying status and body.
        """
        key = self.client_key if use_client_key else self.api_key
        if not key:
            kind = "client-side" if use_client_key else "server-side"
            raise ScraperError(f"Missing FACEIT {kind} API key configuration.")

        response = await self._make_request(
            method="GET",
            url=f"{self.base_url}{resource_path}",
            headers={"Authorization": f"Bearer {key}", "Accept": "application/json"},
            params=query,
        )
        try:
            return response.json()
        except ValueError as e:
            raise ScraperError(f"Invalid JSON from FACEIT {resource_path}") from e

    async def search_team(self, nickname: str) -> List[Dict[str, Any]]:
        logger.info(f"Searching FACEIT team: {nickname}")
        data = await self.fetch_page(
            "/search/teams",
            {"nickname": nickname, "game": self.game, "offset": 0, "limit": 10},
        )
        items = data.get("items") or []
        logger.info(f"Found {len(items)} teams for '{nickname}'")
        return items

    async def resolve_team_id(self, nickname: Optional[str] = None) -> str:
        """Refreshes team_id from the first search hit, keeping the configured id otherwise."""
        results = await self.search_team(nickname or settings.faceit_team_name)
        if results and results[0].get("team_id"):
            self.team_id = str(results[0]["team_id"])
            logger.info(f"Updated FACEIT team id: {self.team_id}")
        return self.team_id

    async def get_team_info(self) -> TeamInfo:
        data = await self.fetch_page(f"/teams/{self.team_id}")
        game = (data.get("games") or {}).get(self.game) or {}
        members = [
            TeamMember.model_validate(member)
            for member in data.get("members") or []
            if isinstance(member, dict) and member.get("user_id")
        ]
        return TeamInfo(
            id=str(data.get("team_id", self.team_id)),
            name=data.get("name") or settings.faceit_team_name,
            avatar=data.get("avatar"),
            game=game.get("game_id") or self.game,
            region=data.get("region"),
            country=data.get("country"),
            level=safe_int(game.get("skill_level")) or None,
            leader=data.get("leader"),
            members=members,
        )

    async def get_team_stats(self) -> TeamLifetimeStats:
        data = await self.fetch_page(f"/teams/{self.team_id}/stats/{self.game}")
        return parse_lifetime_stats(data)

    async def get_match_details(self, match_id: str) -> Optional[Dict[str, Any]]:
        logger.debug(f"Fetching FACEIT match details: {match_id}")
        data = await self.fetch_page(f"/matches/{match_id}")
        return data or None

    async def fetch_history_page(self, player_id: str, offset: int, limit: int) -> Page:
        """One page of a player's history, reduced to our team's recent matches.

        Matches older than the history window are dropped, so once the history
        runs past the window the page comes back empty and pagination stops.
        """
        data = await self.fetch_page(
            f"/players/{player_id}/history",
            {"game": self.game, "offset": offset, "limit": limit},
            use_client_key=True,
        )
        items = data.get("items") or []
        since = self.clock() - self.history_window

        kept = []
        for item in items:
            if not is_team_match(item, self.team_id):
                logger.debug(f"Skipping {item.get('match_id')}: not a {self.team_id} team match")
                continue
            started = safe_float(item.get("started_at"))
            if started and datetime.fromtimestamp(started, tz=timezone.utc) < since:
                logger.debug(f"Skipping {item.get('match_id')}: older than {since.date()}")
                continue
            kept.append(item)

        logger.info(f"Kept {len(kept)} of {len(items)} history items at offset {offset}")
        return Page(items=kept, has_more=len(items) >= limit)

    async def fetch_stats_page(self, offset: int, limit: int) -> Page:
        """Per-map records (positional i1/i18 shape) from the public stats endpoint."""
        response = await self._make_request(
            method="GET",
            url=f"{self.stats_url}/stats/time/teams/{self.team_id}/games/{self.game}",
            params={"page": offset // limit, "size": limit},
        )
        try:
            items = response.json()
        except ValueError as e:
            raise ScraperError("Invalid JSON from FACEIT stats endpoint") from e
        if not isinstance(items, list):
            items = []
        return Page(items=items, has_more=len(items) >= limit)

    async def check_source(self) -> SourceInfo:
        response = await self._make_request(
            method="GET",
            url=f"{self.stats_url}/stats/time/teams/{self.team_id}/games/{self.game}",
            params={"page": 0, "size": 1},
        )
        return SourceInfo(
            api_status="Available",
            total_count=response.headers.get("x-total-count", "Unknown"),
            last_modified=response.headers.get("last-modified", "Unknown"),
            checked_at=self.clock().isoformat(),
        )

    async def fetch_raw_matches(
        self, cancel_event: Optional[asyncio.Event] = None
    ) -> List[Dict[str, Any]]:
        """Captain history pages, then match details for every team match found."""
        team_info = await self.get_team_info()
        captain = team_info.captain
        if captain is None:
            logger.warning("Team has no members, cannot read match history.")
            return []
        logger.info(f"Reading match history of captain {captain.nickname} ({captain.user_id})")

        summaries = await fetch_all(
            PlayerHistoryPages(self, captain.user_id), self.pagination, cancel_event
        )
        return await enrich_details(
            summaries, self._details_for, self.pagination, cancel_event
        )

    async def _details_for(self, summary: Dict[str, Any]) -> Optional[Dict[str, Any]]:
        match_id = summary.get("match_id")
        if not match_id:
            return None
        return await self.get_match_details(str(match_id))

    async def fetch_raw_map_records(
        self, cancel_event: Optional[asyncio.Event] = None
    ) -> List[Dict[str, Any]]:
        # One record per map; duplicates are dropped after map grouping
        return await fetch_all(
            TeamStatsPages(self), self.pagination, cancel_event, deduplicate=False
        )


class PlayerHistoryPages:
    def __init__(self, client: FaceitClient, player_id: str):
        self.client = client
        self.player_id = player_id

    async def fetch_page(self, offset: int, limit: int) -> Page:
        return await self.client.fetch_history_page(self.player_id, offset, limit)


class TeamStatsPages:
    def __init__(self, client: FaceitClient):
        self.client = client

    async def fetch_page(self, offset: int, limit: int) -> Page:
        return await self.client.fetch_stats_page(offset, limit)
