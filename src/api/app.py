from contextlib import asynccontextmanager
from typing import Optional

from fastapi import Depends, FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from loguru import logger

from src.config.settings import settings
from src.models.payloads import (
    CombinedPayload,
    MatchesPayload,
    RosterPayload,
    StatsPayload,
    UpcomingPayload,
)
from src.models.team import SourceInfo
from src.services.team_stats_service import TeamStatsService, build_service


def get_service(request: Request) -> TeamStatsService:
    return request.app.state.service


def create_app(service: Optional[TeamStatsService] = None) -> FastAPI:
    """Builds the dashboard API; a prepared service can be injected for tests."""

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        app.state.service = service or build_service()
        logger.info("Team stats service ready")
        try:
            yield
        finally:
            await app.state.service.close()

    app = FastAPI(title="FORZE Stats API", lifespan=lifespan)
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_methods=["GET", "POST"],
        allow_headers=["*"],
        allow_credentials=False,
    )

    @app.get("/health")
    async def health() -> dict:
        return {"status": "ok"}

    @app.get("/api/faceit/stats", response_model=StatsPayload)
    async def faceit_stats(service: TeamStatsService = Depends(get_service)):
        return await service.faceit_stats()

    @app.get("/api/faceit/matches", response_model=MatchesPayload)
    async def faceit_matches(service: TeamStatsService = Depends(get_service)):
        return await service.faceit_matches()

    @app.get("/api/faceit/maps", response_model=MatchesPayload)
    async def faceit_maps(service: TeamStatsService = Depends(get_service)):
        return await service.faceit_map_matches()

    @app.get("/api/faceit/info", response_model=SourceInfo)
    async def faceit_info(service: TeamStatsService = Depends(get_service)):
        return await service.faceit_info()

    @app.get("/api/faceit/combined", response_model=CombinedPayload)
    async def faceit_combined(service: TeamStatsService = Depends(get_service)):
        return await service.faceit_combined()

    @app.get("/api/forze/matches", response_model=MatchesPayload)
    async def hltv_matches(service: TeamStatsService = Depends(get_service)):
        return await service.hltv_matches()

    @app.get("/api/forze/roster", response_model=RosterPayload)
    async def hltv_roster(service: TeamStatsService = Depends(get_service)):
        return await service.hltv_roster()

    @app.get("/api/forze/upcoming", response_model=UpcomingPayload)
    async def hltv_upcoming(service: TeamStatsService = Depends(get_service)):
        return await service.hltv_upcoming()

    @app.post("/api/cache/clear")
    async def clear_cache(service: TeamStatsService = Depends(get_service)) -> dict:
        service.clear_cache()
        return {"cleared": True}

    return app
