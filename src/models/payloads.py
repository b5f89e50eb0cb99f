from typing import List, Optional

from pydantic import BaseModel, ConfigDict
from pydantic.alias_generators import to_camel

from .aggregate import TeamAggregate, TeamLifetimeStats
from .enums import DataSource
from .match import Match
from .team import RosterPlayer, TeamInfo, UpcomingMatch


class Payload(BaseModel):
    """Common tags telling the dashboard where the data came from."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    source: DataSource
    cached: bool = False
    # True when a source error forced the static placeholder dataset
    fallback: bool = False
    error: Optional[str] = None
    fetched_at: str


class MatchesPayload(Payload):
    matches: List[Match] = []
    summary: TeamAggregate = TeamAggregate()
    total_count: int = 0


class StatsPayload(Payload):
    team_info: Optional[TeamInfo] = None
    lifetime: TeamLifetimeStats = TeamLifetimeStats()
    rating: Optional[float] = None
    rating_is_estimate: bool = True
    skill_level: Optional[int] = None


class CombinedPayload(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    stats: StatsPayload
    matches: MatchesPayload
    cached: bool
    combined_at: str


class RosterPayload(Payload):
    roster: List[RosterPlayer] = []


class UpcomingPayload(Payload):
    upcoming: List[UpcomingMatch] = []
