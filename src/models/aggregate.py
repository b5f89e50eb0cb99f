from typing import Dict, Optional

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel


class SourceBreakdown(BaseModel):
    """Win/loss split for the matches of a single source."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    matches: int = 0
    wins: int = 0
    losses: int = 0
    win_rate: float = 0.0


class TeamAggregate(BaseModel):
    """Summary statistics recomputed from a Match collection on every request."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    total_matches: int = Field(0, ge=0)
    wins: int = Field(0, ge=0)
    losses: int = Field(0, ge=0)
    win_rate: float = Field(0.0, ge=0, le=100)
    # Positive: consecutive wins, negative: consecutive losses
    current_streak: int = 0
    max_win_streak: int = Field(0, ge=0)
    max_loss_streak: int = Field(0, ge=0)
    by_source: Dict[str, SourceBreakdown] = {}

    # Synthetic values are a heuristic placeholder, not a competitive ranking
    rating: Optional[float] = None
    rating_is_estimate: bool = False
    skill_level: Optional[int] = None


class TeamLifetimeStats(BaseModel):
    """Lifetime block of the FACEIT team stats endpoint."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    total_matches: int = 0
    wins: int = 0
    losses: int = 0
    win_rate: float = 0.0
    average_kd_ratio: float = 0.0
    current_streak: int = 0
    max_win_streak: int = 0
    recent_results: list[str] = []
