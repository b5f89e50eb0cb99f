from datetime import datetime, timezone
from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field, computed_field, model_validator
from pydantic.alias_generators import to_camel

from .enums import DataSource, MatchResult


def result_for(our_score: int, opponent_score: int) -> MatchResult:
    """Win only on a strictly higher score; ties count as a loss."""
    return MatchResult.WIN if our_score > opponent_score else MatchResult.LOSS


class MapResult(BaseModel):
    """Outcome of a single map inside a match."""

    model_config = ConfigDict(
        alias_generator=to_camel, populate_by_name=True, frozen=True
    )

    map: str = "Unknown"
    our_score: int = Field(0, ge=0)
    opponent_score: int = Field(0, ge=0)

    @computed_field  # type: ignore[misc]
    @property
    def win(self) -> bool:
        return self.our_score > self.opponent_score


class Match(BaseModel):
    """Canonical match record shared by both data sources."""

    model_config = ConfigDict(
        alias_generator=to_camel, populate_by_name=True, frozen=True
    )

    id: str
    date: str  # Display string, formatted with settings.display_date_format
    date_iso: str = Field(..., alias="dateISO")
    event: str = "Unknown"
    opponent: str = "Unknown"
    map: str = "Unknown"
    our_score: int = Field(0, ge=0)
    opponent_score: int = Field(0, ge=0)
    best_of: int = Field(1, ge=1)
    total_maps: int = Field(1, ge=1)
    map_results: List[MapResult] = []
    source: DataSource
    competition_id: Optional[str] = None
    # Set when the source date was unparseable and processing time was used
    date_estimated: bool = False

    @model_validator(mode="after")
    def _check_map_count(self) -> "Match":
        if self.map_results and self.total_maps != len(self.map_results):
            raise ValueError(
                f"totalMaps={self.total_maps} but {len(self.map_results)} map results"
            )
        return self

    @computed_field  # type: ignore[misc]
    @property
    def result(self) -> MatchResult:
        return result_for(self.our_score, self.opponent_score)

    @property
    def is_win(self) -> bool:
        return self.result == MatchResult.WIN

    @property
    def played_at(self) -> datetime:
        """dateISO as an aware datetime, for chronological sorting."""
        parsed = datetime.fromisoformat(self.date_iso)
        if parsed.tzinfo is None:
            parsed = parsed.replace(tzinfo=timezone.utc)
        return parsed

    @property
    def day(self) -> str:
        return self.date_iso[:10]
