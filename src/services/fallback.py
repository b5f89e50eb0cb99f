"""Static placeholder data served when a source fails and nothing fresh is cached."""

from typing import List

from src.models.aggregate import TeamLifetimeStats
from src.models.enums import DataSource
from src.models.match import MapResult, Match
from src.models.team import TeamInfo

PLACEHOLDER_TEAM = TeamInfo(id="placeholder", name="FORZE Reload", level=10)

PLACEHOLDER_LIFETIME = TeamLifetimeStats(
    total_matches=156,
    wins=89,
    losses=67,
    win_rate=57.1,
    average_kd_ratio=1.0,
    current_streak=3,
    max_win_streak=8,
    recent_results=["W", "W", "L", "W"],
)

# (date, map, our score, opponent score)
_RECENT = [
    ("2025-08-28", "Mirage", 16, 12),
    ("2025-08-27", "Inferno", 16, 14),
    ("2025-08-26", "Nuke", 12, 16),
    ("2025-08-25", "Dust2", 16, 10),
]


def placeholder_matches(source: DataSource) -> List[Match]:
    """Sample FACEIT results; the HTML source has no placeholder matches."""
    if source != DataSource.API:
        return []
    return [
        Match(
            id=f"placeholder_{index}",
            date=f"{day[8:10]}.{day[5:7]}.{day[:4]}",
            date_iso=day,
            event="FACEIT",
            map=map_name,
            our_score=ours,
            opponent_score=theirs,
            map_results=[MapResult(map=map_name, our_score=ours, opponent_score=theirs)],
            source=source,
        )
        for index, (day, map_name, ours, theirs) in enumerate(_RECENT)
    ]
