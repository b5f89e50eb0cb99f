import math
from typing import Any, Dict, Iterable, List, Mapping, Optional, Tuple

from loguru import logger

from src.models.aggregate import SourceBreakdown, TeamAggregate, TeamLifetimeStats
from src.models.match import Match
from src.utils.misc_utils import clamp, safe_float, safe_int

BASE_RATING = 1000.0
MIN_RATING = 500.0
MAX_RATING = 2000.0


def win_rate(wins: int, total: int) -> float:
    """Percentage rounded to one decimal; 0 when there is nothing to divide."""
    if total <= 0:
        return 0.0
    return round(100.0 * wins / total, 1)


def synthetic_rating(rate: float, average_kd: float) -> float:
    """ELO-like estimate used when the source has no rating of its own.

    This is a heuristic placeholder, not a competitive ranking.
    """
    return clamp(
        BASE_RATING + (rate - 50.0) * 10 + (average_kd - 1.0) * 200,
        MIN_RATING,
        MAX_RATING,
    )


def estimate_skill_level(rate: float, average_kd: float) -> int:
    """FACEIT-style 1-10 level from win rate and K/D."""
    return int(clamp(math.floor(rate / 10 + average_kd * 2), 1, 10))


def compute_streaks(results: Iterable[bool]) -> Tuple[int, int, int]:
    """Streaks over outcomes ordered most recent first.

    Returns (current, max_win, max_loss); current is positive for a run of
    wins and negative for a run of losses.
    """
    current = 0
    current_open = True
    run = 0
    max_win = 0
    max_loss = 0
    previous: Optional[bool] = None

    for is_win in results:
        run = run + 1 if is_win == previous else 1
        previous = is_win
        if is_win:
            max_win = max(max_win, run)
        else:
            max_loss = max(max_loss, run)

        if current_open:
            if current == 0 or (current > 0) == is_win:
                current += 1 if is_win else -1
            else:
                current_open = False

    return current, max_win, max_loss


def sort_recent_first(matches: Iterable[Match]) -> List[Match]:
    return sorted(matches, key=lambda match: match.played_at, reverse=True)


def _breakdown(matches: List[Match]) -> Dict[str, SourceBreakdown]:
    breakdown: Dict[str, SourceBreakdown] = {}
    for source in dict.fromkeys(match.source.value for match in matches):
        subset = [match for match in matches if match.source.value == source]
        wins = sum(1 for match in subset if match.is_win)
        breakdown[source] = SourceBreakdown(
            matches=len(subset),
            wins=wins,
            losses=len(subset) - wins,
            win_rate=win_rate(wins, len(subset)),
        )
    return breakdown


def aggregate(
    matches: Iterable[Match],
    average_kd: Optional[float] = None,
    authoritative_rating: Optional[float] = None,
    skill_level: Optional[int] = None,
) -> TeamAggregate:
    """Summary statistics of a match collection.

    Matches whose date had to be estimated are counted in the totals but left
    out of streak computation, since their position in time is unknown.
    """
    ordered = sort_recent_first(matches)
    total = len(ordered)
    wins = sum(1 for match in ordered if match.is_win)
    rate = win_rate(wins, total)

    dated = [match.is_win for match in ordered if not match.date_estimated]
    current, max_win, max_loss = compute_streaks(dated)

    if authoritative_rating is not None:
        rating, is_estimate = float(authoritative_rating), False
    elif total:
        rating = synthetic_rating(rate, average_kd if average_kd is not None else 1.0)
        is_estimate = True
    else:
        rating, is_estimate = BASE_RATING, True

    if skill_level is None and total:
        skill_level = estimate_skill_level(rate, average_kd if average_kd is not None else 1.0)

    summary = TeamAggregate(
        total_matches=total,
        wins=wins,
        losses=total - wins,
        win_rate=rate,
        current_streak=current,
        max_win_streak=max_win,
        max_loss_streak=max_loss,
        by_source=_breakdown(ordered),
        rating=round(rating, 1),
        rating_is_estimate=is_estimate,
        skill_level=skill_level,
    )
    logger.debug(
        f"Aggregated {total} matches: {wins}W/{total - wins}L, streak {current}"
    )
    return summary


def parse_lifetime_stats(payload: Mapping[str, Any]) -> TeamLifetimeStats:
    """Reads the "lifetime" block of the FACEIT team stats response."""
    lifetime = payload.get("lifetime") or {}
    matches = safe_int(lifetime.get("Matches"))
    wins = safe_int(lifetime.get("Wins"))
    kd = lifetime.get("Team Average K/D Ratio", lifetime.get("Average K/D Ratio"))
    recent = lifetime.get("Recent Results") or []

    return TeamLifetimeStats(
        total_matches=matches,
        wins=wins,
        losses=max(matches - wins, 0),
        win_rate=safe_float(lifetime.get("Win Rate %"), 0.0),
        average_kd_ratio=safe_float(kd, 0.0),
        current_streak=safe_int(lifetime.get("Current Win Streak")),
        max_win_streak=safe_int(lifetime.get("Longest Win Streak")),
        recent_results=["W" if str(result) == "1" else "L" for result in recent],
    )
