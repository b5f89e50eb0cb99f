# tests/helpers.py
import asyncio
from datetime import datetime, timezone

from src.config.settings import AppSettings
from src.models.aggregate import TeamLifetimeStats
from src.models.enums import DataSource
from src.models.match import MapResult, Match
from src.models.team import RosterPlayer, SourceInfo, TeamInfo
from src.normalization.html_extractor import extract_rows
from src.scrapers.base_scraper import ScraperError
from src.services.team_stats_service import TeamStatsService
from src.storage.ttl_cache import TTLCache

TEAM_ID = "team-forze"
NOW = datetime(2025, 9, 1, 12, 0, tzinfo=timezone.utc)


def fixed_clock() -> datetime:
    return NOW


def make_match(match_id, day, ours, theirs, source=DataSource.API, **extra) -> Match:
    map_name = extra.pop("map", "Mirage")
    return Match(
        id=match_id,
        date=f"{day[8:10]}.{day[5:7]}.{day[:4]}",
        date_iso=f"{day}T18:00:00+00:00",
        map=map_name,
        our_score=ours,
        opponent_score=theirs,
        map_results=[MapResult(map=map_name, our_score=ours, opponent_score=theirs)],
        source=source,
        **extra,
    )


def structured_record(match_id="1-abc", score=(2, 1), **overrides):
    record = {
        "match_id": match_id,
        "competition_id": "league-1",
        "competition_name": "ESEA Advanced",
        "started_at": 1756476000,
        "finished_at": 1756483200,
        "status": "FINISHED",
        "teams": {
            "faction1": {"faction_id": TEAM_ID, "name": "FORZE Reload"},
            "faction2": {"faction_id": "team-rival", "name": "Rival Five"},
        },
        "results": {
            "winner": "faction1",
            "score": {"faction1": score[0], "faction2": score[1]},
        },
    }
    record.update(overrides)
    return record



STATS_PAGE_HTML = """
<html><body>
<table class="stats-table">
  <thead><tr><th>Date</th><th>Event</th><th></th><th>Opponent</th><th>Map</th><th>Result</th><th></th></tr></thead>
  <tbody>
    <tr>
      <td><a href="/stats/matches/mapstatsid/201/forze-reload-vs-rival">28/08/25</a></td>
      <td><a href="/events/8001/cct-europe">CCT Europe</a></td>
      <td><img src="logo.png"></td>
      <td><a href="/stats/teams/1234/rival-five">Rival Five</a></td>
      <td>mirage</td>
      <td>13 - 9</td>
      <td>W</td>
    </tr>
    <tr>
      <td><a href="/stats/matches/mapstatsid/202/forze-reload-vs-rival">28/08/25</a></td>
      <td><a href="/events/8001/cct-europe">CCT Europe</a></td>
      <td></td>
      <td><a href="/stats/teams/1234/rival-five">Rival Five</a></td>
      <td>nuke</td>
      <td>10 - 13</td>
      <td>L</td>
    </tr>
    <tr>
      <td>short</td><td>row</td>
    </tr>
    <tr>
      <td>not a date</td><td>Event</td><td></td><td>Team</td><td>Map</td><td>16 - 3</td>
    </tr>
  </tbody>
</table>
<table><tr><td>29/08/25</td><td>x</td><td></td><td>y</td><td>inferno</td><td>13 - 0</td></tr></table>
</body></html>
"""

TEAM_PAGE_HTML = """
<html><body>
<table class="table-container teamProfile">
  <tbody>
    <tr>
      <td><a href="/player/1/alpha">alpha</a></td>
      <td><div class="player-status starter">STARTER</div></td>
      <td>2 months</td>
      <td>1.12</td>
    </tr>
    <tr>
      <td><a href="/player/2/bravo">bravo</a></td>
      <td><div class="player-status benched"></div></td>
      <td>1 year</td>
      <td>n/a</td>
    </tr>
    <tr><td>-</td><td></td><td></td><td></td></tr>
  </tbody>
</table>
<div id="upcoming_matches_box">
  <table><tbody>
    <tr>
      <td>05/09/2025</td>
      <td><a href="/events/9001/cup">Autumn Cup</a></td>
      <td><a href="/team/55/other">Other Team</a></td>
    </tr>
    <tr><td>-</td><td>-</td><td>-</td></tr>
  </tbody></table>
</div>
</body></html>
"""
class FakeFaceit:
    team_id = TEAM_ID

    def __init__(self, fail=False):
        self.fail = fail
        self.calls = {"matches": 0, "maps": 0, "stats": 0}

    def _check(self):
        if self.fail:
            raise ScraperError("FACEIT unavailable")

    async def fetch_raw_matches(self):
        self.calls["matches"] += 1
        await asyncio.sleep(0)
        self._check()
        return [structured_record("m1"), structured_record("m2", score=(0, 2))]

    async def fetch_raw_map_records(self):
        self.calls["maps"] += 1
        self._check()
        return series_map_records()

    async def get_team_info(self):
        self.calls["stats"] += 1
        self._check()
        return TeamInfo(id=TEAM_ID, name="FORZE Reload")

    async def get_team_stats(self):
        return TeamLifetimeStats(
            total_matches=10, wins=6, losses=4, win_rate=60.0, average_kd_ratio=1.2
        )

    async def check_source(self):
        self._check()
        return SourceInfo(api_status="Available", checked_at=fixed_clock().isoformat())

    async def close(self):
        pass


class FakeHltv:
    def __init__(self, fail=False):
        self.fail = fail

    async def fetch_raw_matches(self):
        if self.fail:
            raise ScraperError("HLTV unavailable")
        return list(extract_rows(STATS_PAGE_HTML))

    async def fetch_roster(self):
        if self.fail:
            raise ScraperError("HLTV unavailable")
        return [RosterPlayer(id="player_0", nickname="alpha")]

    async def fetch_upcoming(self):
        return []

    async def close(self):
        pass


def make_service(faceit=None, hltv=None):
    return TeamStatsService(
        faceit=faceit or FakeFaceit(),
        hltv=hltv or FakeHltv(),
        cache=TTLCache.from_settings(AppSettings()),
        clock=fixed_clock,
    )




def series_map_records(match_id="1-abc"):
    """Per-map stats records of one best-of-three, all carrying the series id."""
    maps = [("de_mirage", "13-7", 18), ("de_nuke", "9-13", 19), ("de_ancient", "13-10", 20)]
    return [
        {
            "_id": {"matchId": match_id},
            "i1": map_name,
            "i18": score,
            "i19": "Rival Five",
            "competitionId": "cup-1",
            "competitionName": "Cup",
            "date": f"2025-08-20T{hour:02d}:00:00+00:00",
        }
        for map_name, score, hour in maps
    ]
