"""Row extraction for HLTV team pages.

The stats "matches" page lists one row per map played:
date | event | (logo) | opponent | map | score | W/L
Columns are located by position; dates, scores and map names are recognised
with regular expressions so small layout shifts do not break parsing.
"""

import re
from typing import Iterator, List, Optional, Tuple

from bs4 import BeautifulSoup, Tag
from loguru import logger

from src.models.records import HtmlLink, RawHtmlRow
from src.models.team import RosterPlayer, UpcomingMatch

MIN_CELLS = 6
DATE_CELL = 0
EVENT_CELL = 1
OPPONENT_CELL = 3
MAP_CELL = 4

DATE_RE = re.compile(r"^(\d{2})/(\d{2})/(\d{2})$")
SCORE_RE = re.compile(r"(\d+)\s*-\s*(\d+)")
MAP_RE = re.compile(
    r"\b(Ancient|Anubis|Dust ?2|Inferno|Mirage|Nuke|Overpass|Train|Vertigo|Tuscan|Cache|Cobblestone)\b",
    re.IGNORECASE,
)
TEAM_HREF_RE = re.compile(r"^/stats/teams/|^/team/")
EVENT_HREF_RE = re.compile(r"^/events?/")
MATCH_HREF_RE = re.compile(r"/stats/matches/(?:mapstatsid/)?(\d+)")

CANONICAL_MAPS = {
    "ancient": "Ancient",
    "anubis": "Anubis",
    "dust2": "Dust2",
    "dust 2": "Dust2",
    "inferno": "Inferno",
    "mirage": "Mirage",
    "nuke": "Nuke",
    "overpass": "Overpass",
    "train": "Train",
    "vertigo": "Vertigo",
    "tuscan": "Tuscan",
    "cache": "Cache",
    "cobblestone": "Cobblestone",
}


def _cell_text(cell: Tag) -> str:
    return " ".join(cell.get_text(" ", strip=True).split())


def _row_links(cells: List[Tag]) -> List[HtmlLink]:
    links = []
    for index, cell in enumerate(cells):
        for anchor in cell.find_all("a"):
            text = anchor.get_text(" ", strip=True)
            if text:
                links.append(HtmlLink(text=text, href=anchor.get("href", ""), cell=index))
    return links


def extract_rows(html: str) -> Iterator[RawHtmlRow]:
    """Yields the candidate match rows of the first table in `html`.

    A page without a table yields nothing; it is not an error.
    """
    soup = BeautifulSoup(html or "", "html.parser")
    table = soup.find("table")
    if table is None:
        logger.debug("No table found in page, treating as no data")
        return

    position = 0
    for tr in table.find_all("tr"):
        cells = tr.find_all("td")
        if len(cells) < MIN_CELLS:
            continue

        texts = [_cell_text(cell) for cell in cells]
        if not DATE_RE.match(texts[DATE_CELL]):
            continue
        if not SCORE_RE.search(" ".join(texts)):
            continue

        yield RawHtmlRow(index=position, cells=texts, links=_row_links(cells))
        position += 1


def canonical_map_name(text: str) -> Optional[str]:
    found = MAP_RE.search(text or "")
    if not found:
        return None
    return CANONICAL_MAPS.get(found.group(1).lower(), found.group(1))


def resolve_map(row: RawHtmlRow) -> str:
    for link in row.links:
        name = canonical_map_name(link.text)
        if name:
            return name
    text = _cell(row, MAP_CELL)
    return canonical_map_name(text) or text or "Unknown"


def resolve_opponent(row: RawHtmlRow) -> str:
    team_links = [link for link in row.links if TEAM_HREF_RE.search(link.href)]
    for link in team_links:
        if link.cell == OPPONENT_CELL:
            return link.text
    if team_links:
        return team_links[0].text
    return _cell(row, OPPONENT_CELL) or "Unknown"


def resolve_event(row: RawHtmlRow) -> str:
    for link in row.links:
        if EVENT_HREF_RE.search(link.href):
            return link.text
    return _cell(row, EVENT_CELL) or "Unknown"


def resolve_score(row: RawHtmlRow) -> Optional[Tuple[int, int]]:
    found = SCORE_RE.search(row.text)
    if not found:
        return None
    return int(found.group(1)), int(found.group(2))


def resolve_match_id(row: RawHtmlRow) -> Optional[str]:
    for link in row.links:
        found = MATCH_HREF_RE.search(link.href)
        if found:
            return found.group(1)
    return None


def _cell(row: RawHtmlRow, index: int) -> str:
    return row.cells[index] if index < len(row.cells) else ""


def extract_roster(html: str) -> List[RosterPlayer]:
    """Players listed in the team profile table."""
    soup = BeautifulSoup(html or "", "html.parser")
    players: List[RosterPlayer] = []

    for position, tr in enumerate(soup.select(".teamProfile tbody tr")):
        cells = tr.find_all("td")
        if len(cells) < 4:
            continue

        anchor = cells[0].find("a")
        nickname = (anchor or cells[0]).get_text(" ", strip=True)
        if not nickname or nickname == "-":
            continue

        status = "N/A"
        status_text = cells[1].get_text(" ", strip=True)
        if "STARTER" in status_text or "BENCHED" in status_text:
            status = status_text
        elif cells[1].select_one(".player-status.starter"):
            status = "STARTER"
        elif cells[1].select_one(".player-status.benched"):
            status = "BENCHED"

        rating = "N/A"
        try:
            rating = f"{float(cells[3].get_text(strip=True)):.2f}"
        except ValueError:
            pass

        players.append(
            RosterPlayer(
                id=f"player_{position}", nickname=nickname, status=status, rating30=rating
            )
        )

    logger.debug(f"Parsed {len(players)} players from team page")
    return players


def extract_upcoming(html: str) -> List[UpcomingMatch]:
    """Rows of the upcoming matches box on the team page."""
    soup = BeautifulSoup(html or "", "html.parser")
    upcoming: List[UpcomingMatch] = []

    for position, tr in enumerate(soup.select("#upcoming_matches_box tbody tr")):
        cells = tr.find_all("td")
        if len(cells) < 3:
            continue

        date_text = cells[0].get_text(" ", strip=True)
        event_anchor = cells[1].find("a")
        opponent_anchor = cells[2].find("a")
        event = (event_anchor or cells[1]).get_text(" ", strip=True)
        opponent = (opponent_anchor or cells[2]).get_text(" ", strip=True)

        if not date_text or date_text == "-" or not opponent or opponent == "-":
            continue

        upcoming.append(
            UpcomingMatch(
                id=f"upcoming_{position}",
                date=date_text if len(date_text) > 5 else "N/A",
                event=event or "N/A",
                opponent=opponent,
            )
        )

    logger.debug(f"Parsed {len(upcoming)} upcoming matches from team page")
    return upcoming
