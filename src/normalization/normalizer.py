from typing import Any, Callable, Dict, Iterable, List, Mapping, Optional, Tuple
from datetime import date as calendar_date, datetime, timezone
import re
from collections import Counter

from loguru import logger

from src.config.settings import settings
from src.models.enums import DataSource
from src.models.match import MapResult, Match
from src.models.records import (
    PositionalRecord,
    RawApiRecord,
    RawHtmlRow,
    StructuredRecord,
    parse_record,
)
from src.normalization import html_extractor
from src.utils.misc_utils import generate_canonical_id, safe_float

SCORE_TEXT_RE = re.compile(r"(\d+)\s*-\s*(\d+)")
# Positional score fields also come as "16 / 12"
POSITIONAL_SCORE_RE = re.compile(r"(\d+)\s*[-/:]\s*(\d+)")
DDMMYY_RE = re.compile(r"^(\d{2})/(\d{2})/(\d{2})$")
# Epoch values above this are milliseconds
EPOCH_MS_THRESHOLD = 1e11
UNFINISHED_STATUSES = {"ONGOING", "READY", "VOTING", "CONFIGURING", "SCHEDULED", "CANCELLED"}

Clock = Callable[[], datetime]


def best_of_for(maps_played: int) -> int:
    if maps_played <= 1:
        return 1
    if maps_played <= 3:
        return 3
    if maps_played <= 5:
        return 5
    return maps_played


def pretty_map_name(raw: str) -> str:
    """Turns FACEIT map ids like de_mirage into display names."""
    name = (raw or "").strip()
    if name.startswith("de_"):
        name = name[3:].replace("_", " ").title()
    return html_extractor.canonical_map_name(name) or name or "Unknown"


def _faction_team_id(faction: Mapping[str, Any]) -> Optional[str]:
    value = faction.get("team_id") or faction.get("faction_id")
    return str(value) if value is not None else None


def find_factions(
    teams: Mapping[str, Any], team_id: str
) -> Optional[Tuple[str, str]]:
    """Returns (our_key, opponent_key) when `team_id` plays one of exactly two factions."""
    if len(teams) != 2:
        return None
    ours = [
        key
        for key, faction in teams.items()
        if isinstance(faction, Mapping) and _faction_team_id(faction) == team_id
    ]
    if len(ours) != 1:
        return None
    opponent = next(key for key in teams if key != ours[0])
    return ours[0], opponent


def is_team_match(raw: Mapping[str, Any], team_id: str) -> bool:
    """Decides whether a history record is a finished match of our team.

    Checked in order, first failing rule rejects:
    1. the record has the structured shape with exactly two factions;
    2. our team id is the team of exactly one of them;
    3. when the record names the team the player played for, it is ours;
    4. the match is finished.
    """
    record = parse_record(raw)
    if not isinstance(record, StructuredRecord):
        return False
    if find_factions(record.teams, team_id) is None:
        return False

    player_team = record.team_id or (record.model_extra or {}).get("teamId")
    if player_team and str(player_team) != team_id:
        return False

    if record.finished is not None and not record.finished:
        return False
    if record.status and record.status.upper() in UNFINISHED_STATUSES:
        return False
    return True


class Normalizer:
    """Folds FACEIT API records and HLTV table rows into canonical Match objects."""

    def __init__(
        self,
        team_id: Optional[str] = None,
        date_format: Optional[str] = None,
        clock: Optional[Clock] = None,
    ):
        self.team_id = team_id or settings.faceit_team_id
        self.date_format = date_format or settings.display_date_format
        self.clock: Clock = clock or (lambda: datetime.now(timezone.utc))
        logger.debug(f"Normalizer initialized for team {self.team_id}.")

    def normalize(
        self, raw: Any, source: DataSource, position: int = 0
    ) -> Optional[Match]:
        """Normalizes one raw record. Never raises.

        Returns None when the record has to be skipped: no score could be
        parsed, or our team is not one of its factions.
        """
        try:
            if isinstance(raw, RawHtmlRow):
                return self._normalize_html_row(raw, source)

            record: Optional[RawApiRecord]
            if isinstance(raw, (StructuredRecord, PositionalRecord)):
                record = raw
            elif isinstance(raw, Mapping):
                record = parse_record(raw)
            else:
                record = None

            if isinstance(record, StructuredRecord):
                return self._normalize_structured(record, source, position)
            if isinstance(record, PositionalRecord):
                return self._normalize_positional(record, source, position)

            logger.warning(
                f"Skipping record {position} with unrecognised shape: {type(raw).__name__}"
            )
            return None
        except Exception as e:
            logger.error(f"Error normalizing record {position} from {source.value}: {e}")
            logger.debug(f"Problematic record: {raw!r}")
            return None

    def normalize_many(self, raws: Iterable[Any], source: DataSource) -> List[Match]:
        matches = []
        skipped = 0
        for position, raw in enumerate(raws):
            match = self.normalize(raw, source, position)
            if match is None:
                skipped += 1
                continue
            matches.append(match)
        logger.info(
            f"Normalized {len(matches)} {source.value} matches ({skipped} skipped)."
        )
        return matches

    # --- Source shapes ---

    def _normalize_structured(
        self, record: StructuredRecord, source: DataSource, position: int
    ) -> Optional[Match]:
        sides = find_factions(record.teams, self.team_id)
        if sides is None:
            logger.warning(
                f"Team {self.team_id} not found among factions of match {record.match_id}, skipping."
            )
            return None
        our_key, opp_key = sides
        opponent_faction = record.teams[opp_key]
        opponent = opponent_faction.get("name") or opponent_faction.get("nickname")

        score = self._structured_score(record, our_key, opp_key)
        if score is None:
            logger.debug(f"No score in match {record.match_id}, skipping.")
            return None

        map_results, picks = self._structured_map_results(record, our_key, opp_key)
        total_maps = len(map_results) or len(picks) or 1
        best_of = best_of_for(total_maps)
        if total_maps > 1:
            map_label = f"Best of {best_of}"
        elif map_results:
            map_label = map_results[0].map
        elif picks:
            map_label = picks[0]
        else:
            map_label = "Unknown"

        display, iso, estimated = self._resolve_date(
            record.started_at if record.started_at is not None else record.finished_at
        )
        return Match(
            id=record.match_id or self._fallback_id(source, position),
            date=display,
            date_iso=iso,
            date_estimated=estimated,
            event=record.competition_name or "Unknown",
            opponent=opponent or "Unknown",
            map=map_label,
            our_score=score[0],
            opponent_score=score[1],
            best_of=best_of,
            total_maps=total_maps,
            map_results=map_results,
            source=source,
            competition_id=record.competition_id,
        )

    def _normalize_positional(
        self, record: PositionalRecord, source: DataSource, position: int
    ) -> Optional[Match]:
        score = self._explicit_score(record.i20, record.i21)
        if score is None:
            score = self._scan_score(record.i18, POSITIONAL_SCORE_RE)
        if score is None:
            logger.debug(f"No score in positional record {position}, skipping.")
            return None

        extra = record.model_extra or {}
        match_id = (
            record.id_block.get("matchId") or record.match_id or extra.get("match_id")
        )
        map_name = pretty_map_name(record.i1) if record.i1 else "Unknown"
        raw_date = next(
            (
                value
                for value in (record.date, extra.get("started_at"), extra.get("created_at"))
                if value is not None
            ),
            None,
        )
        display, iso, estimated = self._resolve_date(raw_date)
        return Match(
            id=str(match_id) if match_id else self._fallback_id(source, position),
            date=display,
            date_iso=iso,
            date_estimated=estimated,
            event=record.competition_name or "Unknown",
            opponent=record.i19 or "Unknown",
            map=map_name,
            our_score=score[0],
            opponent_score=score[1],
            map_results=[
                MapResult(map=map_name, our_score=score[0], opponent_score=score[1])
            ],
            source=source,
            competition_id=record.competition_id,
        )

    def _normalize_html_row(self, row: RawHtmlRow, source: DataSource) -> Optional[Match]:
        score = html_extractor.resolve_score(row)
        if score is None:
            return None

        map_name = html_extractor.resolve_map(row)
        display, iso, estimated = self._resolve_date(row.cells[0] if row.cells else None)
        return Match(
            id=html_extractor.resolve_match_id(row)
            or generate_canonical_id("stats", row.index),
            date=display,
            date_iso=iso,
            date_estimated=estimated,
            event=html_extractor.resolve_event(row),
            opponent=html_extractor.resolve_opponent(row),
            map=map_name,
            our_score=score[0],
            opponent_score=score[1],
            map_results=[
                MapResult(map=map_name, our_score=score[0], opponent_score=score[1])
            ],
            source=source,
        )

    # --- Field helpers ---

    def _structured_score(
        self, record: StructuredRecord, our_key: str, opp_key: str
    ) -> Optional[Tuple[int, int]]:
        raw_score = record.results.get("score")
        if isinstance(raw_score, Mapping):
            score = self._explicit_score(raw_score.get(our_key), raw_score.get(opp_key))
            if score is not None:
                return score

        texts = [raw_score, (record.model_extra or {}).get("score")]
        for text in texts:
            if isinstance(text, str):
                score = self._scan_score(text, SCORE_TEXT_RE)
                if score is not None:
                    return score
        return None

    def _structured_map_results(
        self, record: StructuredRecord, our_key: str, opp_key: str
    ) -> Tuple[List[MapResult], List[str]]:
        voting_map = record.voting.get("map")
        picks = []
        if isinstance(voting_map, Mapping):
            picks = list(voting_map.get("pick") or [])
        elif record.voting.get("map_pick"):
            picks = list(record.voting["map_pick"])
        picks = [pretty_map_name(str(pick)) for pick in picks]

        map_results = []
        for index, detail in enumerate(record.detailed_results):
            factions = detail.get("factions") if isinstance(detail, Mapping) else None
            if not isinstance(factions, Mapping):
                continue
            score = self._explicit_score(
                (factions.get(our_key) or {}).get("score"),
                (factions.get(opp_key) or {}).get("score"),
            )
            if score is None:
                continue
            map_results.append(
                MapResult(
                    map=picks[index] if index < len(picks) else "Unknown",
                    our_score=score[0],
                    opponent_score=score[1],
                )
            )
        return map_results, picks

    @staticmethod
    def _explicit_score(our: Any, opp: Any) -> Optional[Tuple[int, int]]:
        our_value, opp_value = safe_float(our), safe_float(opp)
        if our_value is None or opp_value is None or our_value < 0 or opp_value < 0:
            return None
        return int(our_value), int(opp_value)

    @staticmethod
    def _scan_score(text: Optional[str], pattern: re.Pattern) -> Optional[Tuple[int, int]]:
        found = pattern.search(text or "")
        if not found:
            return None
        return int(found.group(1)), int(found.group(2))

    def _resolve_date(self, value: Any) -> Tuple[str, str, bool]:
        """Returns (display, iso, estimated).

        Unparseable dates fall back to the processing time and are flagged
        as estimated so the aggregator can leave them out of streaks.
        """
        parsed = self._parse_date(value)
        if parsed is None:
            now = self.clock()
            logger.warning(f"Unparseable match date {value!r}, using processing time.")
            return now.strftime(self.date_format), now.isoformat(), True
        return parsed[0].strftime(self.date_format), parsed[1], False

    @staticmethod
    def _parse_date(value: Any) -> Optional[Tuple[Any, str]]:
        if value is None or isinstance(value, bool):
            return None

        epoch = safe_float(value)
        if epoch is not None:
            if epoch <= 0:
                return None
            if epoch > EPOCH_MS_THRESHOLD:
                epoch /= 1000
            try:
                moment = datetime.fromtimestamp(epoch, tz=timezone.utc)
            except (OverflowError, OSError, ValueError):
                return None
            return moment, moment.isoformat()

        text = str(value).strip()
        found = DDMMYY_RE.match(text)
        try:
            if found:
                day, month, year = (int(part) for part in found.groups())
                day_value = calendar_date(year + 2000, month, day)
                return day_value, day_value.isoformat()
            moment = datetime.fromisoformat(text.replace("Z", "+00:00"))
        except ValueError:
            return None
        if moment.tzinfo is None:
            moment = moment.replace(tzinfo=timezone.utc)
        return moment, moment.isoformat()

    @staticmethod
    def _fallback_id(source: DataSource, position: int) -> str:
        return generate_canonical_id(source.value, position)

    # --- Map grouping ---

    def group_maps(self, matches: Iterable[Match]) -> List[Match]:
        """Merges per-map records of the same match into one multi-map Match.

        Single-map records sharing a match id form one series. Otherwise they
        are grouped on (competition id, day, opponent, event). Records with an
        estimated date are never grouped on that key, since their day is the
        processing day. Groups keep first-seen order; already multi-map
        matches pass through.
        """
        matches = list(matches)
        id_counts = Counter(match.id for match in matches if match.total_maps == 1)

        groups: Dict[Tuple[Any, ...], List[Match]] = {}
        for match in matches:
            if match.total_maps > 1:
                key: Tuple[Any, ...] = ("match", match.id)
            elif id_counts[match.id] > 1:
                key = ("series", match.id)
            elif match.date_estimated:
                key = ("estimated", match.id)
            else:
                key = (match.competition_id, match.day, match.opponent, match.event)
            groups.setdefault(key, []).append(match)

        grouped = [
            members[0] if len(members) == 1 else self._merge_maps(members)
            for members in groups.values()
        ]
        logger.debug(f"Grouped {sum(len(g) for g in groups.values())} records into {len(grouped)} matches.")
        return grouped

    @staticmethod
    def _merge_maps(members: List[Match]) -> Match:
        first = members[0]
        ordered = sorted(members, key=lambda m: m.played_at)
        map_results = [
            result
            for member in ordered
            for result in (
                member.map_results
                or [
                    MapResult(
                        map=member.map,
                        our_score=member.our_score,
                        opponent_score=member.opponent_score,
                    )
                ]
            )
        ]
        our_wins = sum(1 for result in map_results if result.our_score > result.opponent_score)
        opp_wins = sum(1 for result in map_results if result.opponent_score > result.our_score)
        best_of = best_of_for(len(map_results))
        return first.model_copy(
            update={
                "date": ordered[0].date,
                "date_iso": ordered[0].date_iso,
                "date_estimated": any(member.date_estimated for member in members),
                "map": f"Best of {best_of}",
                "our_score": our_wins,
                "opponent_score": opp_wins,
                "best_of": best_of,
                "total_maps": len(map_results),
                "map_results": map_results,
            }
        )
