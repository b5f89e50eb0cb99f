import re
from typing import Any, Dict, List, Mapping, Optional, Union

from pydantic import BaseModel, ConfigDict, Field, ValidationError

from .enums import RecordShape

POSITIONAL_KEY_RE = re.compile(r"^i\d+$")
STRUCTURED_KEYS = ("teams", "results", "started_at")


class StructuredRecord(BaseModel):
    """FACEIT v4 shape: named teams/results/started_at fields."""

    model_config = ConfigDict(extra="allow", coerce_numbers_to_str=True)

    match_id: Optional[str] = None
    teams: Dict[str, Dict[str, Any]] = {}
    results: Dict[str, Any] = {}
    started_at: Optional[Union[float, str]] = None
    finished_at: Optional[Union[float, str]] = None
    competition_id: Optional[str] = None
    competition_name: Optional[str] = None
    status: Optional[str] = None
    finished: Optional[Union[int, bool]] = None
    # Team the history owner played for, when the payload carries it
    team_id: Optional[str] = None
    voting: Dict[str, Any] = {}
    detailed_results: List[Dict[str, Any]] = []


class PositionalRecord(BaseModel):
    """Older stats shape keyed by terse codes (i1 = map, i18 = score ...)."""

    model_config = ConfigDict(
        extra="allow", populate_by_name=True, coerce_numbers_to_str=True
    )

    id_block: Dict[str, Any] = Field({}, alias="_id")
    match_id: Optional[str] = Field(None, alias="matchId")
    i1: Optional[str] = None  # map
    i17: Optional[str] = None  # result flag, "1" = win
    i18: Optional[str] = None  # score text, "16-12" or "16 / 12"
    i19: Optional[str] = None  # opponent
    i20: Optional[str] = None  # our score
    i21: Optional[str] = None  # opponent score
    date: Optional[Union[float, str]] = None
    competition_id: Optional[str] = Field(None, alias="competitionId")
    competition_name: Optional[str] = Field(None, alias="competitionName")


RawApiRecord = Union[StructuredRecord, PositionalRecord]


def detect_record_shape(raw: Mapping[str, Any]) -> Optional[RecordShape]:
    """A non-empty `teams` mapping makes a record structured.

    Without one, positional codes decide. Records with neither fall back to
    the structured shape when they carry any structured key.
    """
    teams = raw.get("teams")
    if isinstance(teams, Mapping) and teams:
        return RecordShape.STRUCTURED
    if any(POSITIONAL_KEY_RE.match(str(key)) for key in raw):
        return RecordShape.POSITIONAL
    if any(key in raw for key in STRUCTURED_KEYS):
        return RecordShape.STRUCTURED
    return None


def parse_record(raw: Mapping[str, Any]) -> Optional[RawApiRecord]:
    shape = detect_record_shape(raw)
    try:
        if shape == RecordShape.STRUCTURED:
            return StructuredRecord.model_validate(dict(raw))
        if shape == RecordShape.POSITIONAL:
            return PositionalRecord.model_validate(dict(raw))
    except ValidationError:
        return None
    return None


class HtmlLink(BaseModel):
    model_config = ConfigDict(frozen=True)

    text: str
    href: str = ""
    cell: int = 0  # index of the cell holding the anchor


class RawHtmlRow(BaseModel):
    """Cell texts and anchor links of one candidate table row."""

    model_config = ConfigDict(frozen=True)

    index: int
    cells: List[str]
    links: List[HtmlLink] = []

    @property
    def text(self) -> str:
        return " ".join(self.cells)
