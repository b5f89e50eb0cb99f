from typing import Any, Iterable, List, Mapping, Optional

from src.models.match import Match

# Tried in order, first present wins
ID_FIELDS = ("match_id", "matchId", "id")


def extract_match_id(item: Any) -> Optional[str]:
    """Returns the source identifier of a Match or raw record, if it has one."""
    if isinstance(item, Match):
        return item.id
    if not isinstance(item, Mapping):
        return None

    nested = item.get("_id")
    if isinstance(nested, Mapping) and nested.get("matchId"):
        return str(nested["matchId"])
    for key in ID_FIELDS:
        value = item.get(key)
        if value not in (None, ""):
            return str(value)
    return None


def dedupe(items: Iterable[Any]) -> List[Any]:
    """Drops repeated identifiers, keeping first-seen order. Items without an id are kept."""
    seen: set[str] = set()
    unique: List[Any] = []
    for item in items:
        match_id = extract_match_id(item)
        if match_id is not None:
            if match_id in seen:
                continue
            seen.add(match_id)
        unique.append(item)
    return unique
