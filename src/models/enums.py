from enum import Enum


class DataSource(str, Enum):
    API = "API"  # FACEIT Data API
    HTML = "HTML"  # HLTV stats pages


class MatchResult(str, Enum):
    WIN = "Win"
    LOSS = "Loss"


class RecordShape(str, Enum):
    STRUCTURED = "structured"  # teams / results / started_at
    POSITIONAL = "positional"  # i1 / i17 / i18 ...


class CacheCategory(str, Enum):
    FACEIT_STATS = "faceit:stats"
    FACEIT_MATCHES = "faceit:matches"
    FACEIT_INFO = "faceit:info"
    HLTV_MATCHES = "hltv:matches"
    HLTV_ROSTER = "hltv:roster"
    HLTV_UPCOMING = "hltv:upcoming"

    @property
    def source(self) -> DataSource:
        if self.value.startswith("faceit:"):
            return DataSource.API
        return DataSource.HTML
