# src/models/team.py
from typing import List, Optional
from pydantic import BaseModel, ConfigDict
from pydantic.alias_generators import to_camel


class TeamMember(BaseModel):
    model_config = ConfigDict(extra="ignore")

    user_id: str
    nickname: str = "Unknown"
    country: Optional[str] = None
    skill_level: Optional[int] = None


class TeamInfo(BaseModel):
    """Team profile from the FACEIT teams endpoint."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    id: str
    name: str
    avatar: Optional[str] = None
    game: str = "cs2"
    region: Optional[str] = None
    country: Optional[str] = None
    level: Optional[int] = None
    leader: Optional[str] = None
    members: List[TeamMember] = []

    @property
    def captain(self) -> Optional[TeamMember]:
        """Leader if listed among members, otherwise the first member."""
        for member in self.members:
            if member.user_id == self.leader:
                return member
        return self.members[0] if self.members else None


class RosterPlayer(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    id: str
    nickname: str
    status: str = "N/A"
    rating30: str = "N/A"


class UpcomingMatch(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    id: str
    date: str = "N/A"
    event: str = "N/A"
    opponent: str = "TBD"


class SourceInfo(BaseModel):
    """Availability check of the FACEIT stats endpoint."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    api_status: str
    total_count: str = "Unknown"
    last_modified: str = "Unknown"
    checked_at: str
    error: Optional[str] = None
