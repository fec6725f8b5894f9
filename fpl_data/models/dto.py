"""
Payload models for the Fantasy Premier League API.

Field names match the JSON sent by the API. Only the fields the data layer
uses are declared; everything else in the payload is ignored.
"""
from typing import List, Optional
from pydantic import BaseModel, ConfigDict


class _FplPayload(BaseModel):
    model_config = ConfigDict(extra="ignore")


class TeamDto(_FplPayload):
    """Entry of bootstrap-static `teams`."""
    id: int
    name: str
    code: int


class PlayerDto(_FplPayload):
    """Entry of bootstrap-static `elements`."""
    id: int
    first_name: str
    second_name: str
    code: int
    team_code: int
    total_points: int
    now_cost: int
    goals_scored: int
    assists: int


class BootstrapStaticInfoDto(_FplPayload):
    """The bootstrap-static snapshot: every team and player at once."""
    teams: List[TeamDto]
    elements: List[PlayerDto]


class FixtureDto(_FplPayload):
    """Entry of the fixtures list. team_h/team_a are 1-based team positions."""
    id: int
    kickoff_time: Optional[str] = None
    team_h: int
    team_a: int
    team_h_score: Optional[int] = None
    team_a_score: Optional[int] = None
