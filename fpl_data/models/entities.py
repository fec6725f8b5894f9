"""
Projected entities handed to presentation layers.

These are derived from the cache on every change and never persisted.
"""
from dataclasses import dataclass
from datetime import datetime


@dataclass(frozen=True)
class Team:
    id: int
    index: int
    name: str
    code: int


@dataclass(frozen=True)
class Player:
    id: int
    name: str
    team: str  # Empty when the team could not be resolved
    photo_url: str
    points: int
    current_price: float
    goals_scored: int
    assists: int


@dataclass(frozen=True)
class GameFixture:
    id: int
    local_kickoff_time: datetime  # Naive, in the configured local zone
    home_team: str
    away_team: str
    home_team_photo_url: str
    away_team_photo_url: str
    home_team_score: int
    away_team_score: int
