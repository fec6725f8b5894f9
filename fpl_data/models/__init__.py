"""
Models for the FPL data layer.

- records: SQLAlchemy tables of the local cache
- dto: pydantic payloads returned by the FPL API
- entities: read-only projections published to subscribers
"""
from fpl_data.models.records import Base, TeamRecord, PlayerRecord, FixtureRecord
from fpl_data.models.dto import TeamDto, PlayerDto, BootstrapStaticInfoDto, FixtureDto
from fpl_data.models.entities import Team, Player, GameFixture

__all__ = [
    "Base",
    "TeamRecord",
    "PlayerRecord",
    "FixtureRecord",
    "TeamDto",
    "PlayerDto",
    "BootstrapStaticInfoDto",
    "FixtureDto",
    "Team",
    "Player",
    "GameFixture",
]
