"""
Database models for the local FPL cache.

Rows are wholly recreated by every refresh, so the remote id is a unique
column rather than the primary key; `row_id` keeps insertion order, which is
the order the projected collections are published in.
"""
from sqlalchemy import Column, String, Integer, ForeignKey, UniqueConstraint
from sqlalchemy.orm import relationship, declarative_base

Base = declarative_base()


class TeamRecord(Base):
    """A Premier League team as fetched in the latest snapshot."""
    __tablename__ = "team_records"

    row_id = Column(Integer, primary_key=True, autoincrement=True)
    id = Column(Integer, nullable=False)  # FPL team id
    index = Column(Integer, nullable=False, index=True)  # 1-based position in the snapshot, joins fixtures
    name = Column(String(100), nullable=False, default="")
    code = Column(Integer, nullable=False, index=True)  # Stable across seasons, joins players

    __table_args__ = (
        UniqueConstraint("id", name="uq_team_records_id"),
    )

    def __repr__(self):
        return f"TeamRecord(id={self.id}, index={self.index}, name={self.name!r}, code={self.code})"


class PlayerRecord(Base):
    """A player ("element" in FPL terms)."""
    __tablename__ = "player_records"

    row_id = Column(Integer, primary_key=True, autoincrement=True)
    id = Column(Integer, nullable=False)
    first_name = Column(String(100), nullable=False, default="")
    second_name = Column(String(100), nullable=False, default="")
    code = Column(Integer, nullable=False)
    team_code = Column(Integer, nullable=False)
    total_points = Column(Integer, nullable=False, default=0)
    now_cost = Column(Integer, nullable=False, default=0)  # Tenths of a million
    goals_scored = Column(Integer, nullable=False, default=0)
    assists = Column(Integer, nullable=False, default=0)
    team_row_id = Column(Integer, ForeignKey("team_records.row_id"), nullable=True)

    team = relationship("TeamRecord", lazy="joined")

    __table_args__ = (
        UniqueConstraint("id", name="uq_player_records_id"),
    )

    def __repr__(self):
        return f"PlayerRecord(id={self.id}, name={self.first_name!r} {self.second_name!r}, team_code={self.team_code})"


class FixtureRecord(Base):
    """A scheduled fixture. Unscheduled fixtures are never stored."""
    __tablename__ = "fixture_records"

    row_id = Column(Integer, primary_key=True, autoincrement=True)
    id = Column(Integer, nullable=False)
    kickoff_time = Column(String(40), nullable=False)  # ISO-8601 as sent by the API
    home_team_score = Column(Integer, nullable=False, default=0)  # 0 until played
    away_team_score = Column(Integer, nullable=False, default=0)
    home_team_row_id = Column(Integer, ForeignKey("team_records.row_id"), nullable=True)
    away_team_row_id = Column(Integer, ForeignKey("team_records.row_id"), nullable=True)

    home_team = relationship("TeamRecord", foreign_keys=[home_team_row_id], lazy="joined")
    away_team = relationship("TeamRecord", foreign_keys=[away_team_row_id], lazy="joined")

    __table_args__ = (
        UniqueConstraint("id", name="uq_fixture_records_id"),
    )

    def __repr__(self):
        return f"FixtureRecord(id={self.id}, kickoff_time={self.kickoff_time!r})"
