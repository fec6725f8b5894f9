"""
Projection of cache rows into presentation-ready entities.
"""
from fpl_data.services.projection.projector import (
    ViewProjector,
    to_team,
    to_player,
    to_game_fixture,
    player_photo_url,
    team_badge_url,
)

__all__ = [
    "ViewProjector",
    "to_team",
    "to_player",
    "to_game_fixture",
    "player_photo_url",
    "team_badge_url",
]
