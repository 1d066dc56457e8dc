"""Caller identity utilities."""

from pokertracker.auth.dependencies import get_current_player_id, validate_player_id

__all__ = [
    "get_current_player_id",
    "validate_player_id",
]
