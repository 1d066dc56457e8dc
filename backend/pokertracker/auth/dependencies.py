"""FastAPI dependency-injection callables for the caller's identity.

Authentication itself belongs to the identity provider in front of this
service; it forwards the authenticated player id in ``X-Player-Id``.
"""

import logging

from fastapi import Header, HTTPException, status

logger = logging.getLogger("pokertracker.auth.dependencies")

_MAX_PLAYER_ID_LENGTH = 128


def validate_player_id(player_id: str) -> bool:
    """A player id is a non-blank string of bounded length."""
    return bool(player_id and player_id.strip()) and len(player_id) <= _MAX_PLAYER_ID_LENGTH


async def get_current_player_id(
    x_player_id: str | None = Header(None),
) -> str:
    """Return the authenticated player id from the ``X-Player-Id`` header.

    Raises:
        HTTPException 401: Header missing or malformed.
    """
    if x_player_id is None:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Missing X-Player-Id header",
        )

    if not validate_player_id(x_player_id):
        logger.warning("Malformed X-Player-Id header presented")
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid player id",
        )

    return x_player_id.strip()
