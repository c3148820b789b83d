"""Anonymous session identity carried in the ``X-Session-Id`` header."""

import uuid

from fastapi import Header, HTTPException, status

SESSION_HEADER = "X-Session-Id"


def parse_session_id(value: str | None) -> uuid.UUID:
    """Parse a session id string.

    Raises:
        HTTPException: 400 if the value is missing or not a UUID.
    """
    if not value:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST, detail=f"Missing {SESSION_HEADER} header"
        )
    try:
        return uuid.UUID(value)
    except ValueError:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Invalid session id")


async def get_session_id(
    x_session_id: str | None = Header(default=None, alias=SESSION_HEADER),
) -> uuid.UUID:
    """FastAPI dependency that extracts the session id from the request header."""
    return parse_session_id(x_session_id)
