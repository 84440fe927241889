"""Shared router dependencies."""

import secrets

from fastapi import Header, HTTPException, Request, status

from los.config import settings
from los.services.engine import RoundEngine


def get_engine(request: Request) -> RoundEngine:
    engine = getattr(request.app.state, "engine", None)
    if engine is None:
        raise HTTPException(status.HTTP_503_SERVICE_UNAVAILABLE, "Round engine not initialized.")
    return engine


async def verify_admin_key(x_admin_key: str = Header(...)):
    """Verify the admin API key for manual engine operations."""
    if not settings.ADMIN_API_KEY:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Admin API key not configured on server.",
        )
    if not secrets.compare_digest(x_admin_key, settings.ADMIN_API_KEY):
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Invalid admin API key.",
        )
