import logging
import secrets
from typing import Optional

from fastapi import Depends, HTTPException
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer

from .config import API_TOKENS

logger = logging.getLogger(__name__)

security = HTTPBearer(auto_error=False)


def resolve_actor(token: Optional[str]) -> Optional[str]:
    """Return the actor name for an API token, or None if the token is unknown"""
    if not token:
        return None
    for known_token, actor in API_TOKENS.items():
        if secrets.compare_digest(token, known_token):
            return actor
    return None


async def get_current_actor(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(security),
) -> Optional[str]:
    """
    Identify the caller of a ledger endpoint.

    With API_TOKENS configured a valid Bearer token is required and the matching
    actor name is returned. Without it the API is open and the actor is None.
    """
    if not API_TOKENS:
        return None

    if credentials is None:
        raise HTTPException(
            status_code=401,
            detail="Not authenticated. Please provide a valid Bearer token in the Authorization header.",
        )

    actor = resolve_actor(credentials.credentials)
    if actor is None:
        logger.warning("🔒 Rejected request with unknown API token")
        raise HTTPException(status_code=401, detail="Invalid API token")
    return actor
