"""FastAPI dependencies for authentication and the triage engine.

The JWTAuthMiddleware (registered in main.py) verifies the caller's token
and stores a normalised user object in `request.state.user`:

    {
        "userId": str,
        "email":  str,
        "role":   str,   # e.g. "patient", "doctor", "admin"
    }
"""

from typing import Dict, Any

from fastapi import HTTPException, Request, status
from triage_assistant.engine.triage_engine import TriageEngine, get_triage_engine
import logging

logger = logging.getLogger(__name__)


async def get_current_user(request: Request) -> Dict[str, Any]:
    """Return the authenticated user attached by JWTAuthMiddleware.

    Raises:
        HTTP 401 – if the middleware did not populate request.state.user
    """
    user: Dict[str, Any] | None = getattr(request.state, "user", None)

    if not user:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Not authenticated. Provide a valid access_token cookie.",
            headers={"WWW-Authenticate": "Bearer"},
        )

    if not user.get("userId"):
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="User identity missing from token.",
        )

    logger.debug("Authenticated user: %s role=%s", user.get("userId"), user.get("role"))
    return user


def get_engine() -> TriageEngine:
    """Return the process-wide triage engine."""
    return get_triage_engine()
