"""HTTP middleware."""

from triage_assistant.middleware.jwt_auth import JWTAuthMiddleware

__all__ = ["JWTAuthMiddleware"]
