"""JWT Authentication Middleware for the triage assistant.

Reads the access token from the `access_token` HttpOnly cookie or, for
non-browser clients, from an `Authorization: Bearer` header. The token is
verified with PyJWT and the caller's identity is attached to
`request.state.user` for downstream dependencies.

Key material depends on the configured algorithm:
  - RS*/ES* : PEM public key read from `jwt_public_key_path`
  - HS*     : shared secret from `jwt_secret`

JWT claims used:
  - userId : user identifier (falls back to `sub`)
  - email  : user email
  - role   : e.g. "patient", "doctor", "admin"
  - iss    : must equal `jwt_issuer`
"""

import logging
from typing import Optional, Dict, Any

import jwt
from jwt.exceptions import ExpiredSignatureError, InvalidTokenError
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request
from starlette.responses import JSONResponse

from triage_assistant.config.settings import settings

logger = logging.getLogger(__name__)

# ---------------------------------------------------------------------------
# Routes that bypass JWT authentication
# ---------------------------------------------------------------------------
_PUBLIC_PREFIXES = ("/health", "/docs", "/openapi.json", "/redoc")


def _is_public_route(path: str) -> bool:
    return path == "/" or any(path == p or path.startswith(p) for p in _PUBLIC_PREFIXES)


# ---------------------------------------------------------------------------
# Key loader
# ---------------------------------------------------------------------------


def _load_verification_key() -> Optional[str]:
    """Return the key used to verify tokens for the configured algorithm."""
    if settings.jwt_algorithm.upper().startswith("HS"):
        if not settings.jwt_secret:
            logger.warning("JWT algorithm %s requires jwt_secret", settings.jwt_algorithm)
        return settings.jwt_secret

    try:
        with open(settings.jwt_public_key_path, "r") as fh:
            key = fh.read().strip()
        logger.info("JWT public key loaded from %s", settings.jwt_public_key_path)
        return key
    except FileNotFoundError:
        logger.warning(
            "JWT public key not found at '%s'. "
            "Set jwt_public_key_path in your .env file.",
            settings.jwt_public_key_path,
        )
        return None
    except OSError as exc:
        logger.error("Failed to load JWT public key: %s", exc)
        return None


# ---------------------------------------------------------------------------
# Token decoding helpers
# ---------------------------------------------------------------------------


def decode_jwt(token: str, key: str) -> Optional[Dict[str, Any]]:
    """Decode and verify a JWT token.

    Returns the full payload dict, or None if the token is invalid / expired.
    """
    try:
        payload: Dict[str, Any] = jwt.decode(
            token,
            key,
            algorithms=[settings.jwt_algorithm],
            issuer=settings.jwt_issuer,
            options={
                "verify_aud": False,  # no audience claim in these tokens
                "verify_exp": True,
                "verify_iss": True,
            },
        )
        return payload
    except ExpiredSignatureError:
        logger.debug("JWT token has expired")
        return None
    except InvalidTokenError as exc:
        logger.debug("Invalid JWT token: %s", exc)
        return None


def _payload_to_user(payload: Dict[str, Any]) -> Dict[str, Any]:
    """Map JWT payload claims → normalised user dict."""
    return {
        "userId": str(payload.get("userId") or payload.get("sub") or ""),
        "email": payload.get("email", ""),
        "role": payload.get("role", ""),
    }


def _extract_token(request: Request) -> Optional[str]:
    token = request.cookies.get(settings.jwt_access_cookie_name)
    if token:
        return token

    authorization = request.headers.get("authorization", "")
    scheme, _, credentials = authorization.partition(" ")
    if scheme.lower() == "bearer" and credentials:
        return credentials.strip()
    return None


# ---------------------------------------------------------------------------
# Middleware
# ---------------------------------------------------------------------------


class JWTAuthMiddleware(BaseHTTPMiddleware):
    """Starlette middleware that enforces JWT authentication.

    On every non-public request:
      1. Reads the access token (cookie first, then Bearer header).
      2. Verifies signature, expiry and issuer.
      3. Returns HTTP 401 JSON when the token is missing or invalid.
      4. On success, sets `request.state.user` for use by FastAPI dependencies.
    """

    def __init__(self, app) -> None:
        super().__init__(app)
        self._key: Optional[str] = _load_verification_key()

    def _ensure_key(self) -> bool:
        """Lazy-reload the key if it wasn't available at boot."""
        if not self._key:
            self._key = _load_verification_key()
        return self._key is not None

    @staticmethod
    def _unauthorized(detail: str, error_code: str = "UNAUTHORIZED") -> JSONResponse:
        return JSONResponse(
            status_code=401,
            content={"detail": detail, "error": error_code},
        )

    async def dispatch(self, request: Request, call_next):
        # ── Pass CORS preflight requests through untouched ──────────────
        if request.method == "OPTIONS":
            return await call_next(request)

        # ── Skip public routes ──────────────────────────────────────────
        if _is_public_route(request.url.path):
            return await call_next(request)

        if not self._ensure_key():
            logger.error(
                "JWT key unavailable – cannot authenticate request to %s",
                request.url.path,
            )
            return JSONResponse(
                status_code=503,
                content={
                    "detail": "Authentication service unavailable (key not configured).",
                    "error": "SERVICE_UNAVAILABLE",
                },
            )

        user_info: Optional[Dict[str, Any]] = None

        token = _extract_token(request)
        if token:
            payload = decode_jwt(token, self._key)
            if payload:
                user_info = _payload_to_user(payload)

        if not user_info or not user_info["userId"]:
            logger.warning(
                "Unauthenticated request: %s %s",
                request.method,
                request.url.path,
            )
            return self._unauthorized(
                detail=(
                    "Authentication required. "
                    "Provide a valid access_token cookie or Bearer token."
                )
            )

        logger.debug("Authenticated user_id=%s", user_info["userId"])
        request.state.user = user_info
        return await call_next(request)
