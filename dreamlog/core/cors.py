# dreamlog/core/cors.py
"""
Origin allow-list and the middleware that applies it.

Every response, errors included, carries the headers computed here.
A request from an origin outside the allow-list only gets ``Vary: Origin``
so browsers block the response; handlers never look at the origin.
"""
import logging
from dataclasses import dataclass
from typing import Dict, FrozenSet, Iterable, Optional

from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint
from starlette.requests import Request
from starlette.responses import JSONResponse, Response
from starlette.types import ASGIApp

logger = logging.getLogger(__name__)

ALLOW_METHODS = "GET, POST, PUT, DELETE, OPTIONS"
ALLOW_HEADERS = "Content-Type, X-Requested-With, Authorization"
MAX_AGE = "86400"


def normalize_origin(origin: Optional[str]) -> str:
    """Strip a single trailing slash so ``https://a.b/`` equals ``https://a.b``."""
    if not origin:
        return ""
    return origin[:-1] if origin.endswith("/") else origin


@dataclass(frozen=True)
class CorsPolicy:
    allowed_origins: FrozenSet[str]

    @classmethod
    def from_origins(cls, origins: Iterable[str]) -> "CorsPolicy":
        return cls(frozenset(normalize_origin(o) for o in origins if o))

    def is_allowed(self, origin: Optional[str]) -> bool:
        return bool(origin) and normalize_origin(origin) in self.allowed_origins

    def headers_for(self, origin: Optional[str]) -> Dict[str, str]:
        if not self.is_allowed(origin):
            if origin:
                logger.warning("CORS origin not in allow-list: %s", origin)
            return {"Vary": "Origin"}

        return {
            "Access-Control-Allow-Origin": normalize_origin(origin),
            "Access-Control-Allow-Credentials": "true",
            "Access-Control-Allow-Methods": ALLOW_METHODS,
            "Access-Control-Allow-Headers": ALLOW_HEADERS,
            "Access-Control-Max-Age": MAX_AGE,
            "Vary": "Origin",
        }


class CORSPolicyMiddleware(BaseHTTPMiddleware):
    """
    Outermost middleware.

    - OPTIONS is answered here with 204 and CORS headers only, before
      authentication or routing.
    - Exceptions that escape the app are logged and turned into a
      500 ``internal_error`` so the client still gets CORS headers.
    """

    def __init__(self, app: ASGIApp, policy: CorsPolicy) -> None:
        super().__init__(app)
        self.policy = policy

    async def dispatch(self, request: Request, call_next: RequestResponseEndpoint) -> Response:
        cors_headers = self.policy.headers_for(request.headers.get("origin"))

        if request.method == "OPTIONS":
            return Response(status_code=204, headers=cors_headers)

        try:
            response = await call_next(request)
        except Exception as exc:  # noqa: BLE001
            logger.exception("Unhandled error on %s %s", request.method, request.url.path)
            response = JSONResponse(
                status_code=500,
                content={"error": "internal_error", "message": str(exc) or exc.__class__.__name__},
            )

        response.headers.update(cors_headers)
        return response


class SigningSecretGuard(BaseHTTPMiddleware):
    """Refuse every request while the token signing secret is missing."""

    def __init__(self, app: ASGIApp, secret: Optional[str]) -> None:
        super().__init__(app)
        self.secret = secret

    async def dispatch(self, request: Request, call_next: RequestResponseEndpoint) -> Response:
        if not self.secret:
            logger.error("SECRET_KEY is not set")
            return JSONResponse(
                status_code=500,
                content={"error": "server_misconfigured", "message": "SECRET_KEY is not set"},
            )
        return await call_next(request)
