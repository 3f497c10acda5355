"""Route protection middleware."""

import re
from collections.abc import Callable, Iterable

import structlog
from fastapi import Request, Response, status
from fastapi.responses import JSONResponse
from starlette.middleware.base import BaseHTTPMiddleware

from app.core.exceptions import AuthException

SESSION_COOKIE_NAME = "session"

# Routes that can be accessed while signed out
PUBLIC_ROUTES = (
    "/",
    "/home",
    "/home/about",
    "/home/researchers",
    "/api/webhooks/identity",
    "/api/v1/health",
    "/api/v1/health/detailed",
    "/api/v1/ping",
    "/docs",
    "/redoc",
    "/openapi.json",
    "/metrics",
)

# Routes the middleware does not touch at all; the join flow signs visitors in itself
IGNORED_ROUTES = (
    "/api/webhooks/identity",
    "/join/:path*",
)

# Static assets (anything ending in a file extension), never under the API prefix
_STATIC_ASSET = re.compile(r".+\.[\w]+$")
API_PREFIX = "/api/"
ASSET_METHODS = frozenset({"GET", "HEAD"})


def compile_route(pattern: str) -> re.Pattern[str]:
    """
    Compile a route pattern into a regex.

    ``:name`` matches one path segment, ``:name*`` matches zero or more.
    """
    parts = []
    for segment in pattern.strip("/").split("/"):
        if not segment:
            continue
        if segment.startswith(":") and segment.endswith("*"):
            parts.append(r"(?:/[^/]+)*")
        elif segment.startswith(":"):
            parts.append(r"/[^/]+")
        else:
            parts.append("/" + re.escape(segment))
    return re.compile("^" + "".join(parts) + "/?$" if parts else r"^/$")


class RouteMatcher:
    """Matches request paths against a static list of route patterns."""

    def __init__(self, patterns: Iterable[str]):
        self.patterns = tuple(patterns)
        self._compiled = [compile_route(pattern) for pattern in self.patterns]

    def matches(self, path: str) -> bool:
        return any(regex.match(path) for regex in self._compiled)


def is_static_asset(request: Request) -> bool:
    """Read-only request for a file outside the API.

    API path segments such as usernames may contain dots, so they never qualify.
    """
    path = request.url.path
    return (
        request.method in ASSET_METHODS
        and not path.startswith(API_PREFIX)
        and bool(_STATIC_ASSET.match(path))
    )


def extract_session_token(request: Request) -> str | None:
    """Session cookie, falling back to a bearer token."""
    token = request.cookies.get(SESSION_COOKIE_NAME)
    if token:
        return token
    authorization = request.headers.get("Authorization", "")
    scheme, _, credentials = authorization.partition(" ")
    if scheme.lower() == "bearer" and credentials:
        return credentials
    return None


class AuthMiddleware(BaseHTTPMiddleware):
    """Require a verified identity provider session outside the public routes."""

    def __init__(
        self,
        app,
        identity_factory: Callable,
        public_routes: Iterable[str] = PUBLIC_ROUTES,
        ignored_routes: Iterable[str] = IGNORED_ROUTES,
    ):
        """
        Initialize the middleware.

        Args:
            app: ASGI application
            identity_factory: Dependency returning the IdentityService
            public_routes: Patterns reachable while signed out
            ignored_routes: Patterns skipped entirely
        """
        super().__init__(app)
        self.identity_factory = identity_factory
        self.public = RouteMatcher(public_routes)
        self.ignored = RouteMatcher(ignored_routes)

    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        """Check the session before handing the request on."""
        path = request.url.path
        request.state.auth = None

        if request.method == "OPTIONS" or is_static_asset(request) or self.ignored.matches(path):
            return await call_next(request)

        is_public = self.public.matches(path)
        token = extract_session_token(request)

        if token:
            try:
                # Honour dependency overrides so tests can swap the provider
                factory = request.app.dependency_overrides.get(self.identity_factory, self.identity_factory)
                request.state.auth = await factory().verify_session(token)
            except AuthException as e:
                if not is_public:
                    return self._unauthorized(request, e.message)

        if request.state.auth is None and not is_public:
            return self._unauthorized(request, "Authentication required")

        return await call_next(request)

    @staticmethod
    def _unauthorized(request: Request, message: str) -> JSONResponse:
        structlog.get_logger().info("request_unauthorized", path=request.url.path, reason=message)
        return JSONResponse(
            status_code=status.HTTP_401_UNAUTHORIZED,
            content={
                "error": "AuthException",
                "message": message,
                "path": str(request.url),
            },
            headers={"WWW-Authenticate": "Bearer"},
        )
