"""Middleware configuration for FastAPI application"""
from fastapi.middleware.cors import CORSMiddleware
from starlette.types import ASGIApp, Receive, Scope, Send

from storefront.core.config import Settings

# Machine-to-machine endpoints answer their own OPTIONS requests
CORS_EXEMPT_PATHS = frozenset({"/stripe-webhook"})


class PathExemptCORSMiddleware(CORSMiddleware):
    """CORSMiddleware that passes requests for exempt paths straight to the app"""

    def __init__(self, app: ASGIApp, exempt_paths=CORS_EXEMPT_PATHS, **kwargs):
        super().__init__(app, **kwargs)
        self.exempt_paths = frozenset(exempt_paths)

    async def __call__(self, scope: Scope, receive: Receive, send: Send) -> None:
        if scope["type"] == "http" and scope["path"] in self.exempt_paths:
            await self.app(scope, receive, send)
            return
        await super().__call__(scope, receive, send)


def setup_cors_middleware(app, settings: Settings):
    """Setup CORS middleware for FastAPI app"""
    origins = settings.cors_origins
    app.add_middleware(
        PathExemptCORSMiddleware,
        allow_origins=origins,
        allow_credentials="*" not in origins,
        allow_methods=["GET", "POST", "OPTIONS"],
        allow_headers=["Content-Type", "Authorization", "X-Client-Info", "Apikey"],
    )
