"""HTTP middleware wrapped around the handbook API."""

import logging

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import RedirectResponse

from handbook_kernel.models.config import ServerConfig

logger = logging.getLogger(__name__)

SECURITY_HEADERS = {
    "X-Content-Type-Options": "nosniff",
    "X-Frame-Options": "SAMEORIGIN",
    "X-DNS-Prefetch-Control": "off",
    "Referrer-Policy": "no-referrer",
    "Cross-Origin-Opener-Policy": "same-origin",
    "Cross-Origin-Resource-Policy": "same-origin",
}
HSTS_HEADER = ("Strict-Transport-Security", "max-age=15552000; includeSubDomains")


def install_middleware(app: FastAPI, config: ServerConfig) -> None:
    """
    Install middleware. Starlette runs the last one added first, so the
    order below is: access log → HTTPS redirect → security headers → CORS.
    """
    app.add_middleware(
        CORSMiddleware,
        allow_origins=config.allowed_origins,
        allow_methods=["GET", "OPTIONS"],
        allow_headers=["Origin", "X-Requested-With", "Content-Type", "Accept"],
    )

    @app.middleware("http")
    async def security_headers(request: Request, call_next):
        response = await call_next(request)
        for name, value in SECURITY_HEADERS.items():
            response.headers.setdefault(name, value)
        if config.is_production:
            response.headers.setdefault(*HSTS_HEADER)
        return response

    @app.middleware("http")
    async def https_redirect(request: Request, call_next):
        if config.is_production and request.headers.get("x-forwarded-proto") != "https":
            url = request.url.replace(scheme="https")
            return RedirectResponse(str(url), status_code=301)
        return await call_next(request)

    @app.middleware("http")
    async def access_log(request: Request, call_next):
        client = request.client.host if request.client else "-"
        logger.info("%s %s - %s", request.method, request.url.path, client)
        return await call_next(request)
