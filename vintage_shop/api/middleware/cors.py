from urllib.parse import urlparse

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from vintage_shop.core.config import Settings


def _validate_origins(origins: list[str]) -> None:
    for origin in origins:
        parsed = urlparse(origin)
        if parsed.scheme not in ("http", "https") or not parsed.netloc:
            raise ValueError(f"Invalid CORS origin: {origin!r}")


def setup_cors(app: FastAPI, settings: Settings) -> None:
    """Allow the storefront to send and read the guest session header."""
    _validate_origins(settings.cors_origins_list)
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins_list,
        allow_credentials=True,
        allow_methods=["GET", "POST", "PATCH", "DELETE", "OPTIONS"],
        allow_headers=[
            "Authorization",
            "Content-Type",
            "X-Request-ID",
            settings.guest_session_header,
        ],
        expose_headers=["X-Request-ID", settings.guest_session_header],
        max_age=600,
    )
