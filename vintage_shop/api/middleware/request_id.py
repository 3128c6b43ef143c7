import logging
import re
import time
import uuid

from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint
from starlette.requests import Request
from starlette.responses import Response

from vintage_shop.core.logging import request_id_var

logger = logging.getLogger(__name__)

_REQUEST_ID_RE = re.compile(r"^[a-zA-Z0-9\-_.]{1,128}$")


class RequestIdMiddleware(BaseHTTPMiddleware):
    """Tag every request with an id that ends up in each log line it produces."""

    async def dispatch(
        self, request: Request, call_next: RequestResponseEndpoint
    ) -> Response:
        incoming = request.headers.get("X-Request-ID")
        request_id = incoming if incoming and _REQUEST_ID_RE.match(incoming) else uuid.uuid4().hex
        request.state.request_id = request_id

        token = request_id_var.set(request_id)
        started = time.monotonic()
        try:
            response = await call_next(request)
            logger.info(
                "%s %s -> %d",
                request.method, request.url.path, response.status_code,
                extra={"duration_ms": round((time.monotonic() - started) * 1000)},
            )
        finally:
            request_id_var.reset(token)

        response.headers["X-Request-ID"] = request_id
        return response
