import time

from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint
from starlette.requests import Request
from starlette.responses import Response

from spinup.common.logging import correlation_id, get_logger, new_correlation_id

logger = get_logger("middleware")

REQUEST_ID_HEADER = "X-Request-ID"


class RequestContextMiddleware(BaseHTTPMiddleware):
    """Binds a correlation id to the request and logs its outcome."""

    async def dispatch(self, request: Request, call_next: RequestResponseEndpoint) -> Response:
        request_id = request.headers.get(REQUEST_ID_HEADER) or new_correlation_id()
        token = correlation_id.set(request_id)
        try:
            start_time = time.time()
            response = await call_next(request)
            duration_ms = (time.time() - start_time) * 1000

            logger.info(
                "%s %s %d %.1fms",
                request.method,
                request.url.path,
                response.status_code,
                duration_ms,
            )
        finally:
            correlation_id.reset(token)

        response.headers[REQUEST_ID_HEADER] = request_id
        response.headers["X-Request-Duration-Ms"] = f"{duration_ms:.1f}"
        return response
