"""LoggingMiddleware -- 请求级日志与 request_id

每个请求绑定 request_id（ULID）到 structlog contextvars，
并通过 X-Request-ID 响应头返回。客户端传入合法 ULID 时沿用之。
"""

import time

import structlog
from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint
from starlette.requests import Request
from starlette.responses import Response
from ulid import ULID

REQUEST_ID_HEADER = "X-Request-ID"

# 探针请求仅记 debug
_PROBE_PATHS = frozenset({"/health", "/ready"})


def _request_id_from(request: Request) -> str:
    incoming = request.headers.get(REQUEST_ID_HEADER)
    if incoming:
        try:
            return str(ULID.from_str(incoming))
        except ValueError:
            pass
    return str(ULID())


class LoggingMiddleware(BaseHTTPMiddleware):
    async def dispatch(
        self, request: Request, call_next: RequestResponseEndpoint
    ) -> Response:
        request_id = _request_id_from(request)
        path = request.url.path

        structlog.contextvars.clear_contextvars()
        structlog.contextvars.bind_contextvars(
            request_id=request_id,
            method=request.method,
            path=path,
        )
        log = structlog.get_logger()
        emit = log.adebug if path in _PROBE_PATHS else log.ainfo
        started = time.monotonic()

        try:
            response = await call_next(request)
        except Exception as e:
            await log.aerror(
                "request_failed",
                error_type=type(e).__name__,
                duration_ms=int((time.monotonic() - started) * 1000),
            )
            raise

        await emit(
            "request_completed",
            status_code=response.status_code,
            duration_ms=int((time.monotonic() - started) * 1000),
        )
        response.headers[REQUEST_ID_HEADER] = request_id
        return response
