"""
Per-request trace id and access logging.

The trace id comes from the caller's X-Trace-Id header when present, else a
fresh uuid4. It is bound to trace_id_var for the duration of the request so
log records and response envelopes carry it, and echoed on the response.
"""
import logging
import time
import uuid

from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request
from starlette.responses import Response

from core.logging import trace_id_var

logger = logging.getLogger("growfit.access")

TRACE_HEADER = "X-Trace-Id"


def _request_fields(request: Request) -> dict:
    return {
        "method": request.method,
        "path": request.url.path,
        "client_ip": request.client.host if request.client else None,
    }


class RequestContextMiddleware(BaseHTTPMiddleware):
    async def dispatch(self, request: Request, call_next) -> Response:
        trace_id = request.headers.get(TRACE_HEADER) or str(uuid.uuid4())
        token = trace_id_var.set(trace_id)
        started = time.perf_counter()
        try:
            response = await call_next(request)
        except Exception:
            logger.error(
                f"{request.method} {request.url.path} raised",
                exc_info=True,
                extra={"extra_fields": _request_fields(request)},
            )
            raise
        finally:
            elapsed_ms = round((time.perf_counter() - started) * 1000, 2)
            trace_id_var.reset(token)

        logger.info(
            f"{request.method} {request.url.path} {response.status_code} {elapsed_ms}ms",
            extra={
                "extra_fields": {
                    **_request_fields(request),
                    "status_code": response.status_code,
                    "duration_ms": elapsed_ms,
                    "trace_id": trace_id,
                }
            },
        )
        response.headers[TRACE_HEADER] = trace_id
        return response
