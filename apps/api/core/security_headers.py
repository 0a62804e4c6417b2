"""
Security Headers Middleware

Adds the standard protective headers to every API response.
"""
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request
from starlette.responses import Response
from core.config import settings

BASE_HEADERS = {
    # Prevent MIME type sniffing
    "X-Content-Type-Options": "nosniff",
    # JSON API: never framed
    "X-Frame-Options": "DENY",
    "Referrer-Policy": "strict-origin-when-cross-origin",
    "Permissions-Policy": "camera=(), geolocation=(), microphone=(), payment=(), usb=()",
    # Responses carry tokens and personal data
    "Cache-Control": "no-store",
}

PRODUCTION_HEADERS = {
    # Force HTTPS for 1 year, include subdomains
    "Strict-Transport-Security": "max-age=31536000; includeSubDomains",
    "Content-Security-Policy": "default-src 'none'; frame-ancestors 'none'",
}


class SecurityHeadersMiddleware(BaseHTTPMiddleware):
    async def dispatch(self, request: Request, call_next) -> Response:
        response = await call_next(request)
        response.headers.update(BASE_HEADERS)

        # The interactive docs need scripts and styles, so only lock down the API itself
        if not settings.DEBUG and not request.url.path.startswith(("/docs", "/redoc")):
            response.headers.update(PRODUCTION_HEADERS)

        return response
