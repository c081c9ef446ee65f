"""Security headers middleware.

Adds the standard hardening headers and the Content-Security-Policy to
every response.
"""

from typing import Iterable, Mapping, Optional

from fastapi import Request, Response
from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint

from attendee.app.security.sanitizer import SECURITY_HEADERS, generate_csp


class SecurityHeadersMiddleware(BaseHTTPMiddleware):
    """Middleware to add security headers to all responses.

    Headers already set by a route are left untouched.
    """

    def __init__(
        self,
        app,
        headers: Optional[Mapping[str, str]] = None,
        connect_sources: Iterable[str] = (),
    ):
        super().__init__(app)
        self.headers = dict(SECURITY_HEADERS if headers is None else headers)
        self.headers["Content-Security-Policy"] = generate_csp(connect_sources)

    async def dispatch(
        self,
        request: Request,
        call_next: RequestResponseEndpoint
    ) -> Response:
        """Process request and add security headers."""
        response = await call_next(request)
        for name, value in self.headers.items():
            response.headers.setdefault(name, value)
        return response
