"""
Middleware for poker_server.

- HealthCheckAllowHttpMiddleware: lets load balancer health checks reach
  /health/ over plain HTTP (no SECURE_SSL_REDIRECT 301) from any origin.
"""

from __future__ import annotations


def _is_health_path(request) -> bool:
    path = (request.path or "").rstrip("/") or "/"
    return path == "/health"


class HealthCheckAllowHttpMiddleware:
    """
    Run before SecurityMiddleware. For requests to /health/:
    - Set the proxy SSL header so Django does not redirect HTTP -> HTTPS.
    - In the response, allow any origin.
    """

    def __init__(self, get_response):
        self.get_response = get_response

    def __call__(self, request):
        is_health = _is_health_path(request)
        if is_health:
            request.META["HTTP_X_FORWARDED_PROTO"] = "https"
        response = self.get_response(request)
        if is_health:
            response["Access-Control-Allow-Origin"] = "*"
        return response
