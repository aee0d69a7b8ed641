"""Composable request middleware: logging, CORS and shared-secret auth."""

import logging
import time
from typing import Callable, Optional, Sequence

from airfiles.bootstrap.config import AUTH_REALM, SECURITY_HEADERS, ServerConfiguration
from airfiles.domain.correlation_id import CorrelationLoggerAdapter
from airfiles.domain.http_types import Handler, HttpRequest, HttpResponse
from airfiles.domain.response_builders import (
    internal_error_response,
    unauthorized_response,
)
from airfiles.security.auth import is_authorized
from airfiles.security.cors import (
    CorsConfig,
    apply_cors_headers,
    is_preflight_request,
    preflight_response,
)

MIDDLEWARE_LOGGER = CorrelationLoggerAdapter(
    logging.getLogger("airfiles.pipeline.middleware"), {}
)

Middleware = Callable[[Handler], Handler]


def build_pipeline(router: Handler, middlewares: Sequence[Middleware]) -> Handler:
    """Wrap the router so the first middleware runs outermost."""
    handler = router
    for middleware in reversed(middlewares):
        handler = middleware(handler)
    return handler


def logging_middleware(next_handler: Handler) -> Handler:
    """Log one record per request.

    ``duration_ms`` covers building the response. Streamed file bodies are sent
    later by the worker, which logs the transfer as ``response_sent``.
    """

    def handle(request: HttpRequest) -> HttpResponse:
        started = time.perf_counter()
        response = next_handler(request)
        MIDDLEWARE_LOGGER.info(
            "Request completed",
            extra={
                "event": "request_completed",
                "method": request.method,
                "route": request.path,
                "status_code": response.status_code,
                "duration_ms": round((time.perf_counter() - started) * 1000, 3),
            },
        )
        return response

    return handle


def error_middleware(next_handler: Handler) -> Handler:
    """Turn unexpected handler errors into 500 responses."""

    def handle(request: HttpRequest) -> HttpResponse:
        try:
            return next_handler(request)
        except Exception as error:  # pylint: disable=broad-except
            MIDDLEWARE_LOGGER.error(
                "Unhandled error while handling request",
                extra={
                    "event": "request_failed",
                    "method": request.method,
                    "route": request.path,
                    "error_type": type(error).__name__,
                },
                exc_info=True,
            )
            return internal_error_response(
                request, "Internal server error", SECURITY_HEADERS
            )

    return handle


def cors_middleware(cors_config: CorsConfig) -> Middleware:
    """Answer preflight requests and add CORS headers to every response."""

    def wrap(next_handler: Handler) -> Handler:
        def handle(request: HttpRequest) -> HttpResponse:
            if is_preflight_request(request):
                return preflight_response(request, cors_config, SECURITY_HEADERS)
            response = next_handler(request)
            apply_cors_headers(response.headers, cors_config)
            return response

        return handle

    return wrap


def auth_middleware(secret: Optional[str], realm: str = AUTH_REALM) -> Middleware:
    """Require the shared secret through Basic auth when one is configured."""

    def wrap(next_handler: Handler) -> Handler:
        if not secret:
            return next_handler

        def handle(request: HttpRequest) -> HttpResponse:
            if not is_authorized(request, secret):
                return unauthorized_response(request, realm, SECURITY_HEADERS)
            return next_handler(request)

        return handle

    return wrap


def default_middlewares(config: ServerConfiguration) -> list[Middleware]:
    """Middleware chain for a server run, outermost first."""
    return [
        logging_middleware,
        cors_middleware(config.cors),
        error_middleware,
        auth_middleware(config.secret),
    ]
