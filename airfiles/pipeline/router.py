"""Request routing logic."""

import logging

from airfiles.bootstrap.config import ALLOWED_METHODS, SECURITY_HEADERS
from airfiles.domain.correlation_id import CorrelationLoggerAdapter
from airfiles.domain.http_types import Handler, HttpRequest, HttpResponse
from airfiles.domain.response_builders import not_found_response, options_response
from airfiles.domain.shared_paths import SharedPathResolver, TargetKind
from airfiles.handlers.directory_handler import directory_response, root_response
from airfiles.handlers.file_handler import FileSettings, file_response
from airfiles.pipeline.validation import validate_request

ROUTER_LOGGER = CorrelationLoggerAdapter(
    logging.getLogger("airfiles.pipeline.router"), {}
)


def _dispatch(
    request: HttpRequest, resolver: SharedPathResolver, settings: FileSettings
) -> HttpResponse:
    target = resolver.resolve(request.path)
    if ROUTER_LOGGER.logger.isEnabledFor(logging.DEBUG):
        ROUTER_LOGGER.debug(
            "Route resolved",
            extra={
                "event": "route_matched",
                "route": request.path,
                "target": target.kind.value,
            },
        )

    if target.kind is TargetKind.ROOT:
        return root_response(request, resolver.entries, SECURITY_HEADERS)
    if target.kind is TargetKind.DIRECTORY:
        return directory_response(
            request, target.logical_path, target.path, SECURITY_HEADERS
        )
    if target.kind is TargetKind.FILE:
        return file_response(request, target.path, settings, target.name)

    ROUTER_LOGGER.info(
        "No shared entry matches path",
        extra={
            "event": "route_not_found",
            "route": request.path,
            "method": request.method,
        },
    )
    return not_found_response(request, SECURITY_HEADERS)


def route_request(
    request: HttpRequest, resolver: SharedPathResolver, settings: FileSettings
) -> HttpResponse:
    """Route the request to the listing or file handler and return a response."""
    validation_error = validate_request(request, ALLOWED_METHODS, SECURITY_HEADERS)
    if validation_error is not None:
        ROUTER_LOGGER.info(
            "Request rejected by validation",
            extra={
                "event": "request_rejected",
                "route": request.path,
                "method": request.method,
                "status_code": validation_error.status_code,
            },
        )
        return validation_error

    if request.method == "OPTIONS":
        return options_response(request, SECURITY_HEADERS, ALLOWED_METHODS)

    response = _dispatch(request, resolver, settings)
    if request.method == "HEAD":
        response.send_body = False
    return response


def make_router(resolver: SharedPathResolver, settings: FileSettings) -> Handler:
    """Bind the resolver and file settings into a request handler."""

    def router(request: HttpRequest) -> HttpResponse:
        return route_request(request, resolver, settings)

    return router
