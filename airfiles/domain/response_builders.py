"""Pure HTTP response builders."""

from typing import Iterable, Optional

from airfiles.domain.http_types import HttpRequest, HttpResponse, should_close


def _close_requested(request: Optional[HttpRequest]) -> bool:
    return should_close(request.headers) if request is not None else True


def text_response(
    status_line: str,
    message: str,
    request: Optional[HttpRequest],
    security_headers: dict[str, str],
) -> HttpResponse:
    """Return a text/plain response with the given status."""
    headers = {"Content-Type": "text/plain; charset=utf-8", **security_headers}
    return HttpResponse(status_line, headers, message.encode(), _close_requested(request))


def html_response(
    document: str, request: HttpRequest, security_headers: dict[str, str]
) -> HttpResponse:
    """Return a 200 text/html response."""
    headers = {
        "Content-Type": "text/html; charset=utf-8",
        "Cache-Control": "no-cache",
        **security_headers,
    }
    return HttpResponse(
        "HTTP/1.1 200 OK", headers, document.encode("utf-8"), should_close(request.headers)
    )


def not_found_response(
    request: HttpRequest, security_headers: dict[str, str]
) -> HttpResponse:
    """Return a plain 404 response reusing the connection preference."""
    return text_response(
        "HTTP/1.1 404 Not Found", "File not found", request, security_headers
    )


def bad_request_response(
    request: Optional[HttpRequest], security_headers: dict[str, str]
) -> HttpResponse:
    """Produce a 400 response honoring the caller's connection preference."""
    return text_response(
        "HTTP/1.1 400 Bad Request", "Bad request", request, security_headers
    )


def internal_error_response(
    request: HttpRequest, message: str, security_headers: dict[str, str]
) -> HttpResponse:
    """Produce a 500 response for a failed filesystem operation."""
    return text_response(
        "HTTP/1.1 500 Internal Server Error", message, request, security_headers
    )


def entity_too_large_response(security_headers: dict[str, str]) -> HttpResponse:
    """Produce a 413 response that always closes the connection."""
    return HttpResponse(
        "HTTP/1.1 413 Payload Too Large", security_headers.copy(), b"", True
    )


def range_not_satisfiable_response(
    request: HttpRequest, content_range: str, security_headers: dict[str, str]
) -> HttpResponse:
    """Produce a 416 response naming the full size of the resource."""
    response = text_response(
        "HTTP/1.1 416 Range Not Satisfiable",
        "Requested range not satisfiable",
        request,
        security_headers,
    )
    response.headers["Content-Range"] = content_range
    return response


def unauthorized_response(
    request: HttpRequest, realm: str, security_headers: dict[str, str]
) -> HttpResponse:
    """Produce a 401 challenge that triggers the browser credential prompt."""
    response = text_response(
        "HTTP/1.1 401 Unauthorized",
        "Authentication required",
        request,
        security_headers,
    )
    response.headers["WWW-Authenticate"] = f'Basic realm="{realm}"'
    return response


def method_not_allowed_response(
    request: HttpRequest, security_headers: dict[str, str], allowed_methods: Iterable[str]
) -> HttpResponse:
    """Produce a 405 response enumerating the supported HTTP methods."""
    allow_header = ", ".join(sorted(allowed_methods))
    headers = {"Allow": allow_header, **security_headers}
    return HttpResponse(
        "HTTP/1.1 405 Method Not Allowed",
        headers,
        b"",
        should_close(request.headers),
    )


def not_modified_response(
    request: HttpRequest, headers: dict[str, str]
) -> HttpResponse:
    """Produce a 304 response carrying the validators of the cached entity."""
    return HttpResponse(
        "HTTP/1.1 304 Not Modified",
        headers,
        b"",
        should_close(request.headers),
        send_body=False,
    )


def options_response(
    request: HttpRequest, security_headers: dict[str, str], allowed_methods: Iterable[str]
) -> HttpResponse:
    """Produce a 204 response advertising the supported methods."""
    headers = {"Allow": ", ".join(sorted(allowed_methods)), **security_headers}
    return HttpResponse(
        "HTTP/1.1 204 No Content", headers, b"", should_close(request.headers)
    )


def draining_response(security_headers: dict[str, str]) -> HttpResponse:
    """Produce a 503 response sent while the server is shutting down."""
    headers = {
        "Content-Type": "text/plain; charset=utf-8",
        "Retry-After": "1",
        **security_headers,
    }
    return HttpResponse(
        "HTTP/1.1 503 Service Unavailable", headers, b"Server is shutting down", True
    )
