"""CORS (Cross-Origin Resource Sharing) headers for every response."""

from dataclasses import dataclass

from airfiles.domain.http_types import HttpRequest, HttpResponse, should_close


@dataclass(frozen=True)
class CorsConfig:
    """CORS headers applied to every response."""

    allow_origin: str = "*"
    allowed_methods: tuple[str, ...] = ("GET", "POST", "OPTIONS")
    allowed_headers: tuple[str, ...] = ("Origin", "Content-Type", "X-Auth-Token")
    expose_headers: tuple[str, ...] = ("X-Request-ID",)
    max_age: int = 86400


def is_preflight_request(request: HttpRequest) -> bool:
    """Check if the request is a CORS preflight OPTIONS request."""
    return (
        request.method == "OPTIONS"
        and "access-control-request-method" in request.headers
    )


def cors_headers(cors_config: CorsConfig) -> dict[str, str]:
    """Return the header set described by the configuration."""
    headers = {
        "Access-Control-Allow-Origin": cors_config.allow_origin,
        "Access-Control-Allow-Methods": ", ".join(cors_config.allowed_methods),
        "Access-Control-Allow-Headers": ", ".join(cors_config.allowed_headers),
    }
    if cors_config.expose_headers:
        headers["Access-Control-Expose-Headers"] = ", ".join(
            cors_config.expose_headers
        )
    if cors_config.allow_origin != "*":
        headers["Vary"] = "Origin"
    return headers


def apply_cors_headers(headers: dict[str, str], cors_config: CorsConfig) -> None:
    """Merge CORS headers into a response without overwriting existing ones."""
    for name, value in cors_headers(cors_config).items():
        headers.setdefault(name, value)


def preflight_response(
    request: HttpRequest, cors_config: CorsConfig, security_headers: dict[str, str]
) -> HttpResponse:
    """Create a 204 response for CORS preflight OPTIONS requests."""
    headers = {**security_headers, "Access-Control-Max-Age": str(cors_config.max_age)}
    apply_cors_headers(headers, cors_config)
    return HttpResponse(
        "HTTP/1.1 204 No Content",
        headers,
        b"",
        should_close(request.headers),
    )
