"""HTTP Basic shared-secret authentication."""

import base64
import binascii
import hmac
import logging
from typing import Optional

from airfiles.domain.correlation_id import CorrelationLoggerAdapter
from airfiles.domain.http_types import HttpRequest

AUTH_LOGGER = CorrelationLoggerAdapter(logging.getLogger("airfiles.security.auth"), {})


def extract_basic_password(authorization: Optional[str]) -> Optional[str]:
    """Return the password part of a Basic Authorization header.

    The username is ignored. Anything that is not a well-formed
    ``Basic base64(user:password)`` value yields None.
    """
    if not authorization:
        return None
    scheme, _, credentials = authorization.strip().partition(" ")
    if scheme.lower() != "basic" or not credentials:
        return None
    try:
        decoded = base64.b64decode(credentials.strip(), validate=True).decode("utf-8")
    except (binascii.Error, UnicodeDecodeError):
        return None
    _, separator, password = decoded.partition(":")
    if not separator:
        return None
    return password


def is_authorized(request: HttpRequest, secret: Optional[str]) -> bool:
    """Check the request's Basic credentials against the shared secret."""
    if not secret:
        return True
    password = extract_basic_password(request.headers.get("authorization"))
    if password is None:
        AUTH_LOGGER.info(
            "Missing or malformed credentials",
            extra={"event": "auth_missing", "route": request.path},
        )
        return False
    if hmac.compare_digest(password.encode("utf-8"), secret.encode("utf-8")):
        return True
    AUTH_LOGGER.warning(
        "Rejected credentials",
        extra={"event": "auth_rejected", "route": request.path},
    )
    return False
