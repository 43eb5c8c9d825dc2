"""
=============================================================================
HTTP PROTOCOL
=============================================================================

Request parsing, response serialization and streaming bodies, status codes
and MIME types. No sockets here; everything talks to a Connection.

=============================================================================
"""

from .request import HTTPRequest, RequestParser, HTTPParseError, parse_request
from .response import (
    HTTPResponse,
    ResponseBody,
    content_disposition,
    error_response,
    format_http_date,
)
from .status_codes import HTTPStatus
from .mime_types import get_mime_type, get_content_type

__all__ = [
    # Request parsing
    "HTTPRequest",
    "RequestParser",
    "HTTPParseError",
    "parse_request",

    # Responses
    "HTTPResponse",
    "ResponseBody",
    "content_disposition",
    "error_response",
    "format_http_date",

    # Status codes
    "HTTPStatus",

    # MIME types
    "get_mime_type",
    "get_content_type",
]
