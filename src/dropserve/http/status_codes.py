"""
=============================================================================
HTTP STATUS CODES
=============================================================================

The handful of status codes a download server actually sends.

    ┌───────┬──────────────────────────────┬─────────────────────────────────┐
    │ Code  │ Phrase                       │ When                            │
    ├───────┼──────────────────────────────┼─────────────────────────────────┤
    │  200  │ OK                           │ download (GET) or HEAD          │
    │  400  │ Bad Request                  │ malformed request line          │
    │  404  │ Not Found                    │ path other than / or /<name>    │
    │  405  │ Method Not Allowed           │ anything but GET / HEAD         │
    │  408  │ Request Timeout              │ client never sent a request     │
    │  413  │ Content Too Large            │ request headers too big         │
    │  500  │ Internal Server Error        │ content unreadable before body  │
    │  505  │ HTTP Version Not Supported   │ not HTTP/1.0 or HTTP/1.1        │
    └───────┴──────────────────────────────┴─────────────────────────────────┘

HTTPStatus is an IntEnum, so ``HTTPStatus.OK == 200`` holds and a status
can be formatted straight into the status line.

=============================================================================
"""

from enum import IntEnum


class HTTPStatus(IntEnum):
    """
    HTTP status codes and reason phrases.

        >>> HTTPStatus.NOT_FOUND.phrase
        'Not Found'
        >>> HTTPStatus(405).is_client_error
        True
    """

    OK = 200

    BAD_REQUEST = 400
    NOT_FOUND = 404
    METHOD_NOT_ALLOWED = 405
    REQUEST_TIMEOUT = 408
    CONTENT_TOO_LARGE = 413

    INTERNAL_SERVER_ERROR = 500
    SERVICE_UNAVAILABLE = 503
    HTTP_VERSION_NOT_SUPPORTED = 505

    @property
    def phrase(self) -> str:
        """Reason phrase used in the status line."""
        return _STATUS_PHRASES.get(self, "Unknown")

    @property
    def is_success(self) -> bool:
        return 200 <= self < 300

    @property
    def is_client_error(self) -> bool:
        return 400 <= self < 500

    @property
    def is_server_error(self) -> bool:
        return 500 <= self < 600

    @property
    def is_error(self) -> bool:
        return self >= 400


_STATUS_PHRASES = {
    HTTPStatus.OK: "OK",
    HTTPStatus.BAD_REQUEST: "Bad Request",
    HTTPStatus.NOT_FOUND: "Not Found",
    HTTPStatus.METHOD_NOT_ALLOWED: "Method Not Allowed",
    HTTPStatus.REQUEST_TIMEOUT: "Request Timeout",
    HTTPStatus.CONTENT_TOO_LARGE: "Content Too Large",
    HTTPStatus.INTERNAL_SERVER_ERROR: "Internal Server Error",
    HTTPStatus.SERVICE_UNAVAILABLE: "Service Unavailable",
    HTTPStatus.HTTP_VERSION_NOT_SUPPORTED: "HTTP Version Not Supported",
}
