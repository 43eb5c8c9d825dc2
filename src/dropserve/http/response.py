"""
=============================================================================
HTTP RESPONSES
=============================================================================

Two ways to answer a request:

1. HTTPResponse: a small response built fully in memory (errors, HEAD).
   ``to_bytes()`` serializes status line, headers and body in one go.

2. ResponseBody: a writable stream for the download itself. Providers
   write into it piece by piece and it forwards each piece to the socket,
   so no payload is ever held in memory.

=============================================================================
BODY FRAMING
=============================================================================

The client must know where the body ends. Which framing is used depends on
whether the length is known before the first byte is sent:

    ┌───────────────────────┬──────────────────────────────────────────────┐
    │  Situation            │  Framing                                     │
    ├───────────────────────┼──────────────────────────────────────────────┤
    │  length known (file)  │  Content-Length: N                           │
    │  unknown, HTTP/1.1    │  Transfer-Encoding: chunked                  │
    │  unknown, HTTP/1.0    │  close-delimited (Connection: close)         │
    └───────────────────────┴──────────────────────────────────────────────┘

A chunked body is a series of ``<hex size>\r\n<data>\r\n`` frames ended by
the zero-size chunk ``0\r\n\r\n``:

    1000\r\n                   ← 4096 bytes follow
    <4096 bytes>\r\n
    3A\r\n                     ← 58 bytes follow
    <58 bytes>\r\n
    0\r\n\r\n                  ← end of body

If the stream is aborted before the terminal chunk, the client sees an
incomplete body and knows the download failed.

=============================================================================
LAZY HEADERS
=============================================================================

ResponseBody sends the status line and headers together with the first
body bytes. Until then ``headers_sent`` is False and the handler can still
replace the whole response with a clean 500.

=============================================================================
"""

import io
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Dict, Optional
from urllib.parse import quote

from .status_codes import HTTPStatus


DEFAULT_SERVER_NAME = "dropserve"


@dataclass
class HTTPResponse:
    """
    A complete response held in memory.

        HTTPResponse(HTTPStatus.NOT_FOUND, body=b"Not Found").to_bytes()
        → b"HTTP/1.1 404 Not Found\\r\\nContent-Length: 9\\r\\n...\\r\\n\\r\\nNot Found"
    """

    status: HTTPStatus = HTTPStatus.OK
    headers: Dict[str, str] = field(default_factory=dict)
    body: bytes = b""
    version: str = "HTTP/1.1"

    @property
    def status_line(self) -> str:
        return f"{self.version} {int(self.status)} {self.status.phrase}"

    def set_header(self, name: str, value: str) -> "HTTPResponse":
        self.headers[name] = value
        return self

    def header_bytes(self, server_name: str = DEFAULT_SERVER_NAME) -> bytes:
        """
        Serialize status line and headers, including the blank line.

        Adds Date and Server when missing. Never adds Content-Length; that
        is the caller's framing decision.
        """
        headers = dict(self.headers)
        headers.setdefault("Date", format_http_date(datetime.now(timezone.utc)))
        headers.setdefault("Server", server_name)

        lines = [self.status_line]
        lines.extend(f"{name}: {value}" for name, value in headers.items())
        lines.append("")
        return ("\r\n".join(lines) + "\r\n").encode("utf-8")

    def to_bytes(self, server_name: str = DEFAULT_SERVER_NAME) -> bytes:
        """Serialize the whole response, setting Content-Length from the body."""
        if "Content-Length" not in self.headers:
            self.headers["Content-Length"] = str(len(self.body))
        return self.header_bytes(server_name) + self.body


def format_http_date(dt: datetime) -> str:
    """
    Format a datetime as an HTTP-date (RFC 7231), always in GMT.

    Example: Wed, 01 Jan 2026 12:00:00 GMT
    """
    days = ["Mon", "Tue", "Wed", "Thu", "Fri", "Sat", "Sun"]
    months = ["Jan", "Feb", "Mar", "Apr", "May", "Jun",
              "Jul", "Aug", "Sep", "Oct", "Nov", "Dec"]
    return (
        f"{days[dt.weekday()]}, "
        f"{dt.day:02d} {months[dt.month - 1]} {dt.year} "
        f"{dt.hour:02d}:{dt.minute:02d}:{dt.second:02d} GMT"
    )


def content_disposition(filename: str) -> str:
    """
    Content-Disposition value that makes the browser save ``filename``.

        >>> content_disposition("report.pdf")
        'attachment; filename="report.pdf"'

    Quotes and backslashes are escaped. Non-ASCII names also get an
    RFC 5987 ``filename*`` parameter.
    """
    escaped = filename.replace("\\", "\\\\").replace('"', '\\"')
    value = f'attachment; filename="{escaped}"'
    if not filename.isascii():
        value += f"; filename*=UTF-8''{quote(filename, safe='')}"
    return value


def error_response(status: HTTPStatus, message: Optional[str] = None) -> HTTPResponse:
    """Plain-text error response that closes the connection."""
    body = (message or status.phrase).encode("utf-8") + b"\n"
    return HTTPResponse(
        status=status,
        headers={
            "Content-Type": "text/plain; charset=utf-8",
            "Connection": "close",
        },
        body=body,
    )


class ResponseBody(io.RawIOBase):
    """
    Streaming response writer.

    Header bytes are committed with the first ``write()``. After that the
    status can no longer change. ``finish()`` completes the framing;
    ``abort()`` gives up on the response and silently discards anything
    written afterwards (compressors flushing on garbage collection must not
    touch a dead socket).

    Usage:
        body = ResponseBody(conn, headers={"Content-Type": "application/zip"},
                            content_length=None, request_version="HTTP/1.1")
        try:
            provider.write_to(body)
            body.finish()
        except Exception:
            body.abort()
            raise
    """

    def __init__(
        self,
        conn,
        status: HTTPStatus = HTTPStatus.OK,
        headers: Optional[Dict[str, str]] = None,
        content_length: Optional[int] = None,
        request_version: str = "HTTP/1.1",
        keep_alive: bool = False,
        server_name: str = DEFAULT_SERVER_NAME,
    ):
        super().__init__()
        self._conn = conn
        self.status = status
        self.headers: Dict[str, str] = dict(headers or {})
        self.content_length = content_length
        self.server_name = server_name

        # HTTP/1.0 clients do not understand chunked encoding
        self.chunked = content_length is None and request_version == "HTTP/1.1"

        # A close-delimited body can only end by closing the connection
        self.keep_alive = keep_alive and (content_length is not None or self.chunked)

        self._headers_sent = False
        self._bytes_written = 0
        self._finished = False
        self._aborted = False

    # ─────────────────────────────────────────────────────────────────────
    # STATE
    # ─────────────────────────────────────────────────────────────────────

    @property
    def headers_sent(self) -> bool:
        return self._headers_sent

    @property
    def bytes_written(self) -> int:
        """Body bytes accepted so far, excluding framing."""
        return self._bytes_written

    @property
    def finished(self) -> bool:
        return self._finished

    @property
    def aborted(self) -> bool:
        return self._aborted

    @property
    def reusable(self) -> bool:
        """True if another request may follow on this connection."""
        return self._finished and not self._aborted and self.keep_alive

    def writable(self) -> bool:
        return True

    # ─────────────────────────────────────────────────────────────────────
    # WRITING
    # ─────────────────────────────────────────────────────────────────────

    def _head(self) -> bytes:
        headers = dict(self.headers)
        if self.content_length is not None:
            headers["Content-Length"] = str(self.content_length)
        elif self.chunked:
            headers["Transfer-Encoding"] = "chunked"
        headers["Connection"] = "keep-alive" if self.keep_alive else "close"

        response = HTTPResponse(status=self.status, headers=headers)
        return response.header_bytes(self.server_name)

    def _send(self, payload: bytes) -> None:
        if not self._headers_sent:
            self._headers_sent = True
            payload = self._head() + payload
        self._conn.send_all(payload)

    def write(self, b) -> int:
        if self._aborted:
            return len(b)
        if self._finished:
            raise ValueError("write to a finished response body")

        data = bytes(b)
        size = len(data)
        if size == 0:
            return 0

        if self.content_length is not None and self._bytes_written + size > self.content_length:
            raise ValueError(
                f"body exceeds declared Content-Length of {self.content_length} bytes"
            )

        if self.chunked:
            self._send(f"{size:X}\r\n".encode("ascii") + data + b"\r\n")
        else:
            self._send(data)

        self._bytes_written += size
        return size

    def finish(self) -> None:
        """
        Complete the response.

        Sends the headers if nothing was written yet and the terminal chunk
        for chunked bodies.

        Raises:
            ValueError: If fewer bytes than the declared Content-Length
                        were written.
            ClientDisconnected: If the final bytes cannot be sent.
        """
        if self._aborted:
            raise ValueError("response body was aborted")
        if self._finished:
            return

        if self.content_length is not None and self._bytes_written != self.content_length:
            raise ValueError(
                f"body ended after {self._bytes_written} of "
                f"{self.content_length} declared bytes"
            )

        if self.chunked:
            self._send(b"0\r\n\r\n")
        elif not self._headers_sent:
            self._send(b"")

        self._finished = True

    def abort(self) -> None:
        """Give up on this response. Later writes are discarded."""
        self._aborted = True
