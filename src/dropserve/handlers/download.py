"""
=============================================================================
DOWNLOAD HANDLER
=============================================================================

Answers every parsed request for the one item this server shares.

=============================================================================
ROUTES
=============================================================================

    GET  /               ┐
    GET  /<filename>     ┘ stream the content, counts on success
    HEAD /, /<filename>    headers only, never counts
    other paths            404
    other methods          405 (Allow: GET, HEAD)

=============================================================================
ONE TRANSFER
=============================================================================

    active.track() ───────────────────────────────────────────────┐
    │                                                              │
    │  STARTED    log "Download started"                           │
    │     │                                                        │
    │  STREAMING  provider.write_to(body) ──► body.finish()        │
    │     │                                                        │
    │     ├── ok ──────────► COMPLETED  limit.record_completion()  │
    │     │                                                        │
    │     ├── ClientDisconnected ──► INTERRUPTED                   │
    │     │                                                        │
    │     └── any other error ─────► FAILED                        │
    │                 └── 500 if no header byte was sent yet       │
    │                                                              │
    └── active count decremented on every path ────────────────────┘

A failed or interrupted transfer never touches the limit. The server keeps
running and the next client can try again.

=============================================================================
"""

import logging
import time
from typing import Optional

from ..core.connection import ClientDisconnected, Connection
from ..delivery.lifecycle import ActiveTransfers, TransferLimit
from ..delivery.provider import ContentProvider
from ..http.request import HTTPRequest
from ..http.response import (
    DEFAULT_SERVER_NAME,
    HTTPResponse,
    ResponseBody,
    content_disposition,
    error_response,
)
from ..http.status_codes import HTTPStatus
from .transfer_log import TransferLog, TransferState


logger = logging.getLogger(__name__)


class DownloadHandler:
    """
    Serves the content provider's bytes and reports completions.

    Usage:
        handler = DownloadHandler(provider, limit, active)
        keep_open = handler.handle(request, conn)
    """

    ALLOWED_METHODS = ("GET", "HEAD")

    def __init__(
        self,
        provider: ContentProvider,
        limit: TransferLimit,
        active: ActiveTransfers,
        server_name: str = DEFAULT_SERVER_NAME,
        log_format: str = "text",
    ):
        self.provider = provider
        self.limit = limit
        self.active = active
        self.server_name = server_name
        self.log_format = log_format

    def matches(self, path: str) -> bool:
        """True for "/" and "/<filename>"."""
        return path == "/" or path == "/" + self.provider.filename()

    def handle(self, request: HTTPRequest, conn: Connection) -> bool:
        """
        Answer one request.

        Returns:
            True if the connection may carry another request.
        """
        if request.method not in self.ALLOWED_METHODS:
            response = error_response(HTTPStatus.METHOD_NOT_ALLOWED)
            response.set_header("Allow", ", ".join(self.ALLOWED_METHODS))
            conn.send_response(response.to_bytes(self.server_name))
            return False

        if not self.matches(request.path):
            logger.debug(f"[{conn.id}] No content at {request.path}")
            conn.send_response(error_response(HTTPStatus.NOT_FOUND).to_bytes(self.server_name))
            return False

        if request.method == "HEAD":
            return self._send_head(request, conn)

        return self._transfer(request, conn)

    def _content_headers(self) -> dict:
        return {
            "Content-Type": self.provider.content_type(),
            "Content-Disposition": content_disposition(self.provider.filename()),
        }

    def _send_head(self, request: HTTPRequest, conn: Connection) -> bool:
        headers = self._content_headers()
        length = self.provider.content_length()
        if length is not None:
            headers["Content-Length"] = str(length)
        headers["Connection"] = "keep-alive" if request.is_keep_alive else "close"

        response = HTTPResponse(status=HTTPStatus.OK, headers=headers)
        sent = conn.send_response(response.header_bytes(self.server_name))
        return sent and request.is_keep_alive

    def _transfer(self, request: HTTPRequest, conn: Connection) -> bool:
        with self.active.track():
            filename = self.provider.filename()
            started = time.monotonic()
            body: Optional[ResponseBody] = None

            def record(event: str, **extra) -> None:
                TransferLog(
                    transfer_id=conn.id,
                    event=event,
                    client_ip=conn.client_ip,
                    filename=filename,
                    bytes_sent=body.bytes_written if body is not None else 0,
                    duration_ms=(time.monotonic() - started) * 1000,
                    **extra,
                ).emit(self.log_format)

            record(TransferState.STARTED.value)

            try:
                body = ResponseBody(
                    conn,
                    headers=self._content_headers(),
                    content_length=self.provider.content_length(),
                    request_version=request.version,
                    keep_alive=request.is_keep_alive,
                    server_name=self.server_name,
                )
                logger.debug(f"[{conn.id}] {TransferState.STREAMING.value} {filename}")
                self.provider.write_to(body)
                body.finish()

            except ClientDisconnected as e:
                self._abort(body)
                record(TransferState.INTERRUPTED.value, error=str(e))
                return False

            except Exception as e:
                self._abort(body)
                if isinstance(e, OSError):
                    record(TransferState.FAILED.value, error=str(e))
                else:
                    logger.exception(f"[{conn.id}] Unexpected error while streaming {filename}")
                    record(TransferState.FAILED.value, error=f"{type(e).__name__}: {e}")

                if body is None or not body.headers_sent:
                    conn.send_response(
                        error_response(HTTPStatus.INTERNAL_SERVER_ERROR).to_bytes(self.server_name)
                    )
                return False

            remaining = self.limit.record_completion()
            record(TransferState.COMPLETED.value, remaining=remaining)
            return body.reusable

    @staticmethod
    def _abort(body: Optional[ResponseBody]) -> None:
        if body is not None:
            body.abort()
