"""
pytest configuration and fixtures.
"""

import io
import socket
import threading
from pathlib import Path
from typing import Dict, Generator, Optional, Tuple

import pytest

# Add src to path for imports
import sys
sys.path.insert(0, str(Path(__file__).parent.parent / "src"))

from dropserve import DropServer, ServeConfig
from dropserve.core.connection import Connection
from dropserve.shutdown import ShutdownReport


# =============================================================================
# FILESYSTEM FIXTURES
# =============================================================================

@pytest.fixture
def sample_file(tmp_path: Path) -> Path:
    """A 13-byte text file."""
    path = tmp_path / "hello.txt"
    path.write_bytes(b"Hello, World!")
    return path


@pytest.fixture
def sample_tree(tmp_path: Path) -> Path:
    """
    testdir/
    ├── file1.txt
    └── subdir/
        └── file2.txt
    """
    root = tmp_path / "testdir"
    (root / "subdir").mkdir(parents=True)
    (root / "file1.txt").write_bytes(b"top level file\n")
    (root / "subdir" / "file2.txt").write_bytes(b"nested file contents\n" * 50)
    return root


@pytest.fixture
def sample_get_request() -> bytes:
    """Sample HTTP GET request for a download."""
    return (
        b"GET /hello.txt?source=qr HTTP/1.1\r\n"
        b"Host: 192.168.1.20:8080\r\n"
        b"User-Agent: pytest\r\n"
        b"Accept: */*\r\n"
        b"Connection: keep-alive\r\n"
        b"\r\n"
    )


# =============================================================================
# NETWORK FIXTURES
# =============================================================================

@pytest.fixture
def free_port() -> int:
    """Get a free port for testing."""
    with socket.socket(socket.AF_INET, socket.SOCK_STREAM) as s:
        s.bind(("127.0.0.1", 0))
        return s.getsockname()[1]


@pytest.fixture
def conn_pair() -> Generator[Tuple[Connection, socket.socket], None, None]:
    """A server-side Connection and the raw client socket on the other end."""
    server_sock, client_sock = socket.socketpair()
    conn = Connection(socket=server_sock, address=("10.0.0.7", 51512), timeout=5.0)
    client_sock.settimeout(5.0)
    yield conn, client_sock
    conn.close()
    client_sock.close()


def read_until_closed(sock: socket.socket) -> bytes:
    """Read everything the peer sends until it closes its side."""
    chunks = []
    while True:
        data = sock.recv(65536)
        if not data:
            return b"".join(chunks)
        chunks.append(data)


def split_response(raw: bytes) -> Tuple[str, Dict[str, str], bytes]:
    """Split raw response bytes into status line, headers and body."""
    head, _, body = raw.partition(b"\r\n\r\n")
    lines = head.decode("utf-8").split("\r\n")
    headers = {}
    for line in lines[1:]:
        name, _, value = line.partition(":")
        headers[name.strip()] = value.strip()
    return lines[0], headers, body


def dechunk(body: bytes) -> bytes:
    """Decode a chunked transfer-encoded body; fails on a missing terminator."""
    out = bytearray()
    while True:
        size_line, _, rest = body.partition(b"\r\n")
        size = int(size_line, 16)
        if size == 0:
            assert rest == b"\r\n", "missing terminal chunk"
            return bytes(out)
        out += rest[:size]
        assert rest[size:size + 2] == b"\r\n"
        body = rest[size + 2:]


class NonSeekableSink(io.RawIOBase):
    """Write-only, non-seekable stream, like an HTTP response body."""

    def __init__(self, fail_after: Optional[int] = None):
        super().__init__()
        self.buffer = bytearray()
        self.fail_after = fail_after

    def writable(self) -> bool:
        return True

    def write(self, b) -> int:
        if self.fail_after is not None and len(self.buffer) + len(b) > self.fail_after:
            raise BrokenPipeError("sink closed")
        self.buffer += bytes(b)
        return len(b)

    def getvalue(self) -> bytes:
        return bytes(self.buffer)


# =============================================================================
# RUNNING SERVER
# =============================================================================

class ServerRunner:
    """Runs DropServer.run() on a background thread."""

    def __init__(self, server: DropServer):
        self.server = server
        self.report: Optional[ShutdownReport] = None
        self._thread: Optional[threading.Thread] = None

    @property
    def base_url(self) -> str:
        return f"http://127.0.0.1:{self.server.port}"

    def start(self) -> "ServerRunner":
        # Bound before the thread starts, so clients can connect right away
        self.server.bind()
        self._thread = threading.Thread(target=self._run, daemon=True)
        self._thread.start()
        return self

    def _run(self):
        self.report = self.server.run()

    def wait(self, timeout: float = 10.0) -> Optional[ShutdownReport]:
        """Wait for the server to shut itself down."""
        self._thread.join(timeout)
        return self.report

    @property
    def finished(self) -> bool:
        return self._thread is not None and not self._thread.is_alive()

    def stop(self):
        self.server.stop()
        if self._thread and self._thread.is_alive():
            self._thread.join(timeout=10.0)


def make_config(target: Path, **overrides) -> ServeConfig:
    """Test config: loopback, OS-assigned port, quiet logs."""
    settings = dict(
        target=str(target),
        host="127.0.0.1",
        port=0,
        timeout=5.0,
        drain_timeout=5.0,
        log_level="WARNING",
    )
    settings.update(overrides)
    return ServeConfig(**settings)


@pytest.fixture
def serve():
    """Factory: serve(target, **config) -> started ServerRunner, stopped at teardown."""
    runners = []

    def factory(target: Path, **overrides) -> ServerRunner:
        runner = ServerRunner(DropServer(make_config(target, **overrides))).start()
        runners.append(runner)
        return runner

    yield factory

    for runner in runners:
        runner.stop()
