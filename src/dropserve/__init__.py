"""
=============================================================================
DROPSERVE
=============================================================================

Share one file or directory with the machines on your network, then exit.

    $ dropserve ./photos
    Serving /home/me/photos
    URL: http://192.168.1.20:8080/photos.tar.gz
    Downloads: 1 remaining
    Press Ctrl+C to stop

The other side opens the URL (browser, curl, wget) and the download starts.
Directories are streamed as tar.gz, zip or tar archives built on the fly.
After the configured number of successful downloads the server waits for
any transfer still running and exits on its own.

=============================================================================
PACKAGE LAYOUT
=============================================================================

    dropserve/
    ├── __main__.py          # CLI entry point
    ├── config.py            # ServeConfig
    ├── server.py            # DropServer, wires everything together
    ├── shutdown.py          # ShutdownCoordinator, drain with timeout
    ├── net.py               # LAN address discovery
    ├── core/                # Sockets
    │   ├── socket_server.py # Listener, thread per connection
    │   └── connection.py    # Buffered reads, sendall writes
    ├── http/                # Protocol
    │   ├── request.py       # Request parsing
    │   ├── response.py      # Responses and streaming bodies
    │   ├── status_codes.py  # HTTPStatus
    │   └── mime_types.py    # Content-Type by extension
    ├── delivery/            # What gets sent, and how many times
    │   ├── provider.py      # File / archive content providers
    │   ├── archive.py       # Streaming tar, tar.gz, zip
    │   └── lifecycle.py     # Download limit, active count, shutdown signal
    └── handlers/
        ├── download.py      # Per-request handler
        └── transfer_log.py  # Structured transfer log lines

=============================================================================
QUICK START
=============================================================================

    from dropserve import DropServer, ServeConfig

    server = DropServer(ServeConfig(target="./photos", archive_kind="zip",
                                    max_downloads=3))
    server.bind()
    report = server.run()       # returns after the 3rd download
    print(report.describe())

=============================================================================
"""

__version__ = "1.0.0"

from .config import ServeConfig
from .server import DropServer, create_server

__all__ = ["DropServer", "ServeConfig", "create_server", "__version__"]
