"""
=============================================================================
DROPSERVE CLI ENTRY POINT
=============================================================================

    # Share a file once, then exit
    dropserve ./report.pdf

    # Share a directory as a zip, three downloads
    dropserve -a zip -c 3 ./photos

    # Unlimited downloads on a specific interface and port
    dropserve -c 0 -i 192.168.1.20 -p 9000 ./build

    # Same thing, as a module
    python -m dropserve ./report.pdf

Exit status:
    0  served and shut down (limit reached, Ctrl+C, or server error)
    1  startup failed (missing path, bad option value, port unavailable)
    2  command-line usage error

=============================================================================
"""

import argparse
import sys
from typing import Optional, Sequence

from . import __version__
from .config import LOG_FORMATS, LOG_LEVELS, ServeConfig
from .delivery.archive import ArchiveKind
from .delivery.lifecycle import ShutdownReason
from .server import DropServer, setup_logging


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="dropserve",
        description="Share a file or directory over HTTP on the local network, "
                    "then exit after it has been downloaded.",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  dropserve ./report.pdf                 # one download, then exit
  dropserve -c 3 ./slides.key            # three downloads
  dropserve -c 0 ./photos                # unlimited, stop with Ctrl+C
  dropserve -a zip ./photos              # directory as photos.zip
  dropserve -i 192.168.1.20 -p 9000 .    # specific interface and port
        """,
    )

    parser.add_argument(
        "path",
        help="File or directory to share (directories are sent as an archive)",
    )

    # ─────────────────────────────────────────────────────────────────────
    # NETWORK ARGUMENTS
    # ─────────────────────────────────────────────────────────────────────

    parser.add_argument(
        "--port", "-p",
        type=int,
        default=None,
        help="Port to listen on (default: 8080)",
    )

    parser.add_argument(
        "--ip", "-i",
        dest="host",
        default=None,
        help="IP address to bind to (default: all interfaces)",
    )

    # ─────────────────────────────────────────────────────────────────────
    # DELIVERY ARGUMENTS
    # ─────────────────────────────────────────────────────────────────────

    parser.add_argument(
        "--count", "-c",
        type=int,
        default=None,
        help="Number of downloads before exiting, 0 for unlimited (default: 1)",
    )

    parser.add_argument(
        "--archive", "-a",
        default=None,
        metavar="FORMAT",
        help="Archive format for directories: "
             + ", ".join(kind.value for kind in ArchiveKind)
             + " (default: tar.gz)",
    )

    parser.add_argument(
        "--drain-timeout",
        type=float,
        default=None,
        metavar="SECONDS",
        help="How long to wait for active downloads on shutdown (default: 30)",
    )

    # ─────────────────────────────────────────────────────────────────────
    # LOGGING / META
    # ─────────────────────────────────────────────────────────────────────

    parser.add_argument(
        "--log-level", "-l",
        choices=LOG_LEVELS,
        type=str.upper,
        default=None,
        help="Logging level (default: INFO)",
    )

    parser.add_argument(
        "--log-format",
        choices=LOG_FORMATS,
        default=None,
        help="Transfer log format (default: text)",
    )

    parser.add_argument(
        "--version", "-v",
        action="version",
        version=f"dropserve {__version__}",
    )

    return parser


def config_from_args(args: argparse.Namespace) -> ServeConfig:
    """
    Environment first, then every flag the user actually passed.

    Raises:
        ValueError: If a DROPSERVE_* variable is malformed.
    """
    config = ServeConfig.from_env(target=args.path)

    overrides = {
        "port": args.port,
        "host": args.host,
        "max_downloads": args.count,
        "archive_kind": args.archive,
        "drain_timeout": args.drain_timeout,
        "log_level": args.log_level,
        "log_format": args.log_format,
    }
    for name, value in overrides.items():
        if value is not None:
            setattr(config, name, value)

    # A specific bind address is also the address clients should use
    if args.host is not None:
        config.advertise_host = args.host

    return config


def main(argv: Optional[Sequence[str]] = None) -> int:
    """
    Run dropserve. Returns the process exit status.

    Startup problems are printed as "Error: ..." on stderr and return 1
    before anything is served.
    """
    args = build_parser().parse_args(argv)

    try:
        config = config_from_args(args)
        setup_logging(config.log_level)
        server = DropServer(config)
    except (OSError, ValueError) as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1

    try:
        server.bind()
    except OSError as e:
        print(f"Error: cannot bind to {config.host}:{config.port}: {e}", file=sys.stderr)
        return 1

    report = server.run()

    if report.reason is ShutdownReason.LIMIT_REACHED and report.clean:
        print("All downloads completed")
    elif not report.clean:
        print("Shutdown timeout reached")

    return 0


if __name__ == "__main__":
    sys.exit(main())
