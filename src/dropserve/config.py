"""
=============================================================================
SERVE CONFIGURATION
=============================================================================

Everything one run of dropserve needs to know, in one dataclass.

=============================================================================
CONFIGURATION SOURCES
=============================================================================

    ┌─────────────────────────────────────────────────────────────────────┐
    │                    CONFIGURATION HIERARCHY                          │
    ├─────────────────────────────────────────────────────────────────────┤
    │                                                                      │
    │   Priority (highest to lowest):                                     │
    │                                                                      │
    │   1. Command-line arguments                                         │
    │      └── dropserve -p 9000 -c 3 ./photos                            │
    │                                                                      │
    │   2. Environment variables                                          │
    │      └── DROPSERVE_PORT=9000 dropserve ./photos                     │
    │                                                                      │
    │   3. Default values (in this dataclass)                             │
    │                                                                      │
    └─────────────────────────────────────────────────────────────────────┘

``validate()`` runs before anything is bound, so a typo in the archive
format or a missing path is reported as a startup error instead of a
failed download later.

=============================================================================
"""

import os
from dataclasses import dataclass
from typing import Optional

from .delivery.archive import ArchiveKind


ENV_PREFIX = "DROPSERVE_"

LOG_LEVELS = ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL")
LOG_FORMATS = ("text", "json")


@dataclass
class ServeConfig:
    """
    Configuration for one dropserve run.

    =========================================================================
    CONFIGURATION GROUPS
    =========================================================================

    CONTENT
    - target, archive_kind

    NETWORK SETTINGS
    - host, port, advertise_host, backlog, buffer_size, timeout,
      keep_alive_timeout, max_request_size

    LIFECYCLE
    - max_downloads, drain_timeout

    LOGGING
    - log_level, log_format

    =========================================================================
    """

    # ─────────────────────────────────────────────────────────────────────
    # CONTENT
    # ─────────────────────────────────────────────────────────────────────

    target: str = "."
    """File or directory to share."""

    archive_kind: str = ArchiveKind.TAR_GZ.value
    """
    Archive format used when target is a directory.
    - "tar.gz" - compressed tarball (default)
    - "zip" - opens natively on Windows and macOS
    - "tar" - no compression, fastest for already-compressed media
    """

    # ─────────────────────────────────────────────────────────────────────
    # NETWORK SETTINGS
    # ─────────────────────────────────────────────────────────────────────

    host: str = "0.0.0.0"
    """
    The IP address to bind to.
    - "0.0.0.0" - every interface, reachable from the LAN (default)
    - "192.168.1.20" - one interface only
    """

    port: int = 8080
    """The port number to listen on. 0 lets the OS pick a free one."""

    advertise_host: Optional[str] = None
    """
    Host printed in the download URL.
    None = the bind address, or the machine's LAN address when binding to
    every interface.
    """

    backlog: int = 128
    """Maximum number of queued connections before the OS refuses new ones."""

    buffer_size: int = 64 * 1024
    """Copy buffer for file contents and socket reads, in bytes."""

    timeout: Optional[float] = 30.0
    """
    Per-operation socket timeout in seconds.
    A client that stops reading for this long is treated as disconnected.
    """

    keep_alive_timeout: float = 5.0
    """Idle time allowed between requests on a kept-alive connection."""

    max_request_size: int = 64 * 1024
    """Largest accepted request (headers included), in bytes."""

    # ─────────────────────────────────────────────────────────────────────
    # LIFECYCLE
    # ─────────────────────────────────────────────────────────────────────

    max_downloads: int = 1
    """
    Successful downloads before the server stops itself.
    0 = unlimited (stop with Ctrl+C).
    """

    drain_timeout: float = 30.0
    """
    Seconds to wait for in-flight downloads once shutdown starts.
    After that the process exits anyway.
    """

    # ─────────────────────────────────────────────────────────────────────
    # LOGGING
    # ─────────────────────────────────────────────────────────────────────

    log_level: str = "INFO"
    """Logging level (DEBUG, INFO, WARNING, ERROR, CRITICAL)."""

    log_format: str = "text"
    """Transfer log format: 'text' for people, 'json' for log collectors."""

    # ─────────────────────────────────────────────────────────────────────
    # SERVER IDENTITY
    # ─────────────────────────────────────────────────────────────────────

    server_name: str = "dropserve"
    """Value of the Server response header."""

    @property
    def archive(self) -> ArchiveKind:
        return ArchiveKind.parse(self.archive_kind)

    @property
    def unlimited(self) -> bool:
        return self.max_downloads == 0

    @classmethod
    def from_env(cls, target: str = ".", environ: Optional[dict] = None) -> "ServeConfig":
        """
        Create configuration from environment variables.

        =====================================================================
        ENVIRONMENT VARIABLES
        =====================================================================

        DROPSERVE_HOST           Bind address (default: 0.0.0.0)
        DROPSERVE_PORT           Port (default: 8080)
        DROPSERVE_COUNT          Downloads before exit, 0 = unlimited (default: 1)
        DROPSERVE_ARCHIVE        tar.gz, zip or tar (default: tar.gz)
        DROPSERVE_DRAIN_TIMEOUT  Seconds to wait for active downloads (default: 30)
        DROPSERVE_LOG_LEVEL      Logging level (default: INFO)
        DROPSERVE_LOG_FORMAT     text or json (default: text)

        =====================================================================

        Raises:
            ValueError: If a numeric variable is not a number.
        """
        env = os.environ if environ is None else environ
        defaults = cls()

        def get(name: str, default):
            return env.get(ENV_PREFIX + name, default)

        try:
            return cls(
                target=target,
                host=get("HOST", defaults.host),
                port=int(get("PORT", defaults.port)),
                max_downloads=int(get("COUNT", defaults.max_downloads)),
                archive_kind=get("ARCHIVE", defaults.archive_kind),
                drain_timeout=float(get("DRAIN_TIMEOUT", defaults.drain_timeout)),
                log_level=get("LOG_LEVEL", defaults.log_level),
                log_format=get("LOG_FORMAT", defaults.log_format),
            )
        except ValueError as e:
            raise ValueError(f"invalid {ENV_PREFIX}* environment variable: {e}") from None

    def validate(self) -> None:
        """
        Validate configuration values. Fail fast, before binding.

        Raises:
            FileNotFoundError: If target does not exist.
            ValueError: For any other invalid value.
        """
        if not os.path.exists(self.target):
            raise FileNotFoundError(f"file not found: {self.target}")

        # Raises ValueError listing the valid formats
        ArchiveKind.parse(self.archive_kind)

        if not 0 <= self.port < 65536:
            raise ValueError(f"Invalid port: {self.port}. Must be 0-65535.")

        if self.max_downloads < 0:
            raise ValueError(f"download count must be >= 0, got {self.max_downloads}")

        if self.drain_timeout < 0:
            raise ValueError("drain_timeout must be >= 0")

        if self.buffer_size < 1024:
            raise ValueError("buffer_size must be >= 1024")

        if self.timeout is not None and self.timeout <= 0:
            raise ValueError("timeout must be > 0")

        if self.log_level.upper() not in LOG_LEVELS:
            raise ValueError(f"Invalid log level: {self.log_level}")

        if self.log_format not in LOG_FORMATS:
            raise ValueError(f"Invalid log format: {self.log_format}. Use 'text' or 'json'.")


# =============================================================================
# MODULE SUMMARY
# =============================================================================
#
# ServeConfig        typed settings with defaults matching the CLI
# from_env()         DROPSERVE_* overrides
# validate()         fail-fast checks before the port is bound
# =============================================================================
