"""
Local network helpers.
"""

import logging
import socket


logger = logging.getLogger(__name__)

# Any routable address works; a UDP "connect" sends no packets
_PROBE_ADDRESS = ("8.8.8.8", 80)

LOOPBACK = "127.0.0.1"

# Bind addresses that mean "every interface" and cannot be put in a URL
WILDCARD_HOSTS = {"", "0.0.0.0", "::"}


def get_local_ip() -> str:
    """
    Best-effort LAN address of this machine.

    Asks the kernel which source address it would use to reach a public
    host. Falls back to 127.0.0.1 when there is no route (offline laptop,
    sandboxed container).
    """
    s = socket.socket(socket.AF_INET, socket.SOCK_DGRAM)
    try:
        s.connect(_PROBE_ADDRESS)
        address = s.getsockname()[0]
        return LOOPBACK if address in WILDCARD_HOSTS else address
    except OSError as e:
        logger.debug(f"Route probe failed, using loopback: {e}")
        return LOOPBACK
    finally:
        s.close()


def advertised_host(bind_host: str) -> str:
    """Address to print in the download URL for a given bind address."""
    if bind_host in WILDCARD_HOSTS:
        return get_local_ip()
    return bind_host
