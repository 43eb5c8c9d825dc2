"""
Unit tests for the listener and address helpers.
"""

import ipaddress
import socket
import threading
import time

import pytest

from dropserve.core.connection import Connection
from dropserve.core.socket_server import ACCEPT_POLL_INTERVAL, SocketServer
from dropserve.net import advertised_host, get_local_ip


class TestSocketServer:
    """Tests for SocketServer."""

    def test_bind_port_zero(self):
        """Test the OS-assigned port is reported after bind."""
        server = SocketServer("127.0.0.1", 0)
        server.bind()
        try:
            assert server.port > 0
            assert server.address == ("127.0.0.1", server.port)
        finally:
            server.close()

    def test_serve_requires_bind(self):
        """Test serve() refuses to run without a socket."""
        with pytest.raises(RuntimeError):
            SocketServer("127.0.0.1", 0).serve(lambda conn: None)

    def test_stop_before_serve(self):
        """Test an early stop() makes serve() return right away."""
        server = SocketServer("127.0.0.1", 0)
        server.bind()
        server.stop()

        thread = threading.Thread(target=server.serve, args=(lambda conn: None,))
        thread.start()
        thread.join(timeout=5)

        assert thread.is_alive() is False
        assert server.wait_stopped(0) is True

    def test_connection_handed_to_callback(self):
        """Test accepted clients arrive as Connection objects."""
        server = SocketServer("127.0.0.1", 0)
        server.bind()
        received = []
        done = threading.Event()

        def handler(conn: Connection):
            received.append(conn)
            conn.close()
            done.set()

        thread = threading.Thread(target=server.serve, args=(handler,), daemon=True)
        thread.start()
        try:
            with socket.create_connection(("127.0.0.1", server.port), timeout=5):
                assert done.wait(5)
        finally:
            server.stop()
            thread.join(timeout=5)

        assert received[0].client_ip == "127.0.0.1"

    def test_stop_refuses_new_clients(self):
        """Test stop() releases the port at once and hands nothing on."""
        server = SocketServer("127.0.0.1", 0)
        server.bind()
        port = server.port
        received = []

        thread = threading.Thread(target=server.serve, args=(received.append,), daemon=True)
        thread.start()
        time.sleep(0.1)

        started = time.monotonic()
        server.stop()
        thread.join(timeout=5)

        assert thread.is_alive() is False
        assert time.monotonic() - started < ACCEPT_POLL_INTERVAL
        with pytest.raises(ConnectionRefusedError):
            socket.create_connection(("127.0.0.1", port), timeout=2)
        assert received == []


class TestAddresses:
    """Tests for the advertised address."""

    def test_specific_host_kept(self):
        """Test a concrete bind address is advertised as-is."""
        assert advertised_host("192.168.1.20") == "192.168.1.20"

    def test_local_ip_is_an_address(self):
        """Test the detected address is a valid IP, loopback at worst."""
        ipaddress.ip_address(get_local_ip())

    def test_wildcard_resolved(self):
        """Test 0.0.0.0 is replaced by a reachable address."""
        assert advertised_host("0.0.0.0") != "0.0.0.0"
