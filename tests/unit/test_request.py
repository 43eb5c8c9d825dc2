"""
Unit tests for HTTP request parsing.
"""

import pytest

from dropserve.http.request import (
    HTTPRequest,
    RequestParser,
    HTTPParseError,
    parse_request,
)


class TestRequestParser:
    """Tests for RequestParser class."""

    def test_parse_simple_get(self, sample_get_request: bytes):
        """Test parsing a simple GET request."""
        parser = RequestParser()
        request = parser.parse(sample_get_request, ("127.0.0.1", 12345))

        assert request.method == "GET"
        assert request.path == "/hello.txt"
        assert request.version == "HTTP/1.1"
        assert request.client_address == ("127.0.0.1", 12345)

    def test_parse_headers(self, sample_get_request: bytes):
        """Test that headers are parsed correctly."""
        request = parse_request(sample_get_request)

        assert request.host == "192.168.1.20:8080"
        assert request.user_agent == "pytest"
        assert request.headers["accept"] == "*/*"
        assert request.is_keep_alive is True

    def test_query_string_stripped(self, sample_get_request: bytes):
        """Test the query string is split off the path."""
        request = parse_request(sample_get_request)

        assert request.path == "/hello.txt"
        assert request.query_params == {"source": ["qr"]}

    def test_parse_percent_encoded_path(self):
        """Test URL-encoded filenames are decoded."""
        raw = b"GET /my%20report.pdf HTTP/1.1\r\nHost: test\r\n\r\n"
        request = parse_request(raw)

        assert request.path == "/my report.pdf"

    def test_parse_invalid_method(self):
        """Test that invalid methods are rejected."""
        raw = b"INVALID /path HTTP/1.1\r\nHost: test\r\n\r\n"

        with pytest.raises(HTTPParseError) as exc_info:
            parse_request(raw)

        assert exc_info.value.status_code == 405

    def test_parse_invalid_request_line(self):
        """Test handling of malformed request line."""
        raw = b"GET\r\nHost: test\r\n\r\n"

        with pytest.raises(HTTPParseError) as exc_info:
            parse_request(raw)

        assert exc_info.value.status_code == 400

    def test_parse_unsupported_version(self):
        """Test that HTTP/2.0 in a request line is refused."""
        raw = b"GET / HTTP/2.0\r\nHost: test\r\n\r\n"

        with pytest.raises(HTTPParseError) as exc_info:
            parse_request(raw)

        assert exc_info.value.status_code == 505

    def test_parse_missing_terminator(self):
        """Test a request without the blank line is incomplete."""
        with pytest.raises(HTTPParseError):
            parse_request(b"GET / HTTP/1.1\r\nHost: test\r\n")

    def test_parse_missing_headers(self):
        """Test parsing request with no headers."""
        raw = b"GET / HTTP/1.1\r\n\r\n"
        request = parse_request(raw)

        assert request.method == "GET"
        assert request.path == "/"
        assert len(request.headers) == 0

    def test_parse_path_traversal_blocked(self):
        """Test that path traversal attempts are blocked."""
        raw = b"GET /../../../etc/passwd HTTP/1.1\r\nHost: test\r\n\r\n"

        with pytest.raises(HTTPParseError) as exc_info:
            parse_request(raw)

        assert "path" in str(exc_info.value).lower()

    def test_double_dot_inside_name_allowed(self):
        """Test that dots inside a filename are not traversal."""
        request = parse_request(b"GET /release..notes.txt HTTP/1.1\r\n\r\n")
        assert request.path == "/release..notes.txt"

    def test_parse_request_too_large(self):
        """Test that oversized requests are rejected."""
        parser = RequestParser(max_request_size=100)
        raw = b"GET / HTTP/1.1\r\n" + b"X-Large: " + b"A" * 200 + b"\r\n\r\n"

        with pytest.raises(HTTPParseError) as exc_info:
            parser.parse(raw)

        assert exc_info.value.status_code == 413

    def test_invalid_content_length(self):
        """Test a non-numeric Content-Length is a bad request."""
        raw = b"POST / HTTP/1.1\r\nContent-Length: lots\r\n\r\n"

        with pytest.raises(HTTPParseError) as exc_info:
            parse_request(raw)

        assert exc_info.value.status_code == 400

    def test_http_version_parsing(self):
        """Test HTTP/1.0 and HTTP/1.1 version handling."""
        # HTTP/1.0 (Connection: close by default)
        request_10 = parse_request(b"GET / HTTP/1.0\r\nHost: test\r\n\r\n")
        assert request_10.version == "HTTP/1.0"
        assert request_10.is_keep_alive is False

        # HTTP/1.1 (keep-alive by default)
        request_11 = parse_request(b"GET / HTTP/1.1\r\nHost: test\r\n\r\n")
        assert request_11.version == "HTTP/1.1"
        assert request_11.is_keep_alive is True

    def test_connection_close(self):
        """Test an explicit Connection: close on HTTP/1.1."""
        request = parse_request(b"GET / HTTP/1.1\r\nConnection: close\r\n\r\n")
        assert request.is_keep_alive is False

    def test_case_insensitive_headers(self):
        """Test that header names are case-insensitive."""
        raw = b"GET / HTTP/1.1\r\nUSER-AGENT: curl/8.0\r\n\r\n"
        request = parse_request(raw)

        assert request.user_agent == "curl/8.0"
        assert request.get_header("User-Agent") == "curl/8.0"
        assert request.get_header("user-agent") == "curl/8.0"

    def test_duplicate_headers_merged(self):
        """Test repeated headers are joined with commas."""
        raw = b"GET / HTTP/1.1\r\nAccept: text/plain\r\nAccept: */*\r\n\r\n"
        request = parse_request(raw)

        assert request.headers["accept"] == "text/plain, */*"


class TestHTTPRequest:
    """Tests for HTTPRequest dataclass."""

    def test_get_header_default(self):
        """Test get_header with default value."""
        request = HTTPRequest(method="GET", path="/")

        assert request.get_header("X-Missing") == ""
        assert request.get_header("X-Missing", "default") == "default"

    def test_is_http11(self):
        """Test the version helper."""
        assert HTTPRequest(method="GET", path="/", version="HTTP/1.1").is_http11 is True
        assert HTTPRequest(method="GET", path="/", version="HTTP/1.0").is_http11 is False
