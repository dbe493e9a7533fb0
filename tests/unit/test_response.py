"""
Unit tests for HTTP response building.
"""

from datetime import datetime, timezone

from tasktracker.http.response import (
    HTTPResponse,
    ResponseBuilder,
    format_http_date,
    ok,
    created,
    no_content,
    not_found,
    error_response,
    internal_error,
)
from tasktracker.http.status_codes import HTTPStatus


class TestHTTPResponse:
    """Tests for HTTPResponse class."""

    def test_status_line(self):
        response = HTTPResponse(status=HTTPStatus.NOT_FOUND)
        assert response.status_line == "HTTP/1.1 404 Not Found"

    def test_int_status_coerced(self):
        response = HTTPResponse(status=201)
        assert response.status is HTTPStatus.CREATED

    def test_to_bytes_includes_headers(self):
        """Test that serialization adds the standard headers."""
        response = HTTPResponse(
            status=HTTPStatus.OK,
            headers={"Content-Type": "application/json"},
            body=b"[]",
        )
        data = response.to_bytes("TestServer/1.0")

        assert data.startswith(b"HTTP/1.1 200 OK\r\n")
        assert b"Content-Type: application/json\r\n" in data
        assert b"Content-Length: 2\r\n" in data
        assert b"Server: TestServer/1.0\r\n" in data
        assert b"Date: " in data
        assert data.endswith(b"\r\n\r\n[]")

    def test_no_content_has_no_body(self):
        """A 204 never carries a body or Content-Length."""
        response = HTTPResponse(status=HTTPStatus.NO_CONTENT, body=b"ignored")
        data = response.to_bytes()

        assert b"Content-Length" not in data
        assert data.endswith(b"\r\n\r\n")

    def test_header_lookup_case_insensitive(self):
        response = HTTPResponse(headers={"Content-Type": "text/plain"})
        assert response.get_header("content-type") == "text/plain"
        assert response.has_header("CONTENT-TYPE")
        assert not response.has_header("X-Missing")

    def test_set_header_chaining(self):
        response = HTTPResponse()
        result = response.set_header("X-A", "1").set_header("X-B", "2")

        assert result is response
        assert response.headers == {"X-A": "1", "X-B": "2"}

    def test_str_body_encoded(self):
        response = HTTPResponse().set_body("héllo")
        assert response.body == "héllo".encode("utf-8")


class TestResponseBuilder:
    """Tests for ResponseBuilder class."""

    def test_json_body(self):
        response = ResponseBuilder().json({"message": "id not found"}).build()

        assert response.headers["Content-Type"] == "application/json"
        assert response.json() == {"message": "id not found"}

    def test_json_keeps_unicode(self):
        response = ResponseBuilder().json({"title": "Café"}).build()
        assert "Café".encode("utf-8") in response.body

    def test_method_chaining(self):
        response = (ResponseBuilder()
            .status(HTTPStatus.CREATED)
            .header("Location", "/tasks/1")
            .json([])
            .build())

        assert response.status == HTTPStatus.CREATED
        assert response.headers["Location"] == "/tasks/1"
        assert response.body == b"[]"


class TestConvenienceFunctions:
    """Tests for response helper functions."""

    def test_ok(self):
        response = ok([{"id": "1"}])
        assert response.status == HTTPStatus.OK
        assert response.json() == [{"id": "1"}]

    def test_ok_empty_list_is_json(self):
        assert ok([]).body == b"[]"

    def test_created_has_empty_body(self):
        response = created()
        assert response.status == HTTPStatus.CREATED
        assert response.body == b""

    def test_no_content(self):
        assert no_content().status == HTTPStatus.NO_CONTENT

    def test_not_found_without_body(self):
        response = not_found()
        assert response.status == HTTPStatus.NOT_FOUND
        assert response.body == b""

    def test_not_found_with_message(self):
        response = not_found({"message": "id not found"})
        assert response.json() == {"message": "id not found"}

    def test_error_response_defaults_to_phrase(self):
        response = error_response(HTTPStatus.SERVICE_UNAVAILABLE)
        assert response.json() == {"error": "Service Unavailable"}

    def test_internal_error(self):
        response = internal_error()
        assert response.status == HTTPStatus.INTERNAL_SERVER_ERROR
        assert response.json() == {"error": "Internal Server Error"}


class TestHTTPStatus:
    """Tests for HTTPStatus enum."""

    def test_status_phrases(self):
        assert HTTPStatus.OK.phrase == "OK"
        assert HTTPStatus.NO_CONTENT.phrase == "No Content"
        assert HTTPStatus.PAYLOAD_TOO_LARGE.phrase == "Payload Too Large"

    def test_str_is_code(self):
        assert str(HTTPStatus.NOT_FOUND) == "404"
        assert f"{HTTPStatus.CREATED}" == "201"

    def test_status_categories(self):
        assert HTTPStatus.CREATED.is_success
        assert not HTTPStatus.NOT_FOUND.is_success
        assert HTTPStatus.NOT_FOUND.is_error
        assert not HTTPStatus.NO_CONTENT.allows_body


class TestFormatHTTPDate:
    def test_format(self):
        dt = datetime(2026, 10, 18, 9, 5, 3, tzinfo=timezone.utc)
        assert format_http_date(dt) == "Sun, 18 Oct 2026 09:05:03 GMT"
