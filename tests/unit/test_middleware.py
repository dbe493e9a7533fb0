"""
Unit tests for the middleware pipeline and access logging.
"""

import json
import logging

import pytest

from tasktracker.http.request import HTTPRequest
from tasktracker.http.response import HTTPResponse, ok, error_response
from tasktracker.http.status_codes import HTTPStatus
from tasktracker.middleware import (
    LoggingMiddleware,
    Middleware,
    MiddlewarePipeline,
)


class Tag(Middleware):
    """Appends its label to a shared trail on the way in and out."""

    def __init__(self, label, trail):
        self.label = label
        self.trail = trail

    def __call__(self, request, next):
        self.trail.append(f"{self.label}>")
        response = next(request)
        self.trail.append(f"<{self.label}")
        return response


class TestMiddlewarePipeline:
    def test_first_added_is_outermost(self):
        trail = []
        pipeline = MiddlewarePipeline().use(Tag("a", trail), Tag("b", trail))

        def handler(request):
            trail.append("handler")
            return ok()

        pipeline.wrap(handler)(HTTPRequest(method="GET", path="/tasks"))

        assert trail == ["a>", "b>", "handler", "<b", "<a"]
        assert len(pipeline) == 2

    def test_short_circuit(self):
        class Deny(Middleware):
            def __call__(self, request, next):
                return error_response(HTTPStatus.SERVICE_UNAVAILABLE)

        called = []
        handler = MiddlewarePipeline().add(Deny()).wrap(lambda r: called.append(r) or ok())

        response = handler(HTTPRequest(method="GET", path="/tasks"))

        assert response.status == HTTPStatus.SERVICE_UNAVAILABLE
        assert called == []

    def test_empty_pipeline_is_handler(self):
        def handler(request):
            return ok()

        assert MiddlewarePipeline().wrap(handler) is handler


class TestLoggingMiddleware:
    def call(self, middleware, request=None, response=None):
        request = request or HTTPRequest(
            method="GET",
            path="/tasks",
            query_string="search=milk",
            client_address=("10.0.0.1", 5000),
        )
        return middleware(request, lambda r: response or ok([]))

    def test_sets_request_id(self):
        response = self.call(LoggingMiddleware())

        request_id = response.get_header("X-Request-ID")
        assert request_id and len(request_id) == 8

    def test_reuses_incoming_request_id(self):
        request = HTTPRequest(method="GET", path="/tasks", headers={"x-request-id": "abc123"})
        response = self.call(LoggingMiddleware(), request=request)

        assert response.get_header("X-Request-ID") == "abc123"

    def test_request_id_can_be_disabled(self):
        response = self.call(LoggingMiddleware(include_request_id=False))
        assert not response.has_header("X-Request-ID")

    def test_text_line(self, caplog):
        with caplog.at_level(logging.INFO, logger="tasktracker.access"):
            self.call(LoggingMiddleware())

        line = caplog.records[-1].getMessage()
        assert line.startswith("10.0.0.1 - - [")
        assert '"GET /tasks?search=milk" 200 2 ' in line

    def test_json_line(self, caplog):
        with caplog.at_level(logging.INFO, logger="tasktracker.access"):
            response = self.call(LoggingMiddleware(log_format="json"))

        entry = json.loads(caplog.records[-1].getMessage())
        assert entry["method"] == "GET"
        assert entry["path"] == "/tasks"
        assert entry["query"] == "search=milk"
        assert entry["status_code"] == 200
        assert entry["request_id"] == response.get_header("X-Request-ID")

    def test_server_errors_logged_as_warning(self, caplog):
        with caplog.at_level(logging.INFO, logger="tasktracker.access"):
            self.call(LoggingMiddleware(), response=HTTPResponse(status=HTTPStatus.INTERNAL_SERVER_ERROR))

        assert caplog.records[-1].levelno == logging.WARNING

    def test_skip_paths(self, caplog):
        with caplog.at_level(logging.INFO, logger="tasktracker.access"):
            response = self.call(LoggingMiddleware(skip_paths=["/tasks"]))

        assert caplog.records == []
        assert response.has_header("X-Request-ID")

    def test_handler_exception_logged_and_raised(self, caplog):
        def boom(request):
            raise RuntimeError("disk on fire")

        with caplog.at_level(logging.ERROR, logger="tasktracker.access"):
            with pytest.raises(RuntimeError):
                LoggingMiddleware()(HTTPRequest(method="GET", path="/tasks"), boom)

        assert "RuntimeError: disk on fire" in caplog.text
