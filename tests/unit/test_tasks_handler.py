"""
Unit tests for the /tasks handlers, driven through the Dispatcher.
"""

import json

import pytest

from tasktracker.handlers import TaskHandler
from tasktracker.http import Dispatcher, HTTPRequest, HTTPStatus, Router
from tasktracker.store import Database


@pytest.fixture
def dispatcher(database: Database) -> Dispatcher:
    router = Router()
    TaskHandler(database).register(router)
    return Dispatcher(router)


def call(dispatcher, method, target, body=None):
    raw = b"" if body is None else (body if isinstance(body, bytes) else json.dumps(body).encode())
    path, _, query = target.partition("?")
    return dispatcher(HTTPRequest(method=method, path=path, query_string=query, body=raw))


def only_task(database: Database) -> dict:
    rows = database.select("tasks")
    assert len(rows) == 1
    return rows[0]


class TestCreate:
    def test_create(self, dispatcher, database):
        response = call(dispatcher, "POST", "/tasks", {"title": "Buy milk", "description": "2L"})

        assert response.status == HTTPStatus.CREATED
        assert response.body == b""
        assert response.headers["Content-Type"] == "application/json"

        task = only_task(database)
        assert task["title"] == "Buy milk"
        assert task["description"] == "2L"
        assert task["completed_at"] is None
        assert task["created_at"] == task["updated_at"]

    def test_missing_fields_stored_as_null(self, dispatcher, database):
        response = call(dispatcher, "POST", "/tasks", {"title": "only title"})

        assert response.status == HTTPStatus.CREATED
        assert only_task(database)["description"] is None

    @pytest.mark.parametrize("body", [None, b"not json", [1, 2], "text"])
    def test_non_object_body_stored_as_nulls(self, dispatcher, database, body):
        response = call(dispatcher, "POST", "/tasks", body)

        assert response.status == HTTPStatus.CREATED
        task = only_task(database)
        assert task["title"] is None
        assert task["description"] is None


class TestList:
    def test_list_empty(self, dispatcher):
        response = call(dispatcher, "GET", "/tasks")

        assert response.status == HTTPStatus.OK
        assert response.json() == []

    def test_search_title_or_description_case_sensitive(self, dispatcher):
        call(dispatcher, "POST", "/tasks", {"title": "Buy milk", "description": "x"})
        call(dispatcher, "POST", "/tasks", {"title": "MILK run", "description": "shop"})
        call(dispatcher, "POST", "/tasks", {"title": "Bread", "description": "oat milk too"})
        call(dispatcher, "POST", "/tasks", {"title": "Walk", "description": "dog"})

        titles = [t["title"] for t in call(dispatcher, "GET", "/tasks?search=milk").json()]
        assert titles == ["Buy milk", "Bread"]

    def test_empty_search_lists_all(self, dispatcher):
        call(dispatcher, "POST", "/tasks", {"title": "a", "description": "b"})
        assert len(call(dispatcher, "GET", "/tasks?search=").json()) == 1


class TestUpdate:
    def test_update_title_only(self, dispatcher, database):
        call(dispatcher, "POST", "/tasks", {"title": "Buy milk", "description": "2L"})
        before = only_task(database)

        response = call(dispatcher, "PUT", f"/tasks/{before['id']}", {"title": "Buy oat milk", "id": "x"})

        assert response.status == HTTPStatus.NO_CONTENT
        after = only_task(database)
        assert after["id"] == before["id"]
        assert after["title"] == "Buy oat milk"
        assert after["description"] == "2L"
        assert after["created_at"] == before["created_at"]
        assert after["updated_at"] >= before["updated_at"]

    def test_update_ignores_other_fields(self, dispatcher, database):
        call(dispatcher, "POST", "/tasks", {"title": "a", "description": "b"})
        task = only_task(database)

        call(dispatcher, "PUT", f"/tasks/{task['id']}", {"completed_at": "yesterday"})
        assert only_task(database)["completed_at"] is None

    def test_update_unknown_id(self, dispatcher):
        response = call(dispatcher, "PUT", "/tasks/unknown-id", {"title": "x"})

        assert response.status == HTTPStatus.NOT_FOUND
        assert response.json() == {"message": "id not found"}


class TestComplete:
    def test_toggle_twice(self, dispatcher, database):
        call(dispatcher, "POST", "/tasks", {"title": "a", "description": "b"})
        task_id = only_task(database)["id"]

        assert call(dispatcher, "PATCH", f"/tasks/{task_id}/complete").status == HTTPStatus.NO_CONTENT
        assert only_task(database)["completed_at"] is not None

        assert call(dispatcher, "PATCH", f"/tasks/{task_id}/complete").status == HTTPStatus.NO_CONTENT
        assert only_task(database)["completed_at"] is None

    def test_complete_unknown_id(self, dispatcher):
        response = call(dispatcher, "PATCH", "/tasks/unknown-id/complete")

        assert response.status == HTTPStatus.NOT_FOUND
        assert response.json() == {"message": "id not found"}


class TestDelete:
    def test_delete(self, dispatcher, database):
        call(dispatcher, "POST", "/tasks", {"title": "a", "description": "b"})
        task_id = only_task(database)["id"]

        assert call(dispatcher, "DELETE", f"/tasks/{task_id}").status == HTTPStatus.NO_CONTENT
        assert database.select("tasks") == []

    def test_delete_unknown_id(self, dispatcher):
        response = call(dispatcher, "DELETE", "/tasks/unknown-id")

        assert response.status == HTTPStatus.NOT_FOUND
        assert response.json() == {"message": "id not found"}


class TestRouting:
    def test_unknown_route(self, dispatcher):
        response = call(dispatcher, "GET", "/projects")

        assert response.status == HTTPStatus.NOT_FOUND
        assert response.body == b""

    def test_uppercase_id_does_not_route(self, dispatcher):
        """Ids are lowercase UUIDs; anything else isn't a task path."""
        response = call(dispatcher, "DELETE", "/tasks/ABC")
        assert response.body == b""


class TestScenario:
    def test_create_search_update_delete(self, dispatcher, database):
        call(dispatcher, "POST", "/tasks", {"title": "Buy milk", "description": "2 litres"})

        found = call(dispatcher, "GET", "/tasks?search=milk").json()
        assert len(found) == 1
        task_id = found[0]["id"]

        call(dispatcher, "PUT", f"/tasks/{task_id}", {"title": "Buy oat milk"})
        assert call(dispatcher, "GET", "/tasks").json()[0]["title"] == "Buy oat milk"

        call(dispatcher, "DELETE", f"/tasks/{task_id}")
        assert call(dispatcher, "GET", "/tasks").json() == []
