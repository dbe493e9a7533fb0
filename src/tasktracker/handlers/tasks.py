"""
=============================================================================
TASK HANDLERS
=============================================================================

The /tasks HTTP surface.

    ┌────────┬─────────────────────┬──────────────────────┬───────────────┐
    │ Method │ Path                │ Success              │ Failure       │
    ├────────┼─────────────────────┼──────────────────────┼───────────────┤
    │ GET    │ /tasks[?search=..]  │ 200 [task, ...]      │               │
    │ POST   │ /tasks              │ 201 (empty body)     │               │
    │ PUT    │ /tasks/:id          │ 204                  │ 404 not found │
    │ PATCH  │ /tasks/:id/complete │ 204 (toggles)        │ 404 not found │
    │ DELETE │ /tasks/:id          │ 204                  │ 404 not found │
    └────────┴─────────────────────┴──────────────────────┴───────────────┘

"404 not found" is {"message": "id not found"}.

Bodies are not validated. POST stores whatever title and description it
gets, null when they're absent or when the body isn't a JSON object.

=============================================================================
"""

import logging
from typing import Any, Dict

from ..http.request import HTTPRequest
from ..http.response import HTTPResponse, ok, created, no_content, not_found
from ..http.router import Router
from ..store.database import Database
from ..tasks.models import Task, TABLE, utc_now


logger = logging.getLogger(__name__)


EDITABLE_FIELDS = ("title", "description")
SEARCH_FIELDS = ("title", "description")


def _id_not_found() -> HTTPResponse:
    return not_found({"message": "id not found"})


def _body_object(request: HTTPRequest) -> Dict[str, Any]:
    """The decoded body if it is a JSON object, else {}."""
    return request.data if isinstance(request.data, dict) else {}


class TaskHandler:
    """
    Handlers for the tasks table.

        handler = TaskHandler(database)
        handler.register(router)

    The Database is passed in, so tests can hand each handler its own
    temporary store.
    """

    def __init__(self, database: Database):
        self.database = database

    def register(self, router: Router) -> Router:
        router.add_route("/tasks", self.list, method="GET", name="list_tasks")
        router.add_route("/tasks", self.create, method="POST", name="create_task")
        router.add_route("/tasks/:id", self.update, method="PUT", name="update_task")
        router.add_route("/tasks/:id/complete", self.complete, method="PATCH", name="complete_task")
        router.add_route("/tasks/:id", self.delete, method="DELETE", name="delete_task")
        return router

    def list(self, request: HTTPRequest) -> HTTPResponse:
        """
        GET /tasks?search=milk

        search matches title OR description, case-sensitively.
        """
        search = request.query.get("search")
        if search:
            rows = self.database.select(TABLE, {name: search for name in SEARCH_FIELDS})
        else:
            rows = self.database.select(TABLE)
        return ok(rows)

    def create(self, request: HTTPRequest) -> HTTPResponse:
        body = _body_object(request)
        task = Task.create(
            title=body.get("title"),
            description=body.get("description"),
        )
        self.database.insert(TABLE, task.to_row())
        logger.info(f"Created task {task.id}")
        return created()

    def update(self, request: HTTPRequest) -> HTTPResponse:
        """PUT /tasks/:id. Only title and description are taken from the body."""
        task_id = request.path_params["id"]
        body = _body_object(request)

        changes = {name: body[name] for name in EDITABLE_FIELDS if name in body}
        changes["updated_at"] = utc_now()

        if not self.database.update(TABLE, task_id, changes):
            return _id_not_found()

        logger.info(f"Updated task {task_id}")
        return no_content()

    def complete(self, request: HTTPRequest) -> HTTPResponse:
        """
        PATCH /tasks/:id/complete

        Flips completed_at between null and now. Read and write happen
        under the database lock so two concurrent toggles can't both see
        the same old value.
        """
        task_id = request.path_params["id"]

        with self.database.locked():
            row = self.database.get(TABLE, task_id)
            if row is None:
                return _id_not_found()

            task = Task.from_row(row)
            now = utc_now()
            completed_at = None if task.is_completed else now
            self.database.update(
                TABLE, task_id, {"completed_at": completed_at, "updated_at": now}
            )

        logger.info(f"Task {task_id} marked {'complete' if completed_at else 'incomplete'}")
        return no_content()

    def delete(self, request: HTTPRequest) -> HTTPResponse:
        task_id = request.path_params["id"]

        if not self.database.delete(TABLE, task_id):
            return _id_not_found()

        logger.info(f"Deleted task {task_id}")
        return no_content()
