"""
=============================================================================
TASKTRACKER
=============================================================================

A small task-tracking HTTP API on a hand-built HTTP/1.1 server, storing
everything in one JSON file.

    from tasktracker import create_app, ServerConfig

    app = create_app(ServerConfig(port=3333, database_path="db.json"))
    app.run()

Packages:

    core/        sockets, connections, thread pool
    http/        parser, responses, router, dispatcher
    middleware/  pipeline and access logging
    store/       JSON table database and snapshot writer
    tasks/       the Task record
    handlers/    the /tasks endpoints

Also: importer.py, the CSV bulk importer (tasktracker-import).

=============================================================================
"""

__version__ = "1.0.0"

from .config import ServerConfig
from .store import Database
from .server import HTTPServer, create_app

__all__ = ["HTTPServer", "ServerConfig", "Database", "create_app", "__version__"]
