"""
=============================================================================
URL ROUTER
=============================================================================

Maps (method, path) pairs to handler functions.

- Literal paths:        /tasks
- Named parameters:     /tasks/:id, /tasks/:id/complete
- Method-based routing: GET, POST, PUT, PATCH, DELETE (or any method)

=============================================================================
ROUTING FLOW
=============================================================================

    ┌─────────────────────────────────────────────────────────────────────┐
    │                                                                      │
    │   PATCH /tasks/abc-123/complete?notify=1                             │
    │        │                                                             │
    │        ▼                                                             │
    │   split off query ──────────────► query_string = "notify=1"         │
    │        │                                                             │
    │        ▼                                                             │
    │   ┌─────────────────────────────────────────────────────────────┐   │
    │   │  Registered Routes (tried in registration order):           │   │
    │   │                                                              │   │
    │   │  GET    /tasks                                               │   │
    │   │  POST   /tasks                                               │   │
    │   │  PUT    /tasks/:id                                           │   │
    │   │  PATCH  /tasks/:id/complete        ← MATCH                   │   │
    │   │  DELETE /tasks/:id                                           │   │
    │   └─────────────────────────────────────────────────────────────┘   │
    │        │                                                             │
    │        ▼                                                             │
    │   RouteMatch(route, params={"id": "abc-123"},                        │
    │              query_string="notify=1")                                │
    │                                                                      │
    └─────────────────────────────────────────────────────────────────────┘

=============================================================================
PATTERN COMPILATION
=============================================================================

Patterns are compiled once, at registration, into a list of segment
tokens. Matching walks the request path segment by segment against those
tokens. No regular expression is assembled from the pattern text, so a
literal segment like "v1.0" or "a+b" matches itself and nothing else.

    "/tasks/:id/complete"
          │
          ▼
    [Segment(LITERAL, "tasks"), Segment(PARAM, "id"), Segment(LITERAL, "complete")]

A parameter captures exactly one non-empty path segment made of
lowercase letters, digits, "_" and "-". Task ids are lowercase UUID4
strings, which fit that set.

By default a pattern must consume the whole path (one trailing slash is
tolerated). A route registered with anchored=False matches any path that
starts with the pattern's segments.

=============================================================================
"""

from dataclasses import dataclass
from enum import Enum
from typing import Callable, Dict, List, Optional
from urllib.parse import unquote_plus

from .request import HTTPRequest
from .response import HTTPResponse


Handler = Callable[[HTTPRequest], HTTPResponse]

PARAM_CHARS = frozenset("abcdefghijklmnopqrstuvwxyz0123456789_-")


class SegmentType(Enum):
    LITERAL = "literal"     # /tasks - exact match required
    PARAM = "param"         # /:id - captures one path segment


@dataclass(frozen=True)
class Segment:
    kind: SegmentType
    value: str              # literal text, or the parameter name

    def matches(self, text: str) -> bool:
        if self.kind is SegmentType.LITERAL:
            return text == self.value
        return bool(text) and all(ch in PARAM_CHARS for ch in text)


def _split_path(path: str) -> List[str]:
    """"/tasks/abc" → ["tasks", "abc"]; "/" and "" → []"""
    if path.startswith("/"):
        path = path[1:]
    return path.split("/") if path else []


@dataclass
class RoutePattern:
    """
    A path pattern compiled into segment tokens.

        pattern = RoutePattern.compile("/tasks/:id")
        pattern.match("/tasks/abc-123")   → {"id": "abc-123"}
        pattern.match("/tasks")           → None
    """

    source: str
    segments: List[Segment]
    anchored: bool = True

    @classmethod
    def compile(cls, path: str, anchored: bool = True) -> "RoutePattern":
        """
        Tokenize a pattern.

        Raises:
            ValueError: If a parameter name is empty, not an identifier,
                        or declared twice.
        """
        if not path.startswith("/"):
            raise ValueError(f"Route pattern must start with '/': {path!r}")

        raw = path[:-1] if len(path) > 1 and path.endswith("/") else path

        segments = []
        seen = set()
        for part in _split_path(raw):
            if part.startswith(":"):
                name = part[1:]
                if not name.isidentifier():
                    raise ValueError(
                        f"Invalid parameter name {name!r} in pattern {path!r}"
                    )
                if name in seen:
                    raise ValueError(
                        f"Duplicate parameter {name!r} in pattern {path!r}"
                    )
                seen.add(name)
                segments.append(Segment(SegmentType.PARAM, name))
            else:
                segments.append(Segment(SegmentType.LITERAL, part))

        return cls(source=path, segments=segments, anchored=anchored)

    @property
    def param_names(self) -> List[str]:
        return [s.value for s in self.segments if s.kind is SegmentType.PARAM]

    def match(self, path: str) -> Optional[Dict[str, str]]:
        """
        Match a path (without query string).

        Returns:
            Captured parameters ({} for a purely literal pattern), or None.
        """
        if self.anchored and len(path) > 1 and path.endswith("/"):
            path = path[:-1]

        parts = _split_path(path)

        if self.anchored:
            if len(parts) != len(self.segments):
                return None
        elif len(parts) < len(self.segments):
            return None

        params: Dict[str, str] = {}
        for segment, part in zip(self.segments, parts):
            if not segment.matches(part):
                return None
            if segment.kind is SegmentType.PARAM:
                params[segment.value] = part

        return params


@dataclass
class Route:
    """
    A registered route.

        Route(
            method="PATCH",                 # None = any method
            pattern=<RoutePattern "/tasks/:id/complete">,
            handler=task_handler.complete,
        )
    """

    method: Optional[str]
    pattern: RoutePattern
    handler: Handler
    name: Optional[str] = None

    @property
    def path(self) -> str:
        return self.pattern.source


@dataclass
class RouteMatch:
    """
    Result of a successful match.

    query_string is the raw text after "?", split off before matching;
    parse it with parse_query().
    """

    route: Route
    params: Dict[str, str]
    query_string: str = ""

    @property
    def query(self) -> Dict[str, str]:
        return parse_query(self.query_string)


class Router:
    """
    Ordered route table.

        router = Router()

        router.add_route("/tasks", list_tasks, method="GET")
        router.add_route("/tasks/:id/complete", complete, method="PATCH")

    The first registered route whose method and pattern both match wins,
    so register more specific patterns first when they overlap.
    """

    def __init__(self):
        self._routes: List[Route] = []

    # =========================================================================
    # ROUTE REGISTRATION
    # =========================================================================

    def add_route(
        self,
        path: str,
        handler: Handler,
        method: Optional[str] = None,
        name: Optional[str] = None,
        anchored: bool = True,
    ) -> Route:
        """
        Register a route.

        Args:
            path: Pattern such as /tasks/:id
            handler: Callable taking an HTTPRequest, returning an HTTPResponse
            method: HTTP method (None for any method)
            name: Optional route name, shown in describe()
            anchored: False to match the pattern as a path prefix

        Raises:
            ValueError: If the pattern is invalid.
        """
        route = Route(
            method=method.upper() if method else None,
            pattern=RoutePattern.compile(path, anchored=anchored),
            handler=handler,
            name=name,
        )
        self._routes.append(route)
        return route

    # =========================================================================
    # MATCHING
    # =========================================================================

    def match(self, method: str, raw_path: str) -> Optional[RouteMatch]:
        """
        Find the first route matching method and path.

        Args:
            method: HTTP method (GET, POST, ...)
            raw_path: Request target, optionally with "?query"

        Returns:
            RouteMatch if found, None otherwise
        """
        path, _, query_string = raw_path.partition("?")
        method = method.upper()

        for route in self._routes:
            if route.method and route.method != method:
                continue

            params = route.pattern.match(path)
            if params is not None:
                return RouteMatch(
                    route=route,
                    params=params,
                    query_string=query_string,
                )

        return None

    # =========================================================================
    # INTROSPECTION
    # =========================================================================

    def routes(self) -> List[Route]:
        return list(self._routes)

    def describe(self) -> List[str]:
        """
        One line per route, for the startup banner.

            GET      /tasks  [list_tasks]
            PATCH    /tasks/:id/complete  [complete_task]
        """
        lines = []
        for route in self._routes:
            method = route.method or "ANY"
            suffix = "" if route.pattern.anchored else "  (prefix)"
            if route.name:
                suffix += f"  [{route.name}]"
            lines.append(f"{method:8} {route.path}{suffix}")
        return lines

    def __len__(self) -> int:
        return len(self._routes)


def parse_query(query_string: str) -> Dict[str, str]:
    """
    Parse a raw query string into a dict.

        parse_query("search=oat+milk&done")  → {"search": "oat milk", "done": ""}
        parse_query("a=1&a=2")               → {"a": "2"}   (last one wins)
        parse_query("")                      → {}

    Each pair is split on its first "=", then percent-decoded with "+"
    read as a space.
    """
    params: Dict[str, str] = {}
    if not query_string:
        return params

    for pair in query_string.split("&"):
        if not pair:
            continue
        key, _, value = pair.partition("=")
        params[unquote_plus(key)] = unquote_plus(value)

    return params
