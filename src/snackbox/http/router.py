"""
=============================================================================
URL ROUTER
=============================================================================

Maps (method, path) pairs to handler functions, with path parameters and a
chain of pre-routing middleware.

=============================================================================
DISPATCH PIPELINE
=============================================================================

    request
       │
       ▼
    ┌──────────────────────────────────────────────────────────────────┐
    │ MIDDLEWARE PHASE  (registration order)                           │
    │                                                                   │
    │   mw1(request) → None            continue                        │
    │   mw2(request) → HTTPResponse    STOP, this is the answer        │
    │   mw3 ...                        never called                    │
    └──────────────────────────────────────────────────────────────────┘
       │ every middleware said "continue"
       ▼
    ┌──────────────────────────────────────────────────────────────────┐
    │ ROUTING PHASE  (registration order, first match wins)            │
    │                                                                   │
    │   GET  /hello/:name   ◄── method equal AND full-path match       │
    │   GET  /users/:id                                                │
    │   POST /users                                                    │
    └──────────────────────────────────────────────────────────────────┘
       │
       ├── match    → handler(request.with_path_params({...}))
       └── no match → None   (the server falls back to static files)

=============================================================================
PATH TEMPLATES
=============================================================================

    "/users/:id/books/:book_id"
               │          │
               ▼          ▼
    /users/([^/]+)/books/([^/]+)        matched with fullmatch()

    - A parameter starts at ":" and runs to the next "/" (or the end).
    - Each parameter matches one or more non-"/" characters.
    - Every other character is literal: "/v1.0/a+b" matches only itself.
    - Parameters are bound by position, so N placeholders always yield
      exactly N values.

=============================================================================
LIFECYCLE
=============================================================================

    build phase                         frozen phase
    ───────────                         ────────────
    use(), get(), post(), add() ...  →  dispatch(), allowed_methods_for()
                          freeze() ──┘  registration raises RouterFrozenError

The server freezes its router before accepting the first connection, so
worker threads only ever read the route table.

=============================================================================
"""

import logging
import re
from dataclasses import dataclass
from typing import Callable, List, Optional, Tuple, Union

from .request import HTTPRequest, Method
from .response import NO_STATUS, HTTPResponse


logger = logging.getLogger(__name__)


# =============================================================================
# TYPE ALIASES
# =============================================================================

Handler = Callable[[HTTPRequest], HTTPResponse]

# Returning None (or a response with status NO_STATUS) lets the request
# continue down the chain.
Middleware = Callable[[HTTPRequest], Optional[HTTPResponse]]


class RouterFrozenError(RuntimeError):
    """Raised when a route or middleware is registered after freeze()."""


@dataclass(frozen=True)
class Route:
    """
    A registered route.

        Route(
            method=Method.GET,
            path="/hello/:name",
            pattern=re.compile("/hello/([^/]+)"),
            param_names=("name",),
            handler=hello,
        )
    """

    method: Method
    path: str
    pattern: "re.Pattern[str]"
    param_names: Tuple[str, ...]
    handler: Handler

    def matches(self, path: str) -> Optional["re.Match[str]"]:
        return self.pattern.fullmatch(path)


def compile_path(template: str) -> Tuple["re.Pattern[str]", Tuple[str, ...]]:
    """
    Compile a path template into a regex and its parameter names.

    Args:
        template: Route template such as "/users/:id".

    Returns:
        (compiled pattern, parameter names in order)

    Raises:
        ValueError: If a parameter name is empty or used twice.
    """
    names: List[str] = []
    regex_parts: List[str] = []
    i = 0

    while i < len(template):
        if template[i] == ":":
            # ─────────────────────────────────────────────────────────────
            # PARAMETER: ":name" up to the next "/"
            # ─────────────────────────────────────────────────────────────
            end = template.find("/", i + 1)
            if end == -1:
                end = len(template)
            name = template[i + 1:end]

            if not name:
                raise ValueError(f"Empty parameter name in route {template!r}")
            if name in names:
                raise ValueError(
                    f"Duplicate parameter {name!r} in route {template!r}"
                )

            names.append(name)
            regex_parts.append("([^/]+)")
            i = end
        else:
            # ─────────────────────────────────────────────────────────────
            # LITERAL: copied through re.escape so ".", "+", "(" ... are
            # matched as themselves
            # ─────────────────────────────────────────────────────────────
            end = template.find(":", i)
            if end == -1:
                end = len(template)
            regex_parts.append(re.escape(template[i:end]))
            i = end

    return re.compile("".join(regex_parts)), tuple(names)


def _to_method(method: Union[Method, str]) -> Method:
    if isinstance(method, str):
        method = Method.parse(method.upper())
    if method is Method.UNKNOWN:
        raise ValueError("Routes cannot be registered for Method.UNKNOWN")
    return method


class Router:
    """
    Ordered route table plus middleware chain.

    Routes can be registered directly (chainable) or with decorators:

        router = Router()
        router.use(require_api_key)
        router.get("/health", health)

        @router.get("/hello/:name")
        def hello(request):
            return text(200, f"Hello {request.path_params['name']}")
    """

    def __init__(self):
        self._routes: List[Route] = []
        self._middlewares: List[Middleware] = []
        self._frozen = False

    # =========================================================================
    # BUILD PHASE
    # =========================================================================

    def _check_not_frozen(self) -> None:
        if self._frozen:
            raise RouterFrozenError("Router is frozen; register routes before starting the server")

    def use(self, middleware: Middleware) -> "Router":
        """Append a middleware to the chain. Returns self."""
        self._check_not_frozen()
        self._middlewares.append(middleware)
        return self

    def add(self, method: Union[Method, str], path: str, handler: Handler) -> "Router":
        """
        Register a handler for a method and path template. Returns self.

        Raises:
            RouterFrozenError: If the router has been frozen.
            ValueError: If the template is invalid or the method is UNKNOWN.
        """
        self._check_not_frozen()
        method = _to_method(method)
        pattern, names = compile_path(path)
        self._routes.append(Route(method, path, pattern, names, handler))
        logger.debug(f"Registered route {method.value} {path}")
        return self

    def route(self, method: Union[Method, str], path: str, handler: Optional[Handler] = None):
        """
        Register a route directly or as a decorator.

            router.route("GET", "/a", handler_a)      # returns the router

            @router.route("GET", "/b")                 # returns the handler
            def handler_b(request): ...
        """
        if handler is not None:
            return self.add(method, path, handler)

        def decorator(func: Handler) -> Handler:
            self.add(method, path, func)
            return func

        return decorator

    def get(self, path: str, handler: Optional[Handler] = None):
        return self.route(Method.GET, path, handler)

    def post(self, path: str, handler: Optional[Handler] = None):
        return self.route(Method.POST, path, handler)

    def put(self, path: str, handler: Optional[Handler] = None):
        return self.route(Method.PUT, path, handler)

    def patch(self, path: str, handler: Optional[Handler] = None):
        return self.route(Method.PATCH, path, handler)

    def delete(self, path: str, handler: Optional[Handler] = None):
        return self.route(Method.DELETE, path, handler)

    def head(self, path: str, handler: Optional[Handler] = None):
        return self.route(Method.HEAD, path, handler)

    def options(self, path: str, handler: Optional[Handler] = None):
        return self.route(Method.OPTIONS, path, handler)

    def freeze(self) -> "Router":
        """End the build phase. Idempotent."""
        self._frozen = True
        return self

    @property
    def frozen(self) -> bool:
        return self._frozen

    @property
    def routes(self) -> Tuple[Route, ...]:
        return tuple(self._routes)

    # =========================================================================
    # DISPATCH
    # =========================================================================

    def dispatch(self, request: HTTPRequest) -> Optional[HTTPResponse]:
        """
        Run the middleware chain, then the first matching route.

        Returns:
            The response from a short-circuiting middleware or the matched
            handler, or None when no route matched.

        Exceptions raised by middleware or handlers propagate to the caller.

        Raises:
            TypeError: If the matched handler returned None instead of a
                response.
        """
        for middleware in self._middlewares:
            response = middleware(request)
            if response is not None and response.status != NO_STATUS:
                return response

        for route in self._routes:
            if route.method is not request.method:
                continue
            match = route.matches(request.path)
            if match is None:
                continue
            params = dict(zip(route.param_names, match.groups()))
            response = route.handler(request.with_path_params(params))
            if response is None:
                raise TypeError(
                    f"Handler for {route.method.value} {route.path} returned None"
                )
            return response

        return None

    def allowed_methods_for(self, path: str) -> List[Method]:
        """
        Methods of every route whose template matches ``path``.

        Deduplicated, in registration order. An empty list means no route
        knows this path at all.
        """
        methods: List[Method] = []
        for route in self._routes:
            if route.method not in methods and route.matches(path):
                methods.append(route.method)
        return methods
