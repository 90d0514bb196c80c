"""ASGI application serving the blog content API and server-side search.

Routes:
    GET /api/v1/posts   paginated posts, optional tag filter and sort order
    GET /api/v1/feed    latest posts for embedding elsewhere
    GET /api/v1/tags    tags with post counts
    GET /api/v1/search  fuzzy search through the shared query cache
    GET /api/v1/health  liveness and dataset size
    GET /metrics        Prometheus exposition

Usage:
    python -m blog_search.app
    POSTS_PATH=/srv/blog/.velite/posts.json blog-search
"""

from __future__ import annotations

import asyncio
import base64
from collections.abc import Sequence
from datetime import datetime, timezone
import logging
from typing import TYPE_CHECKING, Any

from starlette.applications import Starlette
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.responses import JSONResponse, Response
from starlette.routing import Match, Route

from .config import Settings
from .content import blog_stats, filter_by_tag, get_all_tags, load_posts, paginate, sort_tags_by_count, to_feed_item
from .exceptions import PostsLoadError
from .observability import (
    INDEX_DOC_COUNT,
    REQUEST_COUNT,
    TraceContextMiddleware,
    configure_logging,
    configure_trace_exporter,
    create_span,
    get_metrics,
    get_metrics_content_type,
    init_metrics,
    init_tracing,
    trace_request,
)
from .search.index import PostSearchIndex
from .services import QueryCache, SearchExecutor


if TYPE_CHECKING:
    from starlette.requests import Request

    from .domain.model import PostRecord
    from .domain.search import SearchResult


logger = logging.getLogger(__name__)

API_PREFIX = "/api/v1"
POSTS_MAX_PER_PAGE = 50
FEED_DEFAULT_LIMIT = 6
FEED_MAX_LIMIT = 20
SORT_ORDERS = ("date_desc", "date_asc")


def cors_headers() -> dict[str, str]:
    return {
        "Access-Control-Allow-Origin": "*",
        "Access-Control-Allow-Methods": "GET",
    }


def cache_headers(key: str | None = None) -> dict[str, str]:
    """Shared-cache headers with a weak ETag derived from ``key``."""
    headers = {
        "Cache-Control": "s-maxage=300, stale-while-revalidate=86400",
        "Vary": "Accept-Encoding, Origin",
    }
    if key:
        headers["ETag"] = f'W/"{base64.b64encode(key.encode("utf-8")).decode("ascii")}"'
    return headers


def _error(message: str, status_code: int) -> JSONResponse:
    return JSONResponse({"success": False, "message": message}, status_code=status_code, headers=cors_headers())


def _parse_int_param(request: Request, name: str, default: int, minimum: int, maximum: int) -> int:
    """Read an integer query parameter, clamped into ``minimum..maximum``.

    Raises:
        ValueError: If the parameter is present but not an integer
    """
    raw = request.query_params.get(name)
    if raw is None or raw == "":
        return default
    try:
        value = int(raw)
    except ValueError:
        raise ValueError(f"Invalid {name}") from None
    return min(max(value, minimum), maximum)


def _route_label(request: Request) -> str:
    """Route template serving ``request``, or ``unmatched`` so stray paths share one series."""
    for route in request.app.routes:
        match, _ = route.matches(request.scope)
        if match is not Match.NONE:
            return route.path
    return "unmatched"


class AppBuilder:
    """Builds the Starlette app around one post collection.

    The index, query cache and search executor are created once here and
    shared by every request.
    """

    def __init__(self, settings: Settings | None = None, posts: Sequence[PostRecord] | None = None) -> None:
        self.settings = settings or Settings()
        self._initial_posts = posts
        self.posts: list[PostRecord] = []
        self.load_error: str | None = None
        self.index: PostSearchIndex | None = None
        self.cache: QueryCache | None = None
        self.executor: SearchExecutor | None = None
        self._search_lock = asyncio.Lock()

    def build(self) -> Starlette:
        """Load posts, build the search stack and return the application."""
        self.posts = self._load_posts()
        with create_span("search.index_build", attributes={"index.post_count": len(self.posts)}):
            self.index = PostSearchIndex.from_settings(self.posts, self.settings)
        self.cache = QueryCache.from_settings(self.settings)
        self.executor = SearchExecutor.from_settings(self.index, self.cache, self.settings)
        INDEX_DOC_COUNT.labels().set(len(self.index))

        app = Starlette(debug=self.settings.log_level.lower() == "debug", routes=self._build_routes())
        app.state.builder = self
        app.add_middleware(BaseHTTPMiddleware, dispatch=self._count_requests)
        app.add_middleware(BaseHTTPMiddleware, dispatch=trace_request)
        app.add_middleware(TraceContextMiddleware)
        logger.info("Blog API initialized with %d posts", len(self.posts))
        return app

    def _load_posts(self) -> list[PostRecord]:
        if self._initial_posts is not None:
            return list(self._initial_posts)
        try:
            return load_posts(self.settings.posts_path, include_drafts=self.settings.include_drafts)
        except PostsLoadError as exc:
            logger.error("Serving without posts: %s", exc)
            self.load_error = exc.reason
            return []

    async def _count_requests(self, request: Request, call_next: Any) -> Response:
        response = await call_next(request)
        REQUEST_COUNT.labels(route=_route_label(request), status=str(response.status_code)).inc()
        return response

    def _build_routes(self) -> list[Route]:
        return [
            Route(f"{API_PREFIX}/posts", endpoint=self._build_posts_endpoint(), methods=["GET"]),
            Route(f"{API_PREFIX}/feed", endpoint=self._build_feed_endpoint(), methods=["GET"]),
            Route(f"{API_PREFIX}/tags", endpoint=self._build_tags_endpoint(), methods=["GET"]),
            Route(f"{API_PREFIX}/search", endpoint=self._build_search_endpoint(), methods=["GET"]),
            Route(f"{API_PREFIX}/health", endpoint=self._build_health_endpoint(), methods=["GET"]),
            Route("/metrics", endpoint=self._build_metrics_endpoint(), methods=["GET"]),
        ]

    def _unavailable(self) -> JSONResponse | None:
        if self.load_error is None:
            return None
        return _error("Posts unavailable", 503)

    def _build_posts_endpoint(self):
        async def posts_endpoint(request: Request) -> JSONResponse:
            if (error := self._unavailable()) is not None:
                return error
            try:
                page = _parse_int_param(request, "page", 1, 1, 2**31)
                per_page = _parse_int_param(request, "per_page", 10, 1, POSTS_MAX_PER_PAGE)
            except ValueError as exc:
                return _error(str(exc), 400)
            tag = request.query_params.get("tag") or None
            sort = (request.query_params.get("sort") or "date_desc").lower()
            if sort not in SORT_ORDERS:
                return _error("Invalid sort", 400)

            items = filter_by_tag(self.posts, tag)
            if sort == "date_asc":
                items.reverse()

            result = paginate(items, page, per_page)
            payload = {
                "data": [to_feed_item(post, self.settings.site_url) for post in result.data],
                "meta": result.meta.to_dict(),
            }
            headers = {**cors_headers(), **cache_headers(f"posts:{tag or 'all'}:{page}:{per_page}:{sort}")}
            return JSONResponse(payload, headers=headers)

        return posts_endpoint

    def _build_feed_endpoint(self):
        async def feed_endpoint(request: Request) -> JSONResponse:
            if (error := self._unavailable()) is not None:
                return error
            try:
                limit = _parse_int_param(request, "limit", FEED_DEFAULT_LIMIT, 1, FEED_MAX_LIMIT)
            except ValueError as exc:
                return _error(str(exc), 400)
            tag = request.query_params.get("tag") or None

            posts = filter_by_tag(self.posts, tag)[:limit]
            payload = {"data": [to_feed_item(post, self.settings.site_url) for post in posts]}
            headers = {**cors_headers(), **cache_headers(f"feed:{tag or 'all'}:{limit}")}
            return JSONResponse(payload, headers=headers)

        return feed_endpoint

    def _build_tags_endpoint(self):
        async def tags_endpoint(_: Request) -> JSONResponse:
            if (error := self._unavailable()) is not None:
                return error
            counts = get_all_tags(self.posts)
            payload = {
                "data": [{"tag": tag, "count": counts[tag]} for tag in sort_tags_by_count(counts)],
                "total": len(counts),
                "stats": blog_stats(self.posts).model_dump(mode="json"),
            }
            return JSONResponse(payload, headers={**cors_headers(), **cache_headers("tags")})

        return tags_endpoint

    def _build_search_endpoint(self):
        async def search_endpoint(request: Request) -> JSONResponse:
            if (error := self._unavailable()) is not None:
                return error
            if self.executor is None or self.cache is None:
                raise RuntimeError("AppBuilder.build() has not run")
            try:
                limit = _parse_int_param(
                    request,
                    "limit",
                    self.settings.search_result_limit,
                    1,
                    self.settings.search_result_limit,
                )
            except ValueError as exc:
                return _error(str(exc), 400)
            query = request.query_params.get("q", "")

            try:
                async with self._search_lock:
                    results = await asyncio.to_thread(self.executor.search, query)
                results = results[:limit]
            except Exception:
                logger.exception("Search failed for query %r", query)
                return _error("Search failed", 500)
            payload = {
                "query": query,
                "data": [self._serialize_result(result) for result in results],
                "cache": {
                    **self.cache.get_stats().model_dump(),
                    "hits": self.executor.cache_hits,
                },
            }
            return JSONResponse(payload, headers={**cors_headers(), "Cache-Control": "no-store"})

        return search_endpoint

    def _serialize_result(self, result: SearchResult) -> dict[str, Any]:
        return {
            **to_feed_item(result.item, self.settings.site_url),
            "score": result.score,
            "matches": [match.to_dict() for match in result.matches],
        }

    def _build_health_endpoint(self):
        async def health_endpoint(_: Request) -> JSONResponse:
            payload: dict[str, Any] = {
                "status": "ok" if self.load_error is None else "degraded",
                "version": self.settings.site_version,
                "time": datetime.now(timezone.utc).isoformat(),
                "posts": {"total": len(self.posts)},
            }
            if self.load_error is not None:
                payload["error"] = self.load_error
            return JSONResponse(payload, headers={**cors_headers(), "Cache-Control": "no-store"})

        return health_endpoint

    def _build_metrics_endpoint(self):
        async def metrics_endpoint(_: Request) -> Response:
            return Response(get_metrics(), media_type=get_metrics_content_type())

        return metrics_endpoint


def create_app(settings: Settings | None = None, posts: Sequence[PostRecord] | None = None) -> Starlette:
    """Create the ASGI app; ``posts`` overrides loading from ``settings.posts_path``."""
    return AppBuilder(settings, posts).build()


def main() -> None:
    """Run the API with uvicorn using environment-driven settings."""
    import uvicorn

    settings = Settings()
    configure_logging(level=settings.log_level, json_output=settings.log_json)
    init_metrics(service_name="blog-search")
    init_tracing(service_name="blog-search")
    configure_trace_exporter(settings.otlp_endpoint)

    app = create_app(settings)
    logger.info("Starting server on %s:%d", settings.api_host, settings.api_port)
    logger.info("Health check: http://%s:%d%s/health", settings.api_host, settings.api_port, API_PREFIX)

    uvicorn.run(
        app,
        host=settings.api_host,
        port=settings.api_port,
        log_level=settings.log_level.lower(),
        log_config=None,  # Don't let uvicorn override our logging config
    )


if __name__ == "__main__":
    main()
