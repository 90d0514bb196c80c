"""Tests for the HTTP API built by AppBuilder."""

import pytest
from starlette.requests import Request
from starlette.testclient import TestClient

from blog_search.app import AppBuilder, cache_headers, create_app
from blog_search.config import Settings
from blog_search.content import sort_posts_by_date


@pytest.fixture
def settings():
    return Settings(_env_file=None)


@pytest.fixture
def client(settings, sample_posts):
    app = create_app(settings, posts=sort_posts_by_date(sample_posts))
    with TestClient(app) as test_client:
        yield test_client


@pytest.fixture
def broken_client(tmp_path, monkeypatch):
    monkeypatch.setenv("POSTS_PATH", str(tmp_path / "missing.json"))
    app = create_app(Settings(_env_file=None))
    with TestClient(app) as test_client:
        yield test_client


@pytest.mark.unit
class TestPostsEndpoint:
    def test_paginates(self, client):
        response = client.get("/api/v1/posts", params={"per_page": 2})

        assert response.status_code == 200
        body = response.json()
        assert [item["slug"] for item in body["data"]] == ["blog/react-hooks-guide", "blog/nextjs-routing"]
        assert body["meta"] == {"page": 1, "per_page": 2, "total": 4, "total_pages": 2}
        assert response.headers["access-control-allow-origin"] == "*"
        assert response.headers["etag"].startswith('W/"')

    def test_items_use_public_shape(self, client):
        item = client.get("/api/v1/posts").json()["data"][0]

        assert "body" not in item
        assert item["canonicalUrl"] == "https://blog.example.com/blog/react-hooks-guide"

    def test_tag_filter(self, client):
        body = client.get("/api/v1/posts", params={"tag": "REACT"}).json()

        assert body["meta"]["total"] == 2

    def test_oldest_first(self, client):
        body = client.get("/api/v1/posts", params={"sort": "date_asc"}).json()

        assert body["data"][0]["slug"] == "blog/docker-for-devs"

    def test_invalid_sort(self, client):
        response = client.get("/api/v1/posts", params={"sort": "title"})

        assert response.status_code == 400
        assert response.json() == {"success": False, "message": "Invalid sort"}

    def test_non_integer_page(self, client):
        response = client.get("/api/v1/posts", params={"page": "two"})

        assert response.status_code == 400
        assert response.json()["message"] == "Invalid page"

    def test_per_page_is_clamped(self, client):
        body = client.get("/api/v1/posts", params={"per_page": 500}).json()

        assert body["meta"]["per_page"] == 50


@pytest.mark.unit
class TestFeedAndTags:
    def test_feed_limit(self, client):
        body = client.get("/api/v1/feed", params={"limit": 1}).json()

        assert len(body["data"]) == 1
        assert body["data"][0]["slug"] == "blog/react-hooks-guide"

    def test_feed_tag(self, client):
        body = client.get("/api/v1/feed", params={"tag": "python"}).json()

        assert [item["slug"] for item in body["data"]] == ["blog/python-async"]

    def test_tags_sorted_by_count(self, client):
        body = client.get("/api/v1/tags").json()

        assert body["data"][0] == {"tag": "React", "count": 2}
        assert body["total"] == 6

    def test_tags_include_blog_stats(self, client):
        stats = client.get("/api/v1/tags").json()["stats"]

        assert stats["total_posts"] == 4
        assert stats["total_tags"] == 6
        assert stats["most_used_tech"][0] == "React"
        assert stats["first_post_date"] == "2022-06-21"
        assert stats["latest_post_date"] == "2024-03-10"


@pytest.mark.unit
class TestSearchEndpoint:
    def test_returns_ranked_matches(self, client):
        response = client.get("/api/v1/search", params={"q": "docker"})

        assert response.status_code == 200
        body = response.json()
        assert body["query"] == "docker"
        first = body["data"][0]
        assert first["slug"] == "blog/docker-for-devs"
        assert {"score", "matches"} <= set(first)
        assert body["cache"]["total"] == 1
        assert response.headers["cache-control"] == "no-store"

    def test_repeat_query_hits_cache(self, client):
        client.get("/api/v1/search", params={"q": "docker"})
        body = client.get("/api/v1/search", params={"q": "Docker"}).json()

        assert body["cache"]["hits"] == 1
        assert body["cache"]["total"] == 1

    def test_blank_query(self, client):
        body = client.get("/api/v1/search", params={"q": "  "}).json()

        assert body["data"] == []
        assert body["cache"]["total"] == 0

    def test_limit(self, client):
        body = client.get("/api/v1/search", params={"q": "react", "limit": 1}).json()

        assert len(body["data"]) == 1


@pytest.mark.unit
class TestHealthAndMetrics:
    def test_health(self, client):
        body = client.get("/api/v1/health").json()

        assert body["status"] == "ok"
        assert body["posts"] == {"total": 4}
        assert "error" not in body

    def test_trace_id_echoed(self, client):
        response = client.get("/api/v1/health", headers={"X-Trace-Id": "f" * 32})

        assert response.headers["x-trace-id"] == "f" * 32

    def test_trace_id_minted_when_absent(self, client):
        response = client.get("/api/v1/health")

        assert len(response.headers["x-trace-id"]) == 32

    def test_metrics_exposed(self, client):
        client.get("/api/v1/search", params={"q": "docker"})

        response = client.get("/metrics")

        assert response.status_code == 200
        assert "search_queries_total" in response.text
        assert "http_requests_total" in response.text

    def test_request_count_uses_route_template(self, client):
        client.get("/api/v1/posts")
        client.get("/api/v1/posts/not-a-route")
        client.get("/nope-12345")

        text = client.get("/metrics").text

        assert 'route="/api/v1/posts",status="200"' in text
        assert 'route="unmatched",status="404"' in text
        assert "nope-12345" not in text
        assert "not-a-route" not in text


@pytest.mark.unit
class TestMissingDataset:
    def test_data_endpoints_unavailable(self, broken_client):
        for path in ("/api/v1/posts", "/api/v1/feed", "/api/v1/tags", "/api/v1/search?q=react"):
            response = broken_client.get(path)
            assert response.status_code == 503
            assert response.json()["message"] == "Posts unavailable"

    def test_health_degraded(self, broken_client):
        body = broken_client.get("/api/v1/health").json()

        assert body["status"] == "degraded"
        assert body["error"] == "file not found"
        assert body["posts"] == {"total": 0}


@pytest.mark.unit
def test_builder_keeps_search_stack(settings, sample_posts):
    builder = AppBuilder(settings, posts=sample_posts)

    builder.build()

    assert len(builder.index) == 4
    assert builder.executor.cache is builder.cache


@pytest.mark.unit
def test_cache_headers_without_key():
    headers = cache_headers()

    assert "ETag" not in headers
    assert headers["Cache-Control"].startswith("s-maxage=300")


@pytest.mark.unit
@pytest.mark.asyncio
async def test_search_endpoint_requires_build(settings, sample_posts):
    endpoint = AppBuilder(settings, posts=sample_posts)._build_search_endpoint()
    request = Request({"type": "http", "method": "GET", "path": "/api/v1/search", "query_string": b"q=react"})

    with pytest.raises(RuntimeError, match="has not run"):
        await endpoint(request)
