"""Shared test fixtures and configuration."""

import json
import os

import pytest


# Complete test environment that overrides every config value read from env
TEST_ENV = {
    "POSTS_PATH": ".velite/posts.json",
    "INCLUDE_DRAFTS": "false",
    "SITE_URL": "https://blog.example.com",
    "SEARCH_THRESHOLD": "0.3",
    "SEARCH_MIN_MATCH_CHAR_LENGTH": "2",
    "SEARCH_RESULT_LIMIT": "20",
    "SEARCH_DEBOUNCE_MS": "200",
    "SEARCH_CACHE_MAX_SIZE": "50",
    "SEARCH_CACHE_MAX_AGE_SECONDS": "300",
    "API_HOST": "127.0.0.1",
    "API_PORT": "13001",
    "LOG_LEVEL": "info",
    "LOG_JSON": "false",
    "OTLP_ENDPOINT": "",
}


# Set environment variables immediately when conftest.py is loaded
for key, value in TEST_ENV.items():
    os.environ[key] = value

from blog_search.domain.model import PostRecord
from blog_search.search.index import PostSearchIndex
from blog_search.services.query_cache import QueryCache


SAMPLE_POSTS = [
    {
        "slug": "blog/react-hooks-guide",
        "title": "React Hooks Guide",
        "description": "Everything about useState and useEffect",
        "body": "Hooks let function components hold state and run effects.",
        "date": "2024-03-10",
        "tags": ["React", "JavaScript"],
    },
    {
        "slug": "blog/python-async",
        "title": "Async Python in Practice",
        "description": "Event loops, tasks and cancellation",
        "body": "asyncio gives Python cooperative concurrency.",
        "date": "2023-11-02",
        "tags": ["Python"],
    },
    {
        "slug": "blog/docker-for-devs",
        "title": "Docker for Developers",
        "description": "Containers without the pain",
        "body": "Build small images and keep layers cached.",
        "date": "2022-06-21",
        "tags": ["Docker", "DevOps"],
    },
    {
        "slug": "blog/nextjs-routing",
        "title": "Next.js App Router",
        "description": "Layouts, loading states and React server components",
        "body": "The app directory changes how routing works.",
        "date": "2024-01-15",
        "tags": ["Next.js", "React"],
    },
]


@pytest.fixture(autouse=True)
def clean_environment(monkeypatch):
    """Reset environment variables to test defaults before each test."""
    for key, value in TEST_ENV.items():
        monkeypatch.setenv(key, value)


class FakeClock:
    """Manually advanced monotonic clock."""

    def __init__(self, start: float = 1000.0) -> None:
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


@pytest.fixture
def fake_clock():
    return FakeClock()


@pytest.fixture
def sample_posts():
    """Validated sample posts in collection order."""
    return [PostRecord.model_validate(item) for item in SAMPLE_POSTS]


@pytest.fixture
def search_index(sample_posts):
    return PostSearchIndex(sample_posts)


@pytest.fixture
def query_cache(fake_clock):
    """Fresh cache per test, driven by the fake clock."""
    return QueryCache(max_size=50, max_age=300, clock=fake_clock)


@pytest.fixture
def posts_file(tmp_path):
    """Write the sample posts plus one draft to a temporary posts.json."""
    payload = [*SAMPLE_POSTS, {**SAMPLE_POSTS[0], "slug": "blog/draft-post", "title": "Draft", "published": False}]
    path = tmp_path / "posts.json"
    path.write_text(json.dumps(payload), encoding="utf-8")
    return path
